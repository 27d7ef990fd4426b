import pytest

from project_maps.core.compression import combined_stats, compress, decompress


def _make_document(count: int = 12) -> dict:
    files = [
        {
            "path": f"src/services/service{index % 3}.js",
            "type": "javascript",
            "role": "source",
            "layer": "services",
            "lines": index,
            "signatures": [{"name": f"handler{index}", "kind": "function", "is_async": index % 2 == 0}],
        }
        for index in range(count)
    ]
    return {"files": files, "summary": {"total": count, "note": "@not a reference"}}


def test_level_one_only_minifies() -> None:
    document = _make_document()

    envelope = compress(document, abbreviate_threshold=10 ** 9, deduplicate_threshold=10 ** 9)

    metadata = envelope["metadata"]
    assert envelope["compressed"] is True
    assert metadata["compressionLevel"] == 1
    assert metadata["method"] == "minification"
    assert metadata["keysAbbreviated"] is False
    assert envelope["references"] is None
    assert metadata["compressedSize"] < metadata["originalSize"]
    assert decompress(envelope) == document


def test_level_two_abbreviates_keys() -> None:
    document = _make_document()

    envelope = compress(document, abbreviate_threshold=0, deduplicate_threshold=10 ** 9)

    assert envelope["metadata"]["compressionLevel"] == 2
    assert envelope["metadata"]["keysAbbreviated"] is True
    first = envelope["data"]["fs"][0]
    assert set(first) == {"p", "t", "r", "ly", "l", "sg"}
    assert decompress(envelope) == document


def test_level_three_deduplicates_values() -> None:
    document = _make_document()

    envelope = compress(document, abbreviate_threshold=0, deduplicate_threshold=0)

    assert envelope["metadata"]["compressionLevel"] == 3
    assert envelope["metadata"]["method"] == "value-deduplication"
    references = envelope["references"]
    assert references["layers"] == ["services"]
    assert references["roles"] == ["source"]
    assert envelope["data"]["fs"][0]["ly"] == "@layers:0"
    assert decompress(envelope) == document


def test_abbreviation_skipped_when_keys_collide() -> None:
    # 'p' is already an abbreviation, so renaming would be ambiguous
    document = {"files": [{"path": "a.js", "p": 1}]}

    envelope = compress(document, abbreviate_threshold=0, deduplicate_threshold=10 ** 9)

    assert envelope["metadata"]["keysAbbreviated"] is False
    assert decompress(envelope) == document


def test_deduplication_skipped_for_reference_shaped_values() -> None:
    document = _make_document()
    document["summary"]["note"] = "@paths:0"

    envelope = compress(document, abbreviate_threshold=10 ** 9, deduplicate_threshold=0)

    assert envelope["references"] is None
    assert envelope["metadata"]["compressionLevel"] == 1
    assert decompress(envelope) == document


def test_uncompressed_envelope_passes_through() -> None:
    assert decompress({"compressed": False, "data": {"a": 1}}) == {"a": 1}


@pytest.mark.parametrize(
    "envelope",
    [
        [],
        {"compressed": True},
        {"compressed": True, "metadata": {"compressionLevel": 1}, "data": [1, 2]},
        {"compressed": True, "metadata": {"compressionLevel": 3}, "references": {"paths": ["a.js"]},
         "data": {"path": "@paths:4"}},
        {"compressed": True, "metadata": {"compressionLevel": 3}, "references": ["a.js"],
         "data": {"path": "@paths:0"}},
    ],
)
def test_malformed_envelopes_raise(envelope) -> None:
    with pytest.raises(ValueError):
        decompress(envelope)


def test_combined_stats() -> None:
    stats = combined_stats({
        "files": {"originalSize": 1000, "compressedSize": 400},
        "graph": {"originalSize": 500, "compressedSize": 250},
    })

    assert stats["totalOriginalSize"] == 1500
    assert stats["totalCompressedSize"] == 650
    assert stats["combinedRatio"] == "56.7%"
    assert stats["artifacts"]["files"]["compressionRatio"] == "60.0%"
    assert stats["artifacts"]["graph"]["compressionRatio"] == "50.0%"
