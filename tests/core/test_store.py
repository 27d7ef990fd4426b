import json
import logging
from pathlib import Path

import pytest

from project_maps.core.config import ProjectMapsConfig
from project_maps.core.errors import ArtifactCorruptError, ArtifactMissingError
from project_maps.core.queries import UnavailableResult, run_query
from project_maps.core.store import CURRENT_POINTER, STAGING_PREFIX, MapLoader, MapStore


def _make_store(tmp_path: Path) -> MapStore:
    return MapStore(tmp_path, ProjectMapsConfig())


def _make_documents(generation_label: str = "one") -> dict:
    return {
        "summary": {"project": {"name": generation_label}, "statistics": {"total_files": 2}},
        "data-flow": {"pattern": "service-oriented", "flows": [], "violations": []},
    }


def test_publish_writes_generation_and_pointer(tmp_path: Path) -> None:
    store = _make_store(tmp_path)

    generation = store.publish(_make_documents())

    assert store.current_generation() == generation
    assert (tmp_path / ".project-maps" / CURRENT_POINTER).read_text(encoding="utf-8") == generation
    envelope = json.loads((store.generation_path(generation) / "summary.json").read_text(encoding="utf-8"))
    assert envelope["compressed"] is True
    assert store.load_artifact("summary") == _make_documents()["summary"]


def test_publish_leaves_no_staging_directories(tmp_path: Path) -> None:
    store = _make_store(tmp_path)
    store.publish(_make_documents())

    leftovers = [entry.name for entry in store.generations_dir.iterdir() if entry.name.startswith(STAGING_PREFIX)]
    assert leftovers == []
    assert list(store.root.glob("*.tmp")) == []


def test_prune_keeps_two_generations(tmp_path: Path) -> None:
    store = _make_store(tmp_path)

    published = [store.publish(_make_documents(label)) for label in ("one", "two", "three")]

    assert store.list_generations() == published[1:]
    assert store.current_generation() == published[-1]


def test_current_generation_always_survives_prune(tmp_path: Path) -> None:
    store = MapStore(tmp_path, ProjectMapsConfig(generations_retained=0))

    generation = store.publish(_make_documents())

    assert store.list_generations() == [generation]


def test_missing_pointer_raises_artifact_missing(tmp_path: Path) -> None:
    store = _make_store(tmp_path)

    assert store.current_generation() is None
    with pytest.raises(ArtifactMissingError):
        store.load_artifact("summary")
    with pytest.raises(ArtifactMissingError):
        MapLoader(store).snapshot()


def test_pointer_to_missing_generation(tmp_path: Path, caplog) -> None:
    store = _make_store(tmp_path)
    store.root.mkdir(parents=True)
    (store.root / CURRENT_POINTER).write_text("20240101T000000000000Z-abcdef", encoding="utf-8")

    assert store.current_generation() is None
    assert "missing generation" in caplog.text


def test_snapshot_is_cached_per_generation(tmp_path: Path) -> None:
    store = _make_store(tmp_path)
    loader = MapLoader(store)
    store.publish(_make_documents("one"))

    first = loader.snapshot()
    assert loader.snapshot() is first
    assert first.get("summary")["project"]["name"] == "one"
    assert first.unavailable["tree"] == "artifact not generated"

    store.publish(_make_documents("two"))
    second = loader.snapshot()

    assert second is not first
    assert second.get("summary")["project"]["name"] == "two"
    # The earlier snapshot is untouched
    assert first.get("summary")["project"]["name"] == "one"


def test_corrupt_artifact_is_unavailable(tmp_path: Path, caplog) -> None:
    store = _make_store(tmp_path)
    generation = store.publish(_make_documents())
    (store.generation_path(generation) / "data-flow.json").write_text("{not json", encoding="utf-8")
    caplog.set_level(logging.WARNING)

    with pytest.raises(ArtifactCorruptError):
        store.load_artifact("data-flow")

    snapshot = MapLoader(store).snapshot()
    assert "data-flow" in snapshot.unavailable
    assert "data-flow" in caplog.text

    result = run_query(snapshot, "data-flow")
    assert isinstance(result, UnavailableResult)
    assert result.artifact == "data-flow"
    # Other artifacts keep answering
    assert run_query(snapshot, "summary").kind == "summary"


def test_envelope_with_bad_payload_is_corrupt(tmp_path: Path) -> None:
    store = _make_store(tmp_path)
    generation = store.publish(_make_documents())
    (store.generation_path(generation) / "summary.json").write_text(
        json.dumps({"compressed": True, "metadata": {"compressionLevel": 1}, "data": [1]}), encoding="utf-8"
    )

    with pytest.raises(ArtifactCorruptError):
        store.load_artifact("summary")


def test_stats_combine_artifacts(tmp_path: Path) -> None:
    store = _make_store(tmp_path)
    generation = store.publish(_make_documents())

    stats = store.stats()

    assert stats["generation"] == generation
    assert sorted(stats["artifacts"]) == ["data-flow", "summary"]
    assert stats["totalOriginalSize"] == sum(a["originalSize"] for a in stats["artifacts"].values())
    assert stats["combinedRatio"].endswith("%")
    assert stats["unavailable"] == {}
