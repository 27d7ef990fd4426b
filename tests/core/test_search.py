import pytest

from project_maps.core.errors import ArtifactCorruptError, InvalidQueryError
from project_maps.core.models import FileRecord, ImportRef, Signature
from project_maps.core.search import SearchIndex, SignatureCriteria, match_quality
from project_maps.core.store import MapSnapshot


def _make_record(path: str, signatures=(), exports=(), imports=(), layer=None) -> FileRecord:
    name = path.rsplit("/", 1)[-1]
    return FileRecord(
        path=path,
        name=name,
        extension=name.rsplit(".", 1)[-1],
        file_type="javascript",
        language="JavaScript",
        role="source",
        size=10,
        lines=1,
        modified=0.0,
        hash="",
        layer=layer,
        exports=list(exports),
        imports=list(imports),
        signatures=list(signatures),
    )


def _make_index() -> SearchIndex:
    records = [
        _make_record(
            "src/services/userService.js",
            signatures=[
                Signature(name="getUser", kind="function", line=3, parameters=["id"], is_async=True, is_exported=True),
                Signature(name="listUsers", kind="function", line=9, parameters=[], is_async=True, is_exported=True),
                Signature(name="normalize", kind="function", line=15, parameters=["value", "options = {}"]),
            ],
            exports=["getUser", "listUsers"],
            imports=[ImportRef(source="../models/user", line=1, resolved="src/models/user.js", category="internal")],
            layer="services",
        ),
        _make_record(
            "src/models/user.js",
            signatures=[
                Signature(name="User", kind="class", line=2, is_exported=True),
                Signature(name="save", kind="method", line=4, parameters=["options"], class_name="User",
                          return_type="Promise<void>", is_async=True),
                Signature(name="Role", kind="enum", line=10),
            ],
            exports=["User"],
            imports=[ImportRef(source="mongoose", line=1, category="external")],
            layer="models",
        ),
    ]
    return SearchIndex(records, {"src/models/user.js": 3})


@pytest.mark.parametrize(
    "name, pattern, quality",
    [
        ("getUser", "getUser", "exact"),
        ("getUser", "GETUSER", "exact"),
        ("getUser", "get", "prefix"),
        ("getUser", "user", "contains"),
        ("getUser", "post", None),
        ("getUser", "", "contains"),
        ("getUser", "*", "contains"),
        ("getUser", "get*", "prefix"),
        ("getUser", "*User", "contains"),
        ("getUser", "*user*", "contains"),
        ("getUser", "get*r", "contains"),
        ("getUser", "getUser*", "exact"),
        ("getUser", "*x*", None),
        ("getUser", "g?tUser", "contains"),
    ],
)
def test_match_quality(name: str, pattern: str, quality: str) -> None:
    assert match_quality(name, pattern) == quality


def test_search_signatures_by_name() -> None:
    hits = _make_index().search("signature", "user")

    assert sorted(hit.name for hit in hits) == ["User", "User.save", "getUser", "listUsers"]


def test_qualified_method_name_matches() -> None:
    hits = _make_index().search("function", "User.save")

    assert [(hit.name, hit.match_quality) for hit in hits] == [("User.save", "exact")]
    assert hits[0].return_type == "Promise<void>"
    assert hits[0].dependents == 3


def test_narrowed_search_types() -> None:
    index = _make_index()

    assert [hit.name for hit in index.search("class", "*")] == ["User"]
    assert [hit.name for hit in index.search("type", "*")] == ["Role"]
    assert "User" not in [hit.name for hit in index.search("function", "*")]


def test_signature_criteria() -> None:
    index = _make_index()

    criteria = SignatureCriteria.from_options({"is_async": True, "param_count": 1, "ignored": "x"})
    assert sorted(hit.name for hit in index.search("signature", "*", criteria)) == ["User.save", "getUser"]

    criteria = SignatureCriteria.from_options({"has_parameter": "options"})
    assert sorted(hit.name for hit in index.search("signature", "*", criteria)) == ["User.save", "normalize"]

    criteria = SignatureCriteria.from_options({"return_type": "promise"})
    assert [hit.name for hit in index.search("signature", "*", criteria)] == ["User.save"]

    criteria = SignatureCriteria.from_options({"min_params": 2, "exported": False})
    assert [hit.name for hit in index.search("signature", "*", criteria)] == ["normalize"]


def test_empty_criteria_do_not_filter() -> None:
    criteria = SignatureCriteria.from_options({})

    assert criteria.is_empty()
    assert len(_make_index().search("signature", "*", criteria)) == 6


def test_search_files_and_exports() -> None:
    index = _make_index()

    files = index.search("file", "user")
    assert [(hit.file, hit.match_quality) for hit in files] == [
        ("src/models/user.js", "exact"),
        ("src/services/userService.js", "prefix"),
    ]
    assert [hit.file for hit in index.search("file", "src/models/*")] == ["src/models/user.js"]

    exports = index.search("export", "getUser")
    assert exports[0].line == 3
    assert exports[0].is_exported


def test_search_imports_matches_resolved_path() -> None:
    index = _make_index()

    assert [hit.name for hit in index.search("import", "mongoose")] == ["mongoose"]
    assert [hit.file for hit in index.search("import", "src/models/user.js")] == ["src/services/userService.js"]


def test_search_all_combines_categories() -> None:
    kinds = {hit.kind for hit in _make_index().search("all", "user")}

    assert kinds == {"file", "export", "function", "class", "method", "import"}


def test_fuzzy_search() -> None:
    index = _make_index()

    hits = index.search("fuzzy", "getUsr", max_distance=2)
    assert {(hit.name, hit.kind) for hit in hits} == {("getUser", "function"), ("getUser", "export")}
    assert all(hit.match_quality == "fuzzy" and hit.distance == 1 for hit in hits)

    assert index.search("fuzzy", "getU", max_distance=2) == []

    exact = index.search("fuzzy", "NORMALIZE", max_distance=2)
    assert [(hit.name, hit.match_quality, hit.distance) for hit in exact] == [("normalize", "exact", 0)]


def test_unknown_search_type() -> None:
    with pytest.raises(InvalidQueryError):
        _make_index().search("everything", "x")


def test_index_from_snapshot_requires_metadata() -> None:
    snapshot = MapSnapshot(generation="g", unavailable={"metadata": "bad json"})

    with pytest.raises(ArtifactCorruptError) as excinfo:
        SearchIndex.from_snapshot(snapshot)

    assert excinfo.value.reason == "bad json"


def test_index_from_snapshot() -> None:
    record = _make_record("a.js", exports=["a"])
    snapshot = MapSnapshot(
        generation="g",
        documents={
            "metadata": {"files": [record.to_dict()]},
            "dependencies-reverse": {"graph": {"a.js": ["b.js", "c.js"]}},
        },
    )

    index = SearchIndex.from_snapshot(snapshot)

    assert index.search("export", "a")[0].dependents == 2
