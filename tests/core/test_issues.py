from typing import Iterable

from project_maps.core.graph import build_graph, resolve_records
from project_maps.core.issues import analyze_issues, detect_cycles, find_unused_files
from project_maps.core.models import ArchitectureViolation, FileRecord, ImportRef, ScanIssue


def _make_record(path: str, imports: Iterable[str] = (), role: str = "source") -> FileRecord:
    name = path.rsplit("/", 1)[-1]
    return FileRecord(
        path=path,
        name=name,
        extension=name.rsplit(".", 1)[-1],
        file_type="javascript",
        language="JavaScript",
        role=role,
        size=10,
        lines=1,
        modified=0.0,
        hash="",
        imports=[ImportRef(source=source, line=1) for source in imports],
    )


def test_detect_cycles() -> None:
    graph = {
        "a.js": ["b.js"],
        "b.js": ["c.js"],
        "c.js": ["a.js"],
        "d.js": ["d.js"],
        "e.js": ["a.js"],
    }

    assert detect_cycles(graph) == [["a.js", "b.js", "c.js", "a.js"], ["d.js", "d.js"]]


def test_acyclic_graph_has_no_cycles() -> None:
    assert detect_cycles({"a.js": ["b.js", "c.js"], "b.js": ["c.js"]}) == []


def test_unused_files_skip_entry_points_and_tests() -> None:
    files = resolve_records([
        _make_record("src/index.js", ["./used"]),
        _make_record("src/used.js"),
        _make_record("src/orphan.js"),
        _make_record("src/cli/run.js"),
        _make_record("src/orphan.test.js", ["./orphan"], role="test"),
    ])

    unused = find_unused_files(files, build_graph(files), {"src/cli/run.js"})

    # orphan.js is only imported by a test, which still counts as a dependent
    assert unused == []

    files = files[:4]
    assert find_unused_files(files, build_graph(files), {"src/cli/run.js"}) == ["src/orphan.js"]


def test_analyze_issues() -> None:
    files = resolve_records([
        _make_record("src/index.js", ["./a", "./missing"]),
        _make_record("src/a.js", ["./b"]),
        _make_record("src/b.js", ["./a"]),
        _make_record("src/lonely.js"),
    ])
    violation = ArchitectureViolation(
        file="src/a.js", target="src/b.js", source_layer="models", target_layer="controllers", pattern="mvc",
    )
    scan_issue = ScanIssue(path="big.js", stage="scan", reason="file too large")

    result = analyze_issues(files, build_graph(files), [violation], [scan_issue], set())

    assert result["broken_imports"] == [{
        "type": "broken-import",
        "severity": "warning",
        "file": "src/index.js",
        "import": "./missing",
        "line": 1,
        "message": "Cannot resolve import './missing'",
    }]
    assert [item["files"] for item in result["circular_dependencies"]] == [["src/a.js", "src/b.js", "src/a.js"]]
    assert [item["file"] for item in result["unused_files"]] == ["src/lonely.js"]
    item = result["architecture_violations"][0]
    assert item["type"] == "architecture-violation"
    assert item["violation_type"] == "upward-dependency"
    assert item["severity"] == "error"
    assert item["message"] == "models should not depend on controllers (violates mvc hierarchy)"
    assert result["scan_issues"][0]["stage"] == "scan"
    assert result["summary"]["by_severity"] == {"error": 1, "warning": 3, "info": 1}
    assert result["summary"]["total"] == 5


def test_cycles_in_long_import_chain() -> None:
    count = 2000
    files = resolve_records([
        _make_record(f"src/m{index}.js", [f"./m{(index + 1) % count}"]) for index in range(count)
    ])

    result = analyze_issues(files, build_graph(files), [], [], {"src/m0.js"})

    cycle = result["circular_dependencies"][0]["files"]
    assert len(result["circular_dependencies"]) == 1
    assert cycle[0] == cycle[-1] == "src/m0.js"
    assert cycle[1:4] == ["src/m1.js", "src/m2.js", "src/m3.js"]
    assert len(cycle) == count + 1


def test_long_acyclic_chain_has_no_cycles() -> None:
    graph = {f"m{index}.js": [f"m{index + 1}.js"] for index in range(3000)}

    assert detect_cycles(graph) == []
