import json
from pathlib import Path
from typing import List

import pytest

from project_maps.core.frameworks import (
    detect_framework,
    detect_package_manager,
    detect_runtime,
    detect_stack,
    find_entry_points,
    known_packages,
)
from project_maps.core.graph import build_graph, resolve_records
from project_maps.core.models import Endpoint, FileRecord, ImportRef
from project_maps.core.packages import build_npm_dependencies, load_manifests

from conftest import write_tree


def _make_record(path: str, role: str = "source", file_type: str = "javascript", imports: List[str] = ()) -> FileRecord:
    name = path.rsplit("/", 1)[-1]
    return FileRecord(
        path=path,
        name=name,
        extension=name.rsplit(".", 1)[-1] if "." in name else "",
        file_type=file_type,
        language="JavaScript",
        role=role,
        size=10,
        lines=1,
        modified=0.0,
        hash="",
        imports=[ImportRef(source=source) for source in imports],
    )


@pytest.mark.parametrize(
    "names, packages, expected",
    [
        (["next.config.js"], {"react"}, "Next.js"),
        (["index.js"], {"next", "react"}, "Next.js"),
        (["index.js"], {"react", "react-dom"}, "React"),
        (["index.js"], {"express"}, "Express"),
        (["manage.py"], {"django"}, "Django"),
        (["index.js"], set(), "Unknown"),
    ],
)
def test_detect_framework(names: List[str], packages: set, expected: str) -> None:
    files = [_make_record(name) for name in names]

    assert detect_framework(files, packages)["name"] == expected


def test_framework_from_file_types() -> None:
    files = [_make_record(f"src/C{index}.tsx", file_type="typescript-react") for index in range(6)]

    assert detect_framework(files, set()) == {"name": "React", "type": "react"}


@pytest.mark.parametrize(
    "lock_file, manager",
    [("pnpm-lock.yaml", "pnpm"), ("yarn.lock", "yarn"), ("package-lock.json", "npm"), ("poetry.lock", "poetry")],
)
def test_package_manager_from_lock_file(tmp_path: Path, lock_file: str, manager: str) -> None:
    (tmp_path / lock_file).write_text("", encoding="utf-8")

    assert detect_package_manager(tmp_path) == manager


def test_package_manager_fallbacks(tmp_path: Path) -> None:
    assert detect_package_manager(tmp_path) == "unknown"
    (tmp_path / "requirements.txt").write_text("flask\n", encoding="utf-8")
    assert detect_package_manager(tmp_path) == "pip"


def test_detect_runtime() -> None:
    assert detect_runtime([_make_record("package.json", role="build")], {}) == "Node.js"
    assert detect_runtime([_make_record("go.mod", role="build")], {}) == "Go"
    assert detect_runtime([], {"Python": 3, "TypeScript": 1}) == "Python"
    assert detect_runtime([], {}) == "unknown"


def test_find_entry_points_shallow_first() -> None:
    files = [
        _make_record("src/server.js"),
        _make_record("index.html", role="other"),
        _make_record("packages/web/src/index.ts"),
        _make_record("tests/app.js", role="test"),
    ]

    assert find_entry_points(files) == [
        {"file": "index.html", "type": "web"},
        {"file": "src/server.js", "type": "backend"},
        {"file": "packages/web/src/index.ts", "type": "main"},
    ]


def test_stack_combines_detectors(tmp_path: Path) -> None:
    (tmp_path / "yarn.lock").write_text("", encoding="utf-8")
    server = FileRecord(
        path="app.py", name="app.py", extension="py", file_type="python", language="Python", role="source",
        size=1, lines=1, modified=0.0, hash="", endpoints=[Endpoint(method="GET", path="/", framework="flask")],
    )
    files = [_make_record("package.json", role="build"), _make_record("jest.config.js", role="config"), server]

    stack = detect_stack(tmp_path, files, {"express", "mongoose", "vite", "zustand"}, {"JavaScript": 3})

    assert stack == {
        "runtime": "Node.js",
        "package_manager": "yarn",
        "framework": "Express",
        "framework_type": "node-backend",
        "backend_frameworks": ["Express", "Flask"],
        "bundler": "Vite",
        "testing": ["Jest"],
        "database": ["MongoDB (Mongoose)"],
        "state_management": ["Zustand"],
    }


def test_manifests_and_npm_dependencies(tmp_path: Path) -> None:
    write_tree(tmp_path, {
        "package.json": json.dumps({
            "name": "shop",
            "version": "1.0.0",
            "dependencies": {"express": "^4.18.0", "lodash": "^4.17.0"},
            "devDependencies": {"jest": "^29.0.0"},
            "scripts": {"test": "jest"},
        }),
        "broken/package.json": "{nope",
        "requirements.txt": "# tools\nrequests>=2.0\n-r base.txt\nPyYAML==6.0\n",
    })
    files = resolve_records([
        _make_record("package.json", role="build"),
        _make_record("broken/package.json", role="build"),
        _make_record("requirements.txt", role="build"),
        _make_record("src/app.js", imports=["express", "axios"]),
    ])

    manifests = load_manifests(tmp_path, files)

    assert [manifest.path for manifest in manifests.npm] == ["package.json"]
    assert [(issue.path, issue.stage) for issue in manifests.issues] == [("broken/package.json", "manifest")]
    assert manifests.python == {"requests": "requirements.txt", "PyYAML": "requirements.txt"}
    declared = manifests.all_dependency_names()
    assert declared["express"] == "^4.18.0"
    assert "pyyaml" in declared

    graph = build_graph(files)
    assert known_packages(declared, graph) >= {"express", "axios", "jest"}

    result = build_npm_dependencies(manifests, graph, {"runtime": "Node.js"})

    assert result["packages"]["express"]["used_in"] == ["src/app.js"]
    assert result["packages"]["jest"]["type"] == "development"
    assert result["summary"]["production"] == 2
    assert result["summary"]["unused"] == ["lodash"]
    assert result["summary"]["undeclared_imports"] == ["axios"]
    assert result["summary"]["most_used"] == [{"name": "express", "files": 1}]
    assert result["manifests"][0]["scripts"] == {"test": "jest"}
    assert result["stack"] == {"runtime": "Node.js"}
