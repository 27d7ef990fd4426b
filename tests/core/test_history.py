import logging
from pathlib import Path

import pytest

from project_maps.core import engine
from project_maps.core.config import ProjectMapsConfig
from project_maps.core.errors import ArtifactMissingError, GenerationNotFoundError
from project_maps.core.history import compare_dependencies, compare_files, compare_modules, diff_generations
from project_maps.core.store import MapStore


def _make_file(path: str, size: int = 100, lines: int = 10, digest: str = "aaa", **extra) -> dict:
    return {"path": path, "size": size, "lines": lines, "hash": digest, "modified": 1.0, **extra}


def _make_documents(files: list, graph: dict, external: dict) -> dict:
    return {
        "summary": {"generated": "2026-01-01T00:00:00Z", "statistics": {"total_files": len(files)}},
        "metadata": {"generated": "2026-01-01T00:00:00Z", "files": files},
        "dependencies-forward": {"graph": graph, "external": external},
    }


def test_compare_files_reports_property_changes() -> None:
    old = {"files": [_make_file("a.js"), _make_file("b.js"), _make_file("gone.js", exports=["x"])]}
    new = {"files": [
        _make_file("a.js", size=140, lines=12, digest="bbb", exports=["run"]),
        _make_file("b.js"),
        _make_file("new.js"),
    ]}

    diff = compare_files(old, new)

    assert diff["added"] == ["new.js"]
    assert diff["removed"] == ["gone.js"]
    assert diff["stats"] == {"added": 1, "removed": 1, "modified": 1, "unchanged": 1}
    changes = {change["property"]: change for change in diff["modified"][0]["changes"]}
    assert diff["modified"][0]["path"] == "a.js"
    assert changes["size"] == {"property": "size", "old": 100, "new": 140, "delta": 40}
    assert changes["lines"]["delta"] == 2
    assert "delta" not in changes["hash"]
    assert changes["exports"] == {"property": "exports", "added": ["run"], "removed": []}


def test_touched_file_is_not_modified() -> None:
    old = {"files": [_make_file("a.js")]}
    new = {"files": [dict(_make_file("a.js"), modified=99.0)]}

    assert compare_files(old, new)["modified"] == []


def test_compare_dependencies() -> None:
    old = {"graph": {"a.js": ["b.js", "c.js"]}, "external": {"lodash": ["a.js"]}}
    new = {"graph": {"a.js": ["b.js"], "d.js": ["b.js"]}, "external": {"lodash": ["a.js"], "axios": ["d.js"]}}

    diff = compare_dependencies(old, new)

    assert diff["added_edges"] == [{"source": "d.js", "target": "b.js"}]
    assert diff["removed_edges"] == [{"source": "a.js", "target": "c.js"}]
    assert diff["added_packages"] == ["axios"]
    assert diff["removed_packages"] == []
    assert diff["files_affected"] == ["a.js", "d.js"]
    assert diff["stats"]["unchanged_edges"] == 1


def test_compare_modules() -> None:
    old = {"modules": {"auth": {"stats": {"file_count": 3}}, "legacy": {"stats": {"file_count": 1}}}}
    new = {"modules": {"auth": {"stats": {"file_count": 5}}, "billing": {"stats": {"file_count": 2}}}}

    diff = compare_modules(old, new)

    assert diff == {
        "added": ["billing"],
        "removed": ["legacy"],
        "resized": [{"name": "auth", "old_files": 3, "new_files": 5, "delta": 2}],
    }


def test_diff_defaults_to_previous_generation(tmp_path: Path) -> None:
    store = MapStore(tmp_path, ProjectMapsConfig())
    first = store.publish(_make_documents([_make_file("a.js")], {}, {}))
    second = store.publish(_make_documents(
        [_make_file("a.js"), _make_file("b.js")], {"b.js": ["a.js"]}, {"react": ["b.js"]},
    ))

    report = diff_generations(store)

    assert (report["from_generation"], report["to_generation"]) == (first, second)
    assert report["files"]["added"] == ["b.js"]
    assert report["dependencies"]["added_packages"] == ["react"]
    # No modules artifact in either generation
    assert report["modules"] is None
    assert "modules" in report["unavailable"]
    assert report["summary"] == {
        "has_changes": True,
        "total_changes": 3,
        "changes_by_type": {"files": 1, "dependencies": 2},
    }


def test_diff_without_maps_or_earlier_generation(tmp_path: Path) -> None:
    store = MapStore(tmp_path, ProjectMapsConfig())
    with pytest.raises(ArtifactMissingError):
        diff_generations(store)

    only = store.publish(_make_documents([], {}, {}))

    with pytest.raises(GenerationNotFoundError):
        diff_generations(store)
    with pytest.raises(GenerationNotFoundError) as exc_info:
        diff_generations(store, from_generation="20000101T000000000000Z-abcdef", to_generation=only)
    assert exc_info.value.generation == "20000101T000000000000Z-abcdef"


def test_engine_diff_after_refresh(shop_api: Path, config: ProjectMapsConfig) -> None:
    context = engine.open_project(shop_api, config)
    engine.generate(context)

    service = shop_api / "src/services/userService.js"
    service.write_text(
        service.read_text(encoding="utf-8") + "\nasync function removeUser(id) {\n  return User.deleteOne({ id });\n}\n",
        encoding="utf-8",
    )
    (shop_api / "src/services/paymentService.js").write_text(
        "const stripe = require('stripe');\nconst Order = require('../models/order');\n\n"
        "async function charge(id) {\n  return stripe.charges.create(await Order.findById(id));\n}\n",
        encoding="utf-8",
    )
    engine.refresh(context, "incremental")

    report = engine.diff(context)

    assert report["files"]["added"] == ["src/services/paymentService.js"]
    assert [entry["path"] for entry in report["files"]["modified"]] == ["src/services/userService.js"]
    assert {"source": "src/services/paymentService.js", "target": "src/models/order.js"} in report["dependencies"]["added_edges"]
    assert report["dependencies"]["added_packages"] == ["stripe"]
    assert report["dependencies"]["removed_edges"] == []
    assert report["summary"]["has_changes"] is True
    assert report["unavailable"] == {}


def test_engine_diff_with_corrupt_metadata(shop_api: Path, config: ProjectMapsConfig, caplog) -> None:
    context = engine.open_project(shop_api, config)
    engine.generate(context)
    current = engine.refresh(context, "full").generation
    (context.store.generation_path(current) / "metadata.json").write_text("garbage", encoding="utf-8")
    caplog.set_level(logging.WARNING)

    report = engine.diff(context)

    assert report["files"] is None
    assert "files" in report["unavailable"]
    assert report["dependencies"]["added_edges"] == []
    assert report["summary"]["has_changes"] is False
    assert "metadata" in caplog.text


def test_history_lists_generations(shop_api: Path, config: ProjectMapsConfig) -> None:
    context = engine.open_project(shop_api, config)
    first = engine.generate(context).generation
    second = engine.refresh(context, "full").generation

    entries = engine.history(context)

    assert [entry["generation"] for entry in entries] == [first, second]
    assert [entry["current"] for entry in entries] == [False, True]
    assert entries[-1]["total_files"] == entries[0]["total_files"]
    assert entries[-1]["architecture"] == "service-oriented"
