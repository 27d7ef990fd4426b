"""
History of published generations and the differences between two of them.

The store keeps the previous generation next to the current one, so after
a refresh the two can be compared: files added, removed or modified
(``metadata``), import edges and external packages gained or lost
(``dependencies-forward``) and modules that appeared, disappeared or
changed size (``modules``). A section whose artifact cannot be loaded in
either generation is reported as unavailable; the other sections still
answer.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .errors import ArtifactCorruptError, ArtifactMissingError, GenerationNotFoundError
from .store import MapStore

# Modification time is left out: a touch without an edit keeps the hash
FILE_PROPERTIES = ["size", "lines", "hash"]


def _file_changes(old: Dict[str, Any], new: Dict[str, Any]) -> List[Dict[str, Any]]:
    changes = []
    for name in FILE_PROPERTIES:
        before, after = old.get(name), new.get(name)
        if before == after:
            continue
        change = {"property": name, "old": before, "new": after}
        if isinstance(before, int) and isinstance(after, int):
            change["delta"] = after - before
        changes.append(change)
    old_exports, new_exports = set(old.get("exports") or []), set(new.get("exports") or [])
    if old_exports != new_exports:
        changes.append({
            "property": "exports",
            "added": sorted(new_exports - old_exports),
            "removed": sorted(old_exports - new_exports),
        })
    return changes


def compare_files(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    """File-level differences between two ``metadata`` documents."""
    old_files = {item["path"]: item for item in old.get("files", [])}
    new_files = {item["path"]: item for item in new.get("files", [])}
    modified = []
    unchanged = 0
    for path in sorted(old_files.keys() & new_files.keys()):
        changes = _file_changes(old_files[path], new_files[path])
        if changes:
            modified.append({"path": path, "changes": changes})
        else:
            unchanged += 1
    added = sorted(new_files.keys() - old_files.keys())
    removed = sorted(old_files.keys() - new_files.keys())
    return {
        "added": added,
        "removed": removed,
        "modified": modified,
        "stats": {"added": len(added), "removed": len(removed), "modified": len(modified), "unchanged": unchanged},
    }


def _edges(forward: Dict[str, Any]) -> Set[Tuple[str, str]]:
    return {(source, target) for source, targets in (forward.get("graph") or {}).items() for target in targets}


def compare_dependencies(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    """Import edge and external package differences between two ``dependencies-forward`` documents."""
    old_edges, new_edges = _edges(old), _edges(new)
    added = sorted(new_edges - old_edges)
    removed = sorted(old_edges - new_edges)
    old_packages, new_packages = set(old.get("external") or {}), set(new.get("external") or {})
    return {
        "added_edges": [{"source": source, "target": target} for source, target in added],
        "removed_edges": [{"source": source, "target": target} for source, target in removed],
        "added_packages": sorted(new_packages - old_packages),
        "removed_packages": sorted(old_packages - new_packages),
        "files_affected": sorted({source for source, _ in added + removed}),
        "stats": {
            "added_edges": len(added),
            "removed_edges": len(removed),
            "unchanged_edges": len(old_edges & new_edges),
        },
    }


def compare_modules(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    old_modules, new_modules = old.get("modules") or {}, new.get("modules") or {}
    resized = []
    for name in sorted(old_modules.keys() & new_modules.keys()):
        before = old_modules[name].get("stats", {}).get("file_count", 0)
        after = new_modules[name].get("stats", {}).get("file_count", 0)
        if before != after:
            resized.append({"name": name, "old_files": before, "new_files": after, "delta": after - before})
    return {
        "added": sorted(new_modules.keys() - old_modules.keys()),
        "removed": sorted(old_modules.keys() - new_modules.keys()),
        "resized": resized,
    }


def _change_count(section: str, result: Dict[str, Any]) -> int:
    if section == "files":
        return len(result["added"]) + len(result["removed"]) + len(result["modified"])
    if section == "dependencies":
        return (len(result["added_edges"]) + len(result["removed_edges"])
                + len(result["added_packages"]) + len(result["removed_packages"]))
    return len(result["added"]) + len(result["removed"]) + len(result["resized"])


SECTIONS: List[Tuple[str, str, Callable[[Dict[str, Any], Dict[str, Any]], Dict[str, Any]]]] = [
    ("files", "metadata", compare_files),
    ("dependencies", "dependencies-forward", compare_dependencies),
    ("modules", "modules", compare_modules),
]


def _resolve_pair(store: MapStore, from_generation: Optional[str], to_generation: Optional[str]) -> Tuple[str, str]:
    root = str(store.project_root)
    generations = store.list_generations()
    target = to_generation or store.current_generation()
    if target is None:
        raise ArtifactMissingError(root)
    if target not in generations:
        raise GenerationNotFoundError(root, target)
    if from_generation is None:
        earlier = [generation for generation in generations if generation < target]
        if not earlier:
            raise GenerationNotFoundError(root, f"before {target}")
        return earlier[-1], target
    if from_generation not in generations:
        raise GenerationNotFoundError(root, from_generation)
    return from_generation, target


def diff_generations(
    store: MapStore,
    from_generation: Optional[str] = None,
    to_generation: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Compare two generations; by default the current one against the one before it.

    Raises GenerationNotFoundError when a named generation is gone (pruned)
    or when there is no earlier generation to compare with.
    """
    old_id, new_id = _resolve_pair(store, from_generation, to_generation)
    report: Dict[str, Any] = {"from_generation": old_id, "to_generation": new_id}
    unavailable: Dict[str, str] = {}
    changes_by_type: Dict[str, int] = {}
    for section, artifact, compare in SECTIONS:
        try:
            old = store.load_artifact(artifact, old_id)
            new = store.load_artifact(artifact, new_id)
        except (ArtifactMissingError, ArtifactCorruptError) as e:
            logging.warning(f"Cannot compare {artifact} between {old_id} and {new_id}: {e.message}")
            unavailable[section] = e.message
            report[section] = None
            continue
        if section == "files":
            report["from_generated"] = old.get("generated")
            report["to_generated"] = new.get("generated")
        report[section] = compare(old, new)
        changes_by_type[section] = _change_count(section, report[section])

    total = sum(changes_by_type.values())
    report["summary"] = {"has_changes": total > 0, "total_changes": total, "changes_by_type": changes_by_type}
    report["unavailable"] = unavailable
    logging.info(f"Compared generations {old_id} and {new_id}: {total} changes")
    return report


def generation_history(store: MapStore) -> List[Dict[str, Any]]:
    """Every retained generation, oldest first, with its summary headline."""
    current = store.current_generation()
    entries = []
    for generation in store.list_generations():
        entry: Dict[str, Any] = {"generation": generation, "current": generation == current}
        try:
            summary = store.load_artifact("summary", generation)
        except (ArtifactMissingError, ArtifactCorruptError) as e:
            entry["unavailable"] = e.message
        else:
            entry["generated"] = summary.get("generated")
            entry["total_files"] = (summary.get("statistics") or {}).get("total_files")
            entry["architecture"] = (summary.get("architecture") or {}).get("type")
        entries.append(entry)
    return entries
