"""
Business module detection and module-level dependencies.

Files are grouped into modules by, in order: a module container directory
(``features/<name>/...``, ``packages/<name>/...``), a well-known module
name prefix on the file, co-location of three or more files in a nested
directory, and finally the file's top-level directory.
"""

import re
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from .graph import DependencyGraph
from .models import FileRecord
from .utils import path_parts

MODULE_CONTAINERS = ["features", "modules", "domains", "packages", "apps", "services"]
MODULE_NAME_RE = re.compile(
    r"^(auth|user|product|tenant|billing|payment|notification|admin|dashboard|report|analytics|"
    r"settings|profile|order|cart|checkout|inventory|account)",
    re.IGNORECASE,
)
COLOCATION_MIN_FILES = 3
COLOCATION_SKIP = {"src", "lib", "utils", "helpers", "common", "shared"}

CATEGORIES = [
    "screens", "pages", "components", "apis", "routes", "controllers", "services",
    "models", "schemas", "tests", "docs", "configs", "utils", "other",
]
LAYER_CATEGORIES = {
    "routes": "routes", "controllers": "controllers", "services": "services",
    "models": "models", "entities": "models", "repositories": "models",
    "schemas": "schemas", "dto": "schemas", "api": "apis", "utils": "utils", "config": "configs",
}
COMPONENT_EXTENSIONS = {"jsx", "tsx", "vue", "svelte"}


def _by_directory(path: str) -> Optional[str]:
    directories = path_parts(path)
    for index, part in enumerate(directories[:-1]):
        if part.lower() in MODULE_CONTAINERS:
            return directories[index + 1]
    return None


def _by_name(record: FileRecord) -> Optional[str]:
    match = MODULE_NAME_RE.match(record.stem)
    return match.group(1).lower() if match else None


def assign_modules(files: List[FileRecord]) -> Dict[str, Tuple[str, str]]:
    """path -> (module name, detection method)."""
    assigned: Dict[str, Tuple[str, str]] = {}
    for record in files:
        name = _by_directory(record.path)
        if name:
            assigned[record.path] = (name, "directory")
            continue
        name = _by_name(record)
        if name:
            assigned[record.path] = (name, "naming")

    remaining: Dict[str, List[str]] = {}
    for record in files:
        if record.path not in assigned and len(path_parts(record.path)) >= 2:
            remaining.setdefault(record.directory, []).append(record.path)
    for directory, paths in sorted(remaining.items()):
        name = directory.rsplit("/", 1)[-1]
        if len(paths) >= COLOCATION_MIN_FILES and len(name) > 2 and name.lower() not in COLOCATION_SKIP:
            for path in paths:
                assigned[path] = (name, "colocation")

    for record in files:
        if record.path not in assigned:
            directories = path_parts(record.path)
            assigned[record.path] = (directories[0] if directories else "root", "top-level")
    return assigned


def categorize_file(record: FileRecord, layer: str) -> str:
    lowered = "/" + record.path.lower()
    if record.role == "test":
        return "tests"
    if record.role == "documentation":
        return "docs"
    if record.role in {"config", "build"}:
        return "configs"
    if "/screens/" in lowered:
        return "screens"
    if "/pages/" in lowered or record.stem in {"page", "layout"}:
        return "pages"
    if "/components/" in lowered or record.extension in COMPONENT_EXTENSIONS:
        return "components"
    if layer in LAYER_CATEGORIES:
        return LAYER_CATEGORIES[layer]
    return "other"


def build_modules(
    files: List[FileRecord],
    assignments: Dict[str, str],
    tables_by_file: Dict[str, List[str]],
) -> Dict[str, Any]:
    module_of = assign_modules(files)
    modules: Dict[str, Dict[str, Any]] = {}
    for record in files:
        name, method = module_of[record.path]
        module = modules.setdefault(name, {
            "name": name,
            "detection_method": method,
            "stats": {"file_count": 0, "total_size": 0, "total_lines": 0},
            "files": {},
            "files_by_role": Counter(),
            "files_by_type": Counter(),
            "tables_used": set(),
        })
        module["stats"]["file_count"] += 1
        module["stats"]["total_size"] += record.size
        module["stats"]["total_lines"] += record.lines
        category = categorize_file(record, assignments.get(record.path, "other"))
        module["files"].setdefault(category, []).append(record.path)
        module["files_by_role"][record.role] += 1
        module["files_by_type"][record.extension or record.name] += 1
        module["tables_used"].update(tables_by_file.get(record.path, []))

    for module in modules.values():
        module["files"] = {category: sorted(module["files"][category]) for category in CATEGORIES if category in module["files"]}
        module["files_by_role"] = dict(sorted(module["files_by_role"].items()))
        module["files_by_type"] = dict(sorted(module["files_by_type"].items()))
        module["tables_used"] = sorted(module["tables_used"])

    return {
        "summary": {"total_modules": len(modules), "total_files": len(files)},
        "modules": dict(sorted(modules.items())),
        "file_modules": {path: module_of[path][0] for path in sorted(module_of)},
    }


def coupling_level(connections: int) -> str:
    if connections == 0:
        return "isolated"
    if connections <= 2:
        return "loose"
    if connections <= 5:
        return "moderate"
    return "tight"


def build_module_dependencies(file_modules: Dict[str, str], graph: DependencyGraph) -> Dict[str, Any]:
    depends_on: Dict[str, set] = {name: set() for name in set(file_modules.values())}
    depended_by: Dict[str, set] = {name: set() for name in depends_on}
    import_counts: Counter = Counter()
    for edge in graph.edges:
        source = file_modules.get(edge.source)
        target = file_modules.get(edge.target)
        if source is None or target is None or source == target:
            continue
        depends_on[source].add(target)
        depended_by[target].add(source)
        import_counts[source] += 1

    dependencies = {}
    for name in sorted(depends_on):
        dependencies[name] = {
            "name": name,
            "depends_on": sorted(depends_on[name]),
            "depended_by": sorted(depended_by[name]),
            "import_count": import_counts[name],
            "coupling": coupling_level(len(depends_on[name]) + len(depended_by[name])),
        }
    return {
        "summary": {
            "total_modules": len(dependencies),
            "isolated_modules": sum(1 for d in dependencies.values() if d["coupling"] == "isolated"),
            "tightly_coupled": sum(1 for d in dependencies.values() if d["coupling"] == "tight"),
        },
        "dependencies": dependencies,
    }
