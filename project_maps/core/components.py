"""Frontend component map: which components use which, and how reusable they are."""

import logging
import re
from collections import Counter
from typing import Any, Dict, List

from .graph import DependencyGraph
from .models import FileRecord

FRONTEND_TYPES = {"react", "react-framework", "vue", "vue-framework", "svelte", "svelte-framework", "angular", "angular-framework"}

PAGE_DIRS = ("/pages/", "/views/", "/screens/", "/app/")
UI_DIRS = ("/ui/", "/common/", "/shared/", "/primitives/", "/base/", "/atoms/")
GENERIC_NAMES = re.compile(
    r"^(button|input|modal|dialog|card|icon|spinner|loader|avatar|badge|tooltip|dropdown|select|"
    r"checkbox|table|list|link|form|label|alert|toast)s?$",
    re.IGNORECASE,
)
COMPONENT_NAME_RE = re.compile(r"^[A-Z][A-Za-z0-9]*$")
REUSE_THRESHOLD = 3


def is_component_file(record: FileRecord, framework_type: str) -> bool:
    if record.role != "source":
        return False
    if framework_type.startswith("vue"):
        return record.extension == "vue"
    if framework_type.startswith("svelte"):
        return record.extension == "svelte"
    if framework_type.startswith("angular"):
        return record.name.endswith(".component.ts")
    if record.extension in {"jsx", "tsx"}:
        return True
    # Plain .js React components are recognised by a PascalCase file name
    return record.extension == "js" and bool(COMPONENT_NAME_RE.match(record.stem))


def component_name(record: FileRecord) -> str:
    stem = record.stem
    if stem.lower() == "index" and "/" in record.path:
        stem = record.directory.rsplit("/", 1)[-1]
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[-_.]", stem) if part)


def component_layer(path: str) -> str:
    lowered = "/" + path.lower()
    name = lowered.rsplit("/", 1)[-1]
    if any(marker in lowered for marker in PAGE_DIRS) or any(word in name for word in ("page", "screen", "view")):
        return "page"
    if "/layout" in lowered or any(word in name for word in ("layout", "template", "wrapper")):
        return "layout"
    if any(marker in lowered for marker in UI_DIRS):
        return "ui"
    return "feature"


def is_reusable(path: str, name: str, used_by: int) -> bool:
    lowered = "/" + path.lower()
    return used_by >= REUSE_THRESHOLD or any(marker in lowered for marker in UI_DIRS) or bool(GENERIC_NAMES.match(name))


def build_components(files: List[FileRecord], graph: DependencyGraph, framework: Dict[str, str]) -> Dict[str, Any]:
    framework_type = framework.get("type", "unknown")
    if framework_type not in FRONTEND_TYPES:
        return {
            "framework": framework.get("name", "Unknown"),
            "components": {},
            "statistics": {"total": 0, "by_layer": {}, "reusable": 0},
        }

    records = {record.path: record for record in files if is_component_file(record, framework_type)}
    edges = {(edge.source, edge.target): edge.symbols for edge in graph.edges}
    components: Dict[str, Dict[str, Any]] = {}
    for path, record in sorted(records.items()):
        uses = [
            {"file": target, "symbols": edges.get((path, target), [])}
            for target in graph.dependencies(path) if target in records
        ]
        used_by = [
            {"file": source, "symbols": edges.get((source, path), [])}
            for source in graph.dependents(path) if source in records
        ]
        name = component_name(record)
        components[path] = {
            "name": name,
            "file": path,
            "layer": component_layer(path),
            "exports": list(record.exports),
            "uses": uses,
            "used_by": used_by,
            "reusable": is_reusable(path, name, len(used_by)),
        }

    by_layer = Counter(component["layer"] for component in components.values())
    most_used = sorted(components.values(), key=lambda c: (-len(c["used_by"]), c["file"]))[:10]
    logging.info("Components: %d %s components", len(components), framework.get("name", ""))
    return {
        "framework": framework.get("name", "Unknown"),
        "components": components,
        "statistics": {
            "total": len(components),
            "by_layer": dict(sorted(by_layer.items())),
            "reusable": sum(1 for component in components.values() if component["reusable"]),
            "most_used": [
                {"file": component["file"], "used_by": len(component["used_by"])}
                for component in most_used if component["used_by"]
            ],
        },
    }
