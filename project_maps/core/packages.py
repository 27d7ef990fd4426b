"""
Package manifests: package.json files and Python requirements.

Manifests are read from disk during generation; a manifest that cannot
be parsed becomes a scan issue and is otherwise ignored.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .graph import DependencyGraph
from .models import FileRecord, ScanIssue

JS_SUFFIXES = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue", ".svelte")
REQUIREMENT_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


@dataclass
class PackageManifest:
    path: str
    name: str = ""
    version: str = ""
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    peer_dependencies: Dict[str, str] = field(default_factory=dict)
    scripts: Dict[str, str] = field(default_factory=dict)
    engines: Dict[str, str] = field(default_factory=dict)


@dataclass
class Manifests:
    npm: List[PackageManifest] = field(default_factory=list)
    python: Dict[str, str] = field(default_factory=dict)  # requirement name -> declaring file
    issues: List[ScanIssue] = field(default_factory=list)

    def all_dependency_names(self) -> Dict[str, str]:
        """Every declared package name mapped to its version spec."""
        names: Dict[str, str] = {}
        for manifest in self.npm:
            for group in (manifest.peer_dependencies, manifest.dev_dependencies, manifest.dependencies):
                names.update(group)
        for name in self.python:
            names.setdefault(name.lower(), "")
        return names


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): str(val) for key, val in value.items()}


def load_manifests(project_root: Path, files: List[FileRecord]) -> Manifests:
    manifests = Manifests()
    for record in files:
        if record.name == "package.json":
            try:
                with open(Path(project_root) / record.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logging.warning(f"Could not read {record.path}: {e}")
                manifests.issues.append(ScanIssue(path=record.path, stage="manifest", reason=str(e)))
                continue
            if not isinstance(data, dict):
                manifests.issues.append(ScanIssue(path=record.path, stage="manifest", reason="top level is not an object"))
                continue
            manifests.npm.append(PackageManifest(
                path=record.path,
                name=str(data.get("name", "")),
                version=str(data.get("version", "")),
                dependencies=_string_map(data.get("dependencies")),
                dev_dependencies=_string_map(data.get("devDependencies")),
                peer_dependencies=_string_map(data.get("peerDependencies")),
                scripts=_string_map(data.get("scripts")),
                engines=_string_map(data.get("engines")),
            ))
        elif record.name == "requirements.txt" or (record.name.startswith("requirements") and record.extension == "txt"):
            try:
                text = (Path(project_root) / record.path).read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                manifests.issues.append(ScanIssue(path=record.path, stage="manifest", reason=str(e)))
                continue
            for line in text.splitlines():
                if line.strip().startswith(("#", "-")):
                    continue
                match = REQUIREMENT_NAME_RE.match(line)
                if match:
                    manifests.python.setdefault(match.group(1), record.path)
    manifests.npm.sort(key=lambda manifest: manifest.path)
    return manifests


def build_npm_dependencies(manifests: Manifests, graph: DependencyGraph, stack: Dict[str, Any]) -> Dict[str, Any]:
    """Declared npm packages with their dependency type and the files importing them."""
    packages: Dict[str, Dict[str, Any]] = {}
    for manifest in manifests.npm:
        for dep_type, group in (
            ("production", manifest.dependencies),
            ("development", manifest.dev_dependencies),
            ("peer", manifest.peer_dependencies),
        ):
            for name, version in group.items():
                entry = packages.setdefault(name, {
                    "name": name,
                    "version": version,
                    "type": dep_type,
                    "declared_in": [],
                    "used_in": graph.external.get(name, []),
                })
                if manifest.path not in entry["declared_in"]:
                    entry["declared_in"].append(manifest.path)

    counts = {"production": 0, "development": 0, "peer": 0}
    for entry in packages.values():
        counts[entry["type"]] += 1
    undeclared = sorted(
        name for name, importers in graph.external.items()
        if name not in packages and any(path.endswith(JS_SUFFIXES) for path in importers)
    )
    return {
        "manifests": [
            {"path": m.path, "name": m.name, "version": m.version, "scripts": m.scripts, "engines": m.engines}
            for m in manifests.npm
        ],
        "packages": dict(sorted(packages.items())),
        "summary": {
            "total": len(packages),
            "production": counts["production"],
            "development": counts["development"],
            "peer": counts["peer"],
            "unused": sorted(name for name, entry in packages.items() if not entry["used_in"] and entry["type"] == "production"),
            "undeclared_imports": undeclared,
            "most_used": [{"name": name, "files": count} for name, count in most_used_packages(graph) if name in packages],
        },
        "stack": stack,
    }


def most_used_packages(graph: DependencyGraph, limit: int = 10) -> List[Tuple[str, int]]:
    usage = {name: len(paths) for name, paths in graph.external.items()}
    return sorted(usage.items(), key=lambda item: (-item[1], item[0]))[:limit]
