"""
Generation cycle: run the analysis pipeline over a set of file records and
build every artifact document.

``analyze`` is shared by full generation and incremental refresh; it takes
records whose imports are already resolved and returns everything the
documents are built from. ``build_documents`` is a pure function of that
result, so two runs over the same files produce the same documents apart
from their timestamps.
"""

import dataclasses
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .architecture import collect_endpoints, detect_architecture, layer_summary
from .components import build_components
from .config import ProjectMapsConfig
from .data_flow import FlowReport, detect_violations, trace_flows
from .database import build_database_schema, build_table_module_mapping, tables_by_file
from .frameworks import detect_backend_frameworks, detect_build_tools, detect_framework, detect_stack, find_entry_points, known_packages
from .graph import DependencyGraph, build_graph, resolve_records
from .issues import analyze_issues
from .models import ArchitectureResult, ArchitectureViolation, FileRecord, ScanIssue
from .modules import build_module_dependencies, build_modules
from .packages import Manifests, build_npm_dependencies, load_manifests
from .scanner import FileScanner, ScanResult
from .utils import project_hash, top_n

LARGEST_FILES = 10
RECENT_FILES = 10
API_ENDPOINT_LIMIT = 30
MOST_DEPENDED_LIMIT = 20
IMPORT_CHAIN_LIMIT = 20


@dataclass
class PipelineResult:
    """Everything one generation cycle computed, before serialization."""
    project_root: Path
    files: List[FileRecord]
    scan_issues: List[ScanIssue]
    scan_stats: Dict[str, Any]
    architecture: ArchitectureResult
    graph: DependencyGraph
    flows: FlowReport
    violations: List[ArchitectureViolation]
    manifests: Manifests
    framework: Dict[str, str]
    stack: Dict[str, Any]
    entry_points: List[Dict[str, str]]
    schema: Dict[str, Any]
    skipped_files: Dict[str, Tuple[float, int]] = field(default_factory=dict)
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def assignments(self) -> Dict[str, str]:
        return self.architecture.assignments


def language_counts(files: List[FileRecord]) -> Dict[str, int]:
    counts = Counter(record.language for record in files if record.role in {"source", "test"} and record.language != "Other")
    return dict(sorted(counts.items()))


def scan_project(scanner: FileScanner) -> ScanResult:
    """Full scan with signature extraction and import resolution."""
    result = scanner.scan()
    result.files = resolve_records(result.files)
    return result


def analyze(
    project_root: Path,
    config: ProjectMapsConfig,
    files: List[FileRecord],
    scan_issues: List[ScanIssue],
    scan_stats: Dict[str, Any],
    previous_assignments: Optional[Dict[str, str]] = None,
    changed: Optional[Set[str]] = None,
    skipped_files: Optional[Dict[str, Tuple[float, int]]] = None,
) -> PipelineResult:
    """
    Run architecture detection, graph building, flow tracing and the
    supplemental analysers over resolved file records.

    With ``previous_assignments`` and ``changed`` the layer assignment is
    patched instead of recomputed. ``skipped_files`` are files the scanner
    found but could not record; they are stored so staleness checks can
    tell them apart from new files.
    """
    start = time.time()
    graph = build_graph(files)
    architecture = detect_architecture(files, config, previous_assignments, changed)
    files = [dataclasses.replace(record, layer=architecture.assignments.get(record.path)) for record in files]

    flows = trace_flows(files, architecture.assignments, graph, architecture.primary, config)
    violations = detect_violations(graph, architecture.assignments, architecture.primary, config)

    manifests = load_manifests(project_root, files)
    packages = known_packages(manifests.all_dependency_names(), graph)
    framework = detect_framework(files, packages)
    stack = detect_stack(project_root, files, packages, language_counts(files))
    entry_points = find_entry_points(files)

    schema, schema_issues = build_database_schema(project_root, files)
    issues = sorted(scan_issues + manifests.issues + schema_issues, key=lambda issue: (issue.path, issue.stage))

    logging.info(f"Analysis of {len(files)} files completed in {time.time() - start:.2f}s")
    return PipelineResult(
        project_root=Path(project_root),
        files=files,
        scan_issues=issues,
        scan_stats=scan_stats,
        architecture=architecture,
        graph=graph,
        flows=flows,
        violations=violations,
        manifests=manifests,
        framework=framework,
        stack=stack,
        entry_points=entry_points,
        schema=schema,
        skipped_files=dict(sorted((skipped_files or {}).items())),
    )


# --- Documents ---

def _header(map_type: str, config: ProjectMapsConfig) -> Dict[str, Any]:
    return {"version": config.artifact_version, "mapType": map_type}


def _directories(files: List[FileRecord]) -> Set[str]:
    directories = set()
    for record in files:
        parts = record.path.split("/")[:-1]
        for index in range(1, len(parts) + 1):
            directories.add("/".join(parts[:index]))
    return directories


def _primary_languages(files: List[FileRecord], limit: int) -> List[Dict[str, Any]]:
    counts = language_counts(files)
    total = sum(counts.values())
    return [
        {"language": language, "files": count, "percentage": round(count * 100 / total, 1) if total else 0.0}
        for language, count in top_n(counts, limit)
    ]


def build_summary(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    files = result.files
    primary = result.architecture.primary
    return {
        **_header("summary", config),
        "generated": result.generated_at,
        "project": {
            "name": result.project_root.name,
            "root": str(result.project_root),
            "hash": project_hash(result.project_root),
        },
        "statistics": {
            "total_files": len(files),
            "total_directories": len(_directories(files)),
            "total_size": sum(record.size for record in files),
            "total_lines": sum(record.lines for record in files),
            "primary_languages": _primary_languages(files, 3),
        },
        "framework": result.framework,
        "architecture": {"type": primary.type, "name": primary.name, "confidence": primary.confidence},
        "entry_points": [entry["file"] for entry in result.entry_points],
        "issue_count": len(result.graph.unresolved) + len(result.violations) + len(result.scan_issues),
    }


def _tree_node(directory: str, files_by_dir: Dict[str, List[str]], children_of: Dict[str, List[str]]) -> Dict[str, Any]:
    children = [_tree_node(child, files_by_dir, children_of) for child in children_of.get(directory, [])]
    own_files = files_by_dir.get(directory, [])
    return {
        "path": directory,
        "file_count": len(own_files) + sum(child["file_count"] for child in children),
        "files": own_files,
        "subdirectories": len(children),
        "children": children,
    }


def build_tree(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    files_by_dir: Dict[str, List[str]] = {}
    for record in result.files:
        files_by_dir.setdefault(record.directory, []).append(record.name)
    children_of: Dict[str, List[str]] = {}
    for directory in sorted(_directories(result.files)):
        parent = directory.rsplit("/", 1)[0] if "/" in directory else "."
        children_of.setdefault(parent, []).append(directory)

    package_modules = []
    for record in result.files:
        kind = {"package.json": "npm", "__init__.py": "python", "go.mod": "go", "Cargo.toml": "cargo"}.get(record.name)
        if kind:
            package_modules.append({"path": record.directory, "type": kind})

    return {
        **_header("tree", config),
        "directory_tree": _tree_node(".", files_by_dir, children_of),
        "modules": package_modules,
        "file_type_distribution": dict(sorted(Counter(record.file_type for record in result.files).items())),
        "file_role_distribution": dict(sorted(Counter(record.role for record in result.files).items())),
    }


def build_metadata(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    return {
        **_header("metadata", config),
        "generated": result.generated_at,
        "project_root": str(result.project_root),
        "scan": result.scan_stats,
        "files": [record.to_dict() for record in result.files],
        "scan_issues": [issue.to_dict() for issue in result.scan_issues],
        "skipped_files": {
            path: {"modified": modified, "size": size} for path, (modified, size) in result.skipped_files.items()
        },
    }


def build_quick_queries(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    files = result.files
    tests = [record for record in files if record.role == "test"]
    endpoints = collect_endpoints(files)
    by_method = Counter(str(endpoint["method"]) for endpoint in endpoints)
    build_tools = detect_build_tools(files)
    total_size = sum(record.size for record in files)
    return {
        **_header("quick-queries", config),
        "entry_point": result.entry_points[0]["file"] if result.entry_points else None,
        "all_entry_points": result.entry_points,
        "framework": result.framework,
        "build_tool": build_tools[0] if build_tools else None,
        "build_tools": build_tools,
        "package_manager": result.stack["package_manager"],
        "testing_framework": result.stack["testing"][0] if result.stack["testing"] else None,
        "test_locations": sorted({record.directory for record in tests}),
        "test_file_count": len(tests),
        "largest_files": [
            {"path": record.path, "size": record.size, "lines": record.lines}
            for record in sorted(files, key=lambda r: (-r.size, r.path))[:LARGEST_FILES]
        ],
        "recently_modified": [
            {"path": record.path, "modified": record.modified}
            for record in sorted(files, key=lambda r: (-r.modified, r.path))[:RECENT_FILES]
        ],
        "primary_languages": _primary_languages(files, 5),
        "architectural_patterns": [pattern.to_dict() for pattern in result.architecture.candidates],
        "api_endpoints": endpoints[:API_ENDPOINT_LIMIT],
        "endpoint_stats": {"total": len(endpoints), "by_method": dict(sorted(by_method.items()))},
        "statistics": {
            "total_files": len(files),
            "total_size": total_size,
            "total_lines": sum(record.lines for record in files),
            "average_file_size": round(total_size / len(files)) if files else 0,
        },
    }


def build_backend_layers(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    architecture = result.architecture
    layers = layer_summary(architecture.assignments, result.files)
    return {
        **_header("backend-layers", config),
        "architecture": {
            "primary": architecture.primary.to_dict(),
            "candidates": [pattern.to_dict() for pattern in architecture.candidates],
            "ambiguous": architecture.ambiguous,
            "evidence": architecture.layer_counts,
        },
        "layers": layers,
        "layer_counts": {layer: len(paths) for layer, paths in layers.items()},
        "assignments": dict(sorted(architecture.assignments.items())),
        "endpoints": collect_endpoints(result.files),
        "frameworks": detect_backend_frameworks(result.files, known_packages(result.manifests.all_dependency_names(), result.graph)),
    }


def build_data_flow(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    by_pair = Counter(f"{v.source_layer} -> {v.target_layer}" for v in result.violations)
    return {
        **_header("data-flow", config),
        "pattern": result.architecture.primary.type,
        **result.flows.to_dict(),
        "violations": [violation.to_dict() for violation in result.violations],
        "violation_summary": {"total": len(result.violations), "by_layers": dict(sorted(by_pair.items()))},
    }


def build_dependencies_forward(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    graph = result.graph
    return {
        **_header("dependencies-forward", config),
        "graph": graph.forward,
        "edges": [{"source": e.source, "target": e.target, "symbols": e.symbols} for e in graph.edges],
        "external": graph.external,
        "builtin": graph.builtin,
        "statistics": {"files_with_dependencies": len(graph.forward), "total_edges": graph.edge_count},
    }


def build_dependencies_reverse(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    graph = result.graph
    most = sorted(graph.reverse.items(), key=lambda item: (-len(item[1]), item[0]))[:MOST_DEPENDED_LIMIT]
    return {
        **_header("dependencies-reverse", config),
        "graph": graph.reverse,
        "most_depended_upon": [{"file": path, "dependents": len(sources)} for path, sources in most],
        "statistics": {"files_with_dependents": len(graph.reverse), "total_edges": graph.edge_count},
    }


def import_chains(graph: DependencyGraph, limit: int) -> List[List[str]]:
    """Three-file import chains a -> b -> c, in path order."""
    chains: List[List[str]] = []
    for first, seconds in graph.forward.items():
        for second in seconds:
            for third in graph.dependencies(second):
                if third != first:
                    chains.append([first, second, third])
                    if len(chains) >= limit:
                        return chains
    return chains


def build_relationships(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    graph = result.graph
    kinds: Counter = Counter()
    for record in result.files:
        for ref in record.imports:
            kinds[ref.category or "unresolved"] += 1
            if ref.kind == "dynamic":
                kinds["dynamic"] += 1
    by_file = {
        record.path: {"dependencies": len(graph.dependencies(record.path)), "dependents": len(graph.dependents(record.path))}
        for record in result.files
        if graph.dependencies(record.path) or graph.dependents(record.path)
    }
    most_dependent = sorted(by_file.items(), key=lambda item: (-item[1]["dependencies"], item[0]))[:MOST_DEPENDED_LIMIT]
    return {
        **_header("relationships", config),
        "statistics": {
            "internal_imports": kinds["internal"],
            "external_imports": kinds["external"],
            "builtin_imports": kinds["builtin"],
            "unresolved_imports": kinds["unresolved"],
            "dynamic_imports": kinds["dynamic"],
        },
        "depth_analysis": {
            "by_file": by_file,
            "most_dependent": [{"file": path, **counts} for path, counts in most_dependent],
        },
        "import_chains": import_chains(graph, IMPORT_CHAIN_LIMIT),
    }


def build_issues(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Any]:
    entry_points = {entry["file"] for entry in result.entry_points} | set(result.flows.entry_points)
    return {
        **_header("issues", config),
        **analyze_issues(result.files, result.graph, result.violations, result.scan_issues, entry_points),
    }


def build_documents(result: PipelineResult, config: ProjectMapsConfig) -> Dict[str, Dict[str, Any]]:
    """Every artifact document, keyed by artifact name."""
    modules = build_modules(result.files, result.assignments, tables_by_file(result.schema))
    file_modules = modules.pop("file_modules")
    documents = {
        "summary": build_summary(result, config),
        "tree": build_tree(result, config),
        "metadata": build_metadata(result, config),
        "quick-queries": build_quick_queries(result, config),
        "backend-layers": build_backend_layers(result, config),
        "data-flow": build_data_flow(result, config),
        "dependencies-forward": build_dependencies_forward(result, config),
        "dependencies-reverse": build_dependencies_reverse(result, config),
        "relationships": build_relationships(result, config),
        "issues": build_issues(result, config),
        "npm-dependencies": {
            **_header("npm-dependencies", config),
            **build_npm_dependencies(result.manifests, result.graph, result.stack),
        },
        "modules": {**_header("modules", config), **modules, "file_modules": file_modules},
        "module-dependencies": {
            **_header("module-dependencies", config),
            **build_module_dependencies(file_modules, result.graph),
        },
        "frontend-components": {
            **_header("frontend-components", config),
            **build_components(result.files, result.graph, result.framework),
        },
        "database-schema": {**_header("database-schema", config), **result.schema},
        "table-module-mapping": {
            **_header("table-module-mapping", config),
            **build_table_module_mapping(result.schema, file_modules, result.graph),
        },
    }
    logging.info(f"Built {len(documents)} artifact documents")
    return documents
