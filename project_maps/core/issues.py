"""Project issue analysis: broken imports, circular dependencies, unused files."""

import logging
import re
from typing import Any, Dict, Iterator, List, Set, Tuple

from .graph import DependencyGraph
from .models import ArchitectureViolation, FileRecord, ScanIssue

ENTRY_FILE_RE = re.compile(
    r"^(index|main|app|server|cli|manage|wsgi|asgi|__main__|__init__|setup|conftest|"
    r"middleware|layout|page|_app|_document)\.[a-z]+$",
    re.IGNORECASE,
)


def detect_cycles(graph: Dict[str, List[str]]) -> List[List[str]]:
    """Circular dependency paths, each closed by repeating its first file."""
    cycles: List[List[str]] = []
    visited: Set[str] = set()
    stack: Set[str] = set()
    path: List[str] = []

    for root in sorted(graph):
        if root in visited:
            continue
        visited.add(root)
        stack.add(root)
        path.append(root)
        # Explicit frames: import chains can be longer than the recursion limit
        frames: List[Tuple[str, Iterator[str]]] = [(root, iter(graph.get(root, [])))]
        while frames:
            node, neighbors = frames[-1]
            for neighbor in neighbors:
                if neighbor not in visited:
                    visited.add(neighbor)
                    stack.add(neighbor)
                    path.append(neighbor)
                    frames.append((neighbor, iter(graph.get(neighbor, []))))
                    break
                if neighbor in stack:
                    cycle_start = path.index(neighbor)
                    cycles.append(path[cycle_start:] + [neighbor])
            else:
                frames.pop()
                stack.remove(node)
                path.pop()
    return cycles


def find_unused_files(files: List[FileRecord], graph: DependencyGraph, entry_points: Set[str]) -> List[str]:
    """Source files nothing imports and that are not entry points by role or name."""
    unused = []
    for record in files:
        if record.role != "source" or record.path in entry_points:
            continue
        if graph.dependents(record.path):
            continue
        if ENTRY_FILE_RE.match(record.name) or record.endpoints:
            continue
        unused.append(record.path)
    return sorted(unused)


def analyze_issues(
    files: List[FileRecord],
    graph: DependencyGraph,
    violations: List[ArchitectureViolation],
    scan_issues: List[ScanIssue],
    entry_points: Set[str],
) -> Dict[str, Any]:
    broken = [
        {
            "type": "broken-import",
            "severity": "warning",
            "file": item["file"],
            "import": item["source"],
            "line": item["line"],
            "message": f"Cannot resolve import '{item['source']}'",
        }
        for item in graph.unresolved
    ]
    cycles = [
        {
            "type": "circular-dependency",
            "severity": "warning",
            "files": cycle,
            "message": "Circular dependency: " + " -> ".join(cycle),
        }
        for cycle in detect_cycles(graph.forward)
    ]
    unused = [
        {"type": "unused-file", "severity": "info", "file": path, "message": "File is never imported"}
        for path in find_unused_files(files, graph, entry_points)
    ]
    violation_items = [
        dict(violation.to_dict(), type="architecture-violation", violation_type=violation.type)
        for violation in violations
    ]
    scan_items = [
        {"type": "scan-issue", "severity": "warning", "file": issue.path, "stage": issue.stage, "message": issue.reason}
        for issue in scan_issues
    ]

    by_severity = {"error": len(violation_items), "warning": len(broken) + len(cycles) + len(scan_items), "info": len(unused)}
    logging.info(
        "Issues: %d broken imports, %d cycles, %d unused files, %d violations, %d scan issues",
        len(broken), len(cycles), len(unused), len(violation_items), len(scan_items),
    )
    return {
        "broken_imports": broken,
        "circular_dependencies": cycles,
        "unused_files": unused,
        "architecture_violations": violation_items,
        "scan_issues": scan_items,
        "summary": {
            "total": sum(by_severity.values()),
            "by_severity": by_severity,
            "by_type": {
                "broken-import": len(broken),
                "circular-dependency": len(cycles),
                "unused-file": len(unused),
                "architecture-violation": len(violation_items),
                "scan-issue": len(scan_items),
            },
        },
    }
