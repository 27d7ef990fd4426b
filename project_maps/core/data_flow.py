"""
Data-flow tracing and layer-hierarchy violations.

A flow starts at an entry-layer file (routes by default) and follows the
forward dependency graph one hop at a time, always choosing the
dependency in the most significant layer. Traversal stops at the
configured depth, at a file with no significant dependency, or when the
only candidates were already visited in the chain.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .architecture import CONFIDENCE_RANK, evidence_directories
from .config import ProjectMapsConfig
from .graph import DependencyGraph
from .models import (
    ArchitecturePattern,
    ArchitectureViolation,
    ChainLink,
    DataFlowChain,
    FileRecord,
)


@dataclass
class FlowReport:
    entry_layers: List[str]
    entry_points: List[str] = field(default_factory=list)
    flows: List[DataFlowChain] = field(default_factory=list)
    common_patterns: List[Dict[str, Any]] = field(default_factory=list)
    isolated_endpoints: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_layers": list(self.entry_layers),
            "entry_points": list(self.entry_points),
            "flows": [flow.to_dict() for flow in self.flows],
            "common_patterns": list(self.common_patterns),
            "isolated_endpoints": list(self.isolated_endpoints),
            "stats": dict(self.stats),
        }


def trace_chain(
    entry: str,
    graph: DependencyGraph,
    assignments: Dict[str, str],
    layer_priority: List[str],
    max_depth: int,
) -> DataFlowChain:
    """Follow the most significant dependency from ``entry`` without revisiting a file."""
    chain = [ChainLink(file=entry, layer=assignments.get(entry, "other"))]
    visited = {entry}
    current = entry
    while len(chain) < max_depth:
        candidates = [
            target for target in graph.dependencies(current)
            if target not in visited and assignments.get(target) in layer_priority
        ]
        if not candidates:
            break
        current = min(candidates, key=lambda path: (layer_priority.index(assignments[path]), path))
        visited.add(current)
        chain.append(ChainLink(file=current, layer=assignments[current]))
    return DataFlowChain(entry_point=entry, chain=chain)


def trace_flows(
    files: List[FileRecord],
    assignments: Dict[str, str],
    graph: DependencyGraph,
    primary: ArchitecturePattern,
    config: ProjectMapsConfig,
) -> FlowReport:
    entry_layers = config.entry_layers_for(primary.type)
    report = FlowReport(entry_layers=entry_layers)
    report.entry_points = sorted(
        record.path for record in files
        if record.role == "source" and assignments.get(record.path) in entry_layers
    )

    for entry in report.entry_points:
        if not graph.dependencies(entry):
            report.isolated_endpoints.append(entry)
            continue
        chain = trace_chain(entry, graph, assignments, config.flow_layer_priority, config.max_flow_depth)
        if chain.depth >= 2:
            report.flows.append(chain)

    signatures: Counter = Counter()
    examples: Dict[str, List[str]] = {}
    layer_usage: Counter = Counter()
    for flow in report.flows:
        signature = " -> ".join(flow.layers)
        signatures[signature] += 1
        examples.setdefault(signature, [])
        if len(examples[signature]) < 3:
            examples[signature].append(flow.entry_point)
        layer_usage.update(flow.layers)

    report.common_patterns = [
        {"pattern": signature, "count": count, "examples": examples[signature]}
        for signature, count in sorted(signatures.items(), key=lambda item: (-item[1], item[0]))[:config.common_flow_limit]
    ]
    depths = [flow.depth for flow in report.flows]
    report.stats = {
        "total_flows": len(report.flows),
        "entry_points": len(report.entry_points),
        "isolated_endpoints": len(report.isolated_endpoints),
        "average_depth": round(sum(depths) / len(depths), 2) if depths else 0,
        "max_depth": max(depths) if depths else 0,
        "layer_usage": dict(sorted(layer_usage.items())),
    }
    logging.info(
        "Data flow: %d entry points, %d flows, %d isolated endpoints",
        len(report.entry_points), len(report.flows), len(report.isolated_endpoints),
    )
    return report


def hierarchy_layer(path: str, assignments: Dict[str, str], table: Dict[str, int]) -> Optional[str]:
    """The layer name a hierarchy table knows this file by, if any."""
    assigned = assignments.get(path)
    if assigned in table:
        return assigned
    for directory in reversed(evidence_directories(path)):
        if directory in table:
            return directory
    return None


def detect_violations(
    graph: DependencyGraph,
    assignments: Dict[str, str],
    primary: ArchitecturePattern,
    config: ProjectMapsConfig,
) -> List[ArchitectureViolation]:
    """
    Upward dependencies under the primary pattern's hierarchy.

    Skipped entirely when no pattern was detected, when the detection is
    below the configured minimum confidence, or when the pattern has no
    hierarchy table.
    """
    if primary.type == "unknown":
        logging.info("Violations: skipped, no architecture pattern detected")
        return []
    minimum = CONFIDENCE_RANK.get(config.violation_min_confidence, CONFIDENCE_RANK["low"])
    if CONFIDENCE_RANK.get(primary.confidence, 0) < minimum:
        logging.info(f"Violations: skipped, {primary.name} confidence is {primary.confidence}")
        return []
    table = config.layer_hierarchies.get(primary.type)
    if not table:
        logging.info(f"Violations: skipped, no hierarchy table for {primary.type}")
        return []

    violations: List[ArchitectureViolation] = []
    for edge in graph.edges:
        source_layer = hierarchy_layer(edge.source, assignments, table)
        target_layer = hierarchy_layer(edge.target, assignments, table)
        if source_layer is None or target_layer is None:
            continue
        if table[source_layer] > table[target_layer]:
            violations.append(ArchitectureViolation(
                file=edge.source,
                target=edge.target,
                source_layer=source_layer,
                target_layer=target_layer,
                pattern=primary.type,
            ))
    logging.info("Violations: %d upward dependencies under %s", len(violations), primary.type)
    return violations
