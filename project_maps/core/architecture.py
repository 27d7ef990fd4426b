"""
Architecture detection.

Assigns every file a layer and classifies the project's overall
architecture pattern. Layer assignment uses, in order: the deepest
directory component naming a layer, the filename convention, framework
markers found by the signature extractor, and finally the most common
layer among sibling source files. Pattern classification counts source
files under a fixed directory vocabulary and buckets the evidence into a
confidence level.
"""

import logging
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .config import ProjectMapsConfig
from .models import (
    ArchitecturePattern,
    ArchitectureResult,
    FileRecord,
    UNKNOWN_PATTERN,
)
from .utils import path_parts

LAYERS = [
    "routes", "controllers", "services", "models", "repositories", "middleware", "schemas",
    "entities", "dto", "mappers", "api", "utils", "config", "other",
]

LAYER_DIRECTORIES = {
    "routes": "routes", "route": "routes", "routers": "routes", "router": "routes", "urls": "routes",
    "controllers": "controllers", "controller": "controllers", "handlers": "controllers",
    "services": "services", "service": "services",
    "models": "models", "model": "models",
    "repositories": "repositories", "repository": "repositories", "repos": "repositories",
    "middleware": "middleware", "middlewares": "middleware",
    "schemas": "schemas", "schema": "schemas",
    "entities": "entities", "entity": "entities",
    "dto": "dto", "dtos": "dto",
    "mappers": "mappers", "mapper": "mappers",
    "api": "api",
    "utils": "utils", "util": "utils", "helpers": "utils",
    "config": "config", "configs": "config", "configuration": "config",
}

FILENAME_LAYER_RE = re.compile(
    r"(controller|service|repository|repo|routes|route|router|model|middleware|schema|entity|dto|mapper)s?$"
)
FILENAME_LAYERS = {
    "controller": "controllers", "service": "services", "repository": "repositories",
    "repo": "repositories", "routes": "routes", "route": "routes", "router": "routes",
    "model": "models", "middleware": "middleware", "schema": "schemas", "entity": "entities",
    "dto": "dto", "mapper": "mappers",
}

# Checked in this order; the first marker present decides the layer
MARKER_LAYERS: List[Tuple[str, str]] = [
    ("nest-controller", "controllers"),
    ("django-view", "controllers"),
    ("controller-class", "controllers"),
    ("express-router", "routes"),
    ("fastify-routes", "routes"),
    ("koa-router", "routes"),
    ("flask-route", "routes"),
    ("flask-blueprint", "routes"),
    ("fastapi-router", "routes"),
    ("django-urls", "routes"),
    ("repository-class", "repositories"),
    ("typeorm-entity", "entities"),
    ("django-model", "models"),
    ("sqlalchemy-model", "models"),
    ("sequelize-model", "models"),
    ("mongoose-model", "models"),
    ("mongoose-schema", "schemas"),
    ("pydantic-model", "schemas"),
    ("marshmallow-schema", "schemas"),
    ("zod-schema", "schemas"),
    ("nest-injectable", "services"),
    ("service-class", "services"),
    ("express-middleware", "middleware"),
    ("dto-class", "dto"),
    ("mapper-class", "mappers"),
]

EVIDENCE_DIRECTORIES = {
    "models": "models", "model": "models",
    "views": "views", "view": "views",
    "controllers": "controllers", "controller": "controllers",
    "presentation": "presentation",
    "business": "business",
    "data": "data",
    "domain": "domain",
    "application": "application",
    "infrastructure": "infrastructure",
    "routes": "routes", "route": "routes",
    "middleware": "middleware", "middlewares": "middleware",
    "services": "services", "service": "services",
    "repositories": "repositories", "repository": "repositories",
    "api": "api",
    "database": "database", "db": "database",
    "utils": "utils",
    "config": "config",
}

PATTERN_ORDER = ["mvc", "layered", "clean", "service-oriented", "microservices", "api-centric"]
PATTERN_NAMES = {
    "mvc": "MVC",
    "layered": "Layered",
    "clean": "Clean Architecture",
    "service-oriented": "Service-Oriented",
    "microservices": "Microservices",
    "api-centric": "API-Centric",
}
CONFIDENCE_RANK = {"none": 0, "low": 1, "medium": 2, "high": 3}


# --- Layer assignment ---

def layer_from_directory(path: str) -> Optional[str]:
    for part in reversed(path_parts(path)):
        layer = LAYER_DIRECTORIES.get(part.lower())
        if layer:
            return layer
    return None


def layer_from_filename(path: str) -> Optional[str]:
    name = path.rsplit("/", 1)[-1]
    base = name.rsplit(".", 1)[0] if "." in name[1:] else name
    base = re.sub(r"[._-](test|spec)$", "", base.lower())
    match = FILENAME_LAYER_RE.search(base)
    if match is None:
        return None
    return FILENAME_LAYERS[match.group(1)]


def layer_from_markers(markers: Iterable[str]) -> Optional[str]:
    present = set(markers)
    for marker, layer in MARKER_LAYERS:
        if marker in present:
            return layer
    return None


def assign_layer(path: str, markers: Iterable[str] = ()) -> Optional[str]:
    """
    Rule-based layer for one file, or None when no rule matches.

    A pure function of the path (directory and filename) and the framework
    markers; the neighbour-based fallback is applied by ``assign_layers``.
    """
    return layer_from_directory(path) or layer_from_filename(path) or layer_from_markers(markers)


def _fallback_layer(directory: str, rule_layers: Dict[str, str], records: Dict[str, FileRecord]) -> Optional[str]:
    counts: Counter = Counter(
        layer for path, layer in rule_layers.items()
        if records[path].directory == directory and records[path].role == "source"
    )
    if not counts:
        return None
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[0][0]


def assign_layers(
    files: List[FileRecord],
    previous: Optional[Dict[str, str]] = None,
    changed: Optional[Set[str]] = None,
) -> Dict[str, str]:
    """
    Layer for every file.

    With ``previous`` and ``changed`` the assignment is patched: files that did
    not change and whose directory holds no changed file keep their previous
    layer. The result is identical to a full assignment because the fallback
    only depends on files in the same directory.
    """
    records = {record.path: record for record in files}
    if previous is not None and changed is not None:
        affected_dirs = {path.rsplit("/", 1)[0] if "/" in path else "." for path in changed}
        recompute = {
            path for path, record in records.items()
            if path in changed or path not in previous or record.directory in affected_dirs
        }
    else:
        previous = {}
        recompute = set(records)

    rule_layers: Dict[str, str] = {}
    needed_dirs = {records[path].directory for path in recompute}
    for path, record in records.items():
        if path in recompute or record.directory in needed_dirs:
            layer = assign_layer(path, record.markers)
            if layer:
                rule_layers[path] = layer

    assignments: Dict[str, str] = {}
    for path in sorted(records):
        if path not in recompute:
            assignments[path] = previous[path]
            continue
        record = records[path]
        layer = rule_layers.get(path)
        if layer is None and record.role == "source":
            layer = _fallback_layer(record.directory, rule_layers, records)
        assignments[path] = layer or "other"
    return assignments


# --- Pattern detection ---

def evidence_directories(path: str) -> List[str]:
    """Pattern-vocabulary directories a path sits under, outermost first."""
    found: List[str] = []
    for part in path_parts(path):
        key = EVIDENCE_DIRECTORIES.get(part.lower())
        if key and key not in found:
            found.append(key)
    return found


def count_evidence(files: List[FileRecord]) -> Dict[str, int]:
    counts: Counter = Counter()
    for record in files:
        if record.role != "source":
            continue
        counts.update(evidence_directories(record.path))
    return dict(sorted(counts.items()))


def count_services(files: List[FileRecord]) -> int:
    """Distinct sub-directories directly below a ``services`` directory."""
    services: Set[str] = set()
    for record in files:
        if record.role != "source":
            continue
        parts = path_parts(record.path)
        for index, part in enumerate(parts[:-1]):
            if part.lower() == "services":
                services.add("/".join(parts[:index + 2]))
    return len(services)


def confidence_for(pattern_type: str, evidence: int, thresholds: Dict[str, Dict[str, int]]) -> str:
    """Bucket an evidence count; never decreases as evidence grows."""
    levels = thresholds.get(pattern_type, {"high": 15, "medium": 8})
    if evidence >= levels.get("high", 15):
        return "high"
    if evidence >= levels.get("medium", 8):
        return "medium"
    return "low"


def _qualifying_evidence(counts: Dict[str, int], service_count: int) -> Dict[str, Tuple[int, Dict[str, int]]]:
    """Evidence count and supporting layer counts for every pattern whose minimums are met."""
    def c(name: str) -> int:
        return counts.get(name, 0)

    def pick(*names: str) -> Dict[str, int]:
        return {name: c(name) for name in names}

    qualified: Dict[str, Tuple[int, Dict[str, int]]] = {}
    if c("models") >= 2 and c("views") >= 2 and c("controllers") >= 2:
        layers = pick("models", "views", "controllers")
        qualified["mvc"] = (sum(layers.values()), layers)
    if c("presentation") >= 2 and c("business") >= 2 and c("data") >= 2:
        layers = pick("presentation", "business", "data")
        qualified["layered"] = (sum(layers.values()), layers)
    if c("domain") >= 2 and (c("application") >= 2 or c("infrastructure") >= 2):
        layers = pick("domain", "application", "infrastructure")
        qualified["clean"] = (sum(layers.values()), layers)
    if c("services") >= 3 and c("routes") >= 2:
        layers = pick("routes", "controllers", "services", "repositories", "models")
        qualified["service-oriented"] = (c("services") + c("routes"), layers)
    if service_count >= 3:
        qualified["microservices"] = (service_count, {"services": service_count})
    if c("api") >= 3 and (c("routes") >= 2 or c("controllers") >= 2):
        layers = pick("api", "routes", "controllers")
        qualified["api-centric"] = (sum(layers.values()), layers)
    return qualified


def detect_patterns(files: List[FileRecord], config: ProjectMapsConfig) -> Tuple[ArchitecturePattern, List[ArchitecturePattern], Dict[str, int]]:
    """Primary pattern, all qualifying candidates (best first) and the evidence counts."""
    counts = count_evidence(files)
    qualified = _qualifying_evidence(counts, count_services(files))

    candidates = [
        ArchitecturePattern(
            type=pattern_type,
            name=PATTERN_NAMES[pattern_type],
            confidence=confidence_for(pattern_type, evidence, config.confidence_thresholds),
            evidence_count=evidence,
            layer_counts=layers,
        )
        for pattern_type, (evidence, layers) in qualified.items()
    ]
    candidates.sort(key=lambda p: (
        -p.evidence_count, -CONFIDENCE_RANK[p.confidence], PATTERN_ORDER.index(p.type)
    ))
    primary = candidates[0] if candidates else UNKNOWN_PATTERN
    return primary, candidates, counts


def detect_architecture(
    files: List[FileRecord],
    config: ProjectMapsConfig,
    previous_assignments: Optional[Dict[str, str]] = None,
    changed: Optional[Set[str]] = None,
) -> ArchitectureResult:
    assignments = assign_layers(files, previous_assignments, changed)
    primary, candidates, counts = detect_patterns(files, config)
    ambiguous = primary.type == "unknown"
    if ambiguous:
        logging.info("Architecture: no pattern met detection thresholds, reporting unknown")
    else:
        logging.info(
            f"Architecture: {primary.name} ({primary.confidence} confidence, "
            f"{primary.evidence_count} files), {len(candidates)} candidate(s)"
        )
    return ArchitectureResult(
        primary=primary,
        candidates=candidates,
        assignments=assignments,
        layer_counts=counts,
        ambiguous=ambiguous,
    )


def layer_summary(assignments: Dict[str, str], files: List[FileRecord]) -> Dict[str, List[str]]:
    """Source files grouped by layer, in canonical layer order."""
    roles = {record.path: record.role for record in files}
    grouped: Dict[str, List[str]] = {}
    for layer in LAYERS:
        members = sorted(
            path for path, assigned in assignments.items()
            if assigned == layer and roles.get(path) == "source"
        )
        if members:
            grouped[layer] = members
    return grouped


def collect_endpoints(files: List[FileRecord]) -> List[Dict[str, object]]:
    endpoints: List[Dict[str, object]] = []
    for record in files:
        for endpoint in record.endpoints:
            entry: Dict[str, object] = endpoint.to_dict()
            entry["file"] = record.path
            endpoints.append(entry)
    endpoints.sort(key=lambda ep: (ep["path"], ep["method"], ep["file"]))
    return endpoints
