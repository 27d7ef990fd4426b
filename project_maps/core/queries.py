"""
Fixed catalog of structural queries answered from a map snapshot.

Each query type has its own result model tagged by ``kind``. The
dispatcher is a closed chain over ``QueryType``; an artifact that is
missing or failed to decode yields ``UnavailableResult`` for that query
only.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .errors import InvalidQueryError
from .store import MapSnapshot


class QueryType(str, Enum):
    ENTRY_POINTS = "entry-points"
    FRAMEWORK = "framework"
    TESTS = "tests"
    LARGEST = "largest"
    RECENT = "recent"
    STRUCTURE = "structure"
    LANGUAGES = "languages"
    SUMMARY = "summary"
    BACKEND_LAYERS = "backend-layers"
    MODULES = "modules"
    MODULE_DEPS = "module-deps"
    COMPONENTS = "components"
    DATABASE = "database"
    DATA_FLOW = "data-flow"
    TABLE_MAPPING = "table-mapping"
    DEPENDENCIES = "dependencies"
    ISSUES = "issues"
    RELATIONSHIPS = "relationships"
    NPM_DEPS = "npm-deps"
    STACK = "stack"


QUERY_TYPES = [query.value for query in QueryType]


def parse_query_type(value: Union[str, QueryType]) -> QueryType:
    try:
        return QueryType(value)
    except ValueError:
        raise InvalidQueryError(str(value), QUERY_TYPES)


# --- Result variants ---

class UnavailableResult(BaseModel):
    kind: Literal["unavailable"] = "unavailable"
    query: str
    artifact: str
    reason: str
    suggestion: str = "Run refresh with mode 'full' to rebuild the maps"


class EntryPointsResult(BaseModel):
    kind: Literal["entry-points"] = "entry-points"
    entry_point: Optional[str] = None
    entry_points: List[Dict[str, str]] = Field(default_factory=list)


class FrameworkResult(BaseModel):
    kind: Literal["framework"] = "framework"
    name: str
    type: str
    build_tool: Optional[str] = None
    package_manager: Optional[str] = None
    testing_framework: Optional[str] = None


class TestsResult(BaseModel):
    __test__ = False  # not a pytest class

    kind: Literal["tests"] = "tests"
    test_file_count: int = 0
    test_locations: List[str] = Field(default_factory=list)
    testing_framework: Optional[str] = None


class LargestFilesResult(BaseModel):
    kind: Literal["largest"] = "largest"
    files: List[Dict[str, Any]] = Field(default_factory=list)


class RecentFilesResult(BaseModel):
    kind: Literal["recent"] = "recent"
    files: List[Dict[str, Any]] = Field(default_factory=list)


class StructureResult(BaseModel):
    kind: Literal["structure"] = "structure"
    directory_tree: Dict[str, Any] = Field(default_factory=dict)
    modules: List[Dict[str, str]] = Field(default_factory=list)
    file_type_distribution: Dict[str, int] = Field(default_factory=dict)
    file_role_distribution: Dict[str, int] = Field(default_factory=dict)


class LanguagesResult(BaseModel):
    kind: Literal["languages"] = "languages"
    languages: List[Dict[str, Any]] = Field(default_factory=list)


class SummaryResult(BaseModel):
    kind: Literal["summary"] = "summary"
    generated: Optional[str] = None
    project: Dict[str, Any] = Field(default_factory=dict)
    statistics: Dict[str, Any] = Field(default_factory=dict)
    framework: Dict[str, str] = Field(default_factory=dict)
    architecture: Dict[str, str] = Field(default_factory=dict)
    entry_points: List[str] = Field(default_factory=list)
    staleness: Optional[Dict[str, Any]] = None


class BackendLayersResult(BaseModel):
    kind: Literal["backend-layers"] = "backend-layers"
    primary: Dict[str, Any] = Field(default_factory=dict)
    candidates: List[Dict[str, Any]] = Field(default_factory=list)
    ambiguous: bool = False
    layers: Dict[str, List[str]] = Field(default_factory=dict)
    layer_counts: Dict[str, int] = Field(default_factory=dict)
    endpoints: List[Dict[str, Any]] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)


class ModulesResult(BaseModel):
    kind: Literal["modules"] = "modules"
    summary: Dict[str, Any] = Field(default_factory=dict)
    modules: Dict[str, Any] = Field(default_factory=dict)


class ModuleDependenciesResult(BaseModel):
    kind: Literal["module-deps"] = "module-deps"
    summary: Dict[str, Any] = Field(default_factory=dict)
    dependencies: Dict[str, Any] = Field(default_factory=dict)


class ComponentsResult(BaseModel):
    kind: Literal["components"] = "components"
    framework: str = "Unknown"
    components: Dict[str, Any] = Field(default_factory=dict)
    statistics: Dict[str, Any] = Field(default_factory=dict)


class DatabaseResult(BaseModel):
    kind: Literal["database"] = "database"
    orms: List[str] = Field(default_factory=list)
    tables: List[Dict[str, Any]] = Field(default_factory=list)
    summary: Dict[str, Any] = Field(default_factory=dict)


class DataFlowResult(BaseModel):
    kind: Literal["data-flow"] = "data-flow"
    pattern: str = "unknown"
    entry_layers: List[str] = Field(default_factory=list)
    flows: List[Dict[str, Any]] = Field(default_factory=list)
    common_patterns: List[Dict[str, Any]] = Field(default_factory=list)
    isolated_endpoints: List[str] = Field(default_factory=list)
    stats: Dict[str, Any] = Field(default_factory=dict)
    violations: List[Dict[str, Any]] = Field(default_factory=list)


class TableMappingResult(BaseModel):
    kind: Literal["table-mapping"] = "table-mapping"
    tables: Dict[str, Any] = Field(default_factory=dict)
    modules: Dict[str, List[str]] = Field(default_factory=dict)
    shared_tables: List[str] = Field(default_factory=list)


class DependenciesResult(BaseModel):
    kind: Literal["dependencies"] = "dependencies"
    file: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)
    dependents: List[str] = Field(default_factory=list)
    statistics: Dict[str, Any] = Field(default_factory=dict)
    most_depended_upon: List[Dict[str, Any]] = Field(default_factory=list)


class IssuesResult(BaseModel):
    kind: Literal["issues"] = "issues"
    summary: Dict[str, Any] = Field(default_factory=dict)
    issues: List[Dict[str, Any]] = Field(default_factory=list)


class RelationshipsResult(BaseModel):
    kind: Literal["relationships"] = "relationships"
    statistics: Dict[str, int] = Field(default_factory=dict)
    most_dependent: List[Dict[str, Any]] = Field(default_factory=list)
    import_chains: List[List[str]] = Field(default_factory=list)


class NpmDependenciesResult(BaseModel):
    kind: Literal["npm-deps"] = "npm-deps"
    manifests: List[Dict[str, Any]] = Field(default_factory=list)
    packages: Dict[str, Any] = Field(default_factory=dict)
    summary: Dict[str, Any] = Field(default_factory=dict)


class StackResult(BaseModel):
    kind: Literal["stack"] = "stack"
    runtime: str = "unknown"
    package_manager: str = "unknown"
    framework: str = "Unknown"
    framework_type: str = "unknown"
    backend_frameworks: List[str] = Field(default_factory=list)
    bundler: Optional[str] = None
    testing: List[str] = Field(default_factory=list)
    database: List[str] = Field(default_factory=list)
    state_management: List[str] = Field(default_factory=list)


QueryResult = Union[
    UnavailableResult, EntryPointsResult, FrameworkResult, TestsResult, LargestFilesResult,
    RecentFilesResult, StructureResult, LanguagesResult, SummaryResult, BackendLayersResult,
    ModulesResult, ModuleDependenciesResult, ComponentsResult, DatabaseResult, DataFlowResult,
    TableMappingResult, DependenciesResult, IssuesResult, RelationshipsResult,
    NpmDependenciesResult, StackResult,
]

ISSUE_CATEGORIES = ["broken_imports", "circular_dependencies", "unused_files", "architecture_violations", "scan_issues"]


def _prune_tree(node: Dict[str, Any], depth: int) -> Dict[str, Any]:
    pruned = dict(node)
    if depth <= 0:
        pruned["children"] = []
    else:
        pruned["children"] = [_prune_tree(child, depth - 1) for child in node.get("children", [])]
    return pruned


def _entry_points(doc: Dict[str, Any], options: Dict[str, Any]) -> EntryPointsResult:
    return EntryPointsResult(entry_point=doc.get("entry_point"), entry_points=doc.get("all_entry_points", []))


def _framework(doc: Dict[str, Any], options: Dict[str, Any]) -> FrameworkResult:
    framework = doc.get("framework") or {}
    return FrameworkResult(
        name=framework.get("name", "Unknown"),
        type=framework.get("type", "unknown"),
        build_tool=doc.get("build_tool"),
        package_manager=doc.get("package_manager"),
        testing_framework=doc.get("testing_framework"),
    )


def _backend_layers(doc: Dict[str, Any], options: Dict[str, Any]) -> BackendLayersResult:
    layers = doc.get("layers", {})
    if options.get("layer"):
        layers = {name: paths for name, paths in layers.items() if name == options["layer"]}
    architecture = doc.get("architecture", {})
    return BackendLayersResult(
        primary=architecture.get("primary", {}),
        candidates=architecture.get("candidates", []),
        ambiguous=architecture.get("ambiguous", False),
        layers=layers,
        layer_counts=doc.get("layer_counts", {}),
        endpoints=doc.get("endpoints", []),
        frameworks=doc.get("frameworks", []),
    )


def _modules(doc: Dict[str, Any], options: Dict[str, Any]) -> ModulesResult:
    modules = doc.get("modules", {})
    if options.get("name"):
        modules = {name: module for name, module in modules.items() if name == options["name"]}
    return ModulesResult(summary=doc.get("summary", {}), modules=modules)


def _components(doc: Dict[str, Any], options: Dict[str, Any]) -> ComponentsResult:
    components = doc.get("components", {})
    if options.get("name"):
        wanted = options["name"].lower()
        components = {path: c for path, c in components.items() if c.get("name", "").lower() == wanted}
    return ComponentsResult(framework=doc.get("framework", "Unknown"), components=components, statistics=doc.get("statistics", {}))


def _database(doc: Dict[str, Any], options: Dict[str, Any]) -> DatabaseResult:
    tables = doc.get("tables", [])
    if options.get("table"):
        wanted = options["table"].lower()
        tables = [t for t in tables if t.get("name", "").lower() == wanted or t.get("model", "").lower() == wanted]
    return DatabaseResult(orms=doc.get("orms", []), tables=tables, summary=doc.get("summary", {}))


def _data_flow(doc: Dict[str, Any], options: Dict[str, Any]) -> DataFlowResult:
    flows = doc.get("flows", [])
    if options.get("file"):
        flows = [flow for flow in flows if any(link["file"] == options["file"] for link in flow.get("chain", []))]
    return DataFlowResult(
        pattern=doc.get("pattern", "unknown"),
        entry_layers=doc.get("entry_layers", []),
        flows=flows,
        common_patterns=doc.get("common_patterns", []),
        isolated_endpoints=doc.get("isolated_endpoints", []),
        stats=doc.get("stats", {}),
        violations=doc.get("violations", []),
    )


def _issues(doc: Dict[str, Any], options: Dict[str, Any]) -> IssuesResult:
    items: List[Dict[str, Any]] = []
    for category in ISSUE_CATEGORIES:
        items.extend(doc.get(category, []))
    if options.get("type"):
        items = [item for item in items if item.get("type") == options["type"]]
    if options.get("severity"):
        items = [item for item in items if item.get("severity") == options["severity"]]
    return IssuesResult(summary=doc.get("summary", {}), issues=items)


def _stack(doc: Dict[str, Any], options: Dict[str, Any]) -> StackResult:
    stack = {key: value for key, value in (doc.get("stack") or {}).items() if value is not None}
    return StackResult(**stack)


def _dependencies(snapshot: MapSnapshot, options: Dict[str, Any]) -> QueryResult:
    forward = snapshot.get("dependencies-forward")
    reverse = snapshot.get("dependencies-reverse")
    if forward is None:
        return _unavailable(snapshot, QueryType.DEPENDENCIES, "dependencies-forward")
    if reverse is None:
        return _unavailable(snapshot, QueryType.DEPENDENCIES, "dependencies-reverse")
    path = options.get("file")
    if path:
        return DependenciesResult(
            file=path,
            dependencies=forward.get("graph", {}).get(path, []),
            dependents=reverse.get("graph", {}).get(path, []),
        )
    return DependenciesResult(
        statistics=forward.get("statistics", {}),
        most_depended_upon=reverse.get("most_depended_upon", []),
    )


def _unavailable(snapshot: MapSnapshot, query: QueryType, artifact: str) -> UnavailableResult:
    return UnavailableResult(
        query=query.value,
        artifact=artifact,
        reason=snapshot.unavailable.get(artifact, "artifact not generated"),
    )


def run_query(snapshot: MapSnapshot, query_type: Union[str, QueryType], options: Optional[Dict[str, Any]] = None) -> QueryResult:
    """Answer one catalog query from ``snapshot``."""
    query = parse_query_type(query_type)
    options = options or {}

    if query is QueryType.DEPENDENCIES:
        return _dependencies(snapshot, options)

    if query in (
        QueryType.ENTRY_POINTS, QueryType.FRAMEWORK, QueryType.TESTS,
        QueryType.LARGEST, QueryType.RECENT, QueryType.LANGUAGES,
    ):
        artifact = "quick-queries"
    elif query is QueryType.STRUCTURE:
        artifact = "tree"
    elif query is QueryType.SUMMARY:
        artifact = "summary"
    elif query is QueryType.BACKEND_LAYERS:
        artifact = "backend-layers"
    elif query is QueryType.MODULES:
        artifact = "modules"
    elif query is QueryType.MODULE_DEPS:
        artifact = "module-dependencies"
    elif query is QueryType.COMPONENTS:
        artifact = "frontend-components"
    elif query is QueryType.DATABASE:
        artifact = "database-schema"
    elif query is QueryType.DATA_FLOW:
        artifact = "data-flow"
    elif query is QueryType.TABLE_MAPPING:
        artifact = "table-module-mapping"
    elif query is QueryType.ISSUES:
        artifact = "issues"
    elif query is QueryType.RELATIONSHIPS:
        artifact = "relationships"
    else:  # NPM_DEPS, STACK
        artifact = "npm-dependencies"

    doc = snapshot.get(artifact)
    if doc is None:
        return _unavailable(snapshot, query, artifact)

    if query is QueryType.ENTRY_POINTS:
        return _entry_points(doc, options)
    elif query is QueryType.FRAMEWORK:
        return _framework(doc, options)
    elif query is QueryType.TESTS:
        return TestsResult(
            test_file_count=doc.get("test_file_count", 0),
            test_locations=doc.get("test_locations", []),
            testing_framework=doc.get("testing_framework"),
        )
    elif query is QueryType.LARGEST:
        return LargestFilesResult(files=doc.get("largest_files", [])[:options.get("limit", 10)])
    elif query is QueryType.RECENT:
        return RecentFilesResult(files=doc.get("recently_modified", [])[:options.get("limit", 10)])
    elif query is QueryType.LANGUAGES:
        return LanguagesResult(languages=doc.get("primary_languages", []))
    elif query is QueryType.STRUCTURE:
        tree = doc.get("directory_tree", {})
        if options.get("depth") is not None:
            tree = _prune_tree(tree, int(options["depth"]))
        return StructureResult(
            directory_tree=tree,
            modules=doc.get("modules", []),
            file_type_distribution=doc.get("file_type_distribution", {}),
            file_role_distribution=doc.get("file_role_distribution", {}),
        )
    elif query is QueryType.SUMMARY:
        return SummaryResult(
            generated=doc.get("generated"),
            project=doc.get("project", {}),
            statistics=doc.get("statistics", {}),
            framework=doc.get("framework", {}),
            architecture=doc.get("architecture", {}),
            entry_points=doc.get("entry_points", []),
        )
    elif query is QueryType.BACKEND_LAYERS:
        return _backend_layers(doc, options)
    elif query is QueryType.MODULES:
        return _modules(doc, options)
    elif query is QueryType.MODULE_DEPS:
        return ModuleDependenciesResult(summary=doc.get("summary", {}), dependencies=doc.get("dependencies", {}))
    elif query is QueryType.COMPONENTS:
        return _components(doc, options)
    elif query is QueryType.DATABASE:
        return _database(doc, options)
    elif query is QueryType.DATA_FLOW:
        return _data_flow(doc, options)
    elif query is QueryType.TABLE_MAPPING:
        return TableMappingResult(
            tables=doc.get("tables", {}),
            modules=doc.get("modules", {}),
            shared_tables=doc.get("shared_tables", []),
        )
    elif query is QueryType.ISSUES:
        return _issues(doc, options)
    elif query is QueryType.RELATIONSHIPS:
        return RelationshipsResult(
            statistics=doc.get("statistics", {}),
            most_dependent=doc.get("depth_analysis", {}).get("most_dependent", []),
            import_chains=doc.get("import_chains", []),
        )
    elif query is QueryType.NPM_DEPS:
        return NpmDependenciesResult(
            manifests=doc.get("manifests", []),
            packages=doc.get("packages", {}),
            summary=doc.get("summary", {}),
        )
    return _stack(doc, options)
