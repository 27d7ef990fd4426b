"""
Core data models for project maps.

This module contains the data structures shared by the scanner, the
signature extractors, the analysers and the map store. Records are plain
dataclasses; ``FileRecord`` is frozen so that a completed generation can
only be superseded, never edited in place.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ScanIssue:
    """A file that could not be read or parsed; the scan continues without it."""
    path: str
    stage: str  # 'scan', 'read', 'extract'
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ImportRef:
    """One import statement as written in the source file."""
    source: str  # module specifier exactly as written, e.g. './user' or 'flask'
    symbols: List[str] = field(default_factory=list)
    kind: str = "import"  # 'import', 'require', 'dynamic', 'reexport', 'from'
    line: int = 0
    resolved: Optional[str] = None  # project-relative path when the import is internal
    category: str = ""  # 'internal', 'external', 'builtin', 'unresolved'

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportRef":
        return cls(
            source=data["source"],
            symbols=list(data.get("symbols", [])),
            kind=data.get("kind", "import"),
            line=int(data.get("line", 0)),
            resolved=data.get("resolved"),
            category=data.get("category", ""),
        )


@dataclass
class Signature:
    """A function, method, class, interface, type alias or enum declaration."""
    name: str
    kind: str  # 'function', 'method', 'class', 'interface', 'type', 'enum'
    line: int = 0
    parameters: List[str] = field(default_factory=list)
    return_type: Optional[str] = None
    is_async: bool = False
    is_static: bool = False
    is_exported: bool = False
    visibility: str = "public"  # 'public', 'private', 'protected'
    class_name: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.class_name}.{self.name}" if self.class_name else self.name

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Signature":
        return cls(
            name=data["name"],
            kind=data.get("kind", "function"),
            line=int(data.get("line", 0)),
            parameters=list(data.get("parameters", [])),
            return_type=data.get("return_type"),
            is_async=bool(data.get("is_async", False)),
            is_static=bool(data.get("is_static", False)),
            is_exported=bool(data.get("is_exported", False)),
            visibility=data.get("visibility", "public"),
            class_name=data.get("class_name"),
        )


@dataclass
class Endpoint:
    """An HTTP route declared in a source file."""
    method: str
    path: str
    line: int = 0
    framework: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Endpoint":
        return cls(
            method=data["method"],
            path=data["path"],
            line=int(data.get("line", 0)),
            framework=data.get("framework", ""),
        )


@dataclass
class ExtractionResult:
    """Everything a signature extractor learned from one file's text."""
    exports: List[str] = field(default_factory=list)
    imports: List[ImportRef] = field(default_factory=list)
    signatures: List[Signature] = field(default_factory=list)
    markers: List[str] = field(default_factory=list)  # framework markers, e.g. 'express-router'
    endpoints: List[Endpoint] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FileRecord:
    """Normalized per-file record produced by the scanner and enriched downstream."""
    path: str  # project-relative POSIX path, unique key
    name: str
    extension: str
    file_type: str  # e.g. 'typescript-react'
    language: str  # e.g. 'TypeScript'
    role: str  # 'source', 'test', 'config', 'documentation', 'build', 'style', 'other'
    size: int
    lines: int
    modified: float  # epoch seconds
    hash: str
    layer: Optional[str] = None
    exports: List[str] = field(default_factory=list)
    imports: List[ImportRef] = field(default_factory=list)
    signatures: List[Signature] = field(default_factory=list)
    markers: List[str] = field(default_factory=list)
    endpoints: List[Endpoint] = field(default_factory=list)

    @property
    def directory(self) -> str:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else "."

    @property
    def stem(self) -> str:
        return self.name.split(".", 1)[0] if not self.name.startswith(".") else self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "extension": self.extension,
            "file_type": self.file_type,
            "language": self.language,
            "role": self.role,
            "size": self.size,
            "lines": self.lines,
            "modified": self.modified,
            "hash": self.hash,
            "layer": self.layer,
            "exports": list(self.exports),
            "imports": [imp.to_dict() for imp in self.imports],
            "signatures": [sig.to_dict() for sig in self.signatures],
            "markers": list(self.markers),
            "endpoints": [ep.to_dict() for ep in self.endpoints],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileRecord":
        return cls(
            path=data["path"],
            name=data["name"],
            extension=data.get("extension", ""),
            file_type=data.get("file_type", ""),
            language=data.get("language", "Other"),
            role=data.get("role", "other"),
            size=int(data.get("size", 0)),
            lines=int(data.get("lines", 0)),
            modified=float(data.get("modified", 0.0)),
            hash=data.get("hash", ""),
            layer=data.get("layer"),
            exports=list(data.get("exports", [])),
            imports=[ImportRef.from_dict(item) for item in data.get("imports", [])],
            signatures=[Signature.from_dict(item) for item in data.get("signatures", [])],
            markers=list(data.get("markers", [])),
            endpoints=[Endpoint.from_dict(item) for item in data.get("endpoints", [])],
        )


@dataclass
class ArchitecturePattern:
    """A detected architecture style with its supporting evidence."""
    type: str  # 'mvc', 'layered', 'clean', 'service-oriented', 'microservices', 'api-centric', 'unknown'
    name: str
    confidence: str  # 'high', 'medium', 'low', 'none'
    evidence_count: int = 0
    layer_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArchitecturePattern":
        return cls(
            type=data["type"],
            name=data.get("name", data["type"]),
            confidence=data.get("confidence", "none"),
            evidence_count=int(data.get("evidence_count", 0)),
            layer_counts=dict(data.get("layer_counts", {})),
        )


UNKNOWN_PATTERN = ArchitecturePattern(type="unknown", name="Unknown", confidence="none")


@dataclass
class ArchitectureResult:
    primary: ArchitecturePattern
    candidates: List[ArchitecturePattern]
    assignments: Dict[str, str]  # file path -> layer
    layer_counts: Dict[str, int]  # pattern evidence counts per directory vocabulary
    ambiguous: bool = False


@dataclass
class DependencyEdge:
    source: str
    target: str
    symbols: List[str] = field(default_factory=list)


@dataclass
class ChainLink:
    file: str
    layer: str


@dataclass
class DataFlowChain:
    entry_point: str
    chain: List[ChainLink]

    @property
    def depth(self) -> int:
        return len(self.chain)

    @property
    def layers(self) -> List[str]:
        return [link.layer for link in self.chain]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_point": self.entry_point,
            "chain": [asdict(link) for link in self.chain],
            "layers": self.layers,
            "depth": self.depth,
        }


@dataclass
class ArchitectureViolation:
    file: str
    target: str
    source_layer: str
    target_layer: str
    pattern: str
    type: str = "upward-dependency"
    severity: str = "error"

    @property
    def message(self) -> str:
        return (
            f"{self.source_layer} should not depend on {self.target_layer} "
            f"(violates {self.pattern} hierarchy)"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["message"] = self.message
        return data
