"""
In-memory search over a loaded map snapshot.

The index is built once per generation from the ``metadata`` artifact
(file records with their exports, imports and signatures) and the
``dependencies-reverse`` artifact (dependent counts for ranking). It is
never mutated after construction, so any number of readers can share it.

Every hit carries a match quality (exact, prefix, contains or fuzzy) that
the ranker turns into a score bonus.
"""

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional, Tuple

from .errors import ArtifactCorruptError, InvalidQueryError
from .models import FileRecord, ImportRef, Signature
from .store import MapSnapshot
from .utils import glob_to_regex, has_wildcards, levenshtein

SEARCH_TYPES = ["file", "export", "import", "signature", "function", "class", "type", "all", "fuzzy"]
MATCH_QUALITIES = ["exact", "prefix", "contains", "fuzzy"]

# Signature kinds served by each narrowed search type
KINDS_FOR_TYPE = {
    "signature": None,
    "function": {"function", "method"},
    "class": {"class", "interface"},
    "type": {"type", "interface", "enum"},
}


def match_quality(name: str, pattern: str) -> Optional[str]:
    """
    How ``name`` matches ``pattern``, or None.

    Plain patterns match case-insensitively as exact, prefix or substring.
    Glob patterns must match the whole name; a glob whose only wildcards
    are leading or trailing ``*`` is graded on its literal part.
    """
    if pattern in ("", "*"):
        return "contains"
    lowered, needle = name.lower(), pattern.lower()
    if has_wildcards(pattern):
        if not glob_to_regex(pattern).match(name):
            return None
        literal = needle.strip("*")
        if has_wildcards(literal):
            return "contains"
        needle = literal
    if lowered == needle:
        return "exact"
    if lowered.startswith(needle):
        return "prefix"
    if needle in lowered:
        return "contains"
    return None


@dataclass
class SearchHit:
    kind: str  # 'file', 'export', 'import' or a signature kind
    name: str
    file: str
    match_quality: str
    line: Optional[int] = None
    parameters: Optional[List[str]] = None
    return_type: Optional[str] = None
    is_async: bool = False
    is_static: bool = False
    is_exported: bool = False
    visibility: Optional[str] = None
    class_name: Optional[str] = None
    layer: Optional[str] = None
    modified: float = 0.0
    dependents: int = 0
    distance: Optional[int] = None
    score: int = 0

    @property
    def directory(self) -> str:
        return self.file.rsplit("/", 1)[0] if "/" in self.file else "."

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SignatureCriteria:
    """Structured filters for signature searches; unset fields do not filter."""
    param_count: Optional[int] = None
    min_params: Optional[int] = None
    max_params: Optional[int] = None
    is_async: Optional[bool] = None
    return_type: Optional[str] = None  # substring, case-insensitive
    has_parameter: Optional[str] = None
    visibility: Optional[str] = None
    is_static: Optional[bool] = None
    kind: Optional[str] = None
    exported: Optional[bool] = None

    @classmethod
    def from_options(cls, options: Optional[Dict[str, Any]]) -> "SignatureCriteria":
        options = options or {}
        return cls(**{f.name: options[f.name] for f in fields(cls) if options.get(f.name) is not None})

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def matches(self, signature: Signature) -> bool:
        count = len(signature.parameters)
        if self.param_count is not None and count != self.param_count:
            return False
        if self.min_params is not None and count < self.min_params:
            return False
        if self.max_params is not None and count > self.max_params:
            return False
        if self.is_async is not None and signature.is_async != self.is_async:
            return False
        if self.is_static is not None and signature.is_static != self.is_static:
            return False
        if self.exported is not None and signature.is_exported != self.exported:
            return False
        if self.visibility is not None and signature.visibility != self.visibility:
            return False
        if self.kind is not None and signature.kind != self.kind:
            return False
        if self.return_type is not None:
            if not signature.return_type or self.return_type.lower() not in signature.return_type.lower():
                return False
        if self.has_parameter is not None:
            wanted = self.has_parameter.lower()
            if not any(_parameter_name(param) == wanted for param in signature.parameters):
                return False
        return True


def _parameter_name(parameter: str) -> str:
    """'id: number = 1' -> 'id', '*args' -> 'args'."""
    name = parameter.split(":", 1)[0].split("=", 1)[0].strip()
    return name.lstrip("*.").rstrip("?").lower()


class SearchIndex:
    """Indexes by file name, exported symbol, import target, signature and a flattened token set."""

    def __init__(self, records: List[FileRecord], dependents: Optional[Dict[str, int]] = None):
        self.records: Dict[str, FileRecord] = {record.path: record for record in records}
        self.dependents = dependents or {}
        self.files: List[FileRecord] = sorted(records, key=lambda record: record.path)
        self.exports: List[Tuple[str, str]] = []
        self.imports: List[Tuple[ImportRef, str]] = []
        self.signatures: List[Tuple[Signature, str]] = []
        # lower-cased token -> (category, path, payload)
        self.tokens: Dict[str, List[Tuple[str, str, Any]]] = {}

        for record in self.files:
            self._add_token(record.stem, "file", record.path, record.name)
            for name in record.exports:
                self.exports.append((name, record.path))
                self._add_token(name, "export", record.path, name)
            for ref in record.imports:
                self.imports.append((ref, record.path))
            for signature in record.signatures:
                self.signatures.append((signature, record.path))
                self._add_token(signature.name, "signature", record.path, signature)

        logging.info(
            "Search index: %d files, %d exports, %d imports, %d signatures, %d tokens",
            len(self.files), len(self.exports), len(self.imports), len(self.signatures), len(self.tokens),
        )

    def _add_token(self, token: str, category: str, path: str, payload: Any) -> None:
        if token:
            self.tokens.setdefault(token.lower(), []).append((category, path, payload))

    @classmethod
    def from_snapshot(cls, snapshot: MapSnapshot) -> "SearchIndex":
        metadata = snapshot.get("metadata")
        if metadata is None:
            raise ArtifactCorruptError("metadata", snapshot.unavailable.get("metadata", "artifact not loaded"))
        try:
            records = [FileRecord.from_dict(item) for item in metadata["files"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ArtifactCorruptError("metadata", f"invalid file records: {e}")
        reverse = (snapshot.get("dependencies-reverse") or {}).get("graph", {})
        return cls(records, {path: len(sources) for path, sources in reverse.items()})

    # --- hit construction ---

    def _base(self, kind: str, name: str, path: str, quality: str) -> SearchHit:
        record = self.records.get(path)
        return SearchHit(
            kind=kind,
            name=name,
            file=path,
            match_quality=quality,
            layer=record.layer if record else None,
            modified=record.modified if record else 0.0,
            dependents=self.dependents.get(path, 0),
        )

    def _signature_hit(self, signature: Signature, path: str, quality: str) -> SearchHit:
        hit = self._base(signature.kind, signature.qualified_name, path, quality)
        hit.line = signature.line or None
        hit.parameters = list(signature.parameters)
        hit.return_type = signature.return_type
        hit.is_async = signature.is_async
        hit.is_static = signature.is_static
        hit.is_exported = signature.is_exported
        hit.visibility = signature.visibility
        hit.class_name = signature.class_name
        return hit

    def _export_hit(self, name: str, path: str, quality: str) -> SearchHit:
        hit = self._base("export", name, path, quality)
        hit.is_exported = True
        hit.visibility = "public"
        for signature in self.records[path].signatures if path in self.records else []:
            if signature.name == name:
                hit.line = signature.line or None
                break
        return hit

    # --- searches ---

    def search_files(self, pattern: str) -> List[SearchHit]:
        hits = []
        for record in self.files:
            target = record.path if "/" in pattern else record.name
            quality = match_quality(target, pattern)
            if "/" not in pattern:
                # 'user' is an exact match for user.js
                stem_quality = match_quality(record.stem, pattern)
                if stem_quality and (quality is None or MATCH_QUALITIES.index(stem_quality) < MATCH_QUALITIES.index(quality)):
                    quality = stem_quality
            if quality:
                hits.append(self._base("file", record.name, record.path, quality))
        return hits

    def search_exports(self, pattern: str) -> List[SearchHit]:
        hits = []
        for name, path in self.exports:
            quality = match_quality(name, pattern)
            if quality:
                hits.append(self._export_hit(name, path, quality))
        return hits

    def search_imports(self, pattern: str) -> List[SearchHit]:
        hits = []
        for ref, path in self.imports:
            quality = match_quality(ref.source, pattern)
            if quality is None and ref.resolved:
                quality = match_quality(ref.resolved, pattern)
            if quality:
                hit = self._base("import", ref.source, path, quality)
                hit.line = ref.line or None
                hits.append(hit)
        return hits

    def search_signatures(
        self,
        pattern: str,
        kinds: Optional[set] = None,
        criteria: Optional[SignatureCriteria] = None,
    ) -> List[SearchHit]:
        hits = []
        for signature, path in self.signatures:
            if kinds is not None and signature.kind not in kinds:
                continue
            if criteria is not None and not criteria.matches(signature):
                continue
            quality = match_quality(signature.name, pattern)
            if quality is None and signature.class_name:
                quality = match_quality(signature.qualified_name, pattern)
            if quality:
                hits.append(self._signature_hit(signature, path, quality))
        return hits

    def search_fuzzy(self, pattern: str, max_distance: int) -> List[SearchHit]:
        """Tokens within ``max_distance`` edits of the pattern (case-insensitive)."""
        needle = pattern.lower()
        hits = []
        for token, entries in sorted(self.tokens.items()):
            distance = levenshtein(token, needle, max_distance)
            if distance > max_distance:
                continue
            quality = "exact" if distance == 0 else "fuzzy"
            for category, path, payload in entries:
                if category == "signature":
                    hit = self._signature_hit(payload, path, quality)
                elif category == "export":
                    hit = self._export_hit(payload, path, quality)
                else:
                    hit = self._base("file", payload, path, quality)
                hit.distance = distance
                hits.append(hit)
        return hits

    def search(
        self,
        search_type: str,
        pattern: str,
        criteria: Optional[SignatureCriteria] = None,
        max_distance: int = 2,
    ) -> List[SearchHit]:
        if search_type not in SEARCH_TYPES:
            raise InvalidQueryError(search_type, SEARCH_TYPES)
        if criteria is not None and criteria.is_empty():
            criteria = None

        if search_type == "file":
            return self.search_files(pattern)
        if search_type == "export":
            return self.search_exports(pattern)
        if search_type == "import":
            return self.search_imports(pattern)
        if search_type == "fuzzy":
            return self.search_fuzzy(pattern, max_distance)
        if search_type == "all":
            return (
                self.search_files(pattern)
                + self.search_exports(pattern)
                + self.search_signatures(pattern, None, criteria)
                + self.search_imports(pattern)
            )
        return self.search_signatures(pattern, KINDS_FOR_TYPE[search_type], criteria)
