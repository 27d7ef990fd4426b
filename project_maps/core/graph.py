"""
Dependency graph construction.

Resolves each file's raw imports to project files where possible and
builds symmetric forward (file -> dependencies) and reverse
(file -> dependents) adjacency. Imports that cannot be mapped to a
project file stay on the record as external, builtin or unresolved
references and never become edges.
"""

import dataclasses
import logging
import posixpath
import sys
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import DependencyEdge, FileRecord, ImportRef

JS_RESOLVE_EXTENSIONS = [".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".vue", ".svelte"]
JS_TO_TS = {".js": [".ts", ".tsx"], ".jsx": [".tsx"], ".mjs": [".mts"], ".cjs": [".cts"]}
JS_LANGUAGES = {"JavaScript", "TypeScript", "Vue", "Svelte"}
ALIAS_PREFIXES = ("@/", "~/")

NODE_BUILTINS = {
    "assert", "async_hooks", "buffer", "child_process", "cluster", "console", "constants",
    "crypto", "dgram", "diagnostics_channel", "dns", "domain", "events", "fs", "http", "http2",
    "https", "inspector", "module", "net", "os", "path", "perf_hooks", "process", "punycode",
    "querystring", "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
    "trace_events", "tty", "url", "util", "v8", "vm", "wasi", "worker_threads", "zlib", "test",
}
PYTHON_STDLIB = set(sys.stdlib_module_names) | {"__future__"}
RUST_BUILTINS = {"std", "core", "alloc", "proc_macro"}


@dataclass
class DependencyGraph:
    forward: Dict[str, List[str]] = field(default_factory=dict)
    reverse: Dict[str, List[str]] = field(default_factory=dict)
    edges: List[DependencyEdge] = field(default_factory=list)
    external: Dict[str, List[str]] = field(default_factory=dict)  # package -> importing files
    builtin: Dict[str, List[str]] = field(default_factory=dict)
    unresolved: List[Dict[str, object]] = field(default_factory=list)

    def dependencies(self, path: str) -> List[str]:
        return self.forward.get(path, [])

    def dependents(self, path: str) -> List[str]:
        return self.reverse.get(path, [])

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.forward.values())


# --- Resolution ---

def package_name(source: str, language: str = "") -> str:
    """Top-level package of an external specifier: '@scope/pkg/x' -> '@scope/pkg', 'a.b' -> 'a'."""
    if language == "Python":
        return source.split(".", 1)[0]
    if language == "Rust":
        return source.split("::", 1)[0]
    if source.startswith("node:"):
        source = source[5:]
    parts = source.split("/")
    if source.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def _first_existing(candidates: Iterable[str], file_set: Set[str]) -> Optional[str]:
    for candidate in candidates:
        if candidate in file_set:
            return candidate
    return None


def _js_candidates(base: str) -> List[str]:
    candidates = [base]
    root, ext = posixpath.splitext(base)
    for replacement in JS_TO_TS.get(ext, []):
        candidates.append(root + replacement)
    candidates.extend(base + extension for extension in JS_RESOLVE_EXTENSIONS)
    candidates.extend(posixpath.join(base, "index" + extension) for extension in JS_RESOLVE_EXTENSIONS)
    return candidates


def _normalize(directory: str, specifier: str) -> Optional[str]:
    joined = posixpath.normpath(posixpath.join(directory, specifier) if directory != "." else specifier)
    if joined.startswith("..") or joined.startswith("/"):
        return None
    return joined


def _resolve_js(record: FileRecord, source: str, file_set: Set[str]) -> Tuple[Optional[str], str]:
    if source.startswith((".", "/")):
        if source.startswith("/"):
            base = _normalize(".", source.lstrip("/"))
        else:
            base = _normalize(record.directory, source)
        if base is None:
            return None, "unresolved"
        resolved = _first_existing(_js_candidates(base), file_set)
        return resolved, "internal" if resolved else "unresolved"
    if source.startswith(ALIAS_PREFIXES):
        rest = source[2:]
        for prefix in ("src", "."):
            base = _normalize(prefix, rest)
            if base is None:
                continue
            resolved = _first_existing(_js_candidates(base), file_set)
            if resolved:
                return resolved, "internal"
        return None, "unresolved"
    name = package_name(source)
    if source.startswith("node:") or name in NODE_BUILTINS:
        return None, "builtin"
    return None, "external"


def _python_module_candidates(module_path: str) -> List[str]:
    return [module_path + ".py", module_path + ".pyi", posixpath.join(module_path, "__init__.py")]


def _resolve_python(record: FileRecord, ref: ImportRef, file_set: Set[str], top_level_dirs: Set[str]) -> Tuple[Optional[str], str]:
    source = ref.source
    if source.startswith("."):
        dots = len(source) - len(source.lstrip("."))
        rest = source[dots:]
        package = record.directory
        for _ in range(dots - 1):
            if package in (".", ""):
                return None, "unresolved"
            package = posixpath.dirname(package) or "."
        package_prefix = "" if package == "." else package + "/"
        if rest:
            module_path = package_prefix + rest.replace(".", "/")
            resolved = _first_existing(_python_module_candidates(module_path), file_set)
        else:
            submodules = [package_prefix + symbol for symbol in ref.symbols if symbol != "*"]
            candidates = [c for sub in submodules for c in _python_module_candidates(sub)]
            candidates.append(package_prefix + "__init__.py")
            resolved = _first_existing(candidates, file_set)
        return resolved, "internal" if resolved else "unresolved"

    module_path = source.replace(".", "/")
    candidates = _python_module_candidates(module_path) + _python_module_candidates("src/" + module_path)
    resolved = _first_existing(candidates, file_set)
    if resolved:
        return resolved, "internal"
    top = source.split(".", 1)[0]
    if top in PYTHON_STDLIB:
        return None, "builtin"
    if top in top_level_dirs:
        return None, "unresolved"
    return None, "external"


def _resolve_rust(record: FileRecord, source: str, file_set: Set[str]) -> Tuple[Optional[str], str]:
    parts = source.split("::")
    head = parts[0]
    if head in RUST_BUILTINS:
        return None, "builtin"
    if head not in {"crate", "self", "super"}:
        return None, "external"
    if head == "crate":
        base = "src"
    elif head == "self":
        base = record.directory
    else:
        base = posixpath.dirname(record.directory) or "."
    # Longest module prefix that maps to a file wins; trailing parts are items
    for end in range(len(parts), 1, -1):
        module_path = posixpath.normpath(posixpath.join(base, *parts[1:end]))
        resolved = _first_existing([module_path + ".rs", posixpath.join(module_path, "mod.rs")], file_set)
        if resolved:
            return resolved, "internal"
    return None, "unresolved"


def _resolve_go(source: str) -> Tuple[Optional[str], str]:
    # Standard library paths have no dot in their first element
    if "." not in source.split("/", 1)[0]:
        return None, "builtin"
    return None, "external"


def resolve_import(record: FileRecord, ref: ImportRef, file_set: Set[str], top_level_dirs: Set[str]) -> ImportRef:
    """A copy of ``ref`` with its resolved path and category filled in."""
    if record.language == "Python":
        resolved, category = _resolve_python(record, ref, file_set, top_level_dirs)
    elif record.language == "Rust":
        resolved, category = _resolve_rust(record, ref.source, file_set)
    elif record.language == "Go":
        resolved, category = _resolve_go(ref.source)
    else:
        resolved, category = _resolve_js(record, ref.source, file_set)
    if resolved == record.path:
        resolved, category = None, "unresolved"
    return dataclasses.replace(ref, resolved=resolved, category=category)


def resolve_records(files: List[FileRecord], only: Optional[Set[str]] = None) -> List[FileRecord]:
    """
    Resolve imports for every record, or only for paths in ``only``.

    Records are frozen, so resolved records are new objects; the others are
    returned as they were.
    """
    file_set = {record.path for record in files}
    top_level_dirs = {path.split("/", 1)[0] for path in file_set if "/" in path}
    top_level_dirs |= {path.split("/", 2)[1] for path in file_set if path.startswith("src/") and path.count("/") >= 2}
    resolved: List[FileRecord] = []
    for record in files:
        if (only is not None and record.path not in only) or not record.imports:
            resolved.append(record)
            continue
        imports = [resolve_import(record, ref, file_set, top_level_dirs) for ref in record.imports]
        resolved.append(dataclasses.replace(record, imports=imports))
    return resolved


# --- Graph ---

def build_graph(files: List[FileRecord]) -> DependencyGraph:
    """
    Forward and reverse adjacency from already-resolved imports.

    Both maps are built in the same pass and sorted, so every forward edge
    has exactly one matching reverse entry.
    """
    graph = DependencyGraph()
    forward: Dict[str, Set[str]] = {}
    reverse: Dict[str, Set[str]] = {}
    symbols: Dict[Tuple[str, str], Set[str]] = {}
    external: Dict[str, Set[str]] = {}
    builtin: Dict[str, Set[str]] = {}

    for record in files:
        for ref in record.imports:
            if ref.category == "internal" and ref.resolved:
                forward.setdefault(record.path, set()).add(ref.resolved)
                reverse.setdefault(ref.resolved, set()).add(record.path)
                symbols.setdefault((record.path, ref.resolved), set()).update(ref.symbols)
            elif ref.category == "external":
                external.setdefault(package_name(ref.source, record.language), set()).add(record.path)
            elif ref.category == "builtin":
                builtin.setdefault(package_name(ref.source, record.language), set()).add(record.path)
            elif ref.category == "unresolved":
                graph.unresolved.append({"file": record.path, "source": ref.source, "line": ref.line})

    graph.forward = {path: sorted(targets) for path, targets in sorted(forward.items())}
    graph.reverse = {path: sorted(sources) for path, sources in sorted(reverse.items())}
    graph.edges = [
        DependencyEdge(source=source, target=target, symbols=sorted(symbols[(source, target)]))
        for source, targets in graph.forward.items()
        for target in targets
    ]
    graph.external = {name: sorted(paths) for name, paths in sorted(external.items())}
    graph.builtin = {name: sorted(paths) for name, paths in sorted(builtin.items())}
    graph.unresolved.sort(key=lambda item: (item["file"], item["line"], item["source"]))
    logging.info(
        "Dependency graph: %d files with dependencies, %d edges, %d external packages, %d unresolved",
        len(graph.forward), graph.edge_count, len(graph.external), len(graph.unresolved),
    )
    return graph
