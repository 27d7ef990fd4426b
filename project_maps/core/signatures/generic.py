"""
Pattern-based extractors for Go and Rust.

Basic coverage only: imports, top-level functions and methods, and type
declarations. Go exports are capitalised names; Rust exports are `pub`.
"""

import re
from typing import List

from ..models import ExtractionResult, ImportRef, Signature
from .javascript import strip_comments

GO_IMPORT_SINGLE_RE = re.compile(r"^import\s+(?:([\w.]+)\s+)?\"([^\"]+)\"", re.MULTILINE)
GO_IMPORT_BLOCK_RE = re.compile(r"^import\s*\(([^)]*)\)", re.MULTILINE)
GO_IMPORT_LINE_RE = re.compile(r"(?:([\w.]+)\s+)?\"([^\"]+)\"")
GO_FUNC_RE = re.compile(
    r"^func\s+(?:\(\s*\w+\s+\*?(\w+)[^)]*\)\s*)?(\w+)\s*(?:\[[^\]]*\])?\(([^)]*)\)\s*([^{\n]*)\{",
    re.MULTILINE,
)
GO_TYPE_RE = re.compile(r"^type\s+(\w+)(?:\[[^\]]*\])?\s+(struct|interface|\w+)", re.MULTILINE)

RUST_USE_RE = re.compile(r"^\s*(?:pub\s+)?use\s+((?:\w+::)*\w+)(?:::\{([^}]*)\})?", re.MULTILINE)
RUST_MOD_RE = re.compile(r"^\s*(?:pub\s+)?mod\s+(\w+)\s*;", re.MULTILINE)
RUST_FN_RE = re.compile(
    r"^(\s*)(pub(?:\([^)]*\))?\s+)?(?:const\s+)?(async\s+)?(?:unsafe\s+)?fn\s+(\w+)\s*(?:<[^>]*>)?\s*"
    r"\(([^)]*)\)\s*(?:->\s*([^{;\n]+?))?\s*(?:where[^{]*)?[{;]",
    re.MULTILINE,
)
RUST_TYPE_RE = re.compile(r"^\s*(pub(?:\([^)]*\))?\s+)?(struct|enum|trait|type)\s+(\w+)", re.MULTILINE)
RUST_IMPL_RE = re.compile(r"^impl(?:<[^>]*>)?\s+(?:[\w:<>]+\s+for\s+)?(\w+)", re.MULTILINE)


def _line(code: str, offset: int) -> int:
    return code.count("\n", 0, offset) + 1


def _params(raw: str) -> List[str]:
    return [" ".join(part.split()) for part in raw.split(",") if part.strip()]


def extract_go(source: str) -> ExtractionResult:
    code = strip_comments(source)
    result = ExtractionResult()

    for match in GO_IMPORT_SINGLE_RE.finditer(code):
        result.imports.append(ImportRef(
            source=match.group(2), symbols=[match.group(1) or match.group(2).split("/")[-1]],
            kind="import", line=_line(code, match.start()),
        ))
    for block in GO_IMPORT_BLOCK_RE.finditer(code):
        base_line = _line(code, block.start())
        for offset, raw_line in enumerate(block.group(1).splitlines()):
            match = GO_IMPORT_LINE_RE.search(raw_line)
            if match:
                result.imports.append(ImportRef(
                    source=match.group(2), symbols=[match.group(1) or match.group(2).split("/")[-1]],
                    kind="import", line=base_line + offset,
                ))

    for match in GO_FUNC_RE.finditer(code):
        receiver, name = match.group(1), match.group(2)
        exported = name[:1].isupper()
        result.signatures.append(Signature(
            name=name,
            kind="method" if receiver else "function",
            line=_line(code, match.start()),
            parameters=_params(match.group(3)),
            return_type=match.group(4).strip() or None,
            is_exported=exported,
            visibility="public" if exported else "private",
            class_name=receiver,
        ))
        if exported and not receiver:
            result.exports.append(name)

    for match in GO_TYPE_RE.finditer(code):
        name = match.group(1)
        exported = name[:1].isupper()
        kind = {"struct": "class", "interface": "interface"}.get(match.group(2), "type")
        result.signatures.append(Signature(
            name=name, kind=kind, line=_line(code, match.start()),
            is_exported=exported, visibility="public" if exported else "private",
        ))
        if exported:
            result.exports.append(name)

    result.signatures.sort(key=lambda sig: (sig.line, sig.qualified_name))
    return result


def extract_rust(source: str) -> ExtractionResult:
    code = strip_comments(source)
    result = ExtractionResult()

    for match in RUST_USE_RE.finditer(code):
        path = match.group(1)
        symbols = [s.strip() for s in match.group(2).split(",") if s.strip()] if match.group(2) else [path.split("::")[-1]]
        result.imports.append(ImportRef(source=path, symbols=symbols, kind="import", line=_line(code, match.start())))
    for match in RUST_MOD_RE.finditer(code):
        result.imports.append(ImportRef(
            source=f"self::{match.group(1)}", symbols=[match.group(1)], kind="import", line=_line(code, match.start()),
        ))

    impl_spans = []
    for match in RUST_IMPL_RE.finditer(code):
        end = code.find("\n}", match.end())
        impl_spans.append((match.start(), end if end != -1 else len(code), match.group(1)))

    for match in RUST_FN_RE.finditer(code):
        owner = next((name for start, end, name in impl_spans if start < match.start() < end), None)
        public = bool(match.group(2))
        name = match.group(4)
        result.signatures.append(Signature(
            name=name,
            kind="method" if owner else "function",
            line=_line(code, match.start()),
            parameters=[p for p in _params(match.group(5)) if p not in {"self", "&self", "&mut self", "mut self"}],
            return_type=(match.group(6) or "").strip() or None,
            is_async=bool(match.group(3)),
            is_static=bool(owner) and "self" not in match.group(5),
            is_exported=public,
            visibility="public" if public else "private",
            class_name=owner,
        ))
        if public and not owner:
            result.exports.append(name)

    for match in RUST_TYPE_RE.finditer(code):
        public = bool(match.group(1))
        kind = {"struct": "class", "trait": "interface", "enum": "enum"}.get(match.group(2), "type")
        name = match.group(3)
        result.signatures.append(Signature(
            name=name, kind=kind, line=_line(code, match.start()),
            is_exported=public, visibility="public" if public else "private",
        ))
        if public:
            result.exports.append(name)

    result.signatures.sort(key=lambda sig: (sig.line, sig.qualified_name))
    return result
