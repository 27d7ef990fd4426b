"""
Pattern-based extractor for JavaScript and TypeScript.

Covers ES module and CommonJS imports and exports, function declarations,
arrow functions bound to names, classes with their methods, interfaces,
type aliases and enums. It is a heuristic: unusual formatting can hide a
declaration, but nothing here raises on odd input.
"""

import re
from typing import Dict, List, Optional, Set, Tuple

from ..models import ExtractionResult, ImportRef, Signature

BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
LINE_COMMENT_RE = re.compile(r"^[ \t]*//[^\n]*", re.MULTILINE)

IMPORT_FROM_RE = re.compile(
    r"^[ \t]*import\s+(?:type\s+)?([\w*${}\s,]+?)\s*from\s*['\"]([^'\"]+)['\"]",
    re.MULTILINE,
)
IMPORT_SIDE_EFFECT_RE = re.compile(r"^[ \t]*import\s+['\"]([^'\"]+)['\"]", re.MULTILINE)
REQUIRE_RE = re.compile(
    r"(?:(?:const|let|var)\s+(\{[^}]*\}|[\w$]+)\s*=\s*)?require\(\s*['\"]([^'\"]+)['\"]\s*\)"
)
DYNAMIC_IMPORT_RE = re.compile(r"(?<![\w.])import\(\s*['\"]([^'\"]+)['\"]\s*\)")
REEXPORT_RE = re.compile(
    r"^[ \t]*export\s+(?:type\s+)?(\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s*from\s*['\"]([^'\"]+)['\"]",
    re.MULTILINE,
)

EXPORT_DECL_RE = re.compile(
    r"^[ \t]*export\s+(?:declare\s+)?(?:async\s+)?(?:abstract\s+)?"
    r"(?:function\s*\*?|class|const\s+enum|const|let|var|interface|type|enum)\s+([\w$]+)",
    re.MULTILINE,
)
EXPORT_DEFAULT_RE = re.compile(
    r"^[ \t]*export\s+default\s+(?:async\s+)?(?:function\s*\*?|class)?\s*([\w$]*)",
    re.MULTILINE,
)
EXPORT_LIST_RE = re.compile(r"^[ \t]*export\s*(?:type\s+)?\{([^}]*)\}(?!\s*from)", re.MULTILINE)
MODULE_EXPORTS_OBJECT_RE = re.compile(r"module\.exports\s*=\s*\{([^}]*)\}")
MODULE_EXPORTS_NAME_RE = re.compile(r"module\.exports\s*=\s*(?:new\s+)?([\w$]+)")
EXPORTS_PROPERTY_RE = re.compile(r"(?:module\.)?exports\.([\w$]+)\s*=")

FUNCTION_RE = re.compile(
    r"^[ \t]*(export\s+)?(default\s+)?(async\s+)?function\s*\*?\s*([\w$]+)\s*(?:<[^>()]*>)?\s*"
    r"\(([^)]*)\)\s*(?::\s*([^{;]+?))?\s*\{",
    re.MULTILINE,
)
ARROW_RE = re.compile(
    r"^[ \t]*(export\s+)?(?:const|let|var)\s+([\w$]+)\s*(?::\s*[^=]+?)?=\s*(async\s+)?"
    r"(?:function\s*\*?\s*)?(?:<[^>()]*>)?\s*\(([^)]*)\)\s*(?::\s*([^=>{;]+?))?\s*(?:=>|\{)",
    re.MULTILINE,
)
ARROW_SINGLE_PARAM_RE = re.compile(
    r"^[ \t]*(export\s+)?(?:const|let|var)\s+([\w$]+)\s*=\s*(async\s+)?([\w$]+)\s*=>",
    re.MULTILINE,
)
CLASS_RE = re.compile(
    r"^[ \t]*(export\s+)?(default\s+)?(?:declare\s+)?(abstract\s+)?class\s+([\w$]+)"
    r"(?:\s*<[^>]*>)?(?:\s+extends\s+[\w$.]+(?:<[^>]*>)?)?(?:\s+implements\s+[\w$.,\s<>]+?)?\s*\{",
    re.MULTILINE,
)
METHOD_RE = re.compile(
    r"^[ \t]*((?:(?:public|private|protected|static|async|readonly|abstract|override|get|set)\s+)*)"
    r"(#?[\w$]+)\s*(?:<[^>()]*>)?\s*\(([^)]*)\)\s*(?::\s*([^{;]+?))?\s*\{",
    re.MULTILINE,
)
INTERFACE_RE = re.compile(r"^[ \t]*(export\s+)?(?:declare\s+)?interface\s+([\w$]+)", re.MULTILINE)
TYPE_ALIAS_RE = re.compile(r"^[ \t]*(export\s+)?(?:declare\s+)?type\s+([\w$]+)\s*(?:<[^>]*>)?\s*=", re.MULTILINE)
ENUM_RE = re.compile(r"^[ \t]*(export\s+)?(?:declare\s+)?(?:const\s+)?enum\s+([\w$]+)", re.MULTILINE)

NOT_METHODS = {"if", "for", "while", "switch", "catch", "function", "return", "with", "do", "else", "try"}


def extract(source: str) -> ExtractionResult:
    code = strip_comments(source)
    line_starts = _line_starts(code)
    result = ExtractionResult()
    result.imports = _extract_imports(code, line_starts)
    result.exports = _extract_exports(code)
    exported = set(result.exports)
    result.signatures = _extract_signatures(code, line_starts, exported)
    return result


def strip_comments(source: str) -> str:
    """Blank out comments while keeping every newline so line numbers survive."""
    without_blocks = BLOCK_COMMENT_RE.sub(lambda m: "\n" * m.group(0).count("\n"), source)
    return LINE_COMMENT_RE.sub("", without_blocks)


def _line_starts(code: str) -> List[int]:
    starts = [0]
    for index, char in enumerate(code):
        if char == "\n":
            starts.append(index + 1)
    return starts


def _line_of(line_starts: List[int], offset: int) -> int:
    low, high = 0, len(line_starts) - 1
    while low < high:
        mid = (low + high + 1) // 2
        if line_starts[mid] <= offset:
            low = mid
        else:
            high = mid - 1
    return low + 1


def _split_names(clause: str) -> List[str]:
    """'{ a, b as c }' -> ['a', 'b']; 'React, { useState }' -> ['React', 'useState']."""
    names: List[str] = []
    for part in clause.replace("{", ",").replace("}", ",").split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("type "):
            part = part[5:].strip()
        if part.startswith("* as"):
            names.append("*")
            continue
        names.append(part.split(" as ")[0].split(":")[0].strip())
    return names


def _extract_imports(code: str, line_starts: List[int]) -> List[ImportRef]:
    found: List[Tuple[int, ImportRef]] = []
    for match in IMPORT_FROM_RE.finditer(code):
        found.append((match.start(), ImportRef(
            source=match.group(2), symbols=_split_names(match.group(1)), kind="import",
            line=_line_of(line_starts, match.start()),
        )))
    for match in IMPORT_SIDE_EFFECT_RE.finditer(code):
        found.append((match.start(), ImportRef(
            source=match.group(1), kind="import", line=_line_of(line_starts, match.start()),
        )))
    for match in REQUIRE_RE.finditer(code):
        symbols = _split_names(match.group(1)) if match.group(1) else []
        found.append((match.start(), ImportRef(
            source=match.group(2), symbols=symbols, kind="require", line=_line_of(line_starts, match.start()),
        )))
    for match in DYNAMIC_IMPORT_RE.finditer(code):
        found.append((match.start(), ImportRef(
            source=match.group(1), kind="dynamic", line=_line_of(line_starts, match.start()),
        )))
    for match in REEXPORT_RE.finditer(code):
        found.append((match.start(), ImportRef(
            source=match.group(2), symbols=_split_names(match.group(1)), kind="reexport",
            line=_line_of(line_starts, match.start()),
        )))
    found.sort(key=lambda item: item[0])
    return [ref for _, ref in found]


def _extract_exports(code: str) -> List[str]:
    exports: List[str] = []
    seen: Set[str] = set()

    def add(name: str) -> None:
        if name and name not in seen:
            seen.add(name)
            exports.append(name)

    for match in EXPORT_DEFAULT_RE.finditer(code):
        add("default")
        add(match.group(1))
    for match in EXPORT_DECL_RE.finditer(code):
        add(match.group(1))
    for match in EXPORT_LIST_RE.finditer(code):
        for part in match.group(1).split(","):
            part = part.strip()
            if part:
                add(part.split(" as ")[-1].strip())
    for match in REEXPORT_RE.finditer(code):
        if match.group(1).startswith("{"):
            for part in match.group(1).strip("{}").split(","):
                part = part.strip()
                if part:
                    add(part.split(" as ")[-1].strip())
    for match in MODULE_EXPORTS_OBJECT_RE.finditer(code):
        for part in match.group(1).split(","):
            key = part.split(":")[0].strip()
            if re.fullmatch(r"[\w$]+", key):
                add(key)
    if not MODULE_EXPORTS_OBJECT_RE.search(code):
        for match in MODULE_EXPORTS_NAME_RE.finditer(code):
            add(match.group(1))
    for match in EXPORTS_PROPERTY_RE.finditer(code):
        add(match.group(1))
    return exports


def _split_params(raw: str) -> List[str]:
    params: List[str] = []
    depth = 0
    current = ""
    for char in raw:
        if char in "<{[(":
            depth += 1
        elif char in ">}])":
            depth -= 1
        if char == "," and depth == 0:
            params.append(current.strip())
            current = ""
        else:
            current += char
    if current.strip():
        params.append(current.strip())
    return [" ".join(p.split()) for p in params if p]


def _clean_type(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    cleaned = " ".join(raw.split())
    return cleaned or None


def find_block_end(code: str, open_index: int) -> int:
    """Index of the brace closing the block opened at open_index (or end of text)."""
    depth = 0
    quote: Optional[str] = None
    index = open_index
    while index < len(code):
        char = code[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in "'\"`":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return len(code)


def _extract_signatures(code: str, line_starts: List[int], exported: Set[str]) -> List[Signature]:
    signatures: List[Signature] = []
    class_spans: List[Tuple[int, int]] = []

    for match in CLASS_RE.finditer(code):
        name = match.group(4)
        body_open = match.end() - 1
        body_close = find_block_end(code, body_open)
        class_spans.append((body_open, body_close))
        signatures.append(Signature(
            name=name,
            kind="class",
            line=_line_of(line_starts, match.start()),
            is_exported=bool(match.group(1)) or name in exported,
        ))
        signatures.extend(_extract_methods(code, body_open, body_close, name, line_starts, exported))

    def inside_class(offset: int) -> bool:
        return any(start < offset < end for start, end in class_spans)

    for match in FUNCTION_RE.finditer(code):
        if inside_class(match.start()):
            continue
        name = match.group(4)
        signatures.append(Signature(
            name=name,
            kind="function",
            line=_line_of(line_starts, match.start()),
            parameters=_split_params(match.group(5)),
            return_type=_clean_type(match.group(6)),
            is_async=bool(match.group(3)),
            is_exported=bool(match.group(1)) or name in exported,
        ))
    for match in ARROW_RE.finditer(code):
        if inside_class(match.start()):
            continue
        name = match.group(2)
        signatures.append(Signature(
            name=name,
            kind="function",
            line=_line_of(line_starts, match.start()),
            parameters=_split_params(match.group(4)),
            return_type=_clean_type(match.group(5)),
            is_async=bool(match.group(3)),
            is_exported=bool(match.group(1)) or name in exported,
        ))
    for match in ARROW_SINGLE_PARAM_RE.finditer(code):
        if inside_class(match.start()):
            continue
        name = match.group(2)
        signatures.append(Signature(
            name=name,
            kind="function",
            line=_line_of(line_starts, match.start()),
            parameters=[match.group(4)],
            is_async=bool(match.group(3)),
            is_exported=bool(match.group(1)) or name in exported,
        ))
    for regex, kind in ((INTERFACE_RE, "interface"), (TYPE_ALIAS_RE, "type"), (ENUM_RE, "enum")):
        for match in regex.finditer(code):
            name = match.group(2)
            signatures.append(Signature(
                name=name,
                kind=kind,
                line=_line_of(line_starts, match.start()),
                is_exported=bool(match.group(1)) or name in exported,
            ))

    signatures.sort(key=lambda sig: (sig.line, sig.qualified_name))
    return signatures


def _extract_methods(
    code: str,
    body_open: int,
    body_close: int,
    class_name: str,
    line_starts: List[int],
    exported: Set[str],
) -> List[Signature]:
    methods: List[Signature] = []
    body = code[body_open + 1:body_close]
    depth_at: Dict[int, int] = {}
    depth = 0
    for index, char in enumerate(body):
        depth_at[index] = depth
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1

    for match in METHOD_RE.finditer(body):
        name = match.group(2)
        if name in NOT_METHODS or depth_at.get(match.start(), 0) != 0:
            continue
        modifiers = match.group(1).split()
        if name.startswith("#") or "private" in modifiers:
            visibility = "private"
        elif "protected" in modifiers:
            visibility = "protected"
        else:
            visibility = "public"
        methods.append(Signature(
            name=name.lstrip("#"),
            kind="method",
            line=_line_of(line_starts, body_open + 1 + match.start()),
            parameters=_split_params(match.group(3)),
            return_type=_clean_type(match.group(4)),
            is_async="async" in modifiers,
            is_static="static" in modifiers,
            is_exported=class_name in exported and visibility == "public",
            visibility=visibility,
            class_name=class_name,
        ))
    return methods
