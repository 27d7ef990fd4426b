"""
Tree-sitter adapter for Python source.

Produces imports, exports and signatures from a Tree-sitter parse tree.
Syntax errors do not stop extraction; the parse tree is partial and the
result carries an issue describing it.
"""

from __future__ import annotations

from typing import List, Optional

from tree_sitter import Node

from ..models import ExtractionResult, ImportRef, Signature
from .languages import parse_source

FUNCTION_NODES = {"function_definition", "async_function_definition"}
PARAMETER_NODES = {
    "identifier",
    "typed_parameter",
    "default_parameter",
    "typed_default_parameter",
    "list_splat_pattern",
    "dictionary_splat_pattern",
    "list_splat",
    "dictionary_splat",
}


def extract(source: str) -> ExtractionResult:
    tree = parse_source(source, "python")
    root = tree.root_node
    source_bytes = source.encode("utf-8")

    result = ExtractionResult()
    result.imports = _extract_imports(root, source_bytes)
    declared_all = _extract_dunder_all(root, source_bytes)

    for child in root.children:
        definition = _unwrap_decorated(child)
        if definition is None:
            continue
        decorators = _decorator_texts(child, source_bytes)
        if definition.type in FUNCTION_NODES:
            result.signatures.append(_build_function(definition, source_bytes, decorators, class_name=None))
        elif definition.type == "class_definition":
            result.signatures.extend(_build_class(definition, source_bytes))

    top_level = [sig.name for sig in result.signatures if sig.class_name is None]
    if declared_all is not None:
        result.exports = declared_all
    else:
        result.exports = [name for name in top_level if not name.startswith("_")]

    exported = set(result.exports)
    for sig in result.signatures:
        owner = sig.class_name or sig.name
        sig.is_exported = owner in exported and sig.visibility == "public"

    if root.has_error:
        result.issues.append("syntax errors in source; extraction is partial")
    return result


def _extract_imports(root: Node, source: bytes) -> List[ImportRef]:
    imports: List[ImportRef] = []
    for node in _walk(root):
        line = node.start_point[0] + 1
        if node.type == "import_statement":
            for child in node.children:
                module = _import_target(child, source)
                if module:
                    imports.append(ImportRef(source=module, symbols=[module.split(".")[-1]], kind="import", line=line))
        elif node.type == "import_from_statement":
            module_node = node.child_by_field_name("module_name")
            if module_node is None:
                continue
            module = _node_text(source, module_node)
            symbols: List[str] = []
            for child in node.children:
                if child.start_byte <= module_node.start_byte:
                    continue
                if child.type == "wildcard_import":
                    symbols.append("*")
                else:
                    name = _import_target(child, source)
                    if name:
                        symbols.append(name)
            imports.append(ImportRef(source=module, symbols=symbols, kind="from", line=line))
    return imports


def _import_target(node: Node, source: bytes) -> Optional[str]:
    if node.type == "dotted_name":
        return _node_text(source, node)
    if node.type == "aliased_import":
        return _node_text(source, node.child_by_field_name("name"))
    return None


def _extract_dunder_all(root: Node, source: bytes) -> Optional[List[str]]:
    for statement in root.children:
        if statement.type != "expression_statement" or not statement.children:
            continue
        assignment = statement.children[0]
        if assignment.type != "assignment":
            continue
        left = assignment.child_by_field_name("left")
        right = assignment.child_by_field_name("right")
        if left is None or right is None or _node_text(source, left) != "__all__":
            continue
        names: List[str] = []
        for item in right.children:
            if item.type == "string":
                names.append(_strip_quotes(_node_text(source, item)))
        return names
    return None


def _unwrap_decorated(node: Node) -> Optional[Node]:
    if node.type == "decorated_definition":
        return node.child_by_field_name("definition")
    if node.type in FUNCTION_NODES or node.type == "class_definition":
        return node
    return None


def _decorator_texts(node: Node, source: bytes) -> List[str]:
    if node.type != "decorated_definition":
        return []
    return [_node_text(source, child).lstrip("@").strip() for child in node.children if child.type == "decorator"]


def _build_function(node: Node, source: bytes, decorators: List[str], class_name: Optional[str]) -> Signature:
    name = _node_text(source, node.child_by_field_name("name")) or "<anonymous>"
    parameters = _extract_parameters(node, source)
    is_static = "staticmethod" in decorators
    if class_name and not is_static and parameters and _param_name(parameters[0]) in {"self", "cls"}:
        parameters = parameters[1:]
    return_node = node.child_by_field_name("return_type")
    return Signature(
        name=name,
        kind="method" if class_name else "function",
        line=node.start_point[0] + 1,
        parameters=parameters,
        return_type=_node_text(source, return_node) if return_node else None,
        is_async=node.type == "async_function_definition" or any(child.type == "async" for child in node.children),
        is_static=is_static,
        visibility=_visibility(name),
        class_name=class_name,
    )


def _build_class(node: Node, source: bytes) -> List[Signature]:
    name = _node_text(source, node.child_by_field_name("name")) or "<anonymous>"
    signatures = [
        Signature(
            name=name,
            kind="class",
            line=node.start_point[0] + 1,
            visibility=_visibility(name),
        )
    ]
    body = node.child_by_field_name("body")
    if body is None:
        return signatures
    for child in body.children:
        definition = _unwrap_decorated(child)
        if definition is not None and definition.type in FUNCTION_NODES:
            signatures.append(
                _build_function(definition, source, _decorator_texts(child, source), class_name=name)
            )
    return signatures


def _extract_parameters(node: Node, source: bytes) -> List[str]:
    params_node = node.child_by_field_name("parameters")
    if params_node is None:
        return []
    return [_node_text(source, child) for child in params_node.children if child.type in PARAMETER_NODES]


def _param_name(parameter: str) -> str:
    return parameter.split(":", 1)[0].split("=", 1)[0].strip().lstrip("*")


def _visibility(name: str) -> str:
    if name.startswith("__") and name.endswith("__"):
        return "public"
    if name.startswith("__"):
        return "private"
    if name.startswith("_"):
        return "protected"
    return "public"


def _node_text(source: bytes, node: Optional[Node]) -> str:
    if node is None:
        return ""
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def _strip_quotes(text: str) -> str:
    for prefix in ("r", "u", "b"):
        if text[:1].lower() == prefix:
            text = text[1:]
    if text.startswith(('"""', "'''")) and text.endswith(('"""', "'''")):
        return text[3:-3]
    if text.startswith(("\"", "'")) and text.endswith(("\"", "'")):
        return text[1:-1]
    return text


def _walk(node: Node):
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))

