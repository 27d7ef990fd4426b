"""
Tree-sitter language loaders and per-thread parsers.
"""

import threading
from functools import lru_cache

from tree_sitter import Language, Parser, Tree
from tree_sitter_python import language as py_language

# Scanner workers each get their own parser; Language objects are shared
_parsers = threading.local()


@lru_cache(maxsize=1)
def get_py_language() -> Language:
    return Language(py_language())


def get_parser(language_id: str) -> Parser:
    if language_id != "python":
        raise ValueError(f"No tree-sitter grammar bundled for: {language_id}")
    parser = getattr(_parsers, language_id, None)
    if parser is None:
        parser = Parser(get_py_language())
        setattr(_parsers, language_id, parser)
    return parser


def parse_source(source: str, language_id: str) -> Tree:
    return get_parser(language_id).parse(bytes(source, "utf-8"))
