"""
Signature extraction capability.

``extract_signatures(text, language_hint)`` is the single entry point used
by the rest of the engine. Each language is served by a registered
extractor function; Python uses a Tree-sitter parse, the others pattern
matching. Extractors can be swapped with ``register_extractor`` without
touching any consumer of ``ExtractionResult``.
"""

import dataclasses
import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..models import ExtractionResult, FileRecord
from . import generic, javascript, python_adapter
from .markers import detect_markers, extract_endpoints

ExtractorFn = Callable[[str], ExtractionResult]

_EXTRACTORS: Dict[str, ExtractorFn] = {
    "python": python_adapter.extract,
    "javascript": javascript.extract,
    "typescript": javascript.extract,
    "go": generic.extract_go,
    "rust": generic.extract_rust,
}

_LANGUAGE_ALIASES = {
    "py": "python", "pyi": "python", "python-interface": "python",
    "js": "javascript", "jsx": "javascript", "mjs": "javascript", "cjs": "javascript",
    "javascript-react": "javascript", "javascript-module": "javascript", "javascript-commonjs": "javascript",
    "ts": "typescript", "tsx": "typescript", "typescript-react": "typescript",
    "vue": "javascript", "svelte": "javascript",
    "rs": "rust",
}

SCRIPT_BLOCK_TAGS = {"vue", "svelte"}


def normalize_language(language_hint: Optional[str]) -> Optional[str]:
    if not language_hint:
        return None
    hint = language_hint.lower()
    return _LANGUAGE_ALIASES.get(hint, hint)


def register_extractor(language: str, extractor: ExtractorFn) -> None:
    _EXTRACTORS[language] = extractor


def supports(language_hint: Optional[str]) -> bool:
    return normalize_language(language_hint) in _EXTRACTORS


def extract_signatures(text: str, language_hint: Optional[str]) -> ExtractionResult:
    """
    Best-effort extraction of imports, exports, signatures, framework markers
    and route endpoints. Never raises: a failing extractor yields an empty
    result carrying one issue.
    """
    language = normalize_language(language_hint)
    extractor = _EXTRACTORS.get(language or "")
    if extractor is None:
        return ExtractionResult()

    if (language_hint or "").lower() in SCRIPT_BLOCK_TAGS:
        text = _script_block(text)

    try:
        result = extractor(text)
        result.markers = detect_markers(text, language)
        result.endpoints = extract_endpoints(text, language, result.markers)
    except Exception as e:  # extractor bugs must not abort a scan
        logging.warning(f"Signature extraction failed for {language} source: {e}")
        return ExtractionResult(issues=[f"signature extraction failed: {e}"])
    return result


def _script_block(text: str) -> str:
    """Keep only the <script> section of a single-file component, preserving line numbers."""
    start = text.find("<script")
    if start == -1:
        return ""
    body_start = text.find(">", start) + 1
    end = text.find("</script>", body_start)
    end = len(text) if end == -1 else end
    return "\n" * text.count("\n", 0, body_start) + text[body_start:end]


def enrich_record(record: FileRecord, text: str) -> Tuple[FileRecord, List[str]]:
    """Scanner hook: attach extraction output to a freshly scanned record."""
    hint = record.extension if record.extension in SCRIPT_BLOCK_TAGS else record.file_type
    if not supports(hint):
        return record, []
    result = extract_signatures(text, hint)
    enriched = dataclasses.replace(
        record,
        exports=result.exports,
        imports=result.imports,
        signatures=result.signatures,
        markers=result.markers,
        endpoints=result.endpoints,
    )
    return enriched, result.issues
