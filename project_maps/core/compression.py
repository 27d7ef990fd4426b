"""
Lossless multi-level compression for map artifacts.

Level 1 minifies every document. Level 2 abbreviates well-known keys
once the document is larger than the abbreviation threshold. Level 3
replaces frequently repeated path, type, role and layer values with
references into per-document tables once the document is larger than the
deduplication threshold. A level is skipped when the document already
contains something the level's reverse step would misread, so
``decompress(compress(doc)) == doc`` always holds.
"""

import json
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .config import DEFAULT_ABBREVIATE_THRESHOLD, DEFAULT_DEDUPLICATE_THRESHOLD

ENVELOPE_VERSION = "1.0"

KEY_ABBREVIATIONS = {
    "path": "p", "name": "n", "type": "t", "role": "r", "size": "s", "lines": "l",
    "modified": "m", "hash": "h", "layer": "ly", "layers": "lys", "extension": "e",
    "file_type": "ft", "language": "lg", "exports": "ex", "imports": "im",
    "signatures": "sg", "parameters": "pa", "return_type": "rt", "is_async": "ia",
    "is_static": "is", "is_exported": "ie", "visibility": "v", "class_name": "cn",
    "kind": "k", "line": "ln", "source": "sr", "symbols": "sy", "resolved": "rv",
    "category": "ct", "markers": "mk", "endpoints": "ep", "method": "me",
    "framework": "fw", "file": "f", "files": "fs", "target": "tg", "chain": "ch",
    "depth": "dp", "count": "cnt", "message": "msg", "severity": "sv",
    "entry_point": "enp", "dependencies": "dps", "dependents": "dts",
}
EXPANSIONS = {abbrev: full for full, abbrev in KEY_ABBREVIATIONS.items()}

# Values under these keys are candidates for reference tables
DEDUP_TABLES = {"path": "paths", "file": "paths", "files": "paths", "target": "paths",
                "type": "types", "role": "roles", "layer": "layers"}
DEDUP_MIN_OCCURRENCES = 3
DEDUP_MIN_LENGTH = 4
REFERENCE_RE = re.compile(r"^@(\w+):(\d+)$")

METHODS = {1: "minification", 2: "key-abbreviation", 3: "value-deduplication"}


def byte_size(document: Any, pretty: bool = False) -> int:
    if pretty:
        text = json.dumps(document, indent=2, ensure_ascii=False)
    else:
        text = json.dumps(document, separators=(",", ":"), ensure_ascii=False)
    return len(text.encode("utf-8"))


def format_ratio(original: int, compressed: int) -> str:
    if original <= 0:
        return "0.0%"
    return f"{(1 - compressed / original) * 100:.1f}%"


# --- Tree walks ---

def _all_keys(item: Any) -> set:
    keys: set = set()
    stack = [item]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            keys.update(current.keys())
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)
    return keys


def _has_reference_shaped_string(item: Any) -> bool:
    stack = [item]
    while stack:
        current = stack.pop()
        if isinstance(current, str):
            if REFERENCE_RE.match(current):
                return True
        elif isinstance(current, dict):
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)
    return False


def _rename_keys(item: Any, mapping: Dict[str, str]) -> Any:
    if isinstance(item, dict):
        return {mapping.get(key, key): _rename_keys(value, mapping) for key, value in item.items()}
    if isinstance(item, list):
        return [_rename_keys(value, mapping) for value in item]
    return item


def _collect_values(item: Any, key: Optional[str], counts: Dict[str, Counter]) -> None:
    if isinstance(item, str):
        table = DEDUP_TABLES.get(key or "")
        if table and len(item) >= DEDUP_MIN_LENGTH:
            counts.setdefault(table, Counter())[item] += 1
    elif isinstance(item, list):
        for value in item:
            _collect_values(value, key, counts)
    elif isinstance(item, dict):
        for child_key, value in item.items():
            _collect_values(value, child_key, counts)


def _replace_values(item: Any, key: Optional[str], index: Dict[str, Dict[str, int]]) -> Any:
    if isinstance(item, str):
        table = DEDUP_TABLES.get(key or "")
        if table and item in index.get(table, {}):
            return f"@{table}:{index[table][item]}"
        return item
    if isinstance(item, list):
        return [_replace_values(value, key, index) for value in item]
    if isinstance(item, dict):
        return {child_key: _replace_values(value, child_key, index) for child_key, value in item.items()}
    return item


def _restore_values(item: Any, references: Dict[str, List[str]]) -> Any:
    if isinstance(item, str):
        match = REFERENCE_RE.match(item)
        if match:
            table = references.get(match.group(1))
            position = int(match.group(2))
            if table is None or position >= len(table):
                raise ValueError(f"dangling reference {item}")
            return table[position]
        return item
    if isinstance(item, list):
        return [_restore_values(value, references) for value in item]
    if isinstance(item, dict):
        return {key: _restore_values(value, references) for key, value in item.items()}
    return item


def deduplicate(document: Any) -> Tuple[Any, Dict[str, List[str]]]:
    counts: Dict[str, Counter] = {}
    _collect_values(document, None, counts)
    references: Dict[str, List[str]] = {}
    for table, counter in sorted(counts.items()):
        frequent = [
            value for value, count in sorted(counter.items(), key=lambda item: (-item[1], item[0]))
            if count >= DEDUP_MIN_OCCURRENCES
        ]
        if frequent:
            references[table] = frequent
    if not references:
        return document, {}
    index = {table: {value: position for position, value in enumerate(values)} for table, values in references.items()}
    return _replace_values(document, None, index), references


# --- Public API ---

def compress(
    document: Dict[str, Any],
    abbreviate_threshold: int = DEFAULT_ABBREVIATE_THRESHOLD,
    deduplicate_threshold: int = DEFAULT_DEDUPLICATE_THRESHOLD,
) -> Dict[str, Any]:
    """
    Wrap a document in a compression envelope.

    ``originalSize`` is the pretty-printed (indent 2) size of the document,
    ``compressedSize`` the minified size of the stored payload.
    """
    original_size = byte_size(document, pretty=True)
    payload: Any = document
    references: Dict[str, List[str]] = {}
    level = 1
    abbreviated = False

    if original_size > deduplicate_threshold and not _has_reference_shaped_string(document):
        payload, references = deduplicate(payload)
        if references:
            level = 3
    if original_size > abbreviate_threshold and not (_all_keys(document) & set(EXPANSIONS)):
        payload = _rename_keys(payload, KEY_ABBREVIATIONS)
        abbreviated = True
        level = max(level, 2)

    compressed_size = byte_size(payload) + (byte_size(references) if references else 0)
    return {
        "version": ENVELOPE_VERSION,
        "compressed": True,
        "metadata": {
            "originalSize": original_size,
            "compressedSize": compressed_size,
            "compressionRatio": format_ratio(original_size, compressed_size),
            "compressionLevel": level,
            "method": METHODS[level],
            "keysAbbreviated": abbreviated,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        "references": references or None,
        "data": payload,
    }


def decompress(envelope: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse of ``compress``. Raises ValueError for a malformed envelope."""
    if not isinstance(envelope, dict) or "data" not in envelope:
        raise ValueError("not a compression envelope")
    if not envelope.get("compressed"):
        return envelope["data"]
    metadata = envelope.get("metadata") or {}
    data = envelope["data"]
    if metadata.get("keysAbbreviated", metadata.get("compressionLevel", 1) >= 2):
        data = _rename_keys(data, EXPANSIONS)
    references = envelope.get("references")
    if references:
        if not isinstance(references, dict):
            raise ValueError("reference tables are not an object")
        data = _restore_values(data, references)
    if not isinstance(data, dict):
        raise ValueError("payload is not an object")
    return data


def combined_stats(per_artifact: Dict[str, Dict[str, int]]) -> Dict[str, Any]:
    """
    Totals across artifacts; each entry needs ``originalSize`` and ``compressedSize``.

    1000/500 bytes stored as 400/250 bytes gives a combined ratio of 56.7%.
    """
    total_original = sum(entry["originalSize"] for entry in per_artifact.values())
    total_compressed = sum(entry["compressedSize"] for entry in per_artifact.values())
    return {
        "artifacts": {
            name: {
                "originalSize": entry["originalSize"],
                "compressedSize": entry["compressedSize"],
                "compressionRatio": format_ratio(entry["originalSize"], entry["compressedSize"]),
            }
            for name, entry in sorted(per_artifact.items())
        },
        "totalOriginalSize": total_original,
        "totalCompressedSize": total_compressed,
        "combinedRatio": format_ratio(total_original, total_compressed),
    }
