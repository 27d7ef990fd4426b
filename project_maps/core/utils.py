"""
Shared utility functions.

Pure helpers used across the scanner, the analysers and the search index:
gitignore-style path matching, content hashing, glob translation, edit
distance and name normalisation.
"""

import fnmatch
import hashlib
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Tuple


# --- Content hashing ---

def hash_content(data: bytes) -> str:
    """MD5 hex digest of raw file bytes, used for change detection."""
    return hashlib.md5(data).hexdigest()


def project_hash(project_root: Path) -> str:
    """Stable 16-character identifier for a project root."""
    return hashlib.md5(str(Path(project_root).resolve()).encode("utf-8")).hexdigest()[:16]


# --- Gitignore handling ---

def get_gitignore_patterns(directory: Path) -> List[Tuple[str, Path]]:
    """
    Collect .gitignore patterns from the directory and its parents, also returning the directory
    where the .gitignore file was found.

    Args:
        directory: Directory to start searching from

    Returns:
        List of (pattern, gitignore_directory) tuples, nearest .gitignore last
    """
    collected: List[List[Tuple[str, Path]]] = []
    current_dir = directory.resolve()
    while True:
        gitignore_path = current_dir / ".gitignore"
        if gitignore_path.is_file():
            entries: List[Tuple[str, Path]] = []
            with open(gitignore_path, "r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#"):
                        entries.append((line, current_dir))
            collected.append(entries)
        if current_dir == current_dir.parent:
            break
        current_dir = current_dir.parent
    # Parents first so that nearer files can override them with negations
    patterns: List[Tuple[str, Path]] = []
    for entries in reversed(collected):
        patterns.extend(entries)
    return patterns


def normalize_path(path_str: str) -> str:
    """Convert to POSIX separators and trim a leading './'."""
    normalized = path_str.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def match_file_against_pattern(file_path: Path, pattern: str, gitignore_dir: Path, root_directory: Path) -> bool:
    """
    Match a path against one gitignore pattern (without its '!' prefix).

    Args:
        file_path: Absolute path of the file or directory to check
        pattern: Gitignore pattern to match against
        gitignore_dir: Directory where the .gitignore file was found
        root_directory: Root directory for analysis

    Returns:
        True if the path matches the pattern
    """
    pattern = normalize_path(pattern.strip())
    if not pattern:
        return False

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    try:
        rel_to_gitignore = normalize_path(file_path.relative_to(gitignore_dir).as_posix())
    except ValueError:
        return False
    try:
        rel_to_root = normalize_path(file_path.relative_to(root_directory).as_posix())
    except ValueError:
        rel_to_root = rel_to_gitignore

    if pattern.endswith("/"):
        dir_pattern = pattern.rstrip("/")
        if not dir_pattern:
            return False
        if anchored or "/" in dir_pattern:
            return rel_to_gitignore == dir_pattern or rel_to_gitignore.startswith(dir_pattern + "/")
        return any(fnmatch.fnmatch(part, dir_pattern) for part in rel_to_gitignore.split("/"))

    if anchored:
        return (
            fnmatch.fnmatch(rel_to_gitignore, pattern)
            or rel_to_gitignore.startswith(pattern + "/")
        )

    if fnmatch.fnmatch(rel_to_gitignore, pattern):
        return True
    if "/" not in pattern:
        # 'build' ignores 'a/build/x.py' as well as 'a/build'
        return any(fnmatch.fnmatch(part, pattern) for part in rel_to_gitignore.split("/"))
    if pattern.startswith("**/"):
        return fnmatch.fnmatch(rel_to_gitignore, pattern[3:])
    return fnmatch.fnmatch(rel_to_root, pattern)


def is_gitignored(file_path: Path, patterns: Iterable[Tuple[str, Path]], root_directory: Path) -> bool:
    """Evaluate patterns in order; a later '!pattern' re-includes a path."""
    ignored = False
    for pattern, gitignore_dir in patterns:
        negated = pattern.startswith("!")
        raw = pattern[1:] if negated else pattern
        if match_file_against_pattern(file_path, raw, gitignore_dir, root_directory):
            ignored = not negated
    return ignored


# --- Glob and fuzzy matching ---

@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """
    Translate a search glob into a case-insensitive anchored regex.

    '*' matches any run of characters and '?' a single character; a pattern
    without wildcards must match the whole name.
    """
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE)


def has_wildcards(pattern: str) -> bool:
    return "*" in pattern or "?" in pattern


def levenshtein(a: str, b: str, max_distance: Optional[int] = None) -> int:
    """
    Classic edit distance. When max_distance is given, returns max_distance + 1
    as soon as the distance is known to exceed it.
    """
    if a == b:
        return 0
    if max_distance is not None and abs(len(a) - len(b)) > max_distance:
        return max_distance + 1
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        if max_distance is not None and min(current) > max_distance:
            return max_distance + 1
        previous = current
    return previous[-1]


# --- Naming ---

def to_snake_case(name: str) -> str:
    """'UserProfile' -> 'user_profile'."""
    snake = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    snake = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", snake)
    return snake.replace("-", "_").lower()


def path_parts(path: str) -> List[str]:
    """Directory components of a project-relative path, outermost first."""
    parts = path.split("/")
    return parts[:-1]


def top_n(counter: dict, limit: int) -> List[Tuple[str, int]]:
    """Highest counts first, ties broken by key so output is deterministic."""
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))[:limit]
