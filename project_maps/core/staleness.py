"""
Staleness of stored maps relative to the file system.

The score combines how many files changed since the last generation
(10 points each, at most 70) with the age of the generation (4 points
per day once it is more than a week old, at most 30).
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .utils import hash_content

CHANGE_POINTS = 10
CHANGE_CAP = 70
AGE_POINTS_PER_DAY = 4
AGE_CAP = 30
AGE_GRACE_DAYS = 7


@dataclass
class FileChanges:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)

    @property
    def changed(self) -> List[str]:
        return sorted(self.added + self.removed + self.modified)

    @property
    def count(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified)

    def to_dict(self) -> Dict[str, Any]:
        return {"added": self.added, "removed": self.removed, "modified": self.modified, "count": self.count}


def diff_file_states(
    stored: Dict[str, Dict[str, Any]],
    current: Dict[str, Tuple[float, int]],
    project_root: Optional[Path] = None,
    skipped: Optional[Dict[str, Dict[str, Any]]] = None,
) -> FileChanges:
    """
    Compare stored per-file state (modified, size, hash) with a fresh stat snapshot.

    A file whose mtime moved but whose size did not is re-hashed when the
    project root is given, so a touch without an edit does not count.
    ``skipped`` holds the (modified, size) of files the last scan found but
    did not record; they count as added only once their stat changes.
    """
    skipped = skipped or {}
    changes = FileChanges()
    for path in sorted(current):
        mtime, size = current[path]
        if path not in stored:
            previous = skipped.get(path)
            if previous is None or (previous.get("modified"), previous.get("size")) != (mtime, size):
                changes.added.append(path)
            continue
        state = stored[path]
        if size != state.get("size"):
            changes.modified.append(path)
        elif mtime != state.get("modified"):
            if project_root is not None and state.get("hash"):
                try:
                    digest = hash_content((Path(project_root) / path).read_bytes())
                except OSError:
                    digest = None
                if digest == state["hash"]:
                    continue
            changes.modified.append(path)
    changes.removed = sorted(path for path in stored if path not in current)
    return changes


def staleness_score(changed_files: int, days_since_generation: float) -> int:
    score = min(CHANGE_CAP, CHANGE_POINTS * changed_files)
    if days_since_generation > AGE_GRACE_DAYS:
        score += min(AGE_CAP, math.floor(days_since_generation * AGE_POINTS_PER_DAY))
    return min(100, score)


def staleness_level(score: int) -> Tuple[str, str]:
    """(level, recommended refresh mode)."""
    if score >= 60:
        return "critical", "full"
    if score >= 30:
        return "moderate", "incremental"
    if score > 0:
        return "minor", "incremental"
    return "fresh", "none"


def days_since(timestamp: str, now: Optional[datetime] = None) -> float:
    generated = datetime.fromisoformat(timestamp)
    if generated.tzinfo is None:
        generated = generated.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (now - generated).total_seconds() / 86400)


def assess(changes: FileChanges, generated_at: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    days = days_since(generated_at, now)
    score = staleness_score(changes.count, days)
    level, recommendation = staleness_level(score)
    reasons = []
    if changes.count:
        reasons.append(
            f"{changes.count} file(s) changed since last generation "
            f"({len(changes.added)} added, {len(changes.modified)} modified, {len(changes.removed)} removed)"
        )
    if days > AGE_GRACE_DAYS:
        reasons.append(f"{math.floor(days)} days since last generation")
    return {
        "score": score,
        "level": level,
        "recommended_refresh": recommendation,
        "is_stale": score > 0,
        "generated_at": generated_at,
        "days_since_generation": round(days, 2),
        "changes": changes.to_dict(),
        "reasons": reasons,
    }
