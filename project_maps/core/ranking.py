"""
Relevance scoring for search hits.

Every hit starts at 50 and collects bounded bonuses for recency,
centrality, visibility, kind, match quality and metadata completeness.
The total is capped at 100; ties (including hits that both reach the cap)
are broken by match quality, then path, line and name.
"""

import time
from typing import List, Optional

from .search import MATCH_QUALITIES, SearchHit

BASE_SCORE = 50
MAX_SCORE = 100
RECENCY_BONUSES = [(1, 20), (7, 15), (30, 10), (90, 5)]  # (days, bonus)
CENTRALITY_PER_DEPENDENT = 2
CENTRALITY_CAP = 20
EXPORTED_BONUS = 10
PUBLIC_BONUS = 5
CLASS_BONUS = 5
ASYNC_BONUS = 3
MATCH_BONUSES = {"exact": 15, "prefix": 10, "contains": 5, "fuzzy": 0}
COMPLETENESS_BONUS = 5


def recency_bonus(modified: float, now: float) -> int:
    if not modified:
        return 0
    age_days = (now - modified) / 86400
    for days, bonus in RECENCY_BONUSES:
        if age_days <= days:
            return bonus
    return 0


def score_hit(hit: SearchHit, now: Optional[float] = None) -> int:
    now = time.time() if now is None else now
    score = BASE_SCORE
    score += recency_bonus(hit.modified, now)
    score += min(CENTRALITY_CAP, CENTRALITY_PER_DEPENDENT * hit.dependents)
    if hit.is_exported:
        score += EXPORTED_BONUS
    if hit.visibility == "public":
        score += PUBLIC_BONUS
    if hit.kind in {"class", "interface"}:
        score += CLASS_BONUS
    if hit.is_async:
        score += ASYNC_BONUS
    score += MATCH_BONUSES.get(hit.match_quality, 0)
    # Location counts once; an empty parameter list is still a known signature
    for populated in (hit.line is not None, hit.parameters is not None, bool(hit.return_type)):
        if populated:
            score += COMPLETENESS_BONUS
    return min(MAX_SCORE, score)


def rank(hits: List[SearchHit], now: Optional[float] = None) -> List[SearchHit]:
    """Score every hit in place and return them best first."""
    now = time.time() if now is None else now
    for hit in hits:
        hit.score = score_hit(hit, now)
    return sorted(hits, key=lambda hit: (
        -hit.score,
        MATCH_QUALITIES.index(hit.match_quality),
        hit.file,
        hit.line or 0,
        hit.name,
    ))
