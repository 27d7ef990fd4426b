"""
Presentation of ranked search hits.

Large result sets are summarized (counts per directory and per category
plus the top-N hits); smaller ones are listed in full, optionally grouped
by directory. Each hit is rendered in one of three styles: ``minimal``
(one line of text), ``rich`` (annotated fields) or ``raw`` (every field).
"""

from collections import Counter
from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field

from .errors import InvalidQueryError
from .search import SearchHit

STYLES = ["minimal", "rich", "raw"]


class NoResults(BaseModel):
    kind: Literal["no_results"] = "no_results"
    search_type: str
    pattern: str
    suggestion: str


class SummarizedResults(BaseModel):
    kind: Literal["summary"] = "summary"
    search_type: str
    pattern: str
    total: int
    shown: int
    by_directory: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)
    top: List[Any] = Field(default_factory=list)


class ListedResults(BaseModel):
    kind: Literal["list"] = "list"
    search_type: str
    pattern: str
    total: int
    results: List[Any] = Field(default_factory=list)
    groups: Dict[str, List[Any]] = Field(default_factory=dict)  # populated when grouped by directory


SearchResponse = Union[NoResults, SummarizedResults, ListedResults]


def describe_signature(hit: SearchHit) -> str:
    """'async fetchUser(id, options) -> Promise<User>'."""
    text = f"{'async ' if hit.is_async else ''}{'static ' if hit.is_static else ''}{hit.name}"
    if hit.parameters is not None:
        text += f"({', '.join(hit.parameters)})"
    if hit.return_type:
        text += f" -> {hit.return_type}"
    return text


def render_hit(hit: SearchHit, style: str) -> Any:
    location = f"{hit.file}:{hit.line}" if hit.line else hit.file
    if style == "minimal":
        return f"{location} {hit.kind} {hit.name}"
    if style == "raw":
        return hit.to_dict()
    rendered: Dict[str, Any] = {
        "name": hit.name,
        "kind": hit.kind,
        "location": location,
        "score": hit.score,
        "match": hit.match_quality,
    }
    if hit.parameters is not None:
        rendered["signature"] = describe_signature(hit)
    if hit.layer and hit.layer != "other":
        rendered["layer"] = hit.layer
    if hit.dependents:
        rendered["dependents"] = hit.dependents
    if hit.distance:
        rendered["distance"] = hit.distance
    return rendered


def suggestion_for(search_type: str, pattern: str) -> str:
    if search_type != "fuzzy" and pattern and "*" not in pattern:
        return f"Try a wildcard pattern such as '*{pattern}*' or search type 'fuzzy'"
    if search_type == "fuzzy":
        return "Try a shorter pattern or a larger max_distance"
    return "Check the spelling, or refresh the maps if the code changed recently"


def format_results(
    hits: List[SearchHit],
    search_type: str,
    pattern: str,
    style: str = "rich",
    summarize_threshold: int = 50,
    top_n: int = 10,
    group_by_directory: bool = False,
) -> SearchResponse:
    """Shape ranked hits for presentation. Never raises for an empty result."""
    if style not in STYLES:
        raise InvalidQueryError(style, STYLES)
    if not hits:
        return NoResults(search_type=search_type, pattern=pattern, suggestion=suggestion_for(search_type, pattern))

    if len(hits) > summarize_threshold:
        by_directory = Counter(hit.directory for hit in hits)
        by_category = Counter(hit.kind for hit in hits)
        top = hits[:top_n]
        return SummarizedResults(
            search_type=search_type,
            pattern=pattern,
            total=len(hits),
            shown=len(top),
            by_directory=dict(sorted(by_directory.items(), key=lambda item: (-item[1], item[0]))),
            by_category=dict(sorted(by_category.items(), key=lambda item: (-item[1], item[0]))),
            top=[render_hit(hit, style) for hit in top],
        )

    if group_by_directory:
        groups: Dict[str, List[Any]] = {}
        for hit in hits:
            groups.setdefault(hit.directory, []).append(render_hit(hit, style))
        return ListedResults(search_type=search_type, pattern=pattern, total=len(hits), groups=dict(sorted(groups.items())))
    return ListedResults(
        search_type=search_type,
        pattern=pattern,
        total=len(hits),
        results=[render_hit(hit, style) for hit in hits],
    )
