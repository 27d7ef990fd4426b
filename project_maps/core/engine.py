"""
Public operations of the mapping and query engine.

Every operation takes an explicit ``ProjectContext``; ``open_project``
builds one for a root directory. Recoverable problems (unreadable files,
unresolved imports, one corrupt artifact) come back inside the results.
Only ``ProjectMapsError`` subclasses escape, and only when nothing usable
can be produced or loaded.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import ProjectMapsConfig
from .context import ProjectContext
from .errors import InvalidQueryError
from .formatter import SearchResponse, format_results
from .history import diff_generations, generation_history
from .queries import QueryResult, QueryType, SummaryResult, parse_query_type, run_query
from .ranking import rank
from .refresh import REFRESH_MODES, RefreshOutcome, run_full, run_incremental
from .search import SignatureCriteria
from .staleness import assess, diff_file_states


def open_project(project_root: Union[str, Path], config: Optional[ProjectMapsConfig] = None) -> ProjectContext:
    return ProjectContext(project_root, config)


def generate(context: ProjectContext) -> RefreshOutcome:
    """Scan the whole project and publish a complete artifact set."""
    return run_full(context)


def refresh(context: ProjectContext, mode: str = "incremental") -> RefreshOutcome:
    if mode not in REFRESH_MODES:
        raise InvalidQueryError(mode, REFRESH_MODES)
    if mode == "full":
        return run_full(context)
    return run_incremental(context)


def check_staleness(context: ProjectContext, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Compare the current generation's stored file states with the file system."""
    snapshot = context.snapshot()
    metadata = snapshot.get("metadata")
    summary = snapshot.get("summary") or {}
    generated_at = (metadata or {}).get("generated") or summary.get("generated")
    if metadata is None or not generated_at:
        return {
            "score": 100,
            "level": "critical",
            "recommended_refresh": "full",
            "is_stale": True,
            "generated_at": generated_at,
            "reasons": ["stored metadata is unavailable"],
        }
    stored = {
        item["path"]: {"modified": item.get("modified"), "size": item.get("size"), "hash": item.get("hash")}
        for item in metadata.get("files", [])
    }
    changes = diff_file_states(
        stored,
        context.scanner.stat_files(),
        context.project_root,
        metadata.get("skipped_files") or {},
    )
    result = assess(changes, generated_at, now)
    result["generation"] = snapshot.generation
    return result


def query(
    context: ProjectContext,
    query_type: Union[str, QueryType],
    options: Optional[Dict[str, Any]] = None,
) -> QueryResult:
    parsed = parse_query_type(query_type)
    result = run_query(context.snapshot(), parsed, options)
    if isinstance(result, SummaryResult):
        result.staleness = check_staleness(context)
    logging.info(f"Query {parsed.value} answered with {result.kind}")
    return result


def search(
    context: ProjectContext,
    search_type: str,
    pattern: str,
    options: Optional[Dict[str, Any]] = None,
) -> SearchResponse:
    """
    Search the current generation and return ranked, formatted results.

    Options: signature criteria (see ``SignatureCriteria``), ``max_distance``
    for fuzzy search, ``top_n``, ``style`` (minimal, rich, raw) and
    ``group_by_directory``.
    """
    options = options or {}
    config = context.config
    index = context.search_index()
    hits = index.search(
        search_type,
        pattern,
        criteria=SignatureCriteria.from_options(options),
        max_distance=int(options.get("max_distance", config.fuzzy_max_distance)),
    )
    ranked = rank(hits)
    logging.info(f"Search {search_type} '{pattern}': {len(hits)} hits")
    return format_results(
        ranked,
        search_type,
        pattern,
        style=options.get("style", "rich"),
        summarize_threshold=config.summarize_threshold,
        top_n=int(options.get("top_n", config.top_n)),
        group_by_directory=bool(options.get("group_by_directory", False)),
    )


def stats(context: ProjectContext) -> Dict[str, Any]:
    """Per-artifact and combined compression statistics for the current generation."""
    return context.store.stats()


def diff(
    context: ProjectContext,
    from_generation: Optional[str] = None,
    to_generation: Optional[str] = None,
) -> Dict[str, Any]:
    """What changed between two retained generations, by default the last refresh."""
    return diff_generations(context.store, from_generation, to_generation)


def history(context: ProjectContext) -> List[Dict[str, Any]]:
    return generation_history(context.store)
