"""
Project structure maps: scan, classify, trace and query a codebase.

The four public operations take an explicit project context::

    context = open_project("path/to/project")
    generate(context)
    query(context, "backend-layers")
    search(context, "function", "fetch*", {"is_async": True})
"""

from .core.config import ProjectMapsConfig, load_config
from .core.context import ProjectContext
from .core.engine import check_staleness, diff, generate, history, open_project, query, refresh, search, stats
from .core.errors import (
    ArtifactCorruptError,
    ArtifactMissingError,
    GenerationNotFoundError,
    InvalidQueryError,
    IOTimeoutError,
    ProjectMapsError,
    ProjectRootError,
)
from .core.queries import QueryType

__all__ = [
    "ProjectMapsConfig", "load_config", "ProjectContext", "QueryType",
    "open_project", "generate", "refresh", "query", "search", "stats", "check_staleness",
    "diff", "history",
    "ProjectMapsError", "ProjectRootError", "ArtifactMissingError", "ArtifactCorruptError",
    "IOTimeoutError", "InvalidQueryError", "GenerationNotFoundError",
]
