from mcp.server.fastmcp import FastMCP
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from project_maps.core import engine
from project_maps.core.config import ProjectMapsConfig
from project_maps.core.context import ProjectContext
from project_maps.core.errors import (
    ArtifactCorruptError,
    ArtifactMissingError,
    GenerationNotFoundError,
    InvalidQueryError,
    ProjectMapsError,
    ProjectRootError,
)


class MCPError(Exception):
    """Custom MCP error with code and hint."""

    def __init__(self, code: int, message: str, hint: str = ""):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = {"hint": hint} if hint else {}


class GenerateResponse(BaseModel):
    report: Dict[str, Any]


class QueryResponse(BaseModel):
    query_type: str
    result: Dict[str, Any]


class SearchMapsResponse(BaseModel):
    search_type: str
    pattern: str
    result: Dict[str, Any]


class StatsResponse(BaseModel):
    stats: Dict[str, Any]


class StalenessResponse(BaseModel):
    staleness: Dict[str, Any]


class DiffResponse(BaseModel):
    diff: Dict[str, Any]


class HistoryResponse(BaseModel):
    generations: List[Dict[str, Any]]


# Global logger for MCP
logger = logging.getLogger("mcp")
logger.addHandler(logging.StreamHandler(sys.stderr))
logger.setLevel(logging.INFO)


@dataclass
class AppContext:
    project: Optional[ProjectContext] = None


async def on_shutdown():
    logger.info("Server shutdown")


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    # Startup
    config = getattr(server, "config", None)
    project_root = getattr(server, "project_root", None)
    if project_root:
        if not isinstance(config, ProjectMapsConfig):
            config = ProjectMapsConfig(**(config or {}))
        server.project_context = ProjectContext(project_root, config)
        logger.info(f"Server started for project {server.project_context.project_root}")
    else:
        logger.warning("No project root provided to server, map tools are unavailable")

    try:
        yield AppContext(project=getattr(server, "project_context", None))
    finally:
        # Shutdown
        await on_shutdown()


server = FastMCP("ProjectMapsMCP", lifespan=lifespan)


def _project() -> ProjectContext:
    project = getattr(server, "project_context", None)
    if project is None:
        raise MCPError(5001, "Project context unavailable", "Start the server with --project-root")
    return project


def _to_mcp_error(error: ProjectMapsError) -> MCPError:
    if isinstance(error, InvalidQueryError):
        code = 4001
    elif isinstance(error, (ArtifactMissingError, GenerationNotFoundError)):
        code = 4004
    elif isinstance(error, (ArtifactCorruptError, ProjectRootError)):
        code = 5002
    else:
        code = 5001
    return MCPError(code, error.message, error.suggestion)


@server.tool(name="generate_maps")
async def generate_maps() -> GenerateResponse:
    """
    Scan the project and publish a complete set of project maps.
    """
    project = _project()
    try:
        outcome = await asyncio.to_thread(engine.generate, project)
    except ProjectMapsError as e:
        raise _to_mcp_error(e) from e
    return GenerateResponse(report=outcome.to_dict())


@server.tool(name="refresh_maps")
async def refresh_maps(mode: str = Field(default="incremental", description="'incremental' rescans changed files only, 'full' rebuilds everything")) -> GenerateResponse:
    """
    Bring the project maps up to date with the file system.
    """
    project = _project()
    try:
        outcome = await asyncio.to_thread(engine.refresh, project, mode)
    except ProjectMapsError as e:
        raise _to_mcp_error(e) from e
    return GenerateResponse(report=outcome.to_dict())


@server.tool(name="query_maps")
async def query_maps(query_type: str = Field(description="One of: entry-points, framework, tests, largest, recent, structure, languages, summary, backend-layers, modules, module-deps, components, database, data-flow, table-mapping, dependencies, issues, relationships, npm-deps, stack"),
                     options: dict = Field(default_factory=dict, description="Query options, e.g. {'file': 'src/app.ts'} for dependencies or {'layer': 'services'} for backend-layers")) -> QueryResponse:
    """
    Answer a structural question about the project from the stored maps.
    """
    project = _project()
    try:
        result = await asyncio.to_thread(engine.query, project, query_type, options)
    except ProjectMapsError as e:
        raise _to_mcp_error(e) from e
    return QueryResponse(query_type=query_type, result=result.model_dump())


@server.tool(name="search_maps")
async def search_maps(pattern: str = Field(description="Name or glob pattern, e.g. 'fetch*' or 'User?ervice'"),
                      search_type: str = Field(default="all", description="file, export, import, signature, function, class, type, all or fuzzy"),
                      options: dict = Field(default_factory=dict, description="Signature criteria (is_async, param_count, min_params, max_params, return_type, has_parameter, visibility, is_static, kind, exported) and presentation options (style, top_n, group_by_directory, max_distance)")) -> SearchMapsResponse:
    """
    Search files, exports, imports and signatures; results are ranked by relevance.
    """
    project = _project()
    try:
        result = await asyncio.to_thread(engine.search, project, search_type, pattern, options)
    except ProjectMapsError as e:
        raise _to_mcp_error(e) from e
    return SearchMapsResponse(search_type=search_type, pattern=pattern, result=result.model_dump())


@server.tool(name="map_stats")
async def map_stats() -> StatsResponse:
    """
    Compression statistics for every stored map of the current generation.
    """
    project = _project()
    try:
        stats = await asyncio.to_thread(engine.stats, project)
    except ProjectMapsError as e:
        raise _to_mcp_error(e) from e
    return StatsResponse(stats=stats)


@server.tool(name="check_staleness")
async def check_staleness() -> StalenessResponse:
    """
    How far the stored maps have drifted from the file system, with a refresh recommendation.
    """
    project = _project()
    try:
        staleness = await asyncio.to_thread(engine.check_staleness, project)
    except ProjectMapsError as e:
        raise _to_mcp_error(e) from e
    return StalenessResponse(staleness=staleness)


@server.tool(name="diff_maps")
async def diff_maps(from_generation: Optional[str] = Field(default=None, description="Older generation id; defaults to the one before to_generation"),
                    to_generation: Optional[str] = Field(default=None, description="Newer generation id; defaults to the current generation")) -> DiffResponse:
    """
    Files, dependencies and modules that changed between two generations of the maps.
    """
    project = _project()
    try:
        diff = await asyncio.to_thread(engine.diff, project, from_generation, to_generation)
    except ProjectMapsError as e:
        raise _to_mcp_error(e) from e
    return DiffResponse(diff=diff)


@server.tool(name="map_history")
async def map_history() -> HistoryResponse:
    """
    Retained generations of the maps, oldest first.
    """
    project = _project()
    try:
        generations = await asyncio.to_thread(engine.history, project)
    except ProjectMapsError as e:
        raise _to_mcp_error(e) from e
    return HistoryResponse(generations=generations)
