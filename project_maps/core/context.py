"""
Per-project context passed explicitly to every public operation.

A context owns the scanner, the map store and the snapshot loader for one
project root. Nothing is cached at module level, so two contexts for two
projects never share state.
"""

import threading
from pathlib import Path
from typing import Optional, Tuple, Union

from .config import ProjectMapsConfig
from .scanner import FileScanner
from .search import SearchIndex
from .signatures import enrich_record
from .store import MapLoader, MapSnapshot, MapStore


class ProjectContext:
    def __init__(self, project_root: Union[str, Path], config: Optional[ProjectMapsConfig] = None):
        self.config = config or ProjectMapsConfig()
        # Raises ProjectRootError for a missing root
        self.scanner = FileScanner(project_root, self.config, enrich=enrich_record)
        self.project_root = self.scanner.project_root
        self.store = MapStore(self.project_root, self.config)
        self.loader = MapLoader(self.store)
        self._index: Optional[Tuple[str, SearchIndex]] = None
        self._index_lock = threading.Lock()

    def snapshot(self) -> MapSnapshot:
        return self.loader.snapshot()

    def search_index(self) -> SearchIndex:
        """Search index for the current snapshot, rebuilt only when the generation changes."""
        snapshot = self.snapshot()
        cached = self._index
        if cached is not None and cached[0] == snapshot.generation:
            return cached[1]
        with self._index_lock:
            if self._index is None or self._index[0] != snapshot.generation:
                self._index = (snapshot.generation, SearchIndex.from_snapshot(snapshot))
            return self._index[1]

    def __repr__(self) -> str:
        return f"ProjectContext({str(self.project_root)!r})"
