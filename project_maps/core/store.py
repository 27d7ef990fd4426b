"""
Map store: generation directories, atomic publication and snapshot loading.

Layout under the project root::

    .project-maps/
        CURRENT                      # id of the published generation
        generations/<id>/<name>.json # one compression envelope per artifact

A generation is written into a hidden staging directory, renamed into
place and only then made current by replacing the CURRENT pointer with
``os.replace``. Readers resolve CURRENT once per load, so they see either
the old complete set or the new complete set.
"""

import json
import logging
import os
import shutil
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .compression import combined_stats, compress, decompress
from .config import ProjectMapsConfig
from .errors import ArtifactCorruptError, ArtifactMissingError

REQUIRED_ARTIFACTS = [
    "summary", "tree", "metadata", "quick-queries", "backend-layers", "data-flow",
    "dependencies-forward", "dependencies-reverse", "relationships", "issues", "npm-dependencies",
]
SUPPLEMENTAL_ARTIFACTS = [
    "modules", "module-dependencies", "frontend-components", "database-schema", "table-module-mapping",
]
ALL_ARTIFACTS = REQUIRED_ARTIFACTS + SUPPLEMENTAL_ARTIFACTS
CURRENT_POINTER = "CURRENT"
STAGING_PREFIX = ".staging-"


def new_generation_id() -> str:
    return f"{datetime.now(timezone.utc):%Y%m%dT%H%M%S%fZ}-{uuid.uuid4().hex[:6]}"


class MapStore:
    """Reads and publishes artifact generations for one project root."""

    def __init__(self, project_root: Union[str, Path], config: ProjectMapsConfig):
        self.project_root = Path(project_root).resolve()
        self.config = config
        self.root = config.maps_root(self.project_root)
        self.generations_dir = config.generations_dir(self.project_root)

    # --- generations ---

    def current_generation(self) -> Optional[str]:
        pointer = self.root / CURRENT_POINTER
        try:
            generation = pointer.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        if not generation or not (self.generations_dir / generation).is_dir():
            logging.warning(f"Map pointer {pointer} names a missing generation '{generation}'")
            return None
        return generation

    def generation_path(self, generation: str) -> Path:
        return self.generations_dir / generation

    def list_generations(self) -> List[str]:
        if not self.generations_dir.is_dir():
            return []
        return sorted(
            entry.name for entry in self.generations_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith(STAGING_PREFIX)
        )

    def publish(self, documents: Dict[str, Dict[str, Any]]) -> str:
        """Write a complete artifact set as a new generation and make it current."""
        generation = new_generation_id()
        self.generations_dir.mkdir(parents=True, exist_ok=True)
        staging = self.generations_dir / f"{STAGING_PREFIX}{generation}"
        staging.mkdir()
        try:
            for name, document in documents.items():
                envelope = compress(
                    document,
                    abbreviate_threshold=self.config.abbreviate_threshold,
                    deduplicate_threshold=self.config.deduplicate_threshold,
                )
                with open(staging / f"{name}.json", "w", encoding="utf-8") as f:
                    json.dump(envelope, f, separators=(",", ":"), ensure_ascii=False)
                logging.info(
                    f"Wrote {name}.json ({envelope['metadata']['compressedSize']} bytes, "
                    f"{envelope['metadata']['compressionRatio']} reduction)"
                )
            os.replace(staging, self.generation_path(generation))
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        pointer_tmp = self.root / f"{CURRENT_POINTER}.{generation}.tmp"
        pointer_tmp.write_text(generation, encoding="utf-8")
        os.replace(pointer_tmp, self.root / CURRENT_POINTER)
        logging.info(f"Published generation {generation} with {len(documents)} artifacts")
        self.prune()
        return generation

    def prune(self) -> None:
        """Keep the newest generations (the current one always survives)."""
        current = self.current_generation()
        keep = max(1, self.config.generations_retained)
        generations = self.list_generations()
        retained = set(generations[-keep:])
        if current:
            retained.add(current)
        for generation in generations:
            if generation not in retained:
                shutil.rmtree(self.generation_path(generation), ignore_errors=True)
                logging.info(f"Pruned generation {generation}")

    # --- reading ---

    def _require_generation(self, generation: Optional[str]) -> str:
        generation = generation or self.current_generation()
        if generation is None:
            raise ArtifactMissingError(str(self.project_root))
        return generation

    def read_envelope(self, name: str, generation: Optional[str] = None) -> Dict[str, Any]:
        generation = self._require_generation(generation)
        path = self.generation_path(generation) / f"{name}.json"
        try:
            with open(path, "r", encoding="utf-8") as f:
                envelope = json.load(f)
        except FileNotFoundError:
            raise ArtifactMissingError(str(self.project_root), name)
        except (OSError, json.JSONDecodeError) as e:
            raise ArtifactCorruptError(name, str(e))
        if not isinstance(envelope, dict):
            raise ArtifactCorruptError(name, "envelope is not an object")
        return envelope

    def load_artifact(self, name: str, generation: Optional[str] = None) -> Dict[str, Any]:
        envelope = self.read_envelope(name, generation)
        try:
            return decompress(envelope)
        except (ValueError, KeyError, TypeError, IndexError) as e:
            raise ArtifactCorruptError(name, str(e))

    def stats(self, generation: Optional[str] = None) -> Dict[str, Any]:
        """Per-artifact and combined compression statistics for a generation."""
        generation = self._require_generation(generation)
        per_artifact: Dict[str, Dict[str, int]] = {}
        unavailable: Dict[str, str] = {}
        for path in sorted(self.generation_path(generation).glob("*.json")):
            name = path.stem
            try:
                metadata = self.read_envelope(name, generation).get("metadata") or {}
                per_artifact[name] = {
                    "originalSize": int(metadata["originalSize"]),
                    "compressedSize": int(metadata["compressedSize"]),
                }
            except ArtifactCorruptError as e:
                unavailable[name] = e.reason
            except (KeyError, TypeError, ValueError) as e:
                unavailable[name] = f"missing compression metadata: {e}"
        result = combined_stats(per_artifact)
        result["generation"] = generation
        result["unavailable"] = unavailable
        return result


@dataclass(frozen=True)
class MapSnapshot:
    """Every artifact of one generation, loaded once and never mutated."""
    generation: str
    documents: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    unavailable: Dict[str, str] = field(default_factory=dict)  # artifact -> reason

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        return self.documents.get(name)


class MapLoader:
    """
    Caches the snapshot of the current generation.

    ``snapshot()`` reloads only when CURRENT names a different generation;
    the swap is a single reference assignment under a lock.
    """

    def __init__(self, store: MapStore):
        self.store = store
        self._snapshot: Optional[MapSnapshot] = None
        self._lock = threading.Lock()

    def snapshot(self) -> MapSnapshot:
        generation = self.store.current_generation()
        if generation is None:
            raise ArtifactMissingError(str(self.store.project_root))
        cached = self._snapshot
        if cached is not None and cached.generation == generation:
            return cached
        with self._lock:
            if self._snapshot is not None and self._snapshot.generation == generation:
                return self._snapshot
            self._snapshot = self._load(generation)
            return self._snapshot

    def _load(self, generation: str) -> MapSnapshot:
        documents: Dict[str, Dict[str, Any]] = {}
        unavailable: Dict[str, str] = {}
        for name in ALL_ARTIFACTS:
            try:
                documents[name] = self.store.load_artifact(name, generation)
            except ArtifactMissingError:
                unavailable[name] = "artifact not generated"
            except ArtifactCorruptError as e:
                logging.warning(f"Map '{name}' in generation {generation} is unavailable: {e.reason}")
                unavailable[name] = e.reason
        logging.info(f"Loaded generation {generation}: {len(documents)} artifacts, {len(unavailable)} unavailable")
        return MapSnapshot(generation=generation, documents=documents, unavailable=unavailable)
