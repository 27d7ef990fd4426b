"""
Full and incremental generation cycles.

A full cycle rescans every file. An incremental cycle reads the per-file
state stored in the current generation's ``metadata`` artifact, rescans
only added and modified files, re-resolves imports where the file set
requires it and patches layer assignments; everything downstream of the
graph is recomputed. Both publish a complete new generation.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .context import ProjectContext
from .errors import ArtifactCorruptError, ArtifactMissingError
from .generator import PipelineResult, analyze, build_documents, scan_project
from .graph import resolve_records
from .models import FileRecord, ScanIssue
from .staleness import FileChanges, diff_file_states

REFRESH_MODES = ["full", "incremental"]


@dataclass
class RefreshOutcome:
    mode: str  # mode actually run
    generation: str
    result: PipelineResult
    duration: float
    changes: Optional[FileChanges] = None
    fallback_reason: Optional[str] = None
    artifacts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        primary = self.result.architecture.primary
        return {
            "mode": self.mode,
            "generation": self.generation,
            "files": len(self.result.files),
            "artifacts": self.artifacts,
            "duration": round(self.duration, 3),
            "changes": self.changes.to_dict() if self.changes else None,
            "fallback_reason": self.fallback_reason,
            "architecture": {"type": primary.type, "name": primary.name, "confidence": primary.confidence},
            "scan_issues": len(self.result.scan_issues),
        }


def _publish(context: ProjectContext, result: PipelineResult) -> Tuple[str, List[str]]:
    documents = build_documents(result, context.config)
    generation = context.store.publish(documents)
    return generation, sorted(documents)


def run_full(context: ProjectContext, fallback_reason: Optional[str] = None) -> RefreshOutcome:
    """Scan everything and publish a new generation; prior artifacts are not read."""
    start = time.time()
    scanned = scan_project(context.scanner)
    result = analyze(
        context.project_root,
        context.config,
        scanned.files,
        scanned.issues,
        scanned.stats,
        skipped_files=scanned.skipped,
    )
    generation, artifacts = _publish(context, result)
    logging.info(f"Full generation {generation} finished in {time.time() - start:.2f}s")
    return RefreshOutcome(
        mode="full",
        generation=generation,
        result=result,
        duration=time.time() - start,
        fallback_reason=fallback_reason,
        artifacts=artifacts,
    )


def load_stored_state(context: ProjectContext) -> Tuple[List[FileRecord], List[ScanIssue], Dict[str, Dict[str, Any]]]:
    """(records, scan issues, skipped files) from the current generation's metadata artifact."""
    metadata = context.store.load_artifact("metadata")
    try:
        records = [FileRecord.from_dict(item) for item in metadata["files"]]
        issues = [ScanIssue(**item) for item in metadata.get("scan_issues", [])]
        skipped = {
            path: {"modified": float(state["modified"]), "size": int(state["size"])}
            for path, state in (metadata.get("skipped_files") or {}).items()
        }
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ArtifactCorruptError("metadata", f"invalid file records: {e}")
    return records, issues, skipped


def run_incremental(context: ProjectContext) -> RefreshOutcome:
    start = time.time()
    try:
        stored_records, stored_issues, stored_skipped = load_stored_state(context)
    except ArtifactMissingError:
        logging.info("Incremental refresh: no stored generation, running full generation")
        return run_full(context, fallback_reason="no previous generation")
    except ArtifactCorruptError as e:
        logging.warning(f"Incremental refresh: stored metadata unusable ({e.reason}), running full generation")
        return run_full(context, fallback_reason="stored metadata is corrupt")

    stored = {record.path: record for record in stored_records}
    current = context.scanner.stat_files()
    changes = diff_file_states(
        {path: {"modified": r.modified, "size": r.size, "hash": r.hash} for path, r in stored.items()},
        current,
        context.project_root,
        stored_skipped,
    )
    ratio = changes.count / max(1, len(stored))
    if ratio > context.config.incremental_fallback_ratio:
        logging.info(
            f"Incremental refresh: {changes.count} of {len(stored)} files changed "
            f"({ratio:.0%}), running full generation"
        )
        outcome = run_full(context, fallback_reason=f"{ratio:.0%} of files changed")
        outcome.changes = changes
        return outcome

    rescan_paths = changes.added + changes.modified
    rescanned = context.scanner.scan(rescan_paths)
    changed = set(changes.changed)
    kept = [record for path, record in stored.items() if path not in changed]
    files = sorted(kept + rescanned.files, key=lambda record: record.path)

    # A changed file set can turn unresolved imports anywhere into internal ones
    file_set_changed = bool(changes.added or changes.removed) or len(rescanned.files) != len(rescan_paths)
    files = resolve_records(files, only=None if file_set_changed else set(changes.modified))

    issues = [
        issue for issue in stored_issues
        if issue.path in current and issue.path not in changed and issue.stage in {"scan", "read", "extract"}
    ]
    issues.extend(rescanned.issues)
    # Unchanged skipped files stay skipped without being read again
    skipped = {
        path: (state["modified"], state["size"]) for path, state in stored_skipped.items()
        if path in current and path not in changed
    }
    skipped.update(rescanned.skipped)
    previous = {path: record.layer or "other" for path, record in stored.items()}
    result = analyze(
        context.project_root,
        context.config,
        files,
        issues,
        context.scanner.stats_for(files, time.time() - start),
        previous_assignments=previous,
        changed=changed,
        skipped_files=skipped,
    )
    generation, artifacts = _publish(context, result)
    logging.info(
        f"Incremental generation {generation}: {len(changes.added)} added, "
        f"{len(changes.modified)} modified, {len(changes.removed)} removed in {time.time() - start:.2f}s"
    )
    return RefreshOutcome(
        mode="incremental",
        generation=generation,
        result=result,
        duration=time.time() - start,
        changes=changes,
        artifacts=artifacts,
    )
