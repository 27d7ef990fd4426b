"""
File system scanner.

Walks the project tree, honouring excluded directories, excluded file
globs and .gitignore files, and produces one FileRecord per eligible file.
Reads run in a bounded thread pool, each with its own I/O deadline; an
optional ``enrich`` callable (the signature extractor) then runs on each
file's text in a second pool with no deadline.
"""

import fnmatch
import logging
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from tqdm import tqdm

from .config import ProjectMapsConfig
from .errors import IOTimeoutError, ProjectRootError
from .models import FileRecord, ScanIssue
from .utils import get_gitignore_patterns, hash_content, is_gitignored

FILE_TYPES = {
    "js": "javascript", "jsx": "javascript-react", "ts": "typescript", "tsx": "typescript-react",
    "mjs": "javascript-module", "cjs": "javascript-commonjs", "vue": "vue", "svelte": "svelte",
    "py": "python", "pyi": "python-interface",
    "java": "java", "kt": "kotlin", "scala": "scala", "go": "go", "rs": "rust", "rb": "ruby",
    "php": "php", "swift": "swift", "c": "c", "cpp": "cpp", "h": "c-header", "hpp": "cpp-header",
    "html": "html", "css": "css", "scss": "scss", "sass": "sass", "less": "less",
    "json": "json", "yaml": "yaml", "yml": "yaml", "toml": "toml", "ini": "ini", "xml": "xml",
    "prisma": "prisma", "sql": "sql",
    "md": "markdown", "mdx": "markdown", "txt": "text", "rst": "restructuredtext", "adoc": "asciidoc",
}

LANGUAGES = {
    "javascript": "JavaScript", "javascript-react": "JavaScript", "javascript-module": "JavaScript",
    "javascript-commonjs": "JavaScript", "typescript": "TypeScript", "typescript-react": "TypeScript",
    "python": "Python", "python-interface": "Python", "java": "Java", "kotlin": "Kotlin",
    "scala": "Scala", "go": "Go", "rust": "Rust", "ruby": "Ruby", "php": "PHP", "swift": "Swift",
    "c": "C", "c-header": "C", "cpp": "C++", "cpp-header": "C++", "vue": "Vue", "svelte": "Svelte",
    "html": "HTML", "css": "CSS", "scss": "CSS", "sass": "CSS", "less": "CSS",
}

SOURCE_EXTENSIONS = {
    "js", "jsx", "ts", "tsx", "mjs", "cjs", "vue", "svelte", "py", "pyi", "java", "kt", "scala",
    "go", "rs", "rb", "php", "swift", "c", "cpp", "h", "hpp",
}
CONFIG_EXTENSIONS = {"json", "yaml", "yml", "toml", "ini", "conf", "cfg", "env"}
DOC_EXTENSIONS = {"md", "mdx", "txt", "rst", "adoc"}
STYLE_EXTENSIONS = {"css", "scss", "sass", "less", "styl"}
BUILD_FILES = {
    "Makefile", "Dockerfile", "Procfile", "docker-compose.yml", "docker-compose.yaml",
    "package.json", "tsconfig.json", "pyproject.toml", "setup.py", "setup.cfg",
    "requirements.txt", "Cargo.toml", "go.mod", "Gemfile", "pom.xml", "build.gradle",
}
TEST_FILE_RE = re.compile(
    r"(\.(test|spec)\.[a-z]+$)|(^test_.*\.py$)|(_test\.(py|go)$)|(Test\.(java|kt)$)",
    re.IGNORECASE,
)
TEST_DIRECTORIES = {"test", "tests", "__tests__", "spec", "specs", "e2e"}
CONFIG_NAME_RE = re.compile(r"\.config\.(js|ts|mjs|cjs)$|^\.[a-z]+rc(\.(js|json|ya?ml))?$", re.IGNORECASE)


def file_type_for(extension: str) -> str:
    return FILE_TYPES.get(extension, extension or "unknown")


def language_for(file_type: str) -> str:
    return LANGUAGES.get(file_type, "Other")


def classify_role(relative_path: str) -> str:
    """Role of a file from its name, extension and directory."""
    name = relative_path.rsplit("/", 1)[-1]
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    directories = relative_path.split("/")[:-1]

    if TEST_FILE_RE.search(name):
        return "test"
    if extension in SOURCE_EXTENSIONS and any(part.lower() in TEST_DIRECTORIES for part in directories):
        return "test"
    if name in BUILD_FILES:
        return "build"
    if CONFIG_NAME_RE.search(name):
        return "config"
    if extension in SOURCE_EXTENSIONS:
        return "source"
    if extension in CONFIG_EXTENSIONS:
        return "config"
    if extension in DOC_EXTENSIONS:
        return "documentation"
    if extension in STYLE_EXTENSIONS:
        return "style"
    return "other"


# Returns the enriched record plus any extraction problems for that file
EnrichFn = Callable[[FileRecord, str], Tuple[FileRecord, List[str]]]


@dataclass
class FileContent:
    """Raw bytes of one file plus the stat taken before reading it."""
    path: str
    modified: float
    size: int
    data: bytes


@dataclass
class ScanResult:
    files: List[FileRecord] = field(default_factory=list)
    issues: List[ScanIssue] = field(default_factory=list)
    # Discovered files with no record, as (mtime, size)
    skipped: Dict[str, Tuple[float, int]] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    def by_path(self) -> Dict[str, FileRecord]:
        return {record.path: record for record in self.files}


class FileScanner:
    """Scanner bound to one project root and configuration."""

    def __init__(self, project_root: Union[str, Path], config: ProjectMapsConfig, enrich: Optional[EnrichFn] = None):
        root = Path(project_root)
        if not root.is_dir():
            raise ProjectRootError(str(project_root))
        self.project_root = root.resolve()
        self.config = config
        self.enrich = enrich
        self.excluded_directories = set(config.excluded_directories) | {config.maps_dir}
        self.included_extensions = {ext.lower() for ext in config.included_extensions}
        self.included_filenames = set(config.included_filenames)
        self._gitignore = (
            get_gitignore_patterns(self.project_root) if config.respect_gitignore else []
        ) + [(pattern, self.project_root) for pattern in config.ignored_patterns]

    # --- discovery ---

    def discover(self) -> List[str]:
        """Project-relative POSIX paths of every eligible file, sorted."""
        found: List[str] = []
        for dirpath, dirnames, filenames in os.walk(self.project_root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                name for name in dirnames
                if name not in self.excluded_directories
                and not self._is_ignored(current / name)
            )
            for filename in filenames:
                full_path = current / filename
                if self._is_eligible(full_path):
                    found.append(full_path.relative_to(self.project_root).as_posix())
        found.sort()
        return found

    def stat_files(self) -> Dict[str, Tuple[float, int]]:
        """Cheap (mtime, size) snapshot of every eligible file, without reading contents."""
        snapshot: Dict[str, Tuple[float, int]] = {}
        for relative_path in self.discover():
            try:
                stat = (self.project_root / relative_path).stat()
            except OSError:
                continue
            snapshot[relative_path] = (stat.st_mtime, stat.st_size)
        return snapshot

    def _is_eligible(self, full_path: Path) -> bool:
        name = full_path.name
        if any(fnmatch.fnmatch(name, pattern) for pattern in self.config.excluded_file_patterns):
            return False
        if name not in self.included_filenames and full_path.suffix.lower() not in self.included_extensions:
            return False
        return not self._is_ignored(full_path)

    def _is_ignored(self, full_path: Path) -> bool:
        if not self._gitignore:
            return False
        return is_gitignored(full_path, self._gitignore, self.project_root)

    # --- scanning ---

    def scan(self, paths: Optional[Iterable[str]] = None) -> ScanResult:
        """
        Read and record every eligible file, or only ``paths`` when given.

        Each read is bounded by ``io_timeout_seconds``; signature extraction
        runs afterwards and has no deadline. Oversized, unreadable and
        timed-out files become ScanIssues and are listed in ``skipped`` with
        their (mtime, size). If reads timed out and nothing at all could be
        read, IOTimeoutError is raised.
        """
        start = time.time()
        targets = sorted(paths) if paths is not None else self.discover()
        result = ScanResult()
        if not targets:
            result.stats = self.stats_for(result.files, time.time() - start)
            return result

        contents, result.skipped, result.issues = self._read_files(targets)
        if not contents and any(issue.reason == "timeout" for issue in result.issues):
            raise IOTimeoutError("Project scan", self.config.io_timeout_seconds)

        with ThreadPoolExecutor(max_workers=max(1, self.config.max_workers)) as executor:
            progress = tqdm(
                executor.map(self._build_record, contents),
                total=len(contents),
                desc="Scanning",
                disable=not self.config.show_progress,
            )
            for record, issues in progress:
                result.files.append(record)
                result.issues.extend(issues)

        result.files.sort(key=lambda record: record.path)
        result.issues.sort(key=lambda issue: (issue.path, issue.stage))
        result.stats = self.stats_for(result.files, time.time() - start)
        for issue in result.issues:
            logging.warning(f"Scan issue in {issue.path} ({issue.stage}): {issue.reason}")
        logging.info(
            "Scanned %d files (%d issues, %d skipped) in %.2fs",
            len(result.files), len(result.issues), len(result.skipped), result.stats["scan_time"],
        )
        return result

    def _read_files(
        self, targets: List[str]
    ) -> Tuple[List[FileContent], Dict[str, Tuple[float, int]], List[ScanIssue]]:
        """(contents read, skipped files with their stat, issues) for ``targets``."""
        timeout = self.config.io_timeout_seconds
        workers = max(1, self.config.max_workers)
        stats: Dict[str, Tuple[float, int]] = {}
        contents: List[FileContent] = []
        issues: List[ScanIssue] = []
        hung = 0

        executor = ThreadPoolExecutor(max_workers=workers)
        futures = [(path, executor.submit(self._read_file, path, stats)) for path in targets]
        try:
            for path, future in futures:
                # Once every worker is stuck, queued reads can no longer start
                try:
                    content, issue = future.result(timeout=timeout if hung < workers else 0)
                except FuturesTimeoutError:
                    hung += 1
                    issues.append(ScanIssue(path=path, stage="read", reason="timeout"))
                    continue
                if content is not None:
                    contents.append(content)
                if issue is not None:
                    issues.append(issue)
        finally:
            # A read blocked in the OS cannot be interrupted, so only wait when none is
            executor.shutdown(wait=hung == 0, cancel_futures=True)

        read = {content.path for content in contents}
        # Copy first: a hung read may still record its stat
        skipped = {path: stat for path, stat in stats.copy().items() if path not in read}
        return contents, dict(sorted(skipped.items())), issues

    def _read_file(
        self, relative_path: str, stats: Dict[str, Tuple[float, int]]
    ) -> Tuple[Optional[FileContent], Optional[ScanIssue]]:
        full_path = self.project_root / relative_path
        try:
            stat = full_path.stat()
        except OSError as e:
            return None, ScanIssue(path=relative_path, stage="read", reason=str(e))
        stats[relative_path] = (stat.st_mtime, stat.st_size)
        if stat.st_size > self.config.max_file_size:
            return None, ScanIssue(
                path=relative_path,
                stage="scan",
                reason=f"file exceeds max size ({stat.st_size} > {self.config.max_file_size} bytes)",
            )
        try:
            data = full_path.read_bytes()
        except OSError as e:
            return None, ScanIssue(path=relative_path, stage="read", reason=str(e))
        return FileContent(path=relative_path, modified=stat.st_mtime, size=stat.st_size, data=data), None

    def _build_record(self, content: FileContent) -> Tuple[FileRecord, List[ScanIssue]]:
        text = content.data.decode("utf-8", errors="replace")
        name = content.path.rsplit("/", 1)[-1]
        extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
        file_type = file_type_for(extension)
        record = FileRecord(
            path=content.path,
            name=name,
            extension=extension,
            file_type=file_type,
            language=language_for(file_type),
            role=classify_role(content.path),
            size=content.size,
            lines=text.count("\n") + 1 if text else 0,
            modified=content.modified,
            hash=hash_content(content.data),
        )
        if self.enrich is None:
            return record, []
        record, problems = self.enrich(record, text)
        return record, [ScanIssue(path=content.path, stage="extract", reason=problem) for problem in problems]

    @staticmethod
    def stats_for(files: List[FileRecord], elapsed: float) -> Dict[str, Any]:
        by_type: Dict[str, int] = {}
        by_role: Dict[str, int] = {}
        for record in files:
            by_type[record.extension or record.name] = by_type.get(record.extension or record.name, 0) + 1
            by_role[record.role] = by_role.get(record.role, 0) + 1
        return {
            "total_files": len(files),
            "total_size": sum(record.size for record in files),
            "total_lines": sum(record.lines for record in files),
            "files_by_type": dict(sorted(by_type.items())),
            "files_by_role": dict(sorted(by_role.items())),
            "scan_time": round(elapsed, 3),
        }
