import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

# Default configuration values
DEFAULT_CONFIG_PATH = "project-maps.config.yaml"
DEFAULT_MAPS_DIR = ".project-maps"
DEFAULT_ARTIFACT_VERSION = "1.0.0"
DEFAULT_EXCLUDED_DIRECTORIES = [
    "node_modules", ".git", "dist", "build", "coverage", ".next", ".nuxt", "out",
    "target", "bin", "obj", "__pycache__", ".pytest_cache", ".venv", "venv",
    "vendor", ".idea", ".vscode", "tmp", "temp", ".cache", ".mypy_cache", ".tox",
]
DEFAULT_EXCLUDED_FILE_PATTERNS = [
    "*.min.js", "*.bundle.js", "*.map", "package-lock.json", "yarn.lock",
    "pnpm-lock.yaml", "poetry.lock", "Cargo.lock", "*.log", ".env*", ".DS_Store",
]
DEFAULT_INCLUDED_EXTENSIONS = [
    ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue", ".svelte",
    ".py", ".pyi", ".go", ".rs", ".java", ".kt", ".rb", ".php", ".swift",
    ".c", ".cpp", ".h", ".hpp",
    ".json", ".yaml", ".yml", ".toml", ".ini", ".prisma", ".sql",
    ".md", ".mdx", ".rst", ".txt",
    ".css", ".scss", ".sass", ".less", ".html",
]
DEFAULT_INCLUDED_FILENAMES = ["Dockerfile", "Makefile", "Procfile", "Gemfile"]
DEFAULT_RESPECT_GITIGNORE = True
DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024
DEFAULT_MAX_WORKERS = 8
DEFAULT_IO_TIMEOUT_SECONDS = 30.0
DEFAULT_SHOW_PROGRESS = False

# Architecture detection
DEFAULT_CONFIDENCE_THRESHOLDS: Dict[str, Dict[str, int]] = {
    "mvc": {"high": 20, "medium": 10},
    "layered": {"high": 15, "medium": 8},
    "clean": {"high": 15, "medium": 8},
    "service-oriented": {"high": 15, "medium": 8},
    "microservices": {"high": 5, "medium": 3},
    "api-centric": {"high": 15, "medium": 8},
}
DEFAULT_LAYER_HIERARCHIES: Dict[str, Dict[str, int]] = {
    "mvc": {"views": 0, "controllers": 1, "models": 2},
    "layered": {"presentation": 0, "business": 1, "data": 2},
    "clean": {"infrastructure": 0, "application": 1, "domain": 2},
    "service-oriented": {"routes": 0, "controllers": 1, "services": 2, "repositories": 3, "models": 4},
}
DEFAULT_ENTRY_LAYERS: Dict[str, List[str]] = {
    "default": ["routes"],
    "api-centric": ["api"],
}
DEFAULT_FLOW_LAYER_PRIORITY = ["controllers", "services", "repositories", "models", "entities", "schemas"]
DEFAULT_MAX_FLOW_DEPTH = 10
DEFAULT_COMMON_FLOW_LIMIT = 10
DEFAULT_VIOLATION_MIN_CONFIDENCE = "low"

# Map store
DEFAULT_ABBREVIATE_THRESHOLD = 5 * 1024
DEFAULT_DEDUPLICATE_THRESHOLD = 20 * 1024
DEFAULT_GENERATIONS_RETAINED = 2
DEFAULT_INCREMENTAL_FALLBACK_RATIO = 0.3

# Search & presentation
DEFAULT_FUZZY_MAX_DISTANCE = 2
DEFAULT_SUMMARIZE_THRESHOLD = 50
DEFAULT_TOP_N = 10


class ProjectMapsConfig(BaseModel):
    """
    Central configuration model for project maps.
    """
    model_config = ConfigDict(extra="allow")

    maps_dir: str = DEFAULT_MAPS_DIR
    artifact_version: str = DEFAULT_ARTIFACT_VERSION

    # Scanner
    excluded_directories: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRECTORIES))
    excluded_file_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_FILE_PATTERNS))
    ignored_patterns: List[str] = Field(default_factory=list)
    included_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDED_EXTENSIONS))
    included_filenames: List[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDED_FILENAMES))
    respect_gitignore: bool = DEFAULT_RESPECT_GITIGNORE
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    io_timeout_seconds: float = DEFAULT_IO_TIMEOUT_SECONDS
    show_progress: bool = DEFAULT_SHOW_PROGRESS

    # Architecture, data flow and violations
    confidence_thresholds: Dict[str, Dict[str, int]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_CONFIDENCE_THRESHOLDS.items()}
    )
    layer_hierarchies: Dict[str, Dict[str, int]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_LAYER_HIERARCHIES.items()}
    )
    entry_layers: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ENTRY_LAYERS.items()}
    )
    flow_layer_priority: List[str] = Field(default_factory=lambda: list(DEFAULT_FLOW_LAYER_PRIORITY))
    max_flow_depth: int = DEFAULT_MAX_FLOW_DEPTH
    common_flow_limit: int = DEFAULT_COMMON_FLOW_LIMIT
    violation_min_confidence: str = DEFAULT_VIOLATION_MIN_CONFIDENCE

    # Map store
    abbreviate_threshold: int = DEFAULT_ABBREVIATE_THRESHOLD
    deduplicate_threshold: int = DEFAULT_DEDUPLICATE_THRESHOLD
    generations_retained: int = DEFAULT_GENERATIONS_RETAINED
    incremental_fallback_ratio: float = DEFAULT_INCREMENTAL_FALLBACK_RATIO

    # Search and presentation
    fuzzy_max_distance: int = DEFAULT_FUZZY_MAX_DISTANCE
    summarize_threshold: int = DEFAULT_SUMMARIZE_THRESHOLD
    top_n: int = DEFAULT_TOP_N

    def maps_root(self, project_root: Path) -> Path:
        return Path(project_root).resolve() / self.maps_dir

    def generations_dir(self, project_root: Path) -> Path:
        return self.maps_root(project_root) / "generations"

    def entry_layers_for(self, pattern_type: str) -> List[str]:
        return self.entry_layers.get(pattern_type) or self.entry_layers.get("default", ["routes"])


def load_config(
    config_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None
) -> ProjectMapsConfig:
    """
    Load configuration from file and overrides.

    Priority:
    1. Explicit overrides (if provided and not None)
    2. Config file (if provided or found at default path)
    3. Default values

    Args:
        config_path: Path to the YAML config file. If None, tries 'project-maps.config.yaml'.
        cli_args: Dictionary of overrides applied on top of the file values.

    Returns:
        ProjectMapsConfig: The resolved configuration object.
    """
    config_data: Dict[str, Any] = {}

    target_path = config_path if config_path else DEFAULT_CONFIG_PATH
    path_obj = Path(target_path)

    if path_obj.exists() and path_obj.is_file():
        try:
            with open(path_obj, "r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f)
                if isinstance(file_data, dict):
                    config_data.update(file_data)
                elif file_data:
                    logging.warning(f"Ignoring config file {target_path}: top level is not a mapping")
            logging.info(f"Loaded configuration from {target_path}")
        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load config file {target_path}: {e}")
    elif config_path:
        logging.warning(f"Config file not found at explicit path: {config_path}")
    else:
        logging.info(f"No config file found at {DEFAULT_CONFIG_PATH}, using defaults.")

    if cli_args:
        for key, value in cli_args.items():
            if value is not None:
                config_data[key] = value

    return ProjectMapsConfig(**config_data)
