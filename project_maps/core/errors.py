"""Errors raised by the public project-maps operations."""


class ProjectMapsError(Exception):
    """Base error carrying a human-readable suggestion."""

    def __init__(self, message: str, suggestion: str = ""):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion


class ProjectRootError(ProjectMapsError):
    def __init__(self, project_root: str):
        super().__init__(
            f"Project root does not exist or is not a directory: {project_root}",
            "Pass an existing project directory",
        )
        self.project_root = project_root


class ArtifactMissingError(ProjectMapsError):
    def __init__(self, project_root: str, artifact: str = ""):
        what = f"Map '{artifact}'" if artifact else "No maps"
        super().__init__(f"{what} not found for {project_root}", "Run generate first")
        self.project_root = project_root
        self.artifact = artifact


class GenerationNotFoundError(ProjectMapsError):
    def __init__(self, project_root: str, generation: str):
        super().__init__(
            f"Generation '{generation}' not found for {project_root}",
            "Refresh the maps to publish a generation to compare against",
        )
        self.project_root = project_root
        self.generation = generation


class ArtifactCorruptError(ProjectMapsError):
    def __init__(self, artifact: str, reason: str):
        super().__init__(
            f"Map '{artifact}' could not be decoded: {reason}",
            "Run refresh with mode 'full' to rebuild it",
        )
        self.artifact = artifact
        self.reason = reason


class IOTimeoutError(ProjectMapsError):
    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"{operation} did not finish within {timeout:g}s",
            "Raise io_timeout_seconds or narrow the scanned tree with ignored_patterns",
        )
        self.operation = operation
        self.timeout = timeout


class InvalidQueryError(ProjectMapsError):
    def __init__(self, value: str, allowed: list):
        super().__init__(
            f"Unknown query type: {value}",
            f"Use one of: {', '.join(allowed)}",
        )
        self.value = value
        self.allowed = allowed
