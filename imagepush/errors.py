"""Error types for the push workflow.

Every error carries a stable ``code`` for programmatic handling, in
addition to its human-readable message. Errors propagate verbatim to the
caller; the workflow never reports partial success.
"""

ENGINE_ERROR = "engine_error"
RESOLUTION_FAILED = "resolution_failed"
MODULE_NIL = "module_nil"
PERSISTENCE_FAILED = "persistence_failed"
SERIALIZATION_FAILED = "serialization_failed"
REPOSITORY_ERROR = "repository_error"


class PushError(Exception):
    """Base error for push workflow operations."""

    def __init__(self, message: str, code: str = "push_error") -> None:
        super().__init__(message)
        self.code = code


class EngineError(PushError):
    """Raised when a container engine command fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = ENGINE_ERROR,
    ) -> None:
        super().__init__(message, code=code)
        self.exit_code = exit_code


class RepositoryError(PushError):
    """Raised when a repository API request fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str = REPOSITORY_ERROR,
    ) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code


class ResolutionError(PushError):
    """Raised when no repository artifacts match the pushed image."""

    def __init__(self, message: str, code: str = RESOLUTION_FAILED) -> None:
        super().__init__(message, code=code)


class ModuleNilError(PushError):
    """Raised when module resolution returned nothing without an error."""

    def __init__(
        self,
        message: str = "failed to create build info module: module is nil",
        code: str = MODULE_NIL,
    ) -> None:
        super().__init__(message, code=code)


class PersistenceError(PushError):
    """Raised when build-info could not be saved."""

    def __init__(self, message: str, code: str = PERSISTENCE_FAILED) -> None:
        super().__init__(message, code=code)


class SerializationError(PushError):
    """Raised when the transfer manifest could not be written."""

    def __init__(self, message: str, code: str = SERIALIZATION_FAILED) -> None:
        super().__init__(message, code=code)


__all__ = [
    "ENGINE_ERROR",
    "MODULE_NIL",
    "PERSISTENCE_FAILED",
    "REPOSITORY_ERROR",
    "RESOLUTION_FAILED",
    "SERIALIZATION_FAILED",
    "EngineError",
    "ModuleNilError",
    "PersistenceError",
    "PushError",
    "RepositoryError",
    "ResolutionError",
    "SerializationError",
]
