"""
GRAPHVAULT v1.0 — Custom Exceptions.

Typed error hierarchy so raw SQLite details never leak through the
engine or API boundaries.
"""


class GraphVaultError(Exception):
    """Base exception for all GRAPHVAULT errors."""


class ValidationError(GraphVaultError):
    """Raised when a batch item or entity fails field/reference validation."""


class NotFound(GraphVaultError):
    """Raised when a referenced entity does not exist in the expected scope."""


class ProjectNotFound(NotFound):
    """Raised when a project is not found."""


class ServiceNotFound(NotFound):
    """Raised when a service is not found in the target project."""


class DependencyNotFound(NotFound):
    """Raised when a dependency is not found."""


class SnapshotNotFound(NotFound):
    """Raised when a snapshot is not found."""


class ConflictError(GraphVaultError):
    """Raised when storage reports a uniqueness violation."""


class StorageError(GraphVaultError):
    """Raised when a database transaction fails and has been rolled back.

    The message is sanitized; the original driver error is chained as
    ``__cause__`` for logging only.
    """


class SerializationError(GraphVaultError):
    """Raised when a snapshot payload cannot be produced or parsed."""
