"""Next.js app-router to TanStack Start codemod."""

from next_to_start.context import InvocationParams, RunContext
from next_to_start.exceptions import (
    MigrationError,
    PassExecutionError,
    RelocationConflictError,
    RouteMismatchError,
    SourceDecodeError,
)
from next_to_start.refactor.pipeline import migrate_file, migrate_source

__all__ = [
    "__version__",
    "InvocationParams",
    "MigrationError",
    "PassExecutionError",
    "RelocationConflictError",
    "RouteMismatchError",
    "RunContext",
    "SourceDecodeError",
    "migrate_file",
    "migrate_source",
]

__version__ = "0.1.0"
