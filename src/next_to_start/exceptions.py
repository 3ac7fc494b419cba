"""Failure modes of the migration pipeline."""

from __future__ import annotations


class MigrationError(RuntimeError):
    """Base class for errors that abort the migration of a single file."""


class PassExecutionError(MigrationError):
    def __init__(self, pass_id: str, path: str, cause: BaseException) -> None:
        super().__init__(f"Pass {pass_id} failed for {path}: {cause}")
        self.pass_id = pass_id
        self.path = path
        self.cause = cause


class RouteMismatchError(MigrationError):
    """Rewritten route declaration disagrees with the derived target path.

    Raised before anything is written so that a route is never registered
    under the wrong path.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str,
        target: str,
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        lines = [message, f"source: {source}", f"target: {target}"]
        if expected is not None:
            lines.append(f"expected route path: {expected}")
        if actual is not None:
            lines.append(f"actual route path: {actual}")
        super().__init__("\n".join(lines))
        self.source = source
        self.target = target
        self.expected = expected
        self.actual = actual


class RelocationConflictError(MigrationError):
    def __init__(self, path: str) -> None:
        super().__init__(
            f"Refusing to overwrite existing target file with different content: {path}"
        )
        self.path = path


class SourceDecodeError(MigrationError):
    def __init__(self, path: str, cause: UnicodeDecodeError) -> None:
        super().__init__(f"Cannot decode {path} as UTF-8: {cause.reason}")
        self.path = path
        self.cause = cause
