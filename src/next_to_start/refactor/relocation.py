"""Moves rewritten route files without ever overwriting foreign content."""

from __future__ import annotations

from pathlib import Path

from next_to_start.context import RunContext
from next_to_start.exceptions import RelocationConflictError
from next_to_start.refactor.model import FileMoveRecord
from next_to_start.runtime.path_policy import (
    directory_segments,
    find_last_sub_path_index,
    normalize_path,
)


def _app_root(path: Path, app_directory: str) -> Path | None:
    segments = list(path.parts)
    app_segments = directory_segments(app_directory)
    idx = find_last_sub_path_index(segments[:-1], app_segments)
    if idx == -1:
        return None
    return Path(*segments[: idx + len(app_segments)])


def _delete_file(path: Path, ctx: RunContext) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return True
    except (PermissionError, NotImplementedError) as exc:
        ctx.warn_once(
            "delete",
            f"Delete unavailable in this environment ({exc}); "
            "keeping original files in the app directory.",
        )
        return False
    return True


def _remove_dir_if_empty(path: Path) -> bool:
    try:
        if any(path.iterdir()):
            return False
        path.rmdir()
    except OSError:
        return False
    return True


def prune_empty_route_dirs(moved_from: Path, app_directory: str) -> list[Path]:
    """Remove now-empty directories above ``moved_from``, stopping at the app root."""
    app_root = _app_root(moved_from, app_directory)
    if app_root is None:
        return []
    removed: list[Path] = []
    current = moved_from.parent
    while current != app_root and app_root in current.parents:
        if not _remove_dir_if_empty(current):
            break
        removed.append(current)
        current = current.parent
    return removed


def _retire_source(old: Path, app_directory: str, ctx: RunContext) -> None:
    if not old.exists():
        return
    if _delete_file(old, ctx):
        prune_empty_route_dirs(old, app_directory)


def relocate(record: FileMoveRecord, *, app_directory: str, ctx: RunContext) -> bool:
    """Write ``record.final_text`` at its new path and retire the old file.

    Returns ``False`` when the paths coincide. An existing destination with
    identical content counts as an earlier, completed move.
    """
    if normalize_path(record.old_path) == normalize_path(record.new_path):
        return False
    old = Path(record.old_path)
    new = Path(record.new_path)
    if new.exists():
        existing = new.read_text(encoding="utf-8")
        if existing != record.final_text:
            raise RelocationConflictError(record.new_path)
        _retire_source(old, app_directory, ctx)
        return True
    new.parent.mkdir(parents=True, exist_ok=True)
    with open(new, "w", encoding="utf-8", newline="") as handle:
        handle.write(record.final_text)
    _retire_source(old, app_directory, ctx)
    return True
