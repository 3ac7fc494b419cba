"""Mapping from app-directory routing conventions to routes-directory ones.

Everything here is a pure function of a path string and a ``RuntimeConfig``;
nothing touches the filesystem.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from next_to_start.config import RuntimeConfig
from next_to_start.runtime.path_policy import (
    directory_segments,
    find_last_sub_path_index,
    normalize_path,
    split_segments,
)

CATCH_ALL_TOKEN = "$"

_EXT = r"(tsx|jsx|ts|js)"
_SOURCE_FILE_RE = re.compile(rf"\.{_EXT}$")
_GROUP_SEGMENT_RE = re.compile(r"^\(([^)]+)\)$")
_OPTIONAL_CATCH_ALL_RE = re.compile(r"^\[\[\.\.\.([^\]]+)\]\]$")
_CATCH_ALL_RE = re.compile(r"^\[\.\.\.([^\]]+)\]$")
_DYNAMIC_SEGMENT_RE = re.compile(r"^\[([^\]]+)\]$")
_PRIVATE_SEGMENT_RE = re.compile(r"^_[^/\\]+$")
_PARALLEL_SEGMENT_RE = re.compile(r"^@[^/\\]+$")
_LAYOUT_LIKE_RE = re.compile(rf"^(layout|template)\.{_EXT}$")
_ROLE_FILE_RE = re.compile(
    rf"^(page|layout|loading|error|not-found|template|route)\.{_EXT}$"
)
_MAPPED_FILE_RE = re.compile(
    rf"^(page|layout|loading|error|not-found|template|default|route)\.{_EXT}$"
)
_ROOT_TARGET_RE = re.compile(rf"/__root\.{_EXT}$")

# Special filename -> role filename. ``layout`` and ``route`` are resolved separately.
_FILENAME_ROLES: dict[str, str] = {
    "page": "index",
    "loading": "-pending",
    "error": "-error",
    "not-found": "-not-found",
    "template": "-template",
    "default": "-default",
}


@dataclass(frozen=True)
class RouteLocation:
    """A file path split around the configured app directory."""

    segments: tuple[str, ...]
    app_index: int
    app_end_index: int
    separator: str

    @property
    def prefix(self) -> tuple[str, ...]:
        return self.segments[: self.app_index]

    @property
    def route_segments(self) -> tuple[str, ...]:
        return self.segments[self.app_end_index : -1]

    @property
    def filename(self) -> str:
        return self.segments[-1]


def map_route_segment(segment: str) -> str:
    group = _GROUP_SEGMENT_RE.match(segment)
    if group:
        return f"_{group.group(1)}"
    if _OPTIONAL_CATCH_ALL_RE.match(segment) or _CATCH_ALL_RE.match(segment):
        return CATCH_ALL_TOKEN
    dynamic = _DYNAMIC_SEGMENT_RE.match(segment)
    if dynamic:
        return f"${dynamic.group(1)}"
    return segment


def map_route_filename(base: str, *, is_root_layout: bool) -> str | None:
    match = _MAPPED_FILE_RE.match(base)
    if match is None:
        return None
    role, extension = match.group(1), match.group(2)
    if role == "route":
        return base
    if role == "layout":
        return f"{'__root' if is_root_layout else '_layout'}.{extension}"
    return f"{_FILENAME_ROLES[role]}.{extension}"


def is_group_segment(segment: str) -> bool:
    return bool(_GROUP_SEGMENT_RE.match(segment))


def is_excluded_route(route_segments: tuple[str, ...] | list[str], filename: str) -> bool:
    """True when a file must stay where it is.

    Private (``_x``) and parallel (``@x``) folders never move. A layout or
    template under a route group only moves when every enclosing segment is
    itself a group.
    """
    segments = list(route_segments)
    if any(_PRIVATE_SEGMENT_RE.match(s) or _PARALLEL_SEGMENT_RE.match(s) for s in segments):
        return True
    has_group = any(is_group_segment(s) for s in segments)
    group_only = bool(segments) and all(is_group_segment(s) for s in segments)
    if has_group and _LAYOUT_LIKE_RE.match(filename) and not group_only:
        return True
    return False


def locate_in_app_directory(filename: str, config: RuntimeConfig) -> RouteLocation | None:
    separator = "\\" if "\\" in filename else "/"
    segments = split_segments(filename)
    if len(segments) < 2:
        return None
    app_segments = directory_segments(config.app_directory)
    app_index = find_last_sub_path_index(segments[:-1], app_segments)
    if app_index == -1:
        return None
    app_end_index = app_index + len(app_segments)
    if app_end_index >= len(segments) or not segments[-1]:
        return None
    return RouteLocation(
        segments=tuple(segments),
        app_index=app_index,
        app_end_index=app_end_index,
        separator=separator,
    )


def derive_target_path(filename: str, config: RuntimeConfig) -> str | None:
    """New location for ``filename``, or ``None`` when it must not move."""
    if not _SOURCE_FILE_RE.search(filename):
        return None
    if "node_modules" in filename:
        return None
    location = locate_in_app_directory(filename, config)
    if location is None:
        return None
    route_segments = location.route_segments
    if is_excluded_route(route_segments, location.filename):
        return None
    is_root_layout = not route_segments and location.filename.startswith("layout.")
    mapped_base = map_route_filename(location.filename, is_root_layout=is_root_layout)
    if mapped_base is None:
        return None
    routes_segments = directory_segments(config.routes_directory)
    if not routes_segments:
        return None
    target = location.separator.join(
        [
            *location.prefix,
            *routes_segments,
            *(map_route_segment(segment) for segment in route_segments),
            mapped_base,
        ]
    )
    if normalize_path(target) == normalize_path(filename):
        return None
    return target


def expected_route_path(
    filename: str,
    config: RuntimeConfig,
    *,
    include_api: bool = False,
) -> str | None:
    """Route path a file should declare, from its original location alone.

    Only directory segments matter; the filename role is stripped. Files under
    ``<app>/api`` yield ``None`` unless ``include_api`` is set.
    """
    segments = directory_segments(filename)
    app_segments = directory_segments(config.app_directory)
    app_index = find_last_sub_path_index(segments[:-1], app_segments)
    if app_index == -1:
        return None
    relative = segments[app_index + len(app_segments) :]
    if not relative:
        return None
    if relative[0] == "api" and not include_api:
        return None
    parts = [map_route_segment(segment) for segment in relative[:-1]]
    if not _ROLE_FILE_RE.match(relative[-1]):
        parts.append(relative[-1])
    route_path = "/" + "/".join(part for part in parts if part)
    return route_path.rstrip("/") or "/"


def is_root_route_target(path: str) -> bool:
    return bool(_ROOT_TARGET_RE.search(normalize_path(path)))
