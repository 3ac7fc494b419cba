"""Cross-check between a rewritten route declaration and its derived location."""

from __future__ import annotations

import re

from next_to_start.config import RuntimeConfig
from next_to_start.exceptions import RouteMismatchError
from next_to_start.routing.paths import expected_route_path, is_root_route_target

ROUTER_MODULE = "@tanstack/react-router"

_ROOT_DECLARATION_RE = re.compile(r"createRootRoute\s*\(")
_FILE_DECLARATION_RE = re.compile(r"createFileRoute\((['\"`])([^'\"`]+)\1\)")
_ROOT_PATH_FACTORY_RE = re.compile(r"createFileRoute\(\s*(['\"`])/\1\s*\)\s*\(")
_ROUTER_IMPORT_RE = re.compile(
    r"import\s*{\s*([^}]+)\s*}\s*from\s*(['\"])@tanstack/react-router\2"
)


def declared_route_path(source: str) -> str | None:
    match = _FILE_DECLARATION_RE.search(source)
    return match.group(2) if match else None


def uses_root_declaration(source: str) -> bool:
    return bool(_ROOT_DECLARATION_RE.search(source))


def _rewrite_router_import(match: re.Match[str]) -> str:
    parts = [part.strip() for part in match.group(1).split(",") if part.strip()]
    parts = [part for part in parts if part != "createFileRoute"]
    if "createRootRoute" not in parts:
        parts.insert(0, "createRootRoute")
    quote = match.group(2)
    return f"import {{ {', '.join(parts)} }} from {quote}{ROUTER_MODULE}{quote}"


def normalize_root_route_source(source: str) -> str:
    """Turn a ``createFileRoute('/')(...)`` declaration into ``createRootRoute(...)``."""
    if not _ROOT_PATH_FACTORY_RE.search(source):
        return source
    rewritten = _ROOT_PATH_FACTORY_RE.sub("createRootRoute(", source)
    return _ROUTER_IMPORT_RE.sub(_rewrite_router_import, rewritten)


def assert_route_declaration_matches(
    old_path: str,
    new_path: str,
    source: str,
    config: RuntimeConfig,
) -> None:
    if is_root_route_target(new_path):
        if not uses_root_declaration(source):
            raise RouteMismatchError(
                "Root route mismatch for moved file; expected createRootRoute(...) "
                "in the root route file.",
                source=old_path,
                target=new_path,
            )
        return

    expected = expected_route_path(old_path, config)
    if expected is None:
        return
    if uses_root_declaration(source):
        return
    actual = declared_route_path(source)
    if actual is None:
        return
    if actual != expected:
        raise RouteMismatchError(
            "Route path mismatch for moved file.",
            source=old_path,
            target=new_path,
            expected=expected,
            actual=actual,
        )
