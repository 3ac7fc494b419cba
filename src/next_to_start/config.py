"""Layered resolution of the settings that parameterize one file's migration."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from next_to_start.context import RunContext
from next_to_start.runtime.env_policy import env_routes_directory
from next_to_start.runtime.json_io import load_json_object_text, read_text_or_none
from next_to_start.runtime.path_policy import dirname, normalize_directory, normalize_path
from next_to_start.schema import ProjectConfigDTO

MIGRATION_IDS: tuple[str, ...] = (
    "next-image",
    "next-link",
    "next-server-functions",
    "manual-migration-todos",
    "next-use-client",
    "route-file-structure",
    "route-groups",
    "api-routes",
)

PROJECT_CONFIG_NAMES: tuple[str, ...] = (
    "next-to-start.codemod.json",
    ".next-to-start.codemod.json",
    "next-to-start.codemodrc.json",
)
BUILD_CONFIG_NAMES: tuple[str, ...] = (
    "vite.config.ts",
    "vite.config.js",
    "vite.config.mts",
    "vite.config.cts",
    "vite.config.mjs",
    "vite.config.cjs",
)

DEFAULT_APP_DIRECTORY = "app"
DEFAULT_ROUTES_DIRECTORY = "routes"

_BUILD_CONFIG_ROUTES_RE = re.compile(r"routesDirectory\s*:\s*['\"`]([^'\"`]+)['\"`]")


@dataclass(frozen=True)
class RuntimeConfig:
    routes_directory: str = DEFAULT_ROUTES_DIRECTORY
    app_directory: str = DEFAULT_APP_DIRECTORY
    enabled_migrations: frozenset[str] = frozenset(MIGRATION_IDS)

    def is_enabled(self, migration_id: str) -> bool:
        return migration_id in self.enabled_migrations

    def ordered_migrations(self) -> list[str]:
        return [mid for mid in MIGRATION_IDS if mid in self.enabled_migrations]


def normalize_migration_id(value: str) -> str | None:
    return value if value in MIGRATION_IDS else None


def _known_ids(values: Iterable[str] | None) -> list[str]:
    ids: list[str] = []
    for raw in values or ():
        migration_id = normalize_migration_id(raw)
        if migration_id is not None:
            ids.append(migration_id)
    return ids


def resolve_enabled_migrations(config: ProjectConfigDTO) -> frozenset[str]:
    """Allow-list, then deny-list, then per-id overrides; unknown ids are ignored."""
    enabled = set(MIGRATION_IDS)
    if config.enabled_migrations:
        enabled = set(_known_ids(config.enabled_migrations))
    for migration_id in _known_ids(config.disabled_migrations):
        enabled.discard(migration_id)
    for raw_key, flag in (config.migrations or {}).items():
        migration_id = normalize_migration_id(raw_key)
        if migration_id is None:
            continue
        if flag:
            enabled.add(migration_id)
        else:
            enabled.discard(migration_id)
    return frozenset(enabled)


def find_nearest_file(start_dir: str, candidates: Iterable[str]) -> Path | None:
    names = tuple(candidates)
    start = Path(normalize_path(start_dir))
    for directory in (start, *start.parents):
        for name in names:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None


def parse_project_config_text(source: str) -> ProjectConfigDTO | None:
    payload = load_json_object_text(source)
    if payload is None:
        return None
    try:
        return ProjectConfigDTO.model_validate(payload)
    except ValidationError:
        return None


def load_project_config(filename: str, ctx: RunContext) -> ProjectConfigDTO:
    cache_key = dirname(normalize_path(filename))
    cached = ctx.project_config_cache.get(cache_key)
    if cached is not None:
        return cached
    config = _read_project_config(cache_key, ctx)
    ctx.project_config_cache[cache_key] = config
    return config


def _read_project_config(directory: str, ctx: RunContext) -> ProjectConfigDTO:
    config_file = find_nearest_file(directory, PROJECT_CONFIG_NAMES)
    if config_file is None:
        return ProjectConfigDTO()
    source = read_text_or_none(config_file)
    if not source:
        return ProjectConfigDTO()
    parsed = parse_project_config_text(source)
    if parsed is None:
        ctx.warn_once("config", f"Invalid JSON config at {config_file}; ignoring.")
        return ProjectConfigDTO()
    return parsed


def parse_routes_directory_from_build_config(source: str) -> str | None:
    match = _BUILD_CONFIG_ROUTES_RE.search(source)
    if match is None:
        return None
    return match.group(1).strip() or None


def _project_root_guess(filename: str, app_directory: str) -> str | None:
    normalized = normalize_path(filename)
    marker = normalized.rfind(f"/{app_directory}/")
    if marker == -1:
        if normalized.startswith(f"{app_directory}/"):
            return "."
        return None
    return normalized[:marker] or "/"


def scan_build_config_routes_directory(
    filename: str,
    app_directory: str,
    ctx: RunContext,
) -> str | None:
    root_guess = _project_root_guess(filename, app_directory)
    if root_guess is None:
        return None
    if root_guess in ctx.routes_directory_cache:
        return ctx.routes_directory_cache[root_guess] or None
    scanned = ""
    config_file = find_nearest_file(root_guess, BUILD_CONFIG_NAMES)
    if config_file is not None:
        source = read_text_or_none(config_file)
        if source is None:
            ctx.warn_once(
                "config",
                f"Could not read {config_file}; defaulting routesDirectory to "
                f"'{DEFAULT_ROUTES_DIRECTORY}'.",
            )
        else:
            scanned = normalize_directory(
                parse_routes_directory_from_build_config(source) or ""
            )
    ctx.routes_directory_cache[root_guess] = scanned
    return scanned or None


def resolve_app_directory(config: ProjectConfigDTO, ctx: RunContext) -> str:
    for candidate in (ctx.params.app_directory, config.app_directory):
        if candidate:
            normalized = normalize_directory(candidate)
            if normalized:
                return normalized
    return DEFAULT_APP_DIRECTORY


def resolve_routes_directory(
    filename: str,
    config: ProjectConfigDTO,
    ctx: RunContext,
    *,
    app_directory: str,
) -> str:
    """Per-setting precedence: parameter, config file, env, build config, default."""
    for candidate in (
        ctx.params.routes_directory,
        config.routes_directory,
        env_routes_directory(ctx.environ),
    ):
        if candidate:
            normalized = normalize_directory(candidate)
            if normalized:
                return normalized
    scanned = scan_build_config_routes_directory(filename, app_directory, ctx)
    return scanned or DEFAULT_ROUTES_DIRECTORY


def resolve_runtime_config(filename: str, ctx: RunContext) -> RuntimeConfig:
    project_config = load_project_config(filename, ctx)
    app_directory = resolve_app_directory(project_config, ctx)
    return RuntimeConfig(
        routes_directory=resolve_routes_directory(
            filename,
            project_config,
            ctx,
            app_directory=app_directory,
        ),
        app_directory=app_directory,
        enabled_migrations=resolve_enabled_migrations(project_config),
    )
