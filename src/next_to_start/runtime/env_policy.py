from __future__ import annotations

import os
from typing import Mapping, Sequence

_TRUTHY_VALUES = {"1", "true", "yes", "on"}

ROUTES_DIRECTORY_ENV_KEYS: tuple[str, ...] = (
    "CODEMOD_ROUTES_DIRECTORY",
    "ROUTES_DIRECTORY",
)
DRY_RUN_ENV_KEYS: tuple[str, ...] = (
    "CODEMOD_DRY_RUN",
    "DRY_RUN",
)


def env_text(
    name: str,
    *,
    default: str = "",
    environ: Mapping[str, str] | None = None,
) -> str:
    source = os.environ if environ is None else environ
    return source.get(name, default).strip()


def first_env_text(
    keys: Sequence[str],
    *,
    environ: Mapping[str, str] | None = None,
) -> str:
    for key in keys:
        value = env_text(key, environ=environ)
        if value:
            return value
    return ""


def env_flag(
    keys: Sequence[str],
    *,
    environ: Mapping[str, str] | None = None,
) -> bool:
    return any(
        env_text(key, environ=environ).lower() in _TRUTHY_VALUES for key in keys
    )


def env_dry_run(environ: Mapping[str, str] | None = None) -> bool:
    return env_flag(DRY_RUN_ENV_KEYS, environ=environ)


def env_routes_directory(environ: Mapping[str, str] | None = None) -> str:
    return first_env_text(ROUTES_DIRECTORY_ENV_KEYS, environ=environ)
