"""Per-run state shared by every file processed in one batch."""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from next_to_start.metrics import MIGRATION_IMPACT, MetricAtom, MetricRegistry
from next_to_start.runtime.env_policy import env_dry_run

if TYPE_CHECKING:
    from next_to_start.schema import ProjectConfigDTO


@dataclass(frozen=True)
class InvocationParams:
    """Values supplied explicitly for this run; they outrank every other layer."""

    routes_directory: str | None = None
    app_directory: str | None = None

    @classmethod
    def from_mapping(cls, params: Mapping[str, object] | None) -> "InvocationParams":
        if not params:
            return cls()
        routes_directory: str | None = None
        for key in ("routesDirectory", "routes_directory", "routes-dir", "routesDir"):
            raw = params.get(key)
            if isinstance(raw, str) and raw.strip():
                routes_directory = raw
                break
        app_directory: str | None = None
        for key in ("appDirectory", "app_directory", "app-dir", "appDir"):
            raw = params.get(key)
            if isinstance(raw, str) and raw.strip():
                app_directory = raw
                break
        return cls(routes_directory=routes_directory, app_directory=app_directory)


@dataclass
class RunContext:
    """Explicit replacement for process-wide caches and warning latches.

    Build one per batch, pass it to every pipeline call, drop it when the
    batch ends. Cache writes are idempotent, so concurrent misses for the
    same key only duplicate work.
    """

    dry_run: bool = False
    params: InvocationParams = field(default_factory=InvocationParams)
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    metrics: MetricRegistry = field(default_factory=MetricRegistry)
    pass_workers: int = 1
    project_config_cache: dict[str, "ProjectConfigDTO"] = field(default_factory=dict)
    routes_directory_cache: dict[str, str] = field(default_factory=dict)
    _warned: set[str] = field(default_factory=set)

    @classmethod
    def from_environment(
        cls,
        *,
        dry_run: bool = False,
        params: InvocationParams | None = None,
        environ: Mapping[str, str] | None = None,
        pass_workers: int = 1,
    ) -> "RunContext":
        env = dict(os.environ if environ is None else environ)
        return cls(
            dry_run=dry_run or env_dry_run(env),
            params=params or InvocationParams(),
            environ=env,
            pass_workers=max(1, int(pass_workers)),
        )

    @property
    def migration_metric(self) -> MetricAtom:
        return self.metrics.atom(MIGRATION_IMPACT)

    def warn_once(self, key: str, message: str) -> bool:
        if key in self._warned:
            return False
        self._warned.add(key)
        warnings.warn(message, RuntimeWarning, stacklevel=3)
        return True
