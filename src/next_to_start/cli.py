from __future__ import annotations

import concurrent.futures
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import typer

from next_to_start.config import MIGRATION_IDS, RuntimeConfig, resolve_runtime_config
from next_to_start.context import InvocationParams, RunContext
from next_to_start.exceptions import MigrationError
from next_to_start.refactor.model import MigrationOutcome
from next_to_start.refactor.pipeline import migrate_file
from next_to_start.routing.paths import derive_target_path
from next_to_start.runtime.json_io import dump_json
from next_to_start.runtime.path_policy import has_source_extension
from next_to_start.schema import MigrationOutcomeDTO, MigrationSummaryDTO

app = typer.Typer(add_completion=False, help="Migrate Next.js app-router code to TanStack Start.")

EchoFn = Callable[..., None]


def discover_source_files(paths: Iterable[Path]) -> list[Path]:
    """Source files under ``paths``, sorted and without ``node_modules``."""
    found: dict[str, Path] = {}
    for path in paths:
        candidates = [path] if path.is_file() else sorted(path.rglob("*"))
        for candidate in candidates:
            if not candidate.is_file() or "node_modules" in candidate.parts:
                continue
            if has_source_extension(candidate.name):
                found.setdefault(str(candidate), candidate)
    return [found[key] for key in sorted(found)]


def _outcome_dto(outcome: MigrationOutcome) -> MigrationOutcomeDTO:
    return MigrationOutcomeDTO(
        path=outcome.path,
        target_path=outcome.target_path,
        changed=outcome.changed,
        moved=outcome.moved,
        dry_run=outcome.dry_run,
        warnings=list(outcome.warnings),
    )


def _migrate_one(path: Path, ctx: RunContext) -> MigrationOutcomeDTO:
    try:
        return _outcome_dto(migrate_file(path, ctx))
    except (MigrationError, OSError) as exc:
        return MigrationOutcomeDTO(path=str(path), error=str(exc))


def run_migration(
    files: List[Path],
    ctx: RunContext,
    *,
    jobs: int = 1,
) -> MigrationSummaryDTO:
    if jobs <= 1 or len(files) < 2:
        results = [_migrate_one(path, ctx) for path in files]
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=jobs) as executor:
            results = list(executor.map(lambda path: _migrate_one(path, ctx), files))
    return MigrationSummaryDTO(
        files=results,
        metrics=ctx.metrics.as_json(),
    )


def _describe(result: MigrationOutcomeDTO) -> str:
    if result.error is not None:
        return f"FAILED {result.path}: {result.error}"
    if result.moved:
        return f"moved {result.path} -> {result.target_path}"
    if result.changed and result.dry_run and result.target_path:
        return f"would rewrite {result.path} (target {result.target_path})"
    if result.changed:
        return f"{'would rewrite' if result.dry_run else 'rewrote'} {result.path}"
    return f"unchanged {result.path}"


def render_summary(
    summary: MigrationSummaryDTO,
    *,
    show_metrics: bool,
    echo_fn: EchoFn = typer.echo,
) -> int:
    failures = 0
    for result in summary.files:
        if result.error is not None:
            failures += 1
            echo_fn(_describe(result), err=True)
            continue
        echo_fn(_describe(result))
        for warning in result.warnings:
            echo_fn(f"  warning: {warning}", err=True)
    changed = sum(1 for result in summary.files if result.changed)
    moved = sum(1 for result in summary.files if result.moved)
    echo_fn(
        f"{len(summary.files)} file(s): {changed} changed, {moved} moved, {failures} failed"
    )
    if show_metrics:
        echo_fn(dump_json(summary.metrics).rstrip("\n"))
    return 1 if failures else 0


@app.command()
def migrate(
    paths: List[Path] = typer.Argument(..., exists=True, help="Files or directories to migrate."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report changes without writing."),
    routes_directory: Optional[str] = typer.Option(None, "--routes-directory"),
    app_directory: Optional[str] = typer.Option(None, "--app-directory"),
    jobs: int = typer.Option(1, "--jobs", min=1, help="Files processed concurrently."),
    pass_workers: int = typer.Option(1, "--pass-workers", min=1, help="Passes run concurrently per file."),
    metrics: bool = typer.Option(False, "--metrics", help="Print migration-impact counters."),
) -> None:
    """Rewrite sources in place and move route files into the routes directory."""
    ctx = RunContext.from_environment(
        dry_run=dry_run,
        params=InvocationParams(routes_directory=routes_directory, app_directory=app_directory),
        pass_workers=pass_workers,
    )
    files = discover_source_files(paths)
    summary = run_migration(files, ctx, jobs=jobs)
    raise typer.Exit(code=render_summary(summary, show_metrics=metrics))


@app.command()
def where(
    path: Path = typer.Argument(...),
    routes_directory: Optional[str] = typer.Option(None, "--routes-directory"),
    app_directory: Optional[str] = typer.Option(None, "--app-directory"),
) -> None:
    """Print the location a file would be moved to."""
    ctx = RunContext.from_environment(
        params=InvocationParams(routes_directory=routes_directory, app_directory=app_directory),
    )
    config: RuntimeConfig = resolve_runtime_config(str(path), ctx)
    target = derive_target_path(str(path), config)
    typer.echo(target if target is not None else "not eligible")


@app.command()
def passes() -> None:
    """List pass ids in merge order."""
    for migration_id in MIGRATION_IDS:
        typer.echo(migration_id)


def main() -> None:
    app()
