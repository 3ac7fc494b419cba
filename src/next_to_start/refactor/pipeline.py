"""One file end to end: config, passes, commit, invariant check, relocation."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from next_to_start.config import RuntimeConfig, resolve_runtime_config
from next_to_start.context import RunContext
from next_to_start.exceptions import SourceDecodeError
from next_to_start.invariants import (
    assert_route_declaration_matches,
    normalize_root_route_source,
)
from next_to_start.matcher import parse_source
from next_to_start.refactor.engine import PassOrchestrator
from next_to_start.refactor.model import (
    FileMoveRecord,
    MigrationOutcome,
    SourceTree,
    TransformPass,
)
from next_to_start.refactor.relocation import relocate
from next_to_start.routing.paths import derive_target_path, is_root_route_target
from next_to_start.transforms import PASSES

ROUTE_FILE_STRUCTURE = "route-file-structure"


def _with_surrounding_text(source: str, parsed: str, output: str) -> str:
    # The syntax root may not span leading or trailing whitespace; keep it.
    start = source.find(parsed) if parsed else -1
    if parsed == source or start == -1:
        return output
    return source[:start] + output + source[start + len(parsed) :]


def planned_target(path: str, config: RuntimeConfig) -> str | None:
    if not config.is_enabled(ROUTE_FILE_STRUCTURE):
        return None
    return derive_target_path(path, config)


def migrate_source(
    path: str,
    source: str,
    ctx: RunContext,
    *,
    passes: Mapping[str, TransformPass] | None = None,
) -> MigrationOutcome:
    """Rewrite ``source`` as the file at ``path`` and relocate it when due.

    Nothing touches the filesystem before every pass has succeeded and the
    route declaration has been checked. In dry-run mode the rewritten text is
    returned and nothing moves.
    """
    config = resolve_runtime_config(path, ctx)
    tree = SourceTree(
        path=path,
        root=parse_source(source),
        metrics=ctx.migration_metric,
        config=config,
    )
    orchestrator = PassOrchestrator(
        PASSES if passes is None else passes, max_workers=ctx.pass_workers
    )
    output, merged = orchestrator.apply(tree, config.ordered_migrations())
    output = _with_surrounding_text(source, tree.source, output)
    outcome = MigrationOutcome(
        path=path,
        source=source,
        output=output,
        target_path=planned_target(path, config),
        dry_run=ctx.dry_run,
        warnings=merged.warnings(),
    )
    if ctx.dry_run or outcome.target_path is None:
        return outcome

    if is_root_route_target(outcome.target_path):
        outcome.output = normalize_root_route_source(outcome.output)
    assert_route_declaration_matches(path, outcome.target_path, outcome.output, config)
    outcome.moved = relocate(
        FileMoveRecord(old_path=path, new_path=outcome.target_path, final_text=outcome.output),
        app_directory=config.app_directory,
        ctx=ctx,
    )
    return outcome


def migrate_file(
    path: str | Path,
    ctx: RunContext,
    *,
    passes: Mapping[str, TransformPass] | None = None,
) -> MigrationOutcome:
    """Migrate a file on disk; unmoved files are rewritten in place."""
    filename = str(path)
    try:
        source = Path(filename).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SourceDecodeError(filename, exc) from exc
    outcome = migrate_source(filename, source, ctx, passes=passes)
    if not ctx.dry_run and not outcome.moved and outcome.output != source:
        with open(filename, "w", encoding="utf-8", newline="") as handle:
            handle.write(outcome.output)
    return outcome
