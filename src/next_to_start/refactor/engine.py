"""Runs migration passes over one syntax-tree snapshot and commits their edits."""

from __future__ import annotations

import concurrent.futures
from dataclasses import dataclass, replace
from typing import Mapping, Sequence

from next_to_start.exceptions import PassExecutionError
from next_to_start.matcher import Span
from next_to_start.refactor.model import (
    DroppedEdit,
    MergedEdits,
    NodeEdit,
    PassResult,
    SourceTree,
    TransformPass,
    wrap_edit,
)


@dataclass(frozen=True)
class PassRun:
    pass_id: str
    result: PassResult


def _invoke(pass_id: str, transform: TransformPass, tree: SourceTree) -> PassRun:
    try:
        return PassRun(pass_id=pass_id, result=transform(tree))
    except Exception as exc:
        raise PassExecutionError(pass_id, tree.path, exc) from exc


def _splice(outer: NodeEdit, inner: NodeEdit) -> NodeEdit | None:
    # Only an inner edit whose original text survives exactly once in the
    # outer replacement can be carried over.
    original = inner.node.text()
    if inner.end > outer.end or not original or outer.replacement.count(original) != 1:
        return None
    return replace(
        outer, replacement=outer.replacement.replace(original, inner.replacement, 1)
    )


def merge_edits(runs: Sequence[PassRun]) -> MergedEdits:
    """Merge pass output in run order.

    A later edit on the same span replaces an earlier one. Insertions on a span
    wrap whatever ends up replacing it instead of competing with it. Of two
    edits whose spans nest or overlap, the earlier-starting (outer) one is
    applied. The inner one is carried into the outer replacement when its
    original text appears there exactly once, and is reported as dropped
    otherwise.
    """
    by_span: dict[Span, NodeEdit] = {}
    dropped: list[DroppedEdit] = []
    for run in runs:
        for edit in run.result or ():
            previous = by_span.get(edit.span)
            if previous is not None:
                if edit.insertion:
                    edit = wrap_edit(previous, edit)
                else:
                    if not previous.insertion:
                        dropped.append(
                            DroppedEdit(previous, f"overwritten by {edit.pass_id}")
                        )
                    edit = wrap_edit(edit, previous)
            by_span[edit.span] = edit

    ordered = sorted(by_span.values(), key=lambda edit: (edit.start, -edit.end))
    merged: list[NodeEdit] = []
    cursor = -1
    for edit in ordered:
        if merged and edit.start < cursor:
            spliced = _splice(merged[-1], edit)
            if spliced is None:
                dropped.append(
                    DroppedEdit(edit, f"overlaps edit from {merged[-1].pass_id}")
                )
            else:
                merged[-1] = spliced
            continue
        merged.append(edit)
        cursor = max(cursor, edit.end)
    return MergedEdits(edits=merged, dropped=dropped)


def commit_edits(tree: SourceTree, merged: MergedEdits) -> str:
    root = tree.node()
    if not merged.edits:
        return root.text()
    return root.commit_edits(
        [edit.node.replace(edit.replacement) for edit in merged.edits]
    )


class PassOrchestrator:
    """Applies a fixed, ordered set of passes to one file.

    Every pass reads the same snapshot. A failure in any pass aborts the file
    before anything is committed.
    """

    def __init__(
        self,
        passes: Mapping[str, TransformPass],
        *,
        max_workers: int = 1,
    ) -> None:
        self.passes = dict(passes)
        self.max_workers = max(1, int(max_workers))

    def run(self, tree: SourceTree, pass_ids: Sequence[str]) -> list[PassRun]:
        selected = [(pid, self.passes[pid]) for pid in pass_ids if pid in self.passes]
        if self.max_workers == 1 or len(selected) < 2:
            return [_invoke(pid, transform, tree) for pid, transform in selected]
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(selected))
        ) as executor:
            futures = [
                executor.submit(_invoke, pid, transform, tree)
                for pid, transform in selected
            ]
            # Results are gathered in pass order, not completion order.
            return [future.result() for future in futures]

    def apply(self, tree: SourceTree, pass_ids: Sequence[str]) -> tuple[str, MergedEdits]:
        merged = merge_edits(self.run(tree, pass_ids))
        return commit_edits(tree, merged), merged
