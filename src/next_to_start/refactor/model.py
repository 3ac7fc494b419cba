from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ast_grep_py import SgNode, SgRoot

from next_to_start.config import RuntimeConfig
from next_to_start.matcher import Span, node_span
from next_to_start.metrics import MetricAtom


@dataclass(frozen=True)
class SourceTree:
    """Read-only view of one file handed to every pass."""

    path: str
    root: SgRoot
    metrics: MetricAtom
    config: RuntimeConfig = field(default_factory=RuntimeConfig)

    def node(self) -> SgNode:
        return self.root.root()

    @property
    def source(self) -> str:
        return self.root.root().text()


@dataclass(frozen=True)
class NodeEdit:
    pass_id: str
    start: int
    end: int
    replacement: str
    node: SgNode = field(compare=False, repr=False)
    # Text placed around the node while keeping it; set only for insertions.
    before: str = ""
    after: str = ""
    insertion: bool = False

    @property
    def span(self) -> Span:
        return (self.start, self.end)


def replace_node(node: SgNode, replacement: str, *, pass_id: str) -> NodeEdit:
    start, end = node_span(node)
    return NodeEdit(
        pass_id=pass_id,
        start=start,
        end=end,
        replacement=replacement,
        node=node,
    )


def insert_around(
    node: SgNode, *, before: str = "", after: str = "", pass_id: str
) -> NodeEdit:
    """An edit that adds text next to ``node`` and leaves the node itself alone."""
    start, end = node_span(node)
    return NodeEdit(
        pass_id=pass_id,
        start=start,
        end=end,
        replacement=f"{before}{node.text()}{after}",
        node=node,
        before=before,
        after=after,
        insertion=True,
    )


def wrap_edit(base: NodeEdit, insertion: NodeEdit) -> NodeEdit:
    """Apply ``insertion`` around whatever ``base`` puts in place of the node."""
    return NodeEdit(
        pass_id=base.pass_id,
        start=base.start,
        end=base.end,
        replacement=f"{insertion.before}{base.replacement}{insertion.after}",
        node=base.node,
        before=insertion.before + base.before,
        after=base.after + insertion.after,
        insertion=base.insertion,
    )


PassResult = Optional[List[NodeEdit]]
TransformPass = Callable[[SourceTree], PassResult]


@dataclass(frozen=True)
class DroppedEdit:
    edit: NodeEdit
    reason: str


@dataclass
class MergedEdits:
    edits: List[NodeEdit] = field(default_factory=list)
    dropped: List[DroppedEdit] = field(default_factory=list)

    def warnings(self) -> list[str]:
        return [
            f"{item.edit.pass_id}: edit at {item.edit.start}-{item.edit.end} {item.reason}"
            for item in self.dropped
        ]


@dataclass(frozen=True)
class FileMoveRecord:
    old_path: str
    new_path: str
    final_text: str


@dataclass
class MigrationOutcome:
    path: str
    source: str
    output: str
    target_path: str | None = None
    moved: bool = False
    dry_run: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.moved or self.output != self.source
