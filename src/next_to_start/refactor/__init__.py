from next_to_start.refactor.engine import PassOrchestrator, PassRun, commit_edits, merge_edits
from next_to_start.refactor.model import (
    FileMoveRecord,
    MergedEdits,
    MigrationOutcome,
    NodeEdit,
    SourceTree,
    replace_node,
)

__all__ = [
    "FileMoveRecord",
    "MergedEdits",
    "MigrationOutcome",
    "NodeEdit",
    "PassOrchestrator",
    "PassRun",
    "SourceTree",
    "commit_edits",
    "merge_edits",
    "replace_node",
]
