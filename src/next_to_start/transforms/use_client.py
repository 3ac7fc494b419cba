"""Drop top-level ``"use client"`` directives; every route module is isomorphic."""

from __future__ import annotations

from next_to_start.matcher import directive_queries, find_all, is_top_level
from next_to_start.refactor.model import PassResult, SourceTree, replace_node
from next_to_start.transforms._common import record

PASS_ID = "next-use-client"


def transform(tree: SourceTree) -> PassResult:
    directives = [
        match
        for match in find_all(tree.node(), *directive_queries("use client"))
        if is_top_level(match.node)
    ]
    if not directives:
        return None
    edits = []
    for directive in directives:
        record(tree, "automated", "low")
        edits.append(replace_node(directive.node, "", pass_id=PASS_ID))
    return edits
