from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from ast_grep_py import SgNode

from next_to_start.matcher import (
    Query,
    directive_queries,
    find_all,
    find_first,
    import_queries,
    is_top_level,
)
from next_to_start.refactor.model import (
    NodeEdit,
    SourceTree,
    insert_around,
    replace_node,
    wrap_edit,
)

ROUTER_MODULE = "@tanstack/react-router"
START_MODULE = "@tanstack/react-start"
TODO_PREFIX = "// TODO(tanstack-migrate):"

_NAMED_IMPORT_BLOCK_RE = re.compile(r"import\s*{([\s\S]*?)}\s*from\s*['\"][^'\"]+['\"]")
_ALIAS_RE = re.compile(r"^([A-Za-z_$][\w$]*)\s+as\s+([A-Za-z_$][\w$]*)$")

DEFAULT_EXPORT_FUNCTION_QUERIES: tuple[Query, ...] = (
    Query(
        pattern="export default async function $NAME($$$PROPS) { $$$BODY }",
        kind="export_statement",
    ),
    Query(
        pattern="export default function $NAME($$$PROPS) { $$$BODY }",
        kind="export_statement",
    ),
)


@dataclass(frozen=True)
class ImportBinding:
    imported: str
    local: str


def record(tree: SourceTree, bucket: str, effort: str | None = None, amount: int = 1) -> None:
    labels = {"bucket": bucket}
    if effort is not None:
        labels["effort"] = effort
    tree.metrics.increment(labels, amount)


def indent(text: str, spaces: int) -> str:
    pad = " " * spaces
    return "\n".join(pad + line if line.strip() else line for line in text.split("\n"))


def build_function(name: str, params: str, body: str, *, is_async: bool) -> str:
    safe_name = name.strip()
    if safe_name.startswith("async "):
        is_async = True
        safe_name = re.sub(r"^async\s+", "", safe_name)
    prefix = "async " if is_async else ""
    signature = f"({params.strip()})" if params.strip() else "()"
    return f"{prefix}function {safe_name}{signature} {{\n{indent(body, 2)}\n}}"


def parse_import_specifiers(import_text: str) -> list[str]:
    match = re.search(r"\{([^}]*)\}", import_text)
    if match is None:
        return []
    return [part.strip() for part in match.group(1).split(",") if part.strip()]


def parse_named_import_bindings(import_text: str) -> list[ImportBinding]:
    match = _NAMED_IMPORT_BLOCK_RE.search(import_text)
    if match is None:
        return []
    bindings: list[ImportBinding] = []
    for part in match.group(1).split(","):
        name = re.sub(r"^type\s+", "", part.strip()).strip()
        if not name:
            continue
        alias = _ALIAS_RE.match(name)
        if alias:
            bindings.append(ImportBinding(imported=alias.group(1), local=alias.group(2)))
        else:
            bindings.append(ImportBinding(imported=name, local=name))
    return bindings


def local_names(bindings: Iterable[ImportBinding], imported: str) -> list[str]:
    return [binding.local for binding in bindings if binding.imported == imported]


def unique(values: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)


def insert_at_top(root: SgNode, text: str, *, pass_id: str) -> NodeEdit | None:
    """Put ``text`` before the first import, or after a leading ``"use client"``."""
    first_import = find_first(root, Query(kind="import_statement"))
    if first_import is not None:
        return insert_around(first_import.node, before=f"{text}\n", pass_id=pass_id)
    directive = find_first(root, *directive_queries("use client"))
    if directive is not None:
        following = directive.node.next()
        if following is not None and following.is_named():
            return insert_around(following, before=f"{text}\n", pass_id=pass_id)
        return insert_around(directive.node, after=f"\n{text}", pass_id=pass_id)
    for kind in (
        "export_statement",
        "lexical_declaration",
        "function_declaration",
        "class_declaration",
        "expression_statement",
    ):
        anchor = find_first(root, Query(kind=kind))
        if anchor is not None and is_top_level(anchor.node):
            return insert_around(anchor.node, before=f"{text}\n", pass_id=pass_id)
    return None


def fold_edit(edits: list[NodeEdit], extra: NodeEdit | None) -> list[NodeEdit]:
    """Add ``extra`` to ``edits``.

    An insertion on a node that is already being rewritten wraps the rewrite.
    """
    if extra is None:
        return edits
    for index, edit in enumerate(edits):
        if edit.span != extra.span:
            continue
        if extra.insertion:
            edits[index] = wrap_edit(edit, extra)
        elif edit.insertion:
            edits[index] = wrap_edit(extra, edit)
        else:
            edits[index] = extra
        return edits
    edits.append(extra)
    return edits


def ensure_named_import(
    root: SgNode,
    specifiers: Iterable[str],
    *,
    module: str,
    pass_id: str,
) -> NodeEdit | None:
    wanted = unique(specifiers)
    if not wanted:
        return None
    existing = find_first(root, *import_queries(module))
    if existing is not None:
        current = [node.text().strip() for node in existing.captures("IMPORTS")]
        merged = unique([*current, *wanted])
        updated = f'import {{ {", ".join(merged)} }} from "{module}"'
        if merged == current:
            return None
        return replace_node(existing.node, updated, pass_id=pass_id)
    return insert_at_top(
        root, f'import {{ {", ".join(wanted)} }} from "{module}"', pass_id=pass_id
    )


def has_top_level_directive(root: SgNode, directive: str) -> bool:
    return any(is_top_level(match.node) for match in find_all(root, *directive_queries(directive)))
