"""Annotate code that has no safe automatic translation.

Nothing is rewritten here: affected statements get a
``// TODO(tanstack-migrate): ...`` line and file-wide concerns get one at the
top of the file. Existing TODOs are never repeated.
"""

from __future__ import annotations

import re

from ast_grep_py import SgNode

from next_to_start.matcher import (
    Query,
    find_all,
    find_first,
    import_queries,
    is_inside,
    node_span,
)
from next_to_start.refactor.model import NodeEdit, PassResult, SourceTree, insert_around
from next_to_start.runtime.path_policy import normalize_path
from next_to_start.transforms._common import (
    TODO_PREFIX,
    ImportBinding,
    has_top_level_directive,
    local_names,
    parse_named_import_bindings,
    record,
)

PASS_ID = "manual-migration-todos"

ROUTE_LIKE_FILE_RE = re.compile(
    r"/(route|page|layout|loading|error|not-found|template)\.(ts|js|tsx|jsx)$"
)
MIDDLEWARE_FILE_RE = re.compile(r"/middleware\.(ts|js|tsx|jsx|mts|cts)$")
NEXT_CONFIG_FILE_RE = re.compile(r"(^|/)next\.config\.(js|ts|mjs|cjs|mts|cts)$")
NEXT_CONFIG_KEYS: tuple[str, ...] = ("rewrites", "redirects", "i18n", "basePath", "trailingSlash")

_ANCHOR_KINDS = frozenset(
    {
        "expression_statement",
        "return_statement",
        "if_statement",
        "throw_statement",
        "lexical_declaration",
        "variable_declaration",
        "function_declaration",
    }
)

_METADATA_QUERIES = (
    Query(pattern="export const metadata = $$$VALUE"),
    Query(pattern="export async function generateMetadata($$$ARGS) { $$$BODY }"),
    Query(pattern="export function generateMetadata($$$ARGS) { $$$BODY }"),
    Query(pattern="export const viewport = $$$VALUE"),
    Query(pattern="export async function sitemap($$$ARGS) { $$$BODY }"),
    Query(pattern="export function sitemap($$$ARGS) { $$$BODY }"),
    Query(pattern="export async function robots($$$ARGS) { $$$BODY }"),
    Query(pattern="export function robots($$$ARGS) { $$$BODY }"),
    *(Query(pattern=q.pattern) for q in import_queries("next/og")),
)
_MIDDLEWARE_QUERIES = (
    Query(pattern="export function middleware($$$ARGS) { $$$BODY }"),
    Query(pattern="export async function middleware($$$ARGS) { $$$BODY }"),
    Query(pattern="export const middleware = ($$$ARGS) => { $$$BODY }"),
    Query(pattern="export const middleware = async ($$$ARGS) => { $$$BODY }"),
    Query(pattern='export const runtime = "edge"'),
    Query(pattern="export const runtime = 'edge'"),
)

_CACHE_SYMBOLS = ("cache", "cacheLife", "cacheTag", "revalidatePath", "revalidateTag")
_HEADER_SYMBOLS = ("cookies", "headers")
_SERVER_SYMBOLS = ("NextRequest", "NextResponse")
_NON_ROUTE_NAVIGATION_SYMBOLS = ("redirect", "permanentRedirect", "notFound")
_CLIENT_NAVIGATION_SYMBOLS = (
    "useRouter",
    "useSelectedLayoutSegment",
    "useSelectedLayoutSegments",
)


def comment_anchor(node: SgNode) -> SgNode:
    current: SgNode | None = node
    while current is not None:
        kind = current.kind()
        if kind in _ANCHOR_KINDS:
            return current
        if kind == "program":
            return node
        current = current.parent()
    return node


def find_calls(root: SgNode, name: str) -> list[SgNode]:
    return [
        match.node
        for match in find_all(root, Query(pattern=f"{name}($$$ARGS)", kind="call_expression"))
    ]


def first_non_import_identifier(root: SgNode, name: str) -> SgNode | None:
    for match in find_all(root, Query(pattern=name, kind="identifier")):
        if not is_inside(match.node, "import_statement"):
            return match.node
    return None


def detect_next_config_keys(path: str, source: str) -> list[str]:
    if not NEXT_CONFIG_FILE_RE.search(normalize_path(path)):
        return []
    return [key for key in NEXT_CONFIG_KEYS if re.search(rf"\b{key}\s*:", source)]


class _TodoCollector:
    def __init__(self, tree: SourceTree) -> None:
        self.tree = tree
        self.source = tree.source
        self.line_todos: dict[tuple[int, int], tuple[SgNode, list[str]]] = {}
        self.top_todos: list[str] = []
        self._lines = self.source.splitlines()

    def _comments_above(self, anchor: SgNode) -> list[str]:
        comments: list[str] = []
        row = anchor.range().start.line - 1
        while 0 <= row < len(self._lines) and self._lines[row].strip().startswith("//"):
            comments.append(self._lines[row].strip())
            row -= 1
        return comments

    def line(self, node: SgNode | None, message: str, effort: str) -> None:
        if node is None:
            return
        anchor = comment_anchor(node)
        todo = f"{TODO_PREFIX} {message}"
        if todo in anchor.text() or todo in self._comments_above(anchor):
            return
        key = node_span(anchor)
        _, todos = self.line_todos.setdefault(key, (anchor, []))
        if todo in todos:
            return
        record(self.tree, "manual", effort)
        todos.append(todo)

    def top(self, message: str, effort: str) -> None:
        todo = f"{TODO_PREFIX} {message}"
        if todo in self.source or todo in self.top_todos:
            return
        record(self.tree, "manual", effort)
        self.top_todos.append(todo)

    def symbol_calls(
        self,
        bindings: list[ImportBinding],
        symbols: tuple[str, ...],
        message: str,
        effort: str,
    ) -> None:
        root = self.tree.node()
        for symbol in symbols:
            for local in local_names(bindings, symbol):
                for call in find_calls(root, local):
                    self.line(call, message.format(symbol=symbol), effort)

    def edits(self) -> list[NodeEdit]:
        root = self.tree.node()
        pending = dict(self.line_todos)
        edits: list[NodeEdit] = []
        if self.top_todos:
            first = root.child(0)
            if first is not None:
                key = node_span(first)
                _, first_todos = pending.pop(key, (first, []))
                edits.append(_prefixed(first, [*self.top_todos, *first_todos]))
        for anchor, todos in pending.values():
            edits.append(_prefixed(anchor, todos))
        return edits


def _prefixed(node: SgNode, comments: list[str]) -> NodeEdit:
    pad = " " * node.range().start.column
    before = "".join(f"{comment}\n{pad}" for comment in comments)
    return insert_around(node, before=before, pass_id=PASS_ID)


def _bindings(root: SgNode, module: str) -> list[ImportBinding]:
    bindings: list[ImportBinding] = []
    for match in find_all(root, *import_queries(module)):
        bindings.extend(parse_named_import_bindings(match.text))
    return bindings


def transform(tree: SourceTree) -> PassResult:
    root = tree.node()
    path = normalize_path(tree.path)
    todos = _TodoCollector(tree)

    todos.symbol_calls(
        _bindings(root, "next/cache"),
        _CACHE_SYMBOLS,
        "manual migration required for `{symbol}()`; map to TanStack Start/Query caching strategy.",
        "medium",
    )
    todos.symbol_calls(
        _bindings(root, "next/headers"),
        _HEADER_SYMBOLS,
        "manual migration required for `{symbol}()` outside server actions.",
        "medium",
    )
    server_bindings = _bindings(root, "next/server")
    for symbol in _SERVER_SYMBOLS:
        for local in local_names(server_bindings, symbol):
            usage = first_non_import_identifier(root, local)
            if usage is None:
                continue
            todos.line(
                usage.parent() or usage,
                f"manual migration required for `{symbol}` usage outside server actions.",
                "medium",
            )

    navigation = _bindings(root, "next/navigation")
    if navigation:
        if not ROUTE_LIKE_FILE_RE.search(path):
            todos.symbol_calls(
                navigation,
                _NON_ROUTE_NAVIGATION_SYMBOLS,
                "manual migration required for `{symbol}()` in non-route context.",
                "low",
            )
        if has_top_level_directive(root, "use client"):
            todos.symbol_calls(
                navigation,
                _CLIENT_NAVIGATION_SYMBOLS,
                "manual migration required for `{symbol}()` in client component.",
                "medium",
            )

    if find_first(root, *_METADATA_QUERIES) is not None:
        todos.top(
            "metadata/SEO exports detected (`metadata`, `generateMetadata`, `viewport`, "
            "`sitemap`, `robots`, or `next/og`); migrate manually.",
            "high",
        )
    if MIDDLEWARE_FILE_RE.search(path) or find_first(root, *_MIDDLEWARE_QUERIES) is not None:
        todos.top(
            "middleware/edge runtime pattern detected; manual migration required for "
            "TanStack Start runtime semantics.",
            "high",
        )
    config_keys = detect_next_config_keys(path, todos.source)
    if config_keys:
        todos.top(
            f"next.config semantics detected ({', '.join(config_keys)}); "
            "migrate these settings manually.",
            "high",
        )

    edits = todos.edits()
    return edits or None
