"""Fold ``route.ts`` HTTP handlers into one server-route declaration."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ast_grep_py import SgNode

from next_to_start.matcher import Match, Query, find_all, find_first, import_queries
from next_to_start.refactor.model import NodeEdit, PassResult, SourceTree, replace_node
from next_to_start.routing.paths import expected_route_path
from next_to_start.runtime.path_policy import normalize_path
from next_to_start.transforms._common import ROUTER_MODULE, indent, record

PASS_ID = "api-routes"

HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
ROUTE_FILE_RE = re.compile(r"(^|/)route\.(ts|js|tsx|jsx)$")
WEB_API_NOTE = (
    "// Migrated from Next.js: NextRequest/NextResponse replaced with standard "
    "Web Request/Response APIs"
)
START_SERVER_IMPORT = (
    'import { getRequestHeader, setResponseHeader } from "@tanstack/react-start/server";'
)

_FORCE_STATIC_QUERIES = (
    Query(pattern='export const dynamic = "force-static";', kind="export_statement"),
    Query(pattern="export const dynamic = 'force-static';", kind="export_statement"),
    Query(pattern='export const dynamic = "force-static"', kind="export_statement"),
    Query(pattern="export const dynamic = 'force-static'", kind="export_statement"),
)
_OBJECT_METHOD_RE = re.compile(
    r"(GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)\s*:\s*(async\s+)?\([^)]*\)\s*=>\s*(\{[^}]*\}|[^,]+)"
)


@dataclass(frozen=True)
class MethodHandler:
    method: str
    params: str
    body: str
    node: SgNode

    @property
    def has_context(self) -> bool:
        return any(
            token in param
            for param in self.params.split(",")
            for token in ("context", "ctx", "params")
        )


def _method_queries(method: str) -> tuple[Query, ...]:
    return (
        Query(
            pattern=f"export async function {method}($$$PARAMS) {{ $$$BODY }}",
            kind="export_statement",
        ),
        Query(
            pattern=f"export function {method}($$$PARAMS) {{ $$$BODY }}",
            kind="export_statement",
        ),
    )


def collect_handlers(root: SgNode) -> list[MethodHandler]:
    handlers: list[MethodHandler] = []
    for method in HTTP_METHODS:
        for match in find_all(root, *_method_queries(method)):
            handlers.append(
                MethodHandler(
                    method=method,
                    params=match.joined("PARAMS", ", "),
                    body=match.joined("BODY", "\n"),
                    node=match.node,
                )
            )
    return handlers


def rewrite_handler_body(body: str, *, has_context: bool, keep_next_response: bool) -> str:
    rewritten = body
    if not keep_next_response:
        rewritten = re.sub(r"NextResponse\.json\(", "Response.json(", rewritten)
        rewritten = re.sub(r"new\s+NextResponse\(", "new Response(", rewritten)
    if has_context:
        rewritten = re.sub(r"(?:await\s+)?(?:context\.)?params", "params", rewritten)
    rewritten = re.sub(
        r"await\s+cookies\(\)",
        "{ get: (name) => getRequestHeader('cookie')?.match(new RegExp(name + '=([^;]+)'))?.[1] }",
        rewritten,
    )
    rewritten = re.sub(r"await\s+headers\(\)", "request.headers", rewritten)
    if not rewritten.strip().startswith("return") and "return " not in rewritten:
        response = re.search(r"(?:const|let|var)\s+(\w+)\s*=\s*(?:NextResponse|Response)\.", rewritten)
        if response is not None:
            rewritten = re.sub(
                rf"{re.escape(response.group(1))};?\s*$", f"return {response.group(1)};", rewritten
            )
    return rewritten


def build_server_route(route_path: str, handler_sources: list[str]) -> str:
    handlers = ",\n".join(handler_sources)
    return (
        f"import {{ createFileRoute }} from '{ROUTER_MODULE}'\n\n"
        f"export const Route = createFileRoute('{route_path}')({{\n"
        "  server: {\n"
        "    handlers: {\n"
        f"{handlers}\n"
        "    }\n"
        "  }\n"
        "})"
    )


def _handler_source(method: str, body: str) -> str:
    return f"      {method}: async ({{ request, params }}) => {{\n{indent(body, 8)}\n      }}"


def _uses_image_response(root: SgNode) -> bool:
    og = find_first(root, *import_queries("next/og"))
    return og is not None and any("ImageResponse" in node.text() for node in og.captures("IMPORTS"))


def _import_edits(root: SgNode, *, keep_next_server: bool) -> list[NodeEdit]:
    edits: list[NodeEdit] = []
    for imp in find_all(root, *import_queries("next/server")):
        if keep_next_server:
            continue
        names = [node.text() for node in imp.captures("IMPORTS")]
        uses_next_types = any("NextRequest" in n or "NextResponse" in n for n in names)
        edits.append(replace_node(imp.node, WEB_API_NOTE if uses_next_types else "", pass_id=PASS_ID))
    for imp in find_all(root, *import_queries("next/headers")):
        edits.append(replace_node(imp.node, START_SERVER_IMPORT, pass_id=PASS_ID))
    return edits


def _default_export_route(root: SgNode, route_path: str) -> list[NodeEdit]:
    default_export: Match | None = find_first(
        root, Query(pattern="export default { $$$METHODS }", kind="export_statement")
    )
    if default_export is None:
        return []
    methods_text = default_export.joined("METHODS", "\n")
    handlers = [
        f"      {found.group(1)}: async ({{ request, params }}) => {{\n        {found.group(3)}\n      }}"
        for found in _OBJECT_METHOD_RE.finditer(methods_text)
    ]
    if not handlers:
        return []
    return [
        replace_node(default_export.node, build_server_route(route_path, handlers), pass_id=PASS_ID)
    ]


def transform(tree: SourceTree) -> PassResult:
    if not ROUTE_FILE_RE.search(normalize_path(tree.path)):
        return None
    root = tree.node()
    route_path = expected_route_path(tree.path, tree.config, include_api=True) or "/"
    handlers = collect_handlers(root)
    if not handlers:
        edits = _default_export_route(root, route_path)
        if edits:
            record(tree, "automated", "medium")
        return edits or None

    keep_next_response = _uses_image_response(root)
    edits = _import_edits(root, keep_next_server=keep_next_response)
    for match in find_all(root, *_FORCE_STATIC_QUERIES):
        edits.append(replace_node(match.node, "", pass_id=PASS_ID))

    sources = [
        _handler_source(
            handler.method,
            rewrite_handler_body(
                handler.body,
                has_context=handler.has_context,
                keep_next_response=keep_next_response,
            ),
        )
        for handler in handlers
    ]
    record(tree, "automated", "medium", len(handlers))
    first, *rest = handlers
    edits.append(replace_node(first.node, build_server_route(route_path, sources), pass_id=PASS_ID))
    edits.extend(replace_node(handler.node, "", pass_id=PASS_ID) for handler in rest)
    return edits
