"""Rewrite route-role modules into file-route declarations.

Two passes live here: ``route-file-structure`` turns the default export of a
page/layout/loading/error/not-found module into a ``Route`` declaration, and
``route-groups`` handles layouts inside route groups and parallel-route slots.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ast_grep_py import SgNode

from next_to_start.matcher import Match, Query, Span, find_all, find_first, import_queries
from next_to_start.refactor.model import (
    NodeEdit,
    PassResult,
    SourceTree,
    insert_around,
    replace_node,
)
from next_to_start.routing.paths import (
    RouteLocation,
    expected_route_path,
    is_excluded_route,
    locate_in_app_directory,
)
from next_to_start.transforms._common import (
    DEFAULT_EXPORT_FUNCTION_QUERIES,
    ROUTER_MODULE,
    build_function,
    ensure_named_import,
    fold_edit,
    indent,
    parse_import_specifiers,
    record,
    unique,
)

FILE_STRUCTURE_PASS_ID = "route-file-structure"
ROUTE_GROUPS_PASS_ID = "route-groups"

TEMPLATE_TODO = (
    "// TODO: Next.js template.tsx has no direct TanStack Start equivalent. Migrate manually."
)
OPTIONAL_CATCH_ALL_TODO = (
    "// TODO(tanstack-migrate): optional catch-all segment became a required splat; "
    "verify the bare path still resolves."
)
PARALLEL_ROUTE_MARKER = "Parallel routes @folder need manual migration"
PARALLEL_ROUTE_TODO = (
    f"// TODO: {PARALLEL_ROUTE_MARKER}\n"
    "// Convert to conditional rendering or separate routes with layout composition"
)

_ROLE_RE = re.compile(r"^(page|layout|loading|error|not-found|template)\.(tsx|jsx|ts|js)$")
_OPTIONAL_CATCH_ALL_RE = re.compile(r"^\[\[\.\.\.[^\]]+\]\]$")
_GROUP_RE = re.compile(r"^\(([^)]+)\)$")
_CHILDREN_RE = re.compile(r"{\s*children\s*}")
_PROPS_CHILDREN_RE = re.compile(r"{\s*props\.children\s*}")
_AWAIT_PARAMS_RE = re.compile(r"await\s+params\.([A-Za-z_$][\w$]*)")
_SEARCH_PARAMS_RE = re.compile(r"\bsearchParams\.([A-Za-z_$][\w$]*)")
_PATHNAME_CALL_RE = re.compile(r"\busePathname\(\)")
_SEARCH_PARAMS_CALL_RE = re.compile(r"\buseSearchParams\(\)")

# role -> (route option, generated component name, keeps the original parameters)
_COMPONENT_ROLES: dict[str, tuple[str, str, bool]] = {
    "page": ("component", "", True),
    "loading": ("pendingComponent", "PendingComponent", False),
    "error": ("errorComponent", "RouteErrorComponent", True),
    "not-found": ("notFoundComponent", "NotFoundComponent", False),
}

_ARROW_DEFAULT_QUERY = Query(
    pattern="export default ($$$PROPS) => { $$$BODY }", kind="export_statement"
)
_GROUP_LAYOUT_QUERY = Query(
    pattern="export default function $NAME($$$PROPS) { $$$BODY }", kind="export_statement"
)
_AWAIT_PARAMS_QUERY = Query(pattern="await params.$PARAM", kind="await_expression")
_USE_SEARCH_QUERY = Query(pattern="useSearch($$$ARGS)", kind="call_expression")
_SEARCH_PARAMS_QUERY = Query(pattern="searchParams.$PARAM", kind="member_expression")
_PATHNAME_CALL_QUERY = Query(pattern="usePathname()", kind="call_expression")
_SEARCH_PARAMS_CALL_QUERY = Query(pattern="useSearchParams()", kind="call_expression")


@dataclass(frozen=True)
class UsageRewrites:
    """Expression-level rewrites shared by generated bodies and in-place edits."""

    pathname: bool = False
    search_params: bool = False
    search: bool = False

    def apply(self, text: str) -> str:
        text = _AWAIT_PARAMS_RE.sub(r"params.\1", text)
        if self.pathname:
            text = _PATHNAME_CALL_RE.sub("useLocation().pathname", text)
        if self.search_params:
            text = _SEARCH_PARAMS_CALL_RE.sub("useSearch()", text)
        if self.search:
            text = _SEARCH_PARAMS_RE.sub(r"search.\1", text)
        return text


def _with_outlet(body: str) -> str:
    return _PROPS_CHILDREN_RE.sub("<Outlet />", _CHILDREN_RE.sub("<Outlet />", body))


def _params_text(match: Match) -> str:
    params = find_first(match.node, Query(kind="formal_parameters"))
    if params is not None:
        return params.text.strip()[1:-1].strip()
    return match.joined("PROPS", ", ")


def _is_async(match: Match) -> bool:
    return "async function" in match.text


def _route_declaration(route_path: str, option: str, component: str, *, note: str = "") -> str:
    lead = f"{note}\n" if note else ""
    return (
        f"{lead}export const Route = createFileRoute('{route_path}')({{\n"
        f"  {option}: {component},\n"
        "})"
    )


def _route_location(tree: SourceTree) -> RouteLocation | None:
    if "node_modules" in tree.path:
        return None
    return locate_in_app_directory(tree.path, tree.config)


def _inside(span: Span, covered: list[Span]) -> bool:
    return any(start <= span[0] and span[1] <= end for start, end in covered)


def _rewrite_default_export(
    tree: SourceTree,
    role: str,
    location: RouteLocation,
    rewrites: UsageRewrites,
    specifiers: list[str],
) -> list[NodeEdit]:
    root = tree.node()
    route_path = expected_route_path(tree.path, tree.config) or "/"
    note = (
        OPTIONAL_CATCH_ALL_TODO
        if any(_OPTIONAL_CATCH_ALL_RE.match(s) for s in location.route_segments)
        else ""
    )
    exported = find_first(root, *DEFAULT_EXPORT_FUNCTION_QUERIES)

    if role == "template":
        if exported is None or TEMPLATE_TODO in exported.text:
            return []
        record(tree, "manual", "high")
        return [
            insert_around(
                exported.node,
                before=f"{TEMPLATE_TODO}\n",
                pass_id=FILE_STRUCTURE_PASS_ID,
            )
        ]

    if role == "layout":
        if exported is None:
            return []
        body = rewrites.apply(_with_outlet(exported.joined("BODY", "\n")))
        specifiers.append("Outlet")
        if not location.route_segments:
            specifiers.append("createRootRoute")
            declaration = (
                "export const Route = createRootRoute({\n  component: RootComponent,\n})"
            )
            component = build_function("RootComponent", "", body, is_async=_is_async(exported))
        else:
            specifiers.append("createFileRoute")
            declaration = _route_declaration(route_path, "component", "LayoutComponent", note=note)
            component = build_function(
                "LayoutComponent", _params_text(exported), body, is_async=_is_async(exported)
            )
        record(tree, "automated", "medium")
        return [
            replace_node(
                exported.node, f"{declaration}\n\n{component}", pass_id=FILE_STRUCTURE_PASS_ID
            )
        ]

    option, fixed_name, keeps_params = _COMPONENT_ROLES[role]
    if exported is not None:
        target = exported
        name = fixed_name or exported.capture_text("NAME", "Page")
        is_async = _is_async(exported)
    else:
        arrow = find_first(root, _ARROW_DEFAULT_QUERY) if role == "page" else None
        if arrow is None:
            return []
        target = arrow
        name = "RouteComponent"
        is_async = False
    params = _params_text(target) if keeps_params else ""
    component = build_function(
        name, params, rewrites.apply(target.joined("BODY", "\n")), is_async=is_async
    )
    specifiers.append("createFileRoute")
    record(tree, "automated", "medium")
    declaration = _route_declaration(route_path, option, name, note=note)
    return [
        replace_node(target.node, f"{declaration}\n\n{component}", pass_id=FILE_STRUCTURE_PASS_ID)
    ]


def _navigation_renames(root: SgNode) -> tuple[bool, bool]:
    names = [
        re.split(r"\s+as\s+", name)[0]
        for imp in find_all(root, *import_queries("next/navigation"))
        for name in parse_import_specifiers(imp.text)
    ]
    return "usePathname" in names, "useSearchParams" in names


def _rewrite_navigation_imports(root: SgNode, specifiers: list[str]) -> list[NodeEdit]:
    """Move navigation hooks to the router import, taking pending router specifiers along."""
    edits: list[NodeEdit] = []
    for imp in find_all(root, *import_queries("next/navigation")):
        router_imports: list[str] = []
        remaining: list[str] = []
        for name in parse_import_specifiers(imp.text):
            if re.match(r"^(useRouter|notFound)(\s+as\s+.+)?$", name):
                router_imports.append(name)
            elif re.match(r"^usePathname(\s+as\s+.+)?$", name):
                router_imports.append(re.sub(r"^usePathname", "useLocation", name))
            elif re.match(r"^useSearchParams(\s+as\s+.+)?$", name):
                router_imports.append(re.sub(r"^useSearchParams", "useSearch", name))
            else:
                remaining.append(name)
        if not router_imports:
            continue
        if specifiers:
            router_imports.extend(specifiers)
            specifiers.clear()
        lines: list[str] = []
        if remaining:
            lines.append(f'import {{ {", ".join(remaining)} }} from "next/navigation"')
        lines.append(f'import {{ {", ".join(unique(router_imports))} }} from "{ROUTER_MODULE}"')
        edits.append(replace_node(imp.node, "\n".join(lines), pass_id=FILE_STRUCTURE_PASS_ID))
    return edits


def _usage_edits(root: SgNode, rewrites: UsageRewrites, covered: list[Span]) -> list[NodeEdit]:
    queries = [_AWAIT_PARAMS_QUERY]
    if rewrites.pathname:
        queries.append(_PATHNAME_CALL_QUERY)
    if rewrites.search_params:
        queries.append(_SEARCH_PARAMS_CALL_QUERY)
    if rewrites.search:
        queries.append(_SEARCH_PARAMS_QUERY)
    edits: list[NodeEdit] = []
    for usage in find_all(root, *queries):
        if _inside(usage.span, covered):
            continue
        rewritten = rewrites.apply(usage.text)
        if rewritten != usage.text:
            edits.append(replace_node(usage.node, rewritten, pass_id=FILE_STRUCTURE_PASS_ID))
    return edits


def file_structure_transform(tree: SourceTree) -> PassResult:
    location = _route_location(tree)
    if location is None:
        return None
    if is_excluded_route(location.route_segments, location.filename):
        record(tree, "blocked")
        return None
    if ".route." in location.filename or location.filename.startswith("__root."):
        return None

    root = tree.node()
    specifiers: list[str] = []
    pathname, search_params = _navigation_renames(root)
    rewrites = UsageRewrites(
        pathname=pathname,
        search_params=search_params,
        search=find_first(root, _USE_SEARCH_QUERY) is not None,
    )

    edits: list[NodeEdit] = []
    role = _ROLE_RE.match(location.filename)
    if role is not None:
        edits.extend(
            _rewrite_default_export(tree, role.group(1), location, rewrites, specifiers)
        )
    edits.extend(_usage_edits(root, rewrites, [edit.span for edit in edits]))

    edits.extend(_rewrite_navigation_imports(root, specifiers))
    if specifiers:
        fold_edit(
            edits,
            ensure_named_import(
                root, specifiers, module=ROUTER_MODULE, pass_id=FILE_STRUCTURE_PASS_ID
            ),
        )
    return edits or None


def group_component_name(group: str) -> str:
    """Identifier for the pathless layout generated from a ``(group)`` folder."""
    words = [word for word in re.split(r"[^A-Za-z0-9_$]+", group) if word]
    if not words:
        return "GroupLayout"
    head, *rest = words
    name = head + "".join(word[:1].upper() + word[1:] for word in rest)
    if name[0].isdigit():
        name = f"_{name}"
    return f"{name}Layout"


def route_groups_transform(tree: SourceTree) -> PassResult:
    location = _route_location(tree)
    if location is None:
        return None
    root = tree.node()
    edits: list[NodeEdit] = []
    specifiers: list[str] = []

    groups = [m.group(1) for m in map(_GROUP_RE.match, location.route_segments) if m]
    if groups and location.filename.startswith("layout."):
        layout = find_first(root, _GROUP_LAYOUT_QUERY)
        if layout is not None:
            specifiers.extend(["createFileRoute", "Outlet"])
            component = group_component_name(groups[0])
            body = _with_outlet(layout.joined("BODY", "\n"))
            route_path = expected_route_path(tree.path, tree.config) or "/"
            replacement = (
                f"// Route group: {groups[0]}\n"
                f"function {component}() {{\n{indent(body, 2)}\n}}\n\n"
                f"{_route_declaration(route_path, 'component', component)}"
            )
            record(tree, "automated", "medium")
            edits.append(replace_node(layout.node, replacement, pass_id=ROUTE_GROUPS_PASS_ID))

    if any(segment.startswith("@") for segment in location.route_segments):
        first_export = find_first(root, Query(kind="export_statement"))
        if first_export is not None and PARALLEL_ROUTE_MARKER not in root.text():
            record(tree, "manual", "high")
            edits.append(
                insert_around(
                    first_export.node,
                    before=f"{PARALLEL_ROUTE_TODO}\n",
                    pass_id=ROUTE_GROUPS_PASS_ID,
                )
            )

    if specifiers:
        fold_edit(
            edits,
            ensure_named_import(
                root, specifiers, module=ROUTER_MODULE, pass_id=ROUTE_GROUPS_PASS_ID
            ),
        )
    return edits or None
