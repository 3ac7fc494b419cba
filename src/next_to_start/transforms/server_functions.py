"""Convert ``"use server"`` functions into ``createServerFn`` builders."""

from __future__ import annotations

import re

from ast_grep_py import SgNode

from next_to_start.matcher import (
    Match,
    Query,
    Span,
    directive_queries,
    find_all,
    find_first,
    import_queries,
    is_top_level,
    node_span,
)
from next_to_start.refactor.model import (
    NodeEdit,
    PassResult,
    SourceTree,
    insert_around,
    replace_node,
    wrap_edit,
)
from next_to_start.transforms._common import (
    ROUTER_MODULE,
    START_MODULE,
    indent,
    parse_import_specifiers,
    record,
    unique,
)

PASS_ID = "next-server-functions"

SERVER_ACTION_MODULE_RE = re.compile(r".*(actions|server|functions).*")

_INLINE_DECLARATION_QUERIES = tuple(
    Query(pattern=pattern, kind="function_declaration")
    for directive in ('"use server";', "'use server';")
    for pattern in (
        f"async function $NAME($$$PARAMS) {{ {directive} $$$BODY }}",
        f"async function $NAME($$$PARAMS): $RETURNS {{ {directive} $$$BODY }}",
    )
)
_INLINE_ARROW_QUERIES = tuple(
    Query(pattern=pattern, kind="lexical_declaration")
    for directive in ('"use server";', "'use server';")
    for pattern in (
        f"const $NAME = async ($$$PARAMS) => {{ {directive} $$$BODY }}",
        f"const $NAME = async ($$$PARAMS): $RETURNS => {{ {directive} $$$BODY }}",
    )
)
_FILE_LEVEL_QUERIES = (
    Query(pattern="async function $NAME($$$PARAMS) { $$$BODY }", kind="function_declaration"),
    Query(
        pattern="async function $NAME($$$PARAMS): $RETURNS { $$$BODY }",
        kind="function_declaration",
    ),
    Query(pattern="const $NAME = async ($$$PARAMS) => { $$$BODY }", kind="lexical_declaration"),
    Query(
        pattern="const $NAME = async ($$$PARAMS): $RETURNS => { $$$BODY }",
        kind="lexical_declaration",
    ),
)
_NAMED_IMPORT_QUERY = Query(pattern="import { $$$IMPORTS } from $PATH", kind="import_statement")
_FORM_ACTION_QUERY = Query(
    pattern="<form action={$ACTION}>$$$CHILDREN</form>", kind="jsx_element"
)
_ON_CLICK_QUERY = Query(pattern="onClick={$EXPR}", kind="jsx_attribute")

_MANUAL_CALL_RE = re.compile(r"revalidatePath\s*\(|revalidateTag\s*\(|(?:await\s+)?cookies\s*\(")
_BODY_REWRITES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[\"']use server[\"'];?"), ""),
    (
        re.compile(r"revalidatePath\(([^)]+)\);?"),
        r"// TODO: Replace with queryClient.invalidateQueries() - revalidatePath(\1);",
    ),
    (
        re.compile(r"revalidateTag\(([^)]+)\);?"),
        r"// TODO: Replace with queryClient.invalidateQueries() - revalidateTag(\1);",
    ),
    (
        re.compile(r"const\s+(\w+)\s*=\s*(?:await\s*)?cookies\(\);?"),
        '// TODO: Replace cookies() with getRequestHeader("cookie") and a cookie parser\n'
        r"const \1 = (undefined as any);",
    ),
    (
        re.compile(r"const\s+(\w+)\s*=\s*(?:await\s*)?headers\(\);?"),
        r"const \1 = getRequest().headers;",
    ),
)


def rewrite_server_body(body: str, params: str) -> str:
    rewritten = body
    for pattern, replacement in _BODY_REWRITES:
        rewritten = pattern.sub(replacement, rewritten)
    if ("formData" in params or "FormData" in params) and "data.get(" not in rewritten:
        rewritten = f"// FormData is automatically validated\n{rewritten}"
    return rewritten


def _param_name(param: str) -> str:
    return param.strip().split(":")[0].split("=")[0].strip()


def build_server_fn(name: str, params: str, body: str, *, exported: bool) -> str:
    """Source text of a ``createServerFn`` builder replacing one server function."""
    prefix = "export const" if exported else "const"
    rewritten = rewrite_server_body(body, params)
    head = f'{prefix} {name} = createServerFn({{ method: "POST" }})'
    if "formData" in params or "FormData" in params:
        return (
            f"{head}\n"
            "  .inputValidator((data: unknown) => {\n"
            "    if (!(data instanceof FormData)) {\n"
            '      throw new Error("Expected FormData");\n'
            "    }\n"
            "    return data;\n"
            "  })\n"
            "  .handler(async ({ data: formData }) => {\n"
            f"{indent(rewritten, 4)}\n"
            "  });"
        )
    if params.strip():
        names = ", ".join(_param_name(param) for param in params.split(","))
        return (
            f"{head}\n"
            f"  .inputValidator((data: {{ {params} }}) => data)\n"
            "  .handler(async ({ data }) => {\n"
            f"    const {{ {names} }} = data;\n"
            f"{indent(rewritten, 4)}\n"
            "  });"
        )
    return f"{head}\n  .handler(async () => {{\n{indent(rewritten, 4)}\n  }});"


def _params_text(match: Match) -> str:
    params = find_first(match.node, Query(kind="formal_parameters"))
    if params is not None:
        return re.sub(r"^\(|\)$", "", params.text).strip()
    return match.joined("PARAMS", ", ").strip()


class _Rewrites:
    """Pending edits for one file, composable on the same node.

    Text placed before or after a node stays an insertion until the node itself
    is replaced.
    """

    def __init__(self) -> None:
        self._pending: dict[Span, NodeEdit] = {}

    def __contains__(self, node: SgNode) -> bool:
        return node_span(node) in self._pending

    def replace(self, node: SgNode, text: str) -> None:
        self._pending[node_span(node)] = replace_node(node, text, pass_id=PASS_ID)

    def prefix(self, node: SgNode, text: str) -> None:
        self._insert(insert_around(node, before=text, pass_id=PASS_ID))

    def append(self, node: SgNode, text: str) -> None:
        self._insert(insert_around(node, after=text, pass_id=PASS_ID))

    def _insert(self, insertion: NodeEdit) -> None:
        previous = self._pending.get(insertion.span)
        self._pending[insertion.span] = (
            insertion if previous is None else wrap_edit(previous, insertion)
        )

    def edits(self) -> list[NodeEdit]:
        return list(self._pending.values())


def _count_manual_calls(tree: SourceTree, body: str) -> None:
    manual = len(_MANUAL_CALL_RE.findall(body))
    if manual:
        record(tree, "manual", "medium", manual)


def _rewrite_client_usages(root: SgNode, tree: SourceTree, rewrites: _Rewrites) -> None:
    for imp in find_all(root, _NAMED_IMPORT_QUERY):
        module = imp.capture_text("PATH").strip("'\"")
        if not SERVER_ACTION_MODULE_RE.match(module):
            continue
        for raw in parse_import_specifiers(imp.text):
            local = re.split(r"\s+as\s+", re.sub(r"^type\s+", "", raw).strip())[-1].strip()
            if not re.match(r"^[A-Za-z_$][\w$]*$", local):
                continue
            for form in find_all(root, _FORM_ACTION_QUERY):
                if form.capture_text("ACTION") != local:
                    continue
                children = "".join(node.text() for node in form.node.get_multiple_matches("CHILDREN"))
                record(tree, "automated", "medium")
                rewrites.replace(
                    form.node,
                    "<form onSubmit={async (e) => {\n"
                    "    e.preventDefault();\n"
                    "    const formData = new FormData(e.currentTarget);\n"
                    f"    await {local}({{ data: formData }});\n"
                    f"  }}}}>{children}</form>",
                )
            call_re = re.compile(
                rf"^\s*\(?\s*(?:async\s*)?\(?[^)]*\)?\s*=>\s*{re.escape(local)}\s*\((.*)\)\s*$"
            )
            for handler in find_all(root, _ON_CLICK_QUERY):
                called = call_re.match(handler.capture_text("EXPR"))
                if called is None:
                    continue
                args = called.group(1).strip()
                payload = f"{{ data: {{ {args} }} }}" if args else "{ data: {} }"
                rewrites.replace(handler.node, f"onClick={{() => {local}({payload})}}")


def _move_navigation_imports(root: SgNode, rewrites: _Rewrites) -> None:
    for imp in find_all(root, *import_queries("next/navigation")):
        moved: list[str] = []
        remaining: list[str] = []
        for name in parse_import_specifiers(imp.text):
            if re.match(r"^(notFound|redirect)(\s+as\s+.+)?$", name):
                moved.append(name)
            else:
                remaining.append(name)
        if not moved:
            continue
        lines = []
        if remaining:
            lines.append(f'import {{ {", ".join(remaining)} }} from "next/navigation";')
        lines.append(f'import {{ {", ".join(unique(moved))} }} from "{ROUTER_MODULE}";')
        rewrites.replace(imp.node, "\n".join(lines))


def transform(tree: SourceTree) -> PassResult:
    root = tree.node()
    rewrites = _Rewrites()
    hoisted: list[str] = []
    first_target: SgNode | None = None

    directives = find_all(root, *directive_queries("use server"))
    top_level_directives = [match.node for match in directives if is_top_level(match.node)]
    file_level = bool(top_level_directives)

    def convert(match: Match, *, require_export: bool) -> None:
        nonlocal first_target
        parent = match.node.parent()
        exported = parent is not None and parent.kind() == "export_statement"
        if require_export and not exported:
            return
        target = parent if exported and parent is not None else match.node
        if target in rewrites:
            return
        name = match.capture_text("NAME", "anonymous")
        body = match.joined("BODY", "\n")
        _count_manual_calls(tree, body)
        code = build_server_fn(name, _params_text(match), body, exported=exported)
        record(tree, "automated", "medium")
        if is_top_level(target):
            rewrites.replace(target, code)
            if first_target is None:
                first_target = target
        else:
            hoisted.append(code)
            rewrites.replace(target, "")

    for match in find_all(root, *_INLINE_DECLARATION_QUERIES, *_INLINE_ARROW_QUERIES):
        convert(match, require_export=False)
    if file_level:
        for match in find_all(root, *_FILE_LEVEL_QUERIES):
            convert(match, require_export=True)
    converted = first_target is not None or bool(hoisted)

    specifiers: list[str] = []
    if converted:
        specifiers.append("createServerFn")
    if has_client_directive(root):
        _rewrite_client_usages(root, tree, rewrites)
        if "useServerFn" in root.text():
            specifiers.append("useServerFn")

    if converted or file_level:
        _move_navigation_imports(root, rewrites)

    directive_reused: SgNode | None = None
    if specifiers:
        existing = find_first(root, *import_queries(START_MODULE))
        first_import = find_first(root, Query(kind="import_statement"))
        if existing is not None:
            current = [node.text().strip() for node in existing.captures("IMPORTS")]
            merged = unique([*current, *specifiers])
            if merged != current:
                rewrites.replace(
                    existing.node, f'import {{ {", ".join(merged)} }} from "{START_MODULE}";'
                )
        else:
            statement = f'import {{ {", ".join(specifiers)} }} from "{START_MODULE}";'
            if first_import is not None:
                rewrites.prefix(first_import.node, f"{statement}\n")
            elif top_level_directives:
                directive_reused = top_level_directives[0]
                rewrites.replace(directive_reused, statement)
            elif first_target is not None:
                rewrites.prefix(first_target, f"{statement}\n")
            elif hoisted:
                hoisted.insert(0, statement)

    if hoisted:
        block = "\n\n".join(hoisted)
        imports = find_all(root, Query(kind="import_statement"))
        if imports:
            last_import = imports[-1].node
            rewrites.append(last_import, f"\n\n{block}")
        elif directive_reused is not None:
            rewrites.append(directive_reused, f"\n{block}")
        elif top_level_directives:
            directive_reused = top_level_directives[0]
            rewrites.replace(directive_reused, block)
        elif first_target is not None:
            rewrites.prefix(first_target, f"{block}\n")
        else:
            first_child = root.child(0)
            if first_child is not None:
                rewrites.prefix(first_child, f"{block}\n")

    for directive in top_level_directives:
        if directive_reused is not None and node_span(directive) == node_span(directive_reused):
            continue
        rewrites.replace(directive, "")

    edits = rewrites.edits()
    return edits or None


def has_client_directive(root: SgNode) -> bool:
    return find_first(root, *directive_queries("use client")) is not None
