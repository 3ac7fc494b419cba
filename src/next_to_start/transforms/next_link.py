"""``next/link`` to the TanStack Router ``Link``."""

from __future__ import annotations

import math
import re
import warnings
from dataclasses import dataclass, field

from ast_grep_py import SgNode

from next_to_start.matcher import Match, Query, find_all
from next_to_start.refactor.model import NodeEdit, PassResult, SourceTree, replace_node
from next_to_start.transforms._common import ROUTER_MODULE, record

PASS_ID = "next-link"

SKIPPED_FILE_RE = re.compile(r"(route|middleware|instrumentation|proxy)\.(ts|js)")

_IMPORT_QUERY = Query(kind="import_statement", regex=r"from\s*['\"]next/link['\"]")
_ELEMENT_QUERIES = (
    Query(pattern="<Link $$$PROPS />", kind="jsx_self_closing_element"),
    Query(pattern="<Link $$$PROPS>$$$CHILDREN</Link>", kind="jsx_element"),
)
_LINK_IMPORT_RE = re.compile(
    r"^import\s+([A-Za-z_$][\w$]*)(?:\s*,\s*(\{[^}]*\}))?\s+from\s+['\"]next/link['\"]\s*;?$"
)
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_MEMBER_RE = re.compile(r"^([A-Za-z_$][\w$]*)\.([A-Za-z_$][\w$]*)$")
_TEMPLATE_EXPR_RE = re.compile(r"\$\{([^}]+)\}")
_EXTERNAL_HREF_RE = re.compile(r"^[\"'`]https?://")
_DROPPED_PROPS = frozenset({"as", "shallow", "locale", "legacyBehavior", "passHref"})


@dataclass
class TemplateHref:
    to: str | None
    params: list[str] = field(default_factory=list)
    search: str | None = None
    hash: str | None = None


def detect_migration_blockers(source: str) -> list[str]:
    blockers: list[str] = []
    imports_next_link = re.search(r"from\s*['\"]next/link['\"]", source) is not None
    imports_link_status = (
        re.search(
            r"import\s+[^;]*\buseLinkStatus\b[^;]*from\s*['\"]next/link['\"]", source
        )
        is not None
    )
    calls_link_status = re.search(r"\buseLinkStatus\s*\(", source) is not None
    if imports_link_status or (imports_next_link and calls_link_status):
        blockers.append("uses useLinkStatus")
    if (
        re.search(r"\buseMDXComponents\s*\(", source)
        or re.search(r"from\s*['\"]mdx/types['\"]", source)
        or re.search(r"\bMDXComponents\b", source)
    ):
        blockers.append("uses MDX component-map pattern")
    return blockers


def rewrite_link_import(import_text: str) -> str | None:
    normalized = re.sub(r"\s+", " ", import_text).strip()
    match = _LINK_IMPORT_RE.match(normalized)
    if match is None or match.group(1) != "Link":
        return None
    rewritten = f'import {{ Link }} from "{ROUTER_MODULE}";'
    named = (match.group(2) or "").strip()
    if not named:
        return rewritten
    return f'{rewritten}\nimport {named} from "next/link";'


def parse_search(query: str) -> str:
    entries = []
    for pair in query.split("&"):
        key, _, value = pair.partition("=")
        number = float(value) if _NUMBER_RE.match(value) else math.nan
        if not math.isfinite(number):
            entries.append(f'{key}: "{value}"')
            continue
        entries.append(f"{key}: {int(number) if number.is_integer() else number}")
    return "{ " + ", ".join(entries) + " }"


def parse_string_href(raw: str) -> tuple[str, str | None, str | None]:
    clean = re.sub(r"^['\"]|['\"]$", "", raw)
    before_hash, _, hash_part = clean.partition("#")
    path, _, query = before_hash.partition("?")
    return path, parse_search(query) if query else None, hash_part or None


def parse_template_href(template: str) -> TemplateHref:
    body = template[1:-1]
    before_hash, _, hash_part = body.partition("#")
    path_part, _, query = before_hash.partition("?")
    params: list[str] = []
    convertible = True

    def _param(match: re.Match[str]) -> str:
        nonlocal convertible
        expr = match.group(1).strip()
        if _IDENTIFIER_RE.match(expr):
            params.append(expr)
            return f"${expr}"
        member = _MEMBER_RE.match(expr)
        if member:
            params.append(f"{member.group(2)}: {expr}")
            return f"${member.group(2)}"
        convertible = False
        return "${" + expr + "}"

    to = _TEMPLATE_EXPR_RE.sub(_param, path_part)
    return TemplateHref(
        to=to if convertible else None,
        params=params,
        search=parse_search(query) if query else None,
        hash=hash_part or None,
    )


def parse_href_object(text: str) -> tuple[str | None, str | None, str | None]:
    pathname = re.search(r"pathname:\s*(['\"`])(.*?)\1", text)
    query = re.search(r"query:\s*(\{[^}]*\}|\w+)", text)
    hash_match = re.search(r"hash:\s*(['\"`])(.*?)\1", text)
    return (
        f'"{pathname.group(2)}"' if pathname else None,
        query.group(1) if query else None,
        f'"{hash_match.group(2)}"' if hash_match else None,
    )


def unwrap_jsx_expression(value: str) -> str | None:
    trimmed = value.strip()
    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        return None
    return trimmed[1:-1].strip()


def _href_props(raw: str) -> list[str]:
    expression = unwrap_jsx_expression(raw)
    if expression is not None and expression.startswith("{") and expression.endswith("}"):
        pathname, search, hash_value = parse_href_object(expression)
        props = []
        if pathname:
            props.append(f"to={pathname}")
        if search:
            props.append(f"search={{{search}}}")
        if hash_value:
            props.append(f"hash={hash_value}")
        return props
    if expression is not None and expression.startswith("`") and expression.endswith("`"):
        parsed = parse_template_href(expression)
        props = [f'to="{parsed.to}"' if parsed.to is not None else f"to={{{expression}}}"]
        if parsed.params:
            props.append(f"params={{{{ {', '.join(parsed.params)} }}}}")
        if parsed.search:
            props.append(f"search={{{parsed.search}}}")
        if parsed.hash:
            props.append(f'hash="{parsed.hash}"')
        return props
    if expression:
        return [f"to={{{expression}}}"]
    path, search, hash_value = parse_string_href(raw)
    props = [f'to="{path}"']
    if search:
        props.append(f"search={{{search}}}")
    if hash_value:
        props.append(f'hash="{hash_value}"')
    return props


@dataclass(frozen=True)
class LinkRewrite:
    opening: str
    tag: str


def rewrite_link_props(props: list[SgNode]) -> LinkRewrite:
    new_props: list[str] = []
    external_href: str | None = None
    for prop in props:
        name_node = prop.child(0)
        initializer = prop.child(2)
        if name_node is None or initializer is None:
            continue
        name = name_node.text()
        raw = initializer.text().strip()
        if name == "href":
            if _EXTERNAL_HREF_RE.match(raw):
                external_href = raw
                continue
            new_props.extend(_href_props(raw))
            continue
        if name == "scroll":
            new_props.append("resetScroll={" + re.sub(r"[{}]", "", raw) + "}")
            continue
        if name == "prefetch":
            value = re.sub(r"[{}]", "", raw).strip()
            if value == "true":
                new_props.append('preload="intent"')
            elif value == "false":
                new_props.append("preload={false}")
            else:
                new_props.append(f'preload={{{value} ? "intent" : false}}')
            continue
        if name in _DROPPED_PROPS:
            continue
        new_props.append(prop.text())

    props_text = " ".join(new_props)
    if external_href is not None:
        return LinkRewrite(opening=f"<a href={external_href} {props_text}".rstrip(), tag="a")
    return LinkRewrite(opening=f"<Link {props_text}".rstrip(), tag="Link")


def _element_edits(element: Match) -> list[NodeEdit]:
    rewrite = rewrite_link_props(element.captures("PROPS"))
    if element.kind == "jsx_self_closing_element":
        return [replace_node(element.node, f"{rewrite.opening} />", pass_id=PASS_ID)]
    # Only the tags are replaced so edits inside the children stay independent.
    children = element.node.children()
    edits = [replace_node(children[0], f"{rewrite.opening}>", pass_id=PASS_ID)]
    if rewrite.tag != "Link":
        edits.append(replace_node(children[-1], f"</{rewrite.tag}>", pass_id=PASS_ID))
    return edits


def transform(tree: SourceTree) -> PassResult:
    if SKIPPED_FILE_RE.search(tree.path):
        return None
    root = tree.node()
    imports = find_all(root, _IMPORT_QUERY)
    if not imports:
        return None

    blockers = detect_migration_blockers(root.text())
    if blockers:
        record(tree, "blocked")
        warnings.warn(
            f"[next-link] Skipping {tree.path} ({', '.join(blockers)})",
            RuntimeWarning,
            stacklevel=2,
        )
        return None

    edits: list[NodeEdit] = []
    for match in imports:
        rewritten = rewrite_link_import(match.text)
        if rewritten is not None:
            edits.append(replace_node(match.node, rewritten, pass_id=PASS_ID))
    if not edits:
        return None

    for element in find_all(root, *_ELEMENT_QUERIES):
        record(tree, "automated", "low")
        edits.extend(_element_edits(element))
    return edits
