"""``next/image`` to ``@unpic/react``."""

from __future__ import annotations

import re

from ast_grep_py import SgNode

from next_to_start.matcher import Query, find_all, quoted_variants
from next_to_start.refactor.model import NodeEdit, PassResult, SourceTree, replace_node
from next_to_start.transforms._common import record

PASS_ID = "next-image"

SKIPPED_FILE_RE = re.compile(r"(route|middleware|instrumentation|proxy)\.(ts|js)")
UNPIC_IMPORT = 'import { Image } from "@unpic/react";'

_DROPPED_PROPS = frozenset(
    {"quality", "unoptimized", "loader", "loaderFile", "objectFit", "preload"}
)
_IMPORT_QUERIES = tuple(
    Query(pattern=pattern, kind="import_statement")
    for pattern in quoted_variants("import Image from {q}next/image{q}")
)
_ELEMENT_QUERIES = (
    Query(pattern="<Image $$$PROPS />", kind="jsx_self_closing_element"),
    Query(pattern="<Image $$$PROPS>$$$CHILDREN</Image>", kind="jsx_element"),
)


def _literal_is(value: str, literal: str) -> bool:
    return f'"{literal}"' in value or f"'{literal}'" in value


def rewrite_image_props(props: list[SgNode]) -> list[str]:
    new_props: list[str] = []
    has_fill = False
    has_explicit_layout = False
    has_width = False
    has_height = False
    placeholder_blur = False
    blur_data_url = ""
    has_priority = False

    for prop in props:
        name_node = prop.child(0)
        if name_node is None:
            continue
        name = name_node.text()
        initializer = prop.child(2)
        value = initializer.text() if initializer is not None else ""

        if name == "fill":
            has_fill = True
            continue
        if name == "layout":
            if _literal_is(value, "fill"):
                has_fill = True
                continue
            has_explicit_layout = True
            new_props.append(prop.text())
            continue
        if name == "width":
            has_width = True
        if name == "height":
            has_height = True
        if name == "priority":
            has_priority = True
        if name == "placeholder":
            placeholder_blur = placeholder_blur or _literal_is(value, "blur")
            continue
        if name == "blurDataURL":
            blur_data_url = value
            continue
        if name == "loading":
            if _literal_is(value, "eager") and not has_priority:
                new_props.append("priority")
                has_priority = True
            continue
        if name == "onLoadingComplete":
            if initializer is not None:
                new_props.append(f"onLoad={value}")
            continue
        if name in _DROPPED_PROPS:
            continue
        new_props.append(prop.text())

    if has_fill:
        new_props.append('layout="fullWidth"')
    elif has_width and has_height and not has_explicit_layout:
        new_props.append('layout="constrained"')

    if placeholder_blur:
        new_props.append(f"background={blur_data_url}" if blur_data_url else 'background="auto"')
    return new_props


def transform(tree: SourceTree) -> PassResult:
    if SKIPPED_FILE_RE.search(tree.path):
        return None
    root = tree.node()
    imports = find_all(root, *_IMPORT_QUERIES)
    if not imports:
        return None

    edits: list[NodeEdit] = [
        replace_node(match.node, UNPIC_IMPORT, pass_id=PASS_ID) for match in imports
    ]
    for element in find_all(root, *_ELEMENT_QUERIES):
        props = " ".join(rewrite_image_props(element.captures("PROPS")))
        record(tree, "automated", "low")
        if element.kind == "jsx_self_closing_element":
            edits.append(replace_node(element.node, f"<Image {props} />", pass_id=PASS_ID))
        else:
            opening = element.node.children()[0]
            edits.append(replace_node(opening, f"<Image {props}>", pass_id=PASS_ID))
    return edits
