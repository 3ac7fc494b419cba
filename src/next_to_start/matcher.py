"""Thin boundary over the ast-grep structural matcher.

The rest of the package only composes ``Query`` values and consumes ``Match``
results; tree matching itself is delegated to ``ast_grep_py``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ast_grep_py import SgNode, SgRoot

TSX_LANGUAGE = "tsx"

Span = tuple[int, int]


@dataclass(frozen=True)
class Query:
    pattern: str | None = None
    kind: str | None = None
    regex: str | None = None

    def __post_init__(self) -> None:
        if self.pattern is None and self.kind is None:
            raise ValueError("Query requires a pattern or a kind.")

    def rule(self) -> dict[str, Any]:
        rule: dict[str, Any] = {}
        if self.pattern is not None:
            rule["pattern"] = self.pattern
        if self.kind is not None:
            rule["kind"] = self.kind
        if self.regex is not None:
            rule["regex"] = self.regex
        return rule


def node_span(node: SgNode) -> Span:
    node_range = node.range()
    return (node_range.start.index, node_range.end.index)


@dataclass(frozen=True)
class Match:
    node: SgNode

    @property
    def span(self) -> Span:
        return node_span(self.node)

    @property
    def text(self) -> str:
        return self.node.text()

    @property
    def kind(self) -> str:
        return self.node.kind()

    def capture(self, name: str) -> SgNode | None:
        return self.node.get_match(name)

    def captures(self, name: str) -> list[SgNode]:
        return [node for node in self.node.get_multiple_matches(name) if node.is_named()]

    def capture_text(self, name: str, default: str = "") -> str:
        captured = self.capture(name)
        return captured.text() if captured is not None else default

    def joined(self, name: str, separator: str) -> str:
        return separator.join(node.text() for node in self.captures(name))


def parse_source(source: str, language: str = TSX_LANGUAGE) -> SgRoot:
    return SgRoot(source, language)


def _rule_for(queries: tuple[Query, ...]) -> dict[str, Any]:
    if len(queries) == 1:
        return queries[0].rule()
    return {"any": [query.rule() for query in queries]}


def find_all(node: SgNode, *queries: Query) -> list[Match]:
    if not queries:
        return []
    seen: set[Span] = set()
    matches: list[Match] = []
    for found in node.find_all(**_rule_for(queries)):
        match = Match(found)
        if match.span in seen:
            continue
        seen.add(match.span)
        matches.append(match)
    matches.sort(key=lambda match: match.span)
    return matches


def find_first(node: SgNode, *queries: Query) -> Match | None:
    matches = find_all(node, *queries)
    return matches[0] if matches else None


def is_top_level(node: SgNode | None) -> bool:
    if node is None:
        return False
    parent = node.parent()
    return parent is not None and parent.kind() == "program"


def is_inside(node: SgNode, kind: str) -> bool:
    current = node.parent()
    while current is not None:
        if current.kind() == kind:
            return True
        current = current.parent()
    return False


def quoted_variants(template: str) -> tuple[str, str]:
    """Double- and single-quoted spellings of a pattern holding ``{q}``."""
    return (template.format(q='"'), template.format(q="'"))


def directive_queries(directive: str) -> tuple[Query, ...]:
    return tuple(
        Query(pattern=pattern, kind="expression_statement")
        for pattern in (
            f'"{directive}";',
            f"'{directive}';",
            f'"{directive}"',
            f"'{directive}'",
        )
    )


def import_queries(module: str) -> tuple[Query, ...]:
    return tuple(
        Query(pattern=pattern, kind="import_statement")
        for pattern in quoted_variants("import {{ $$$IMPORTS }} from {q}" + module + "{q}")
    )
