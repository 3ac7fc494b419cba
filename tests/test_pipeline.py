from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import pytest

from next_to_start.context import RunContext
from next_to_start.exceptions import (
    RelocationConflictError,
    RouteMismatchError,
    SourceDecodeError,
)
from next_to_start.matcher import Query, find_first
from next_to_start.refactor.model import PassResult, SourceTree, replace_node
from next_to_start.refactor.pipeline import migrate_file, migrate_source
from next_to_start.transforms.route_structure import PARALLEL_ROUTE_MARKER
from tests.env_helpers import isolated_environ

PAGE = "export default function Page() {\n  return <div>Hi</div>;\n}\n"
ROOT_LAYOUT = (
    "export default function RootLayout({ children }) {\n"
    "  return <html><body>{children}</body></html>;\n"
    "}\n"
)
LINK_PAGE = (
    'import Link from "next/link";\n'
    "\n"
    "export default function Page() {\n"
    '  return <Link href="/about">About</Link>;\n'
    "}\n"
)
NAV = (
    'import Link from "next/link";\n'
    "\n"
    "export function Nav() {\n"
    '  return <Link href="/about">About</Link>;\n'
    "}\n"
)

WriteTree = Callable[[dict[str, str]], Path]


def test_route_page_is_rewritten_and_moved(write_tree: WriteTree, run_context: RunContext) -> None:
    root = write_tree({"app/blog/page.tsx": PAGE, "app/page.tsx": PAGE})
    outcome = migrate_file(root / "app/blog/page.tsx", run_context)

    target = root / "routes/blog/index.tsx"
    assert outcome.moved is True
    assert outcome.changed is True
    assert outcome.target_path == str(target)
    assert "createFileRoute('/blog')" in target.read_text(encoding="utf-8")
    assert not (root / "app/blog").exists()
    assert (root / "app/page.tsx").exists()


def test_second_run_is_a_no_op(write_tree: WriteTree, run_context: RunContext) -> None:
    root = write_tree({"app/blog/page.tsx": PAGE})
    migrate_file(root / "app/blog/page.tsx", run_context)
    moved_text = (root / "routes/blog/index.tsx").read_text(encoding="utf-8")

    outcome = migrate_file(root / "routes/blog/index.tsx", RunContext(environ=isolated_environ()))
    assert outcome.changed is False
    assert outcome.target_path is None
    assert (root / "routes/blog/index.tsx").read_text(encoding="utf-8") == moved_text


def test_root_layout_moves_to_root_route(write_tree: WriteTree, run_context: RunContext) -> None:
    root = write_tree({"app/layout.tsx": ROOT_LAYOUT})
    outcome = migrate_file(root / "app/layout.tsx", run_context)
    text = (root / "routes/__root.tsx").read_text(encoding="utf-8")
    assert outcome.moved is True
    assert "createRootRoute({" in text
    assert "<Outlet />" in text
    assert (root / "app").is_dir()


def test_dry_run_returns_text_without_touching_files(write_tree: WriteTree) -> None:
    root = write_tree({"app/blog/page.tsx": PAGE})
    ctx = RunContext(dry_run=True, environ=isolated_environ())
    outcome = migrate_file(root / "app/blog/page.tsx", ctx)

    assert outcome.moved is False
    assert outcome.dry_run is True
    assert outcome.target_path == str(root / "routes/blog/index.tsx")
    assert "createFileRoute('/blog')" in outcome.output
    assert (root / "app/blog/page.tsx").read_text(encoding="utf-8") == PAGE
    assert not (root / "routes").exists()


def test_conflicting_target_aborts_without_changes(
    write_tree: WriteTree, run_context: RunContext
) -> None:
    root = write_tree({"app/blog/page.tsx": PAGE, "routes/blog/index.tsx": "// hand written\n"})
    with pytest.raises(RelocationConflictError):
        migrate_file(root / "app/blog/page.tsx", run_context)
    assert (root / "app/blog/page.tsx").read_text(encoding="utf-8") == PAGE
    assert (root / "routes/blog/index.tsx").read_text(encoding="utf-8") == "// hand written\n"


def test_declaration_mismatch_blocks_relocation(
    write_tree: WriteTree, run_context: RunContext
) -> None:
    root = write_tree({"app/blog/page.tsx": PAGE})

    def _wrong_route(tree: SourceTree) -> PassResult:
        export = find_first(tree.node(), Query(kind="export_statement"))
        assert export is not None
        return [
            replace_node(
                export.node,
                "export const Route = createFileRoute('/nope')({})",
                pass_id="route-file-structure",
            )
        ]

    with pytest.raises(RouteMismatchError) as excinfo:
        migrate_file(
            root / "app/blog/page.tsx",
            run_context,
            passes={"route-file-structure": _wrong_route},
        )
    assert excinfo.value.expected == "/blog"
    assert excinfo.value.actual == "/nope"
    assert (root / "app/blog/page.tsx").read_text(encoding="utf-8") == PAGE
    assert not (root / "routes").exists()


def test_non_route_files_are_rewritten_in_place(
    write_tree: WriteTree, run_context: RunContext
) -> None:
    root = write_tree({"components/nav.tsx": NAV})
    outcome = migrate_file(root / "components/nav.tsx", run_context)
    text = (root / "components/nav.tsx").read_text(encoding="utf-8")
    assert outcome.moved is False
    assert outcome.changed is True
    assert 'to="/about"' in text
    assert text.endswith("}\n")


def test_disabled_file_structure_keeps_files_in_place(
    write_tree: WriteTree, run_context: RunContext
) -> None:
    root = write_tree(
        {
            "next-to-start.codemod.json": json.dumps(
                {"disabledMigrations": ["route-file-structure"]}
            ),
            "app/blog/page.tsx": PAGE,
        }
    )
    outcome = migrate_file(root / "app/blog/page.tsx", run_context)
    assert outcome.target_path is None
    assert outcome.moved is False
    assert (root / "app/blog/page.tsx").read_text(encoding="utf-8") == PAGE


def test_migrate_source_records_metrics(tmp_path: Path) -> None:
    ctx = RunContext(dry_run=True, environ=isolated_environ())
    outcome = migrate_source(str(tmp_path / "components/nav.tsx"), NAV, ctx)
    assert 'import { Link } from "@tanstack/react-router";' in outcome.output
    assert ctx.migration_metric.total(bucket="automated") >= 1
    assert not (tmp_path / "components").exists()


def test_moved_page_keeps_link_migration(write_tree: WriteTree, run_context: RunContext) -> None:
    root = write_tree({"app/blog/page.tsx": LINK_PAGE})
    outcome = migrate_file(root / "app/blog/page.tsx", run_context)
    text = (root / "routes/blog/index.tsx").read_text(encoding="utf-8")

    assert outcome.moved is True
    assert outcome.warnings == []
    assert "next/link" not in text
    assert 'import { Link } from "@tanstack/react-router";' in text
    assert "createFileRoute" in text.split("\n", 1)[0]
    assert "createFileRoute('/blog')" in text
    assert '<Link to="/about">' in text


def test_parallel_route_stays_put_with_a_note(
    write_tree: WriteTree, run_context: RunContext
) -> None:
    root = write_tree({"app/@modal/page.tsx": PAGE})
    outcome = migrate_file(root / "app/@modal/page.tsx", run_context)
    text = (root / "app/@modal/page.tsx").read_text(encoding="utf-8")

    assert outcome.target_path is None
    assert outcome.moved is False
    assert PARALLEL_ROUTE_MARKER in text
    assert "export default function Page()" in text
    assert not (root / "routes").exists()


def test_undecodable_source_is_a_migration_error(
    write_tree: WriteTree, run_context: RunContext
) -> None:
    root = write_tree({})
    broken = root / "app" / "broken.tsx"
    broken.parent.mkdir(parents=True)
    broken.write_bytes(b"export const x = '\xff\xfe';\n")
    with pytest.raises(SourceDecodeError) as excinfo:
        migrate_file(broken, run_context)
    assert excinfo.value.path == str(broken)
