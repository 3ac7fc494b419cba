from __future__ import annotations

import warnings

from next_to_start.config import MIGRATION_IDS, RuntimeConfig
from next_to_start.matcher import parse_source
from next_to_start.metrics import MetricAtom
from next_to_start.refactor.engine import PassRun, commit_edits, merge_edits
from next_to_start.refactor.model import SourceTree, TransformPass
from next_to_start.transforms import (
    PASSES,
    api_routes,
    manual_todos,
    next_image,
    next_link,
    route_structure,
    server_functions,
    use_client,
)


def run_pass(
    transform: TransformPass,
    source: str,
    path: str = "app/page.tsx",
    config: RuntimeConfig | None = None,
) -> tuple[str, MetricAtom]:
    metrics = MetricAtom("migration-impact")
    tree = SourceTree(
        path=path,
        root=parse_source(source),
        metrics=metrics,
        config=config or RuntimeConfig(),
    )
    merged = merge_edits([PassRun(pass_id="test", result=transform(tree))])
    return commit_edits(tree, merged), metrics


def test_registry_follows_merge_order() -> None:
    assert tuple(PASSES) == MIGRATION_IDS


def test_use_client_directive_is_removed() -> None:
    output, metrics = run_pass(use_client.transform, '"use client";\nexport const x = 1;')
    assert "use client" not in output
    assert "export const x = 1;" in output
    assert metrics.total(bucket="automated", effort="low") == 1


def test_use_client_pass_ignores_files_without_directive() -> None:
    source = "export const x = 1;"
    output, metrics = run_pass(use_client.transform, source)
    assert output == source
    assert metrics.total() == 0


def test_next_image_switches_to_unpic() -> None:
    source = (
        'import Image from "next/image";\n'
        "export function Hero() {\n"
        '  return <Image src="/a.png" alt="" width={10} height={20} quality={80} />;\n'
        "}"
    )
    output, metrics = run_pass(next_image.transform, source, path="components/hero.tsx")
    assert 'import { Image } from "@unpic/react";' in output
    assert "next/image" not in output
    assert 'layout="constrained"' in output
    assert "quality" not in output
    assert metrics.total(bucket="automated") == 1


def test_next_image_skips_route_handlers() -> None:
    source = 'import Image from "next/image";\nexport const x = Image;'
    output, _ = run_pass(next_image.transform, source, path="app/api/og/route.ts")
    assert output == source


def test_next_link_rewrites_import_and_href() -> None:
    source = (
        'import Link from "next/link";\n'
        "export function Nav() {\n"
        '  return <Link href="/about" prefetch={false}>About</Link>;\n'
        "}"
    )
    output, _ = run_pass(next_link.transform, source, path="components/nav.tsx")
    assert 'import { Link } from "@tanstack/react-router";' in output
    assert 'to="/about"' in output
    assert "preload={false}" in output
    assert "href" not in output
    assert ">About</Link>" in output


def test_next_link_external_href_becomes_anchor() -> None:
    source = (
        'import Link from "next/link";\n'
        "export function Out() {\n"
        '  return <Link href="https://example.com">Docs</Link>;\n'
        "}"
    )
    output, _ = run_pass(next_link.transform, source, path="components/out.tsx")
    assert '<a href="https://example.com">Docs</a>' in output


def test_next_link_blocks_link_status_usage() -> None:
    source = (
        'import Link, { useLinkStatus } from "next/link";\n'
        "export function Hint() {\n"
        "  const { pending } = useLinkStatus();\n"
        "  return pending;\n"
        "}"
    )
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        output, metrics = run_pass(next_link.transform, source, path="components/hint.tsx")
    assert output == source
    assert metrics.total(bucket="blocked") == 1
    assert any("useLinkStatus" in str(item.message) for item in caught)


def test_next_link_helpers() -> None:
    assert next_link.parse_string_href('"/a?x=1#top"')[0] == "/a"
    assert next_link.rewrite_link_import('import Link from "next/link";') == (
        'import { Link } from "@tanstack/react-router";'
    )
    assert next_link.rewrite_link_import('import Anchor from "next/link";') is None


def test_search_values_become_numbers_only_when_finite_decimals() -> None:
    assert next_link.parse_search("page=2&ratio=-0.5&id=007") == "{ page: 2, ratio: -0.5, id: 7 }"
    assert next_link.parse_search("x=nan&y=inf&z=1e400&w=") == (
        '{ x: "nan", y: "inf", z: "1e400", w: "" }'
    )


def test_manual_todo_is_added_once() -> None:
    source = (
        'import { cookies } from "next/headers";\n'
        "export async function load() {\n"
        "  const store = await cookies();\n"
        "  return store;\n"
        "}"
    )
    output, metrics = run_pass(manual_todos.transform, source, path="lib/session.ts")
    todo = (
        "// TODO(tanstack-migrate): manual migration required for `cookies()` "
        "outside server actions."
    )
    assert f"{todo}\n  const store = await cookies();" in output
    assert metrics.total(bucket="manual", effort="medium") == 1

    rerun, rerun_metrics = run_pass(manual_todos.transform, output, path="lib/session.ts")
    assert rerun == output
    assert rerun_metrics.total() == 0


def test_manual_todo_flags_metadata_at_top_of_file() -> None:
    source = (
        "export async function generateMetadata() {\n"
        "  return { title: \"Home\" };\n"
        "}\n"
        "export default function Page() {\n"
        "  return null;\n"
        "}"
    )
    output, metrics = run_pass(manual_todos.transform, source, path="app/page.tsx")
    assert output.startswith("// TODO(tanstack-migrate): metadata/SEO exports detected")
    assert metrics.total(bucket="manual", effort="high") == 1


def test_detect_next_config_keys() -> None:
    source = "module.exports = { basePath: '/docs', async rewrites() { return [] } }"
    assert manual_todos.detect_next_config_keys("next.config.js", source) == ["basePath"]
    assert manual_todos.detect_next_config_keys("app/page.tsx", source) == []


def test_page_becomes_file_route() -> None:
    source = "export default function Page() {\n  return <div>Hi</div>;\n}"
    output, metrics = run_pass(
        route_structure.file_structure_transform, source, path="app/blog/page.tsx"
    )
    assert 'import { createFileRoute } from "@tanstack/react-router"' in output
    assert "export const Route = createFileRoute('/blog')({\n  component: Page,\n})" in output
    assert "function Page() {\n  return <div>Hi</div>;\n}" in output
    assert metrics.total(bucket="automated", effort="medium") == 1


def test_root_layout_becomes_root_route_with_outlet() -> None:
    source = (
        "export default function RootLayout({ children }) {\n"
        "  return <html><body>{children}</body></html>;\n"
        "}"
    )
    output, _ = run_pass(route_structure.file_structure_transform, source, path="app/layout.tsx")
    assert "export const Route = createRootRoute({" in output
    assert "function RootComponent()" in output
    assert "<body><Outlet /></body>" in output
    assert "Outlet" in output.split("\n")[0]
    assert "createRootRoute" in output.split("\n")[0]


def test_page_params_and_navigation_hooks_are_rewritten() -> None:
    source = (
        'import { usePathname } from "next/navigation";\n'
        "export default async function Post({ params }) {\n"
        "  const slug = await params.slug;\n"
        "  const path = usePathname();\n"
        "  return <p>{slug}{path}</p>;\n"
        "}"
    )
    output, _ = run_pass(
        route_structure.file_structure_transform, source, path="app/blog/[slug]/page.tsx"
    )
    assert "createFileRoute('/blog/$slug')" in output
    assert "const slug = params.slug;" in output
    assert "useLocation().pathname" in output
    assert "next/navigation" not in output
    assert "useLocation" in output.split("\n")[0]
    assert "createFileRoute" in output.split("\n")[0]


def test_loading_file_gets_pending_component() -> None:
    source = "export default function Loading() {\n  return <Spinner />;\n}"
    output, _ = run_pass(
        route_structure.file_structure_transform, source, path="app/blog/loading.tsx"
    )
    assert "pendingComponent: PendingComponent," in output
    assert "function PendingComponent()" in output


def test_template_file_is_flagged_for_manual_work() -> None:
    source = "export default function Template({ children }) {\n  return children;\n}"
    output, metrics = run_pass(
        route_structure.file_structure_transform, source, path="app/blog/template.tsx"
    )
    assert output.startswith(route_structure.TEMPLATE_TODO)
    assert metrics.total(bucket="manual", effort="high") == 1


def test_optional_catch_all_gets_a_note() -> None:
    source = "export default function Docs() {\n  return null;\n}"
    output, _ = run_pass(
        route_structure.file_structure_transform, source, path="app/docs/[[...slug]]/page.tsx"
    )
    assert route_structure.OPTIONAL_CATCH_ALL_TODO in output
    assert "createFileRoute('/docs/$')" in output


def test_file_structure_skips_excluded_and_foreign_files() -> None:
    source = "export default function Slot() {\n  return null;\n}"
    output, metrics = run_pass(
        route_structure.file_structure_transform, source, path="app/@modal/page.tsx"
    )
    assert output == source
    assert metrics.total(bucket="blocked") == 1
    output, _ = run_pass(
        route_structure.file_structure_transform, source, path="components/page.tsx"
    )
    assert output == source


def test_group_layout_becomes_pathless_layout() -> None:
    source = (
        "export default function MarketingLayout({ children }) {\n"
        "  return <main>{children}</main>;\n"
        "}"
    )
    output, _ = run_pass(
        route_structure.route_groups_transform, source, path="app/(marketing-site)/layout.tsx"
    )
    assert "// Route group: marketing-site" in output
    assert "function marketingSiteLayout()" in output
    assert "<main><Outlet /></main>" in output
    assert "createFileRoute('/_marketing-site')" in output


def test_parallel_slot_gets_single_todo() -> None:
    source = "export default function Slot() {\n  return null;\n}"
    output, _ = run_pass(
        route_structure.route_groups_transform, source, path="app/@modal/page.tsx"
    )
    assert route_structure.PARALLEL_ROUTE_MARKER in output
    rerun, _ = run_pass(route_structure.route_groups_transform, output, path="app/@modal/page.tsx")
    assert rerun == output


def test_group_component_name() -> None:
    assert route_structure.group_component_name("marketing") == "marketingLayout"
    assert route_structure.group_component_name("shop-front") == "shopFrontLayout"
    assert route_structure.group_component_name("2024") == "_2024Layout"
    assert route_structure.group_component_name("---") == "GroupLayout"


def test_file_level_server_actions_become_server_functions() -> None:
    source = (
        '"use server";\n'
        'import { db } from "./db";\n'
        "export async function save(name: string) {\n"
        "  await db.insert(name);\n"
        '  revalidatePath("/");\n'
        "}"
    )
    output, metrics = run_pass(server_functions.transform, source, path="app/actions.ts")
    assert 'import { createServerFn } from "@tanstack/react-start";' in output
    assert 'export const save = createServerFn({ method: "POST" })' in output
    assert ".inputValidator((data: { name: string }) => data)" in output
    assert "const { name } = data;" in output
    assert "// TODO: Replace with queryClient.invalidateQueries()" in output
    assert "use server" not in output
    assert metrics.total(bucket="manual", effort="medium") == 1


def test_build_server_fn_handles_form_data() -> None:
    code = server_functions.build_server_fn(
        "submit", "formData: FormData", "await store(formData);", exported=True
    )
    assert code.startswith('export const submit = createServerFn({ method: "POST" })')
    assert "data instanceof FormData" in code
    assert ".handler(async ({ data: formData }) => {" in code


def test_rewrite_server_body_replaces_headers_and_cookies() -> None:
    body = "const h = await headers();\nconst c = await cookies();"
    rewritten = server_functions.rewrite_server_body(body, "")
    assert "const h = getRequest().headers;" in rewritten
    assert "const c = (undefined as any);" in rewritten


def test_api_route_handlers_fold_into_server_route() -> None:
    source = (
        'import { NextResponse } from "next/server";\n'
        "export async function GET(request: Request) {\n"
        "  return NextResponse.json({ ok: true });\n"
        "}\n"
        "export async function POST(request: Request) {\n"
        "  return NextResponse.json({ created: true }, { status: 201 });\n"
        "}"
    )
    output, metrics = run_pass(api_routes.transform, source, path="app/api/users/route.ts")
    assert "createFileRoute('/api/users')" in output
    assert "GET: async ({ request, params }) => {" in output
    assert "POST: async ({ request, params }) => {" in output
    assert "Response.json({ ok: true })" in output
    assert "NextResponse" not in output.replace(api_routes.WEB_API_NOTE, "")
    assert output.count("export const Route") == 1
    assert metrics.total(bucket="automated") == 2


def test_api_routes_ignore_other_files() -> None:
    source = "export async function GET() {\n  return null;\n}"
    output, _ = run_pass(api_routes.transform, source, path="app/page.tsx")
    assert output == source


def test_rewrite_handler_body_unwraps_context_params() -> None:
    body = "const { id } = await context.params;\nreturn Response.json(id);"
    rewritten = api_routes.rewrite_handler_body(body, has_context=True, keep_next_response=False)
    assert "const { id } = params;" in rewritten
