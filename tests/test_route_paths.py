from __future__ import annotations

import pytest

from next_to_start.config import RuntimeConfig
from next_to_start.routing import (
    derive_target_path,
    expected_route_path,
    is_excluded_route,
    is_root_route_target,
    map_route_filename,
    map_route_segment,
)

DEFAULT = RuntimeConfig()


@pytest.mark.parametrize(
    ("segment", "expected"),
    [
        ("blog", "blog"),
        ("(marketing)", "_marketing"),
        ("[slug]", "$slug"),
        ("[...parts]", "$"),
        ("[[...parts]]", "$"),
    ],
)
def test_map_route_segment(segment: str, expected: str) -> None:
    assert map_route_segment(segment) == expected


@pytest.mark.parametrize(
    ("base", "is_root_layout", "expected"),
    [
        ("page.tsx", False, "index.tsx"),
        ("layout.tsx", True, "__root.tsx"),
        ("layout.jsx", False, "_layout.jsx"),
        ("loading.tsx", False, "-pending.tsx"),
        ("error.tsx", False, "-error.tsx"),
        ("not-found.tsx", False, "-not-found.tsx"),
        ("template.tsx", False, "-template.tsx"),
        ("default.tsx", False, "-default.tsx"),
        ("route.ts", False, "route.ts"),
        ("button.tsx", False, None),
    ],
)
def test_map_route_filename(base: str, is_root_layout: bool, expected: str | None) -> None:
    assert map_route_filename(base, is_root_layout=is_root_layout) == expected


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("app/page.tsx", "routes/index.tsx"),
        ("app/layout.tsx", "routes/__root.tsx"),
        ("app/dashboard/layout.tsx", "routes/dashboard/_layout.tsx"),
        ("app/blog/loading.tsx", "routes/blog/-pending.tsx"),
        ("src/app/blog/[slug]/page.tsx", "src/routes/blog/$slug/index.tsx"),
        ("app/(marketing)/about/page.tsx", "routes/_marketing/about/index.tsx"),
        ("app/(shop)/layout.tsx", "routes/_shop/_layout.tsx"),
        ("app/docs/[...slug]/page.tsx", "routes/docs/$/index.tsx"),
        ("app/shop/[[...slug]]/page.tsx", "routes/shop/$/index.tsx"),
        ("app/api/users/route.ts", "routes/api/users/route.ts"),
    ],
)
def test_derive_target_path_maps_app_router_files(filename: str, expected: str) -> None:
    assert derive_target_path(filename, DEFAULT) == expected


@pytest.mark.parametrize(
    "filename",
    [
        "app/@modal/page.tsx",
        "app/_components/button.tsx",
        "app/components/button.tsx",
        "app/dashboard/(settings)/layout.tsx",
        "app/styles.css",
        "lib/page.tsx",
        "node_modules/pkg/app/page.tsx",
    ],
)
def test_derive_target_path_leaves_ineligible_files_alone(filename: str) -> None:
    assert derive_target_path(filename, DEFAULT) is None


def test_derive_target_path_keeps_windows_separators() -> None:
    assert (
        derive_target_path("C:\\proj\\app\\blog\\page.tsx", DEFAULT)
        == "C:\\proj\\routes\\blog\\index.tsx"
    )


def test_derive_target_path_honors_nested_directories() -> None:
    config = RuntimeConfig(routes_directory="src/routes", app_directory="src/app")
    assert derive_target_path("src/app/page.tsx", config) == "src/routes/index.tsx"
    assert derive_target_path("app/page.tsx", config) is None


def test_is_excluded_route() -> None:
    assert is_excluded_route(("@modal",), "page.tsx")
    assert is_excluded_route(("_private",), "page.tsx")
    assert is_excluded_route(("dashboard", "(group)"), "layout.tsx")
    assert not is_excluded_route(("(group)",), "layout.tsx")
    assert not is_excluded_route(("dashboard", "(group)"), "page.tsx")


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("app/page.tsx", "/"),
        ("app/blog/[slug]/page.tsx", "/blog/$slug"),
        ("app/(marketing)/about/page.tsx", "/_marketing/about"),
        ("app/docs/[...slug]/page.tsx", "/docs/$"),
        ("app/api/users/route.ts", None),
        ("lib/page.tsx", None),
    ],
)
def test_expected_route_path(filename: str, expected: str | None) -> None:
    assert expected_route_path(filename, DEFAULT) == expected


def test_expected_route_path_can_include_api_routes() -> None:
    assert expected_route_path("app/api/users/route.ts", DEFAULT, include_api=True) == "/api/users"


def test_is_root_route_target() -> None:
    assert is_root_route_target("routes/__root.tsx")
    assert is_root_route_target("C:\\proj\\routes\\__root.jsx")
    assert not is_root_route_target("routes/index.tsx")


def test_innermost_app_directory_is_the_app_root() -> None:
    assert derive_target_path("/app/app/blog/page.tsx", DEFAULT) == "/app/routes/blog/index.tsx"
    assert expected_route_path("/app/app/blog/page.tsx", DEFAULT) == "/blog"
    assert (
        derive_target_path("/srv/app/proj/app/layout.tsx", DEFAULT)
        == "/srv/app/proj/routes/__root.tsx"
    )


@pytest.mark.parametrize("base", ["default.tsx", "route.ts"])
def test_map_route_filename_fixed_roles(base: str) -> None:
    expected = "-default.tsx" if base == "default.tsx" else "route.ts"
    assert map_route_filename(base, is_root_layout=False) == expected
