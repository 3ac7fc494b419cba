from next_to_start.routing.paths import (
    CATCH_ALL_TOKEN,
    RouteLocation,
    derive_target_path,
    expected_route_path,
    is_excluded_route,
    is_root_route_target,
    locate_in_app_directory,
    map_route_filename,
    map_route_segment,
)

__all__ = [
    "CATCH_ALL_TOKEN",
    "RouteLocation",
    "derive_target_path",
    "expected_route_path",
    "is_excluded_route",
    "is_root_route_target",
    "locate_in_app_directory",
    "map_route_filename",
    "map_route_segment",
]
