"""Registry of migration passes, keyed by pass id in merge order."""

from __future__ import annotations

from typing import Mapping

from next_to_start.refactor.model import TransformPass
from next_to_start.transforms import (
    api_routes,
    manual_todos,
    next_image,
    next_link,
    route_structure,
    server_functions,
    use_client,
)

PASSES: Mapping[str, TransformPass] = {
    next_image.PASS_ID: next_image.transform,
    next_link.PASS_ID: next_link.transform,
    server_functions.PASS_ID: server_functions.transform,
    manual_todos.PASS_ID: manual_todos.transform,
    use_client.PASS_ID: use_client.transform,
    route_structure.FILE_STRUCTURE_PASS_ID: route_structure.file_structure_transform,
    route_structure.ROUTE_GROUPS_PASS_ID: route_structure.route_groups_transform,
    api_routes.PASS_ID: api_routes.transform,
}

__all__ = ["PASSES"]
