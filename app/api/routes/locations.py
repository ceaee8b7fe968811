"""Location reference data routes (read-only)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.deps import AccessContext, get_access_context, get_location_hierarchy
from app.core.responses import not_found_response, success_response
from app.services.locations import LOCATION_LEVELS, LocationHierarchy, LocationLevel

router = APIRouter(prefix="/locations", tags=["Locations"])


@router.get("/divisions")
async def list_divisions(
    hierarchy: Annotated[LocationHierarchy, Depends(get_location_hierarchy)],
    ctx: Annotated[AccessContext, Depends(get_access_context)],
):
    """List all divisions."""
    divisions = [node.to_dict() for node in hierarchy.divisions()]
    return success_response(data={"divisions": divisions, "count": len(divisions)})


@router.get("/{level}/{node_id}")
async def get_location(
    level: LocationLevel,
    node_id: str,
    hierarchy: Annotated[LocationHierarchy, Depends(get_location_hierarchy)],
    ctx: Annotated[AccessContext, Depends(get_access_context)],
):
    """Get a location node with its ancestor chain."""
    chain = hierarchy.ancestors(level, node_id)
    if not chain:
        not_found_response(level.value.capitalize())

    return success_response(
        data={
            **chain[-1].to_dict(),
            "ancestors": [node.to_dict() for node in chain[:-1]],
        }
    )


@router.get("/{level}/{node_id}/children")
async def list_children(
    level: LocationLevel,
    node_id: str,
    hierarchy: Annotated[LocationHierarchy, Depends(get_location_hierarchy)],
    ctx: Annotated[AccessContext, Depends(get_access_context)],
):
    """List the direct children of a location node."""
    if hierarchy.get(level, node_id) is None:
        not_found_response(level.value.capitalize())

    children = [node.to_dict() for node in hierarchy.children(level, node_id)]
    return success_response(
        data={
            "level": level.child.value if level.child else None,
            "children": children,
            "count": len(children),
        }
    )


@router.get("/names")
async def location_names(
    hierarchy: Annotated[LocationHierarchy, Depends(get_location_hierarchy)],
    ctx: Annotated[AccessContext, Depends(get_access_context)],
    division_id: Annotated[str | None, Query()] = None,
    district_id: Annotated[str | None, Query()] = None,
    upazila_id: Annotated[str | None, Query()] = None,
    union_id: Annotated[str | None, Query()] = None,
    village_id: Annotated[str | None, Query()] = None,
):
    """Bangla and English names for a location tuple."""
    values = [division_id, district_id, upazila_id, union_id, village_id]
    location = {
        level.id_field: value for level, value in zip(LOCATION_LEVELS, values) if value
    }
    return success_response(data=hierarchy.location_names(location))
