"""Voter management routes, scoped to the caller's location."""

from datetime import date
from typing import Annotated, Literal
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator

from app.api.deps import (
    AccessContext,
    get_location_hierarchy,
    require_permission,
)
from app.core.database import get_db
from app.core.logging_config import get_logger
from app.core.responses import not_found_response, paginated_response, success_response
from app.core.validation import NIDValidator, PhoneValidator, sanitize_string
from app.services import voters as voter_service
from app.services.access_scope import build_constraint
from app.services.locations import LocationHierarchy

router = APIRouter(prefix="/voters", tags=["Voters"])
logger = get_logger(__name__)


class VoterFields(BaseModel):
    """Domain fields shared by create and update."""

    house_name: str | None = Field(None, max_length=200)
    father_or_husband: str | None = Field(None, max_length=200)
    age: int | None = Field(None, ge=18, le=130)
    gender: Literal["Male", "Female", "Other"] | None = None
    marital_status: Literal["Married", "Unmarried", "Widowed", "Divorced"] | None = None
    occupation: str | None = None
    education: str | None = None
    religion: str | None = None
    phone: str | None = None
    whatsapp: bool | None = None
    nid: str | None = None
    is_voter: bool | None = None
    will_vote: Literal["Yes", "No", "Undecided"] | None = None
    voted_before: bool | None = None
    vote_probability: int | None = Field(None, ge=0, le=100)
    political_support: str | None = None
    priority_level: Literal["Low", "Medium", "High"] | None = None
    has_disability: bool | None = None
    is_migrated: bool | None = None
    remarks: str | None = Field(None, max_length=2000)
    collector: str | None = None
    collection_date: date | None = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        normalized = PhoneValidator.normalize(v)
        if normalized is None:
            raise ValueError("Invalid Bangladeshi mobile number")
        return normalized

    @field_validator("nid")
    @classmethod
    def validate_nid(cls, v: str | None) -> str | None:
        if v is None:
            return v
        normalized = NIDValidator.normalize(v)
        if normalized is None:
            raise ValueError("NID must have 10, 13 or 17 digits")
        return normalized

    @field_validator("house_name", "father_or_husband", "remarks")
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitize_string(v) if v else v


class VoterCreate(VoterFields):
    """Create voter request. The full location tuple is required."""

    voter_name: str = Field(..., min_length=2, max_length=200)
    division_id: str
    district_id: str
    upazila_id: str
    union_id: str
    village_id: str


class VoterUpdate(VoterFields):
    """Update voter request. Location ids cannot be changed."""

    voter_name: str | None = Field(None, min_length=2, max_length=200)


def _location_filters(
    division_id: str | None,
    district_id: str | None,
    upazila_id: str | None,
    union_id: str | None,
    village_id: str | None,
    **extra: str | None,
) -> dict[str, str | None]:
    return {
        "division_id": division_id,
        "district_id": district_id,
        "upazila_id": upazila_id,
        "union_id": union_id,
        "village_id": village_id,
        **extra,
    }


@router.get("")
async def list_voters(
    ctx: Annotated[AccessContext, Depends(require_permission("can_read"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    search: Annotated[str | None, Query(max_length=100)] = None,
    division_id: str | None = None,
    district_id: str | None = None,
    upazila_id: str | None = None,
    union_id: str | None = None,
    village_id: str | None = None,
    gender: str | None = None,
    will_vote: str | None = None,
    priority_level: str | None = None,
):
    """
    List voters visible to the caller.

    Location and attribute query parameters narrow the caller's scope; they
    can never widen it.
    """
    filters = _location_filters(
        division_id, district_id, upazila_id, union_id, village_id,
        gender=gender, will_vote=will_vote, priority_level=priority_level,
    )
    constraint = build_constraint(ctx.resolved, voter_service.caller_filters(filters))

    voters, total = await voter_service.list_voters(
        conn,
        constraint,
        search=sanitize_string(search, max_length=100) if search else None,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return paginated_response(items=voters, page=page, limit=limit, total=total)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_voter(
    request: VoterCreate,
    ctx: Annotated[AccessContext, Depends(require_permission("can_create"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    hierarchy: Annotated[LocationHierarchy, Depends(get_location_hierarchy)],
):
    """Add a voter inside the caller's scope."""
    data = request.model_dump(exclude_none=True)
    location = voter_service.prepare_voter_location(hierarchy, ctx.resolved, data)

    voter = await voter_service.create_voter(conn, location, data, created_by=ctx.user_id)
    logger.info(f"Voter {voter['id']} created by {ctx.user['username']}")
    return success_response(data=voter, message="Voter created successfully")


@router.get("/stats")
async def get_voter_stats(
    ctx: Annotated[AccessContext, Depends(require_permission("can_read"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    division_id: str | None = None,
    district_id: str | None = None,
    upazila_id: str | None = None,
    union_id: str | None = None,
    village_id: str | None = None,
):
    """Voter totals for the caller's scope, optionally narrowed to a location."""
    filters = _location_filters(division_id, district_id, upazila_id, union_id, village_id)
    constraint = build_constraint(ctx.resolved, voter_service.caller_filters(filters))
    stats = await voter_service.voter_stats(conn, constraint)
    return success_response(data=stats)


@router.get("/{voter_id}")
async def get_voter(
    voter_id: UUID,
    ctx: Annotated[AccessContext, Depends(require_permission("can_read"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Get a voter. Voters outside the caller's scope are reported as not found."""
    voter = await voter_service.get_voter(conn, voter_id, build_constraint(ctx.resolved))
    if not voter:
        not_found_response("Voter")
    return success_response(data=voter)


@router.put("/{voter_id}")
async def update_voter(
    voter_id: UUID,
    request: VoterUpdate,
    ctx: Annotated[AccessContext, Depends(require_permission("can_update"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Update a voter's domain fields."""
    voter = await voter_service.update_voter(
        conn,
        voter_id,
        build_constraint(ctx.resolved),
        **request.model_dump(exclude_none=True),
    )
    if not voter:
        not_found_response("Voter")
    return success_response(data=voter, message="Voter updated successfully")


@router.delete("/{voter_id}")
async def delete_voter(
    voter_id: UUID,
    ctx: Annotated[AccessContext, Depends(require_permission("can_delete"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Delete a voter."""
    deleted = await voter_service.delete_voter(conn, voter_id, build_constraint(ctx.resolved))
    if not deleted:
        not_found_response("Voter")

    logger.info(f"Voter {voter_id} deleted by {ctx.user['username']}")
    return success_response(message="Voter deleted successfully")
