"""SMS campaign routes: drafts and recipient resolution."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.deps import AccessContext, require_permission
from app.core.database import get_db
from app.core.responses import not_found_response, success_response, unprocessable_response
from app.services import sms_campaigns as campaign_service
from app.services import voters as voter_service
from app.services.access_scope import build_constraint

router = APIRouter(prefix="/campaigns", tags=["SMS Campaigns"])


class CampaignCreate(BaseModel):
    """Create campaign request."""

    name: str = Field(..., min_length=2, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    target_filters: dict[str, str | bool] = Field(default_factory=dict)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_campaign(
    request: CampaignCreate,
    ctx: Annotated[AccessContext, Depends(require_permission("can_create"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Create a draft campaign. Target filters use the voter filter fields."""
    try:
        voter_service.caller_filters(request.target_filters)
    except ValueError as e:
        unprocessable_response(str(e))

    campaign = await campaign_service.create_campaign(
        conn,
        name=request.name,
        message=request.message,
        created_by=ctx.user_id,
        target_filters=request.target_filters,
    )
    campaign["segments"] = campaign_service.count_segments(request.message)
    return success_response(data=campaign, message="Campaign draft created")


@router.get("")
async def list_campaigns(
    ctx: Annotated[AccessContext, Depends(require_permission("can_read"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """List campaigns. Super admins see all, everyone else their own."""
    created_by = None if ctx.permissions.can_access_all_voters else ctx.user_id
    campaigns = await campaign_service.list_campaigns(conn, created_by=created_by)
    return success_response(data={"campaigns": campaigns, "count": len(campaigns)})


@router.get("/{campaign_id}/recipients")
async def get_recipients(
    campaign_id: UUID,
    ctx: Annotated[AccessContext, Depends(require_permission("can_read"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """
    Phone numbers the campaign would reach.

    Only the author and super admins may read a campaign. Recipients are
    resolved through the caller's scope, so target filters never reach past it.
    """
    campaign = await campaign_service.get_campaign(conn, campaign_id)
    # Same visibility as the listing: non-super admins only see their own drafts
    if not campaign or (
        not ctx.permissions.can_access_all_voters and campaign["created_by"] != ctx.user["id"]
    ):
        not_found_response("Campaign")

    constraint = build_constraint(
        ctx.resolved, voter_service.caller_filters(campaign["target_filters"])
    )
    phones = await voter_service.list_recipient_phones(conn, constraint)
    return success_response(
        data={
            "campaign_id": campaign["id"],
            "recipients": phones,
            "count": len(phones),
            "segments_per_message": campaign_service.count_segments(campaign["message"]),
        }
    )
