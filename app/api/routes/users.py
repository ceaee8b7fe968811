"""User management routes: scoped listing and approval of pending accounts."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.api.deps import (
    AccessContext,
    get_access_context,
    get_location_hierarchy,
    require_permission,
)
from app.api.routes.auth import LocationScopeIn
from app.core.database import get_db
from app.core.exceptions import AccessControlError
from app.core.logging_config import security_logger
from app.core.responses import (
    conflict_response,
    forbidden_response,
    not_found_response,
    success_response,
    unprocessable_response,
)
from app.services import users as user_service
from app.services.access_scope import (
    can_manage_user,
    filter_manageable_users,
    location_assignment_options,
    validate_scope,
)
from app.services.locations import LocationHierarchy
from app.services.rbac import Role, required_location_fields

router = APIRouter(prefix="/users", tags=["Users"])


class ApproveRequest(BaseModel):
    """Final role and scope for a pending user."""

    role: Role
    access_scope: LocationScopeIn = Field(default_factory=LocationScopeIn)


def _can_review(ctx: AccessContext, user: dict) -> bool:
    """Whether the caller manages the role and scope a pending user asked for."""
    requested_role = user.get("requested_role")
    if requested_role not in {role.value for role in ctx.permissions.can_assign_roles}:
        return False
    return can_manage_user(ctx.role, ctx.scope, requested_role, user.get("access_scope"))


@router.get("")
async def list_users(
    ctx: Annotated[AccessContext, Depends(get_access_context)],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
):
    """List users inside the caller's location scope."""
    if status_filter and status_filter not in user_service.USER_STATUSES:
        unprocessable_response(
            f"status must be one of {', '.join(user_service.USER_STATUSES)}"
        )

    users = await user_service.list_users(conn, status=status_filter)
    visible = filter_manageable_users(ctx.role, ctx.scope, users)
    return success_response(data={"users": visible, "count": len(visible)})


@router.get("/pending")
async def list_pending_users(
    ctx: Annotated[AccessContext, Depends(require_permission("can_verify_users"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Pending registrations the caller may approve or reject."""
    users = await user_service.list_users(conn, status="pending")
    reviewable = [user for user in users if _can_review(ctx, user)]
    return success_response(data={"users": reviewable, "count": len(reviewable)})


@router.get("/assignment-options/{target_role}")
async def get_assignment_options(
    target_role: Role,
    ctx: Annotated[AccessContext, Depends(require_permission("can_verify_users"))],
):
    """Which location fields the caller picks, and which are fixed, when assigning a role."""
    try:
        options = location_assignment_options(ctx.role, ctx.scope, target_role)
    except AccessControlError as e:
        forbidden_response(str(e))

    return success_response(
        data={
            **options.to_dict(),
            "required_fields": required_location_fields(target_role),
        }
    )


@router.post("/{user_id}/approve")
async def approve_user(
    user_id: UUID,
    request: ApproveRequest,
    ctx: Annotated[AccessContext, Depends(require_permission("can_verify_users"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    hierarchy: Annotated[LocationHierarchy, Depends(get_location_hierarchy)],
):
    """
    Approve a pending user with a role and access scope.

    The caller must be able to review the request as submitted, as for a
    rejection. The final scope is completed from the reference tree and must
    be consistent with it; the caller must be able to assign the final role
    and the scope must lie inside the caller's own.
    """
    target = await user_service.get_user_by_id(conn, user_id)
    if not target:
        not_found_response("User")

    if not _can_review(ctx, target):
        forbidden_response("You cannot review this user")

    if request.role not in ctx.permissions.can_assign_roles:
        forbidden_response(f"You cannot assign {request.role.value}")

    try:
        scope = validate_scope(hierarchy, request.role, request.access_scope.model_dump())
    except AccessControlError as e:
        unprocessable_response(str(e))

    if not can_manage_user(ctx.role, ctx.scope, request.role, scope):
        security_logger.log_unauthorized_access(
            resource=f"users/{user_id}/approve",
            user_id=ctx.user.get("id"),
            role=ctx.role.value,
            reason=f"cannot assign {request.role.value} at {scope}",
        )
        forbidden_response(f"You cannot assign {request.role.value} at this location")

    approved = await user_service.review_user(
        conn,
        user_id,
        reviewed_by=ctx.user_id,
        approved=True,
        role=request.role.value,
        access_scope=scope,
    )
    if not approved:
        conflict_response("User is not pending approval")

    security_logger.log_user_review(
        str(user_id), ctx.user["id"], approved=True, role=request.role.value
    )
    return success_response(data=approved, message="User approved")


@router.post("/{user_id}/reject")
async def reject_user(
    user_id: UUID,
    ctx: Annotated[AccessContext, Depends(require_permission("can_verify_users"))],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Reject a pending user whose requested role and scope the caller manages."""
    target = await user_service.get_user_by_id(conn, user_id)
    if not target:
        not_found_response("User")

    if not _can_review(ctx, target):
        forbidden_response("You cannot review this user")

    rejected = await user_service.review_user(
        conn, user_id, reviewed_by=ctx.user_id, approved=False
    )
    if not rejected:
        conflict_response("User is not pending approval")

    security_logger.log_user_review(str(user_id), ctx.user["id"], approved=False)
    return success_response(data=rejected, message="User rejected")
