"""API dependencies for authentication and location-scoped authorization."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any
from uuid import UUID

import asyncpg
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.database import get_db
from app.core.exceptions import AccessControlError
from app.core.logging_config import security_logger
from app.core.rate_limiting import LoginRateLimiter
from app.core.security import decode_access_token
from app.services.access_scope import AccessScope, ResolvedScope, resolve_scope
from app.services.locations import LocationHierarchy
from app.services.rbac import PermissionSet, Role, get_role_permissions
from app.services.users import get_user_by_id

security = HTTPBearer()


def get_location_hierarchy(request: Request) -> LocationHierarchy:
    """The reference tree loaded at startup."""
    return request.app.state.location_hierarchy


def get_login_rate_limiter(request: Request) -> LoginRateLimiter:
    """The login rate limiter built at startup."""
    return request.app.state.login_rate_limiter


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
) -> dict:
    """
    Dependency to get the current authenticated, approved user.

    Validates JWT token and returns user data without the password hash.
    """
    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("sub") if payload else None

    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_by_id(conn, UUID(user_id))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.get("status") != "approved":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is awaiting approval",
        )

    user.pop("password_hash", None)
    return user


@dataclass(frozen=True)
class AccessContext:
    """Everything a route needs to authorize a request."""

    user: dict[str, Any]
    role: Role
    scope: AccessScope
    resolved: ResolvedScope
    permissions: PermissionSet

    @property
    def user_id(self) -> UUID:
        return UUID(self.user["id"])


async def get_access_context(
    current_user: Annotated[dict, Depends(get_current_user)],
) -> AccessContext:
    """
    Resolve the current user's role and scope.

    A role or scope that cannot be resolved means the stored user record is
    broken; the request is denied and the failure logged.
    """
    try:
        role = Role.parse(current_user.get("role"))
        scope = AccessScope.from_value(current_user.get("access_scope"))
        resolved = resolve_scope(role, scope)
    except AccessControlError as e:
        security_logger.log_scope_integrity_failure(
            user_id=current_user.get("id"),
            role=str(current_user.get("role")),
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Access denied"
        ) from e

    return AccessContext(
        user=current_user,
        role=role,
        scope=scope,
        resolved=resolved,
        permissions=get_role_permissions(role),
    )


def require_permission(permission: str) -> Callable[..., Any]:
    """
    Build a dependency that requires a boolean flag of ``PermissionSet``.

    Usage:
        ctx: Annotated[AccessContext, Depends(require_permission("can_delete"))]
    """

    async def dependency(
        ctx: Annotated[AccessContext, Depends(get_access_context)],
    ) -> AccessContext:
        if not getattr(ctx.permissions, permission):
            security_logger.log_unauthorized_access(
                resource=permission,
                user_id=ctx.user.get("id"),
                role=ctx.role.value,
                reason="permission not granted to role",
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions: {permission} required",
            )
        return ctx

    return dependency
