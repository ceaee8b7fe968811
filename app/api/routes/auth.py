"""Authentication routes: self-registration, login and the current session."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator

from app.api.deps import (
    AccessContext,
    get_access_context,
    get_location_hierarchy,
    get_login_rate_limiter,
)
from app.core.database import get_db
from app.core.exceptions import InconsistentScopeError
from app.core.logging_config import get_logger, security_logger
from app.core.rate_limiting import LoginRateLimiter
from app.core.responses import success_response, unprocessable_response
from app.core.security import (
    create_access_token,
    hash_password,
    password_needs_rehash,
    verify_password,
)
from app.core.validation import (
    PasswordValidator,
    PhoneValidator,
    UsernameValidator,
    sanitize_string,
)
from app.services.access_scope import validate_scope
from app.services.locations import LocationHierarchy
from app.services.rbac import Role, role_display_name
from app.services.users import (
    create_user,
    get_user_by_username,
    update_user_last_login,
    update_user_password_hash,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger(__name__)


class LocationScopeIn(BaseModel):
    """Requested location scope."""

    division_id: str | None = None
    district_id: str | None = None
    upazila_id: str | None = None
    union_id: str | None = None
    village_id: str | None = None


class RegisterRequest(BaseModel):
    """Self-registration request. The account starts as pending."""

    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(None, max_length=200)
    phone: str | None = None
    requested_role: Role = Role.VILLAGE_ADMIN
    access_scope: LocationScopeIn = Field(default_factory=LocationScopeIn)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = sanitize_string(v, max_length=50)
        is_valid, error = UsernameValidator.validate(v)
        if not is_valid:
            raise ValueError(error)
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        is_valid, error = PasswordValidator.validate(v)
        if not is_valid:
            raise ValueError(error)
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        normalized = PhoneValidator.normalize(v)
        if normalized is None:
            raise ValueError("Invalid Bangladeshi mobile number")
        return normalized


class LoginRequest(BaseModel):
    """User login request."""

    username: str = Field(..., max_length=50)
    password: str = Field(..., max_length=128)

    @field_validator("username")
    @classmethod
    def sanitize_username(cls, v: str) -> str:
        return sanitize_string(v, max_length=50)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    hierarchy: Annotated[LocationHierarchy, Depends(get_location_hierarchy)],
):
    """
    Register a new account.

    The account is created as ``pending``; an admin whose role can assign the
    requested role approves it and fixes the final role and scope. Only the
    anchor id of the requested role is needed; ancestors are filled in from
    the location tree so reviewers above can find the request.
    """
    if request.requested_role is Role.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="super_admin cannot be requested",
        )

    try:
        access_scope = validate_scope(
            hierarchy, request.requested_role, request.access_scope.model_dump()
        )
    except InconsistentScopeError as e:
        unprocessable_response(str(e))

    existing_user = await get_user_by_username(conn, request.username)
    if existing_user:
        logger.warning(f"Registration failed: username already exists - {request.username}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists",
        )

    user = await create_user(
        conn,
        username=request.username,
        password_hash=hash_password(request.password),
        requested_role=request.requested_role.value,
        access_scope=access_scope,
        full_name=request.full_name,
        phone=request.phone,
    )

    security_logger.log_user_registration(request.username, request.requested_role.value)
    return success_response(
        data=user, message="Registration submitted. Wait for an administrator to approve it."
    )


@router.post("/login")
async def login(
    request: LoginRequest,
    http_request: Request,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    rate_limiter: Annotated[LoginRateLimiter, Depends(get_login_rate_limiter)],
):
    """Authenticate and receive a JWT access token. Only approved users may log in."""
    ip_address = http_request.client.host if http_request.client else None

    allowed, error_message = rate_limiter.check_login_allowed(request.username, ip_address)
    if not allowed:
        security_logger.log_login_attempt(
            request.username, False, ip_address, reason="rate_limited"
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=error_message
        )

    user = await get_user_by_username(conn, request.username)
    if not user or not verify_password(request.password, user["password_hash"]):
        rate_limiter.record_failed_attempt(request.username, ip_address)
        security_logger.log_login_attempt(
            request.username, False, ip_address, reason="invalid_credentials"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )

    if user["status"] != "approved":
        security_logger.log_login_attempt(
            request.username, False, ip_address, reason=f"status_{user['status']}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Account is {user['status']}",
        )

    rate_limiter.record_successful_login(request.username, ip_address)
    await update_user_last_login(conn, UUID(user["id"]))
    if password_needs_rehash(user["password_hash"]):
        await update_user_password_hash(conn, UUID(user["id"]), hash_password(request.password))
    security_logger.log_login_attempt(request.username, True, ip_address)

    token = create_access_token({"sub": user["id"], "role": user["role"]})
    user.pop("password_hash", None)
    return success_response(
        data={"access_token": token, "token_type": "bearer", "user": user},
        message="Login successful",
    )


@router.get("/me")
async def me(
    ctx: Annotated[AccessContext, Depends(get_access_context)],
    hierarchy: Annotated[LocationHierarchy, Depends(get_location_hierarchy)],
):
    """Current user with permissions, resolved scope and location names."""
    return success_response(
        data={
            "user": ctx.user,
            "role_display_name": role_display_name(ctx.role),
            "permissions": ctx.permissions.to_dict(),
            "scope": ctx.resolved.to_dict(),
            "location_names": hierarchy.location_names(ctx.scope.as_location()),
        }
    )
