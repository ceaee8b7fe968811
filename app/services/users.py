"""User service functions: registration, approval and lookup."""

import json
from typing import Any
from uuid import UUID

import asyncpg

USER_COLUMNS = """
    id, username, full_name, phone, role, requested_role, status,
    access_scope, reviewed_by, reviewed_at, created_at, last_login
"""

USER_STATUSES = ("pending", "approved", "rejected")


def _parse_row(row: asyncpg.Record | None) -> dict[str, Any] | None:
    """Parse a users row into a dict with UUIDs as strings and the scope decoded."""
    if not row:
        return None

    result = dict(row)
    for field in ("id", "reviewed_by"):
        if result.get(field) is not None:
            result[field] = str(result[field])

    scope = result.get("access_scope")
    if isinstance(scope, str):
        result["access_scope"] = json.loads(scope)
    elif scope is None and "access_scope" in result:
        result["access_scope"] = {}

    return result


async def create_user(
    conn: asyncpg.Connection,
    username: str,
    password_hash: str,
    requested_role: str,
    access_scope: dict[str, str] | None = None,
    full_name: str | None = None,
    phone: str | None = None,
) -> dict[str, Any] | None:
    """Create a pending user awaiting approval."""
    result = await conn.fetchrow(
        f"""
        INSERT INTO users (
            username, password_hash, full_name, phone, requested_role,
            status, access_scope
        )
        VALUES ($1, $2, $3, $4, $5, 'pending', $6)
        RETURNING {USER_COLUMNS}
        """,
        username,
        password_hash,
        full_name,
        phone,
        requested_role,
        json.dumps(access_scope or {}),
    )
    return _parse_row(result)


async def create_approved_user(
    conn: asyncpg.Connection,
    username: str,
    password_hash: str,
    role: str,
    access_scope: dict[str, str] | None = None,
    full_name: str | None = None,
) -> dict[str, Any] | None:
    """Create a user that is approved from the start (bootstrap only)."""
    result = await conn.fetchrow(
        f"""
        INSERT INTO users (
            username, password_hash, full_name, role, requested_role,
            status, access_scope, reviewed_at
        )
        VALUES ($1, $2, $3, $4, $4, 'approved', $5, CURRENT_TIMESTAMP)
        RETURNING {USER_COLUMNS}
        """,
        username,
        password_hash,
        full_name,
        role,
        json.dumps(access_scope or {}),
    )
    return _parse_row(result)


async def get_user_by_id(
    conn: asyncpg.Connection, user_id: UUID
) -> dict[str, Any] | None:
    """Get user by ID."""
    result = await conn.fetchrow(
        f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE id = $1",
        str(user_id),
    )
    return _parse_row(result)


async def get_user_by_username(
    conn: asyncpg.Connection, username: str
) -> dict[str, Any] | None:
    """Get user by username."""
    result = await conn.fetchrow(
        f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE username = $1",
        username,
    )
    return _parse_row(result)


async def list_users(
    conn: asyncpg.Connection,
    status: str | None = None,
) -> list[dict[str, Any]]:
    """
    List users, optionally by status.

    Location scoping is applied by the caller with ``filter_manageable_users``
    since scopes are stored as JSON.
    """
    query = f"SELECT {USER_COLUMNS} FROM users"
    params: list[Any] = []

    if status:
        query += " WHERE status = $1"
        params.append(status)

    query += " ORDER BY created_at DESC"
    rows = await conn.fetch(query, *params)
    return [_parse_row(row) for row in rows]


async def review_user(
    conn: asyncpg.Connection,
    user_id: UUID,
    reviewed_by: UUID,
    approved: bool,
    role: str | None = None,
    access_scope: dict[str, str] | None = None,
) -> dict[str, Any] | None:
    """
    Move a pending user to approved (with role and scope) or rejected.

    Returns None if the user does not exist or is no longer pending.
    """
    if approved:
        result = await conn.fetchrow(
            f"""
            UPDATE users
            SET status = 'approved', role = $1, access_scope = $2,
                reviewed_by = $3, reviewed_at = CURRENT_TIMESTAMP
            WHERE id = $4 AND status = 'pending'
            RETURNING {USER_COLUMNS}
            """,
            role,
            json.dumps(access_scope or {}),
            str(reviewed_by),
            str(user_id),
        )
    else:
        result = await conn.fetchrow(
            f"""
            UPDATE users
            SET status = 'rejected', reviewed_by = $1, reviewed_at = CURRENT_TIMESTAMP
            WHERE id = $2 AND status = 'pending'
            RETURNING {USER_COLUMNS}
            """,
            str(reviewed_by),
            str(user_id),
        )
    return _parse_row(result)


async def update_user_last_login(conn: asyncpg.Connection, user_id: UUID) -> None:
    """Update user's last login timestamp."""
    await conn.execute(
        "UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE id = $1",
        str(user_id),
    )


async def update_user_password_hash(
    conn: asyncpg.Connection, user_id: UUID, password_hash: str
) -> None:
    """Replace a stored hash, e.g. after Argon2 parameters were raised."""
    await conn.execute(
        "UPDATE users SET password_hash = $1 WHERE id = $2",
        password_hash,
        str(user_id),
    )
