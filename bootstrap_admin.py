#!/usr/bin/env python3
"""
Super Admin Bootstrap Script

Creates the first approved super_admin account. Every other account is
approved through the API by an admin above it, so someone has to start the
chain.

Usage:
    python bootstrap_admin.py --username superadmin --password 'S3cure!Pass'
"""

import argparse
import asyncio

import asyncpg

from app.core.config import get_settings
from app.core.database import close_db_pool, get_db_connection, init_db_pool
from app.core.security import hash_password
from app.core.validation import PasswordValidator, UsernameValidator
from app.services.rbac import Role
from app.services.users import create_approved_user, get_user_by_username


async def bootstrap_super_admin(username: str, password: str, full_name: str | None) -> bool:
    """Create the super_admin user unless the username is already taken."""
    await init_db_pool(get_settings())

    try:
        async with get_db_connection() as conn:
            return await _ensure_super_admin(conn, username, password, full_name)

    except asyncpg.PostgresError as e:
        print(f"❌ Error during bootstrap: {e}")
        return False

    finally:
        await close_db_pool()


async def _ensure_super_admin(
    conn: asyncpg.Connection, username: str, password: str, full_name: str | None
) -> bool:
    existing = await get_user_by_username(conn, username)
    if existing:
        print(f"ℹ️  User '{username}' already exists (role: {existing['role']}, status: {existing['status']})")
        return existing["role"] == Role.SUPER_ADMIN.value

    user = await create_approved_user(
        conn,
        username=username,
        password_hash=hash_password(password),
        role=Role.SUPER_ADMIN.value,
        full_name=full_name,
    )
    print(f"✅ Created super_admin '{user['username']}' (ID: {user['id']})")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the first super_admin user")
    parser.add_argument("--username", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--full-name", default=None)
    args = parser.parse_args()

    for validator, value in ((UsernameValidator, args.username), (PasswordValidator, args.password)):
        is_valid, error = validator.validate(value)
        if not is_valid:
            print(f"❌ {error}")
            return 1

    print("🚀 Voter Dashboard Super Admin Bootstrap")
    print("=" * 50)
    success = asyncio.run(bootstrap_super_admin(args.username, args.password, args.full_name))
    return 0 if success else 1


if __name__ == "__main__":
    raise SystemExit(main())
