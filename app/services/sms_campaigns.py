"""SMS campaign drafts.

Campaigns are stored with their target filters; recipients are resolved at
read time through the scope of whoever reads them. Delivery through an SMS
gateway is handled outside this service.
"""

import json
from typing import Any
from uuid import UUID

import asyncpg

SMS_SEGMENT_LENGTH = 160
# Bangla text is sent as UCS-2, which shrinks a segment to 70 characters
SMS_UNICODE_SEGMENT_LENGTH = 70


def _parse_row(row: asyncpg.Record | None) -> dict[str, Any] | None:
    if not row:
        return None

    result = dict(row)
    for field in ("id", "created_by"):
        if result.get(field) is not None:
            result[field] = str(result[field])
    if isinstance(result.get("target_filters"), str):
        result["target_filters"] = json.loads(result["target_filters"])
    return result


def count_segments(message: str) -> int:
    """Number of SMS segments needed for ``message``."""
    if not message:
        return 0
    limit = (
        SMS_SEGMENT_LENGTH if all(ord(c) < 128 for c in message) else SMS_UNICODE_SEGMENT_LENGTH
    )
    return (len(message) + limit - 1) // limit


async def create_campaign(
    conn: asyncpg.Connection,
    name: str,
    message: str,
    created_by: UUID,
    target_filters: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Create a draft campaign."""
    result = await conn.fetchrow(
        """
        INSERT INTO sms_campaigns (name, message, target_filters, status, created_by)
        VALUES ($1, $2, $3, 'draft', $4)
        RETURNING *
        """,
        name,
        message,
        json.dumps(target_filters or {}),
        str(created_by),
    )
    return _parse_row(result)


async def get_campaign(
    conn: asyncpg.Connection, campaign_id: UUID
) -> dict[str, Any] | None:
    """Get a campaign by ID."""
    result = await conn.fetchrow(
        "SELECT * FROM sms_campaigns WHERE id = $1", str(campaign_id)
    )
    return _parse_row(result)


async def list_campaigns(
    conn: asyncpg.Connection,
    created_by: UUID | None = None,
) -> list[dict[str, Any]]:
    """List campaigns, newest first, optionally only one author's."""
    query = "SELECT * FROM sms_campaigns"
    params: list[Any] = []

    if created_by:
        query += " WHERE created_by = $1"
        params.append(str(created_by))

    query += " ORDER BY created_at DESC"
    rows = await conn.fetch(query, *params)
    return [_parse_row(row) for row in rows]
