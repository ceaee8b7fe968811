"""Voter record service functions.

Every read, update and delete takes a ``FilterPredicate`` built by
``build_constraint`` for the caller; it is AND-ed into the SQL so rows outside
the caller's scope are never returned or touched.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

import asyncpg

from app.core.exceptions import OutOfScopeError
from app.services.access_scope import FilterPredicate, ResolvedScope, is_accessible
from app.services.locations import LOCATION_ID_FIELDS, LocationHierarchy, LocationLevel

VOTER_FIELDS = (
    "voter_name",
    "house_name",
    "father_or_husband",
    "age",
    "gender",
    "marital_status",
    "occupation",
    "education",
    "religion",
    "phone",
    "whatsapp",
    "nid",
    "is_voter",
    "will_vote",
    "voted_before",
    "vote_probability",
    "political_support",
    "priority_level",
    "has_disability",
    "is_migrated",
    "remarks",
    "collector",
    "collection_date",
)

# Columns a caller may filter on besides the location ids
FILTERABLE_FIELDS = frozenset(
    LOCATION_ID_FIELDS
    + ("gender", "will_vote", "is_voter", "priority_level", "political_support", "religion")
)

# BOOLEAN columns; query-string and JSON filters arrive as "true"/"false"
BOOLEAN_FILTER_FIELDS = frozenset({"is_voter"})

STATS_GROUPS = ("will_vote", "gender", "priority_level", "political_support")


def _parse_row(row: asyncpg.Record | None) -> dict[str, Any] | None:
    if not row:
        return None

    result = dict(row)
    for field in ("id", "created_by"):
        if result.get(field) is not None:
            result[field] = str(result[field])
    return result


def prepare_voter_location(
    hierarchy: LocationHierarchy,
    resolved_scope: ResolvedScope,
    location: Mapping[str, Any],
) -> dict[str, str]:
    """
    Validate the location tuple of a new voter.

    All five ids must be present and form a path in the tree, and the village
    must lie inside the caller's scope.

    Raises:
        InconsistentScopeError: incomplete or inconsistent tuple.
        OutOfScopeError: tuple is valid but outside the caller's scope.
    """
    chain = hierarchy.check_chain(location, LocationLevel.VILLAGE, require_complete=True)
    if not is_accessible(resolved_scope, chain):
        raise OutOfScopeError("Voter location is outside your access scope")
    return chain


def caller_filters(filters: Mapping[str, Any] | None) -> FilterPredicate:
    """Drill-down filters from the query string, restricted to filterable columns."""
    if not filters:
        return FilterPredicate()
    unknown = set(filters) - FILTERABLE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported filter fields: {', '.join(sorted(unknown))}")
    return FilterPredicate.from_mapping(
        {field: _coerce_filter(field, value) for field, value in filters.items()}
    )


def _coerce_filter(field: str, value: Any) -> Any:
    if field not in BOOLEAN_FILTER_FIELDS or value in (None, "") or isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValueError(f"{field} must be true or false")


async def create_voter(
    conn: asyncpg.Connection,
    location: Mapping[str, str],
    data: Mapping[str, Any],
    created_by: UUID,
) -> dict[str, Any] | None:
    """Insert a voter. ``location`` must come from ``prepare_voter_location``."""
    columns = list(LOCATION_ID_FIELDS)
    values: list[Any] = [location[field] for field in LOCATION_ID_FIELDS]

    for field in VOTER_FIELDS:
        if data.get(field) is not None:
            columns.append(field)
            values.append(data[field])

    columns.append("created_by")
    values.append(str(created_by))

    placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
    result = await conn.fetchrow(
        f"""
        INSERT INTO voters ({", ".join(columns)})
        VALUES ({placeholders})
        RETURNING *
        """,
        *values,
    )
    return _parse_row(result)


async def get_voter(
    conn: asyncpg.Connection,
    voter_id: UUID,
    constraint: FilterPredicate,
) -> dict[str, Any] | None:
    """Get a voter by ID if it lies inside ``constraint``."""
    where, params = constraint.to_sql(start_param=2)
    result = await conn.fetchrow(
        f"SELECT * FROM voters WHERE id = $1 AND {where}",
        str(voter_id),
        *params,
    )
    return _parse_row(result)


async def list_voters(
    conn: asyncpg.Connection,
    constraint: FilterPredicate,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """List voters inside ``constraint`` with optional name/phone/NID search."""
    where, params = constraint.to_sql(start_param=1)
    param_num = len(params) + 1

    if search:
        where += (
            f" AND (voter_name ILIKE ${param_num} OR phone ILIKE ${param_num}"
            f" OR nid ILIKE ${param_num})"
        )
        params.append(f"%{search}%")
        param_num += 1

    total = await conn.fetchval(f"SELECT COUNT(*) FROM voters WHERE {where}", *params)

    rows = await conn.fetch(
        f"""
        SELECT * FROM voters
        WHERE {where}
        ORDER BY created_at DESC
        LIMIT ${param_num} OFFSET ${param_num + 1}
        """,
        *params,
        limit,
        offset,
    )
    return [_parse_row(row) for row in rows], total or 0


async def update_voter(
    conn: asyncpg.Connection,
    voter_id: UUID,
    constraint: FilterPredicate,
    **kwargs,
) -> dict[str, Any] | None:
    """
    Update domain fields of a voter inside ``constraint``.

    Location ids are not updatable here; unknown keys are ignored.
    """
    updates = []
    params: list[Any] = []
    param_num = 1

    for key, value in kwargs.items():
        if key in VOTER_FIELDS and value is not None:
            updates.append(f"{key} = ${param_num}")
            params.append(value)
            param_num += 1

    if not updates:
        return await get_voter(conn, voter_id, constraint)

    updates.append("updated_at = CURRENT_TIMESTAMP")
    params.append(str(voter_id))
    where, scope_params = constraint.to_sql(start_param=param_num + 1)
    params.extend(scope_params)

    result = await conn.fetchrow(
        f"""
        UPDATE voters
        SET {", ".join(updates)}
        WHERE id = ${param_num} AND {where}
        RETURNING *
        """,
        *params,
    )
    return _parse_row(result)


async def delete_voter(
    conn: asyncpg.Connection,
    voter_id: UUID,
    constraint: FilterPredicate,
) -> bool:
    """Delete a voter inside ``constraint``. Returns False if nothing matched."""
    where, params = constraint.to_sql(start_param=2)
    result = await conn.execute(
        f"DELETE FROM voters WHERE id = $1 AND {where}",
        str(voter_id),
        *params,
    )
    return int(result.split()[-1]) > 0


async def voter_stats(
    conn: asyncpg.Connection,
    constraint: FilterPredicate,
) -> dict[str, Any]:
    """Totals for the caller's scope, grouped by vote intent, gender, priority and support."""
    where, params = constraint.to_sql(start_param=1)
    total = await conn.fetchval(f"SELECT COUNT(*) FROM voters WHERE {where}", *params)

    stats: dict[str, Any] = {"total": total or 0}
    for column in STATS_GROUPS:
        rows = await conn.fetch(
            f"""
            SELECT COALESCE({column}, 'unknown') AS key, COUNT(*) AS count
            FROM voters
            WHERE {where}
            GROUP BY 1
            ORDER BY 2 DESC
            """,
            *params,
        )
        stats[f"by_{column}"] = {row["key"]: row["count"] for row in rows}

    return stats


async def list_recipient_phones(
    conn: asyncpg.Connection,
    constraint: FilterPredicate,
) -> list[str]:
    """Distinct phone numbers of voters inside ``constraint``."""
    where, params = constraint.to_sql(start_param=1)
    rows = await conn.fetch(
        f"""
        SELECT DISTINCT phone FROM voters
        WHERE {where} AND phone IS NOT NULL AND phone <> ''
        ORDER BY phone
        """,
        *params,
    )
    return [row["phone"] for row in rows]
