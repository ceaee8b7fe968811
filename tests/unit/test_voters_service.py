"""Unit tests for the voter service.

Database calls go to an AsyncMock connection, so these tests check the SQL
and parameters each function sends rather than real rows.
"""

from uuid import uuid4

import pytest

from conftest import ROLE_SCOPES

from app.core.exceptions import InconsistentScopeError, OutOfScopeError
from app.services import voters as voter_service
from app.services.access_scope import UNRESTRICTED, ScopeAnchor, build_constraint, resolve_scope
from app.services.locations import LocationLevel

V4_LOCATION = {
    "division_id": "d1",
    "district_id": "t1",
    "upazila_id": "u2",
    "union_id": "n3",
    "village_id": "v4",
}


class TestPrepareVoterLocation:
    """Test write-time location checks."""

    def test_inside_scope(self, hierarchy):
        resolved = resolve_scope("district_admin", ROLE_SCOPES["district_admin"])

        assert voter_service.prepare_voter_location(hierarchy, resolved, V4_LOCATION) == V4_LOCATION

    def test_super_admin_anywhere(self, hierarchy):
        location = hierarchy.complete_scope("village", "v5")

        assert voter_service.prepare_voter_location(hierarchy, UNRESTRICTED, location) == location

    def test_outside_scope(self, hierarchy):
        """An upazila admin for u1 cannot place a voter in u2."""
        resolved = resolve_scope("upazila_admin", ROLE_SCOPES["upazila_admin"])

        with pytest.raises(OutOfScopeError):
            voter_service.prepare_voter_location(hierarchy, resolved, V4_LOCATION)

    def test_incomplete_location(self, hierarchy):
        location = {"union_id": "n3", "village_id": "v4"}

        with pytest.raises(InconsistentScopeError):
            voter_service.prepare_voter_location(hierarchy, UNRESTRICTED, location)

    def test_inconsistent_location(self, hierarchy):
        """Ids that name a real village but the wrong union are rejected."""
        location = dict(V4_LOCATION, union_id="n1")

        with pytest.raises(InconsistentScopeError):
            voter_service.prepare_voter_location(hierarchy, UNRESTRICTED, location)


class TestCallerFilters:
    def test_known_fields(self):
        predicate = voter_service.caller_filters({"union_id": "n1", "gender": "Male", "religion": None})

        assert predicate.clauses == (("union_id", "n1"), ("gender", "Male"))

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="password_hash"):
            voter_service.caller_filters({"password_hash": "x"})

    def test_empty(self):
        assert voter_service.caller_filters(None).is_empty

    @pytest.mark.parametrize("raw, expected", [("true", True), ("False", False), (True, True), ("1", True)])
    def test_boolean_column_coerced(self, raw, expected):
        predicate = build_constraint(UNRESTRICTED, voter_service.caller_filters({"is_voter": raw}))

        assert predicate.to_sql() == ("is_voter = $1", [expected])
        assert predicate.matches({"is_voter": expected})
        assert not predicate.matches({"is_voter": not expected})

    def test_boolean_column_rejects_other_values(self):
        with pytest.raises(ValueError, match="is_voter"):
            voter_service.caller_filters({"is_voter": "maybe"})


class TestVoterQueries:
    """Test the SQL sent for scoped voter queries."""

    @pytest.mark.asyncio
    async def test_create_voter(self, conn):
        user_id = uuid4()
        conn.fetchrow.return_value = {"id": uuid4(), "voter_name": "Rahim", "created_by": user_id}

        voter = await voter_service.create_voter(
            conn, V4_LOCATION, {"voter_name": "Rahim", "age": 40, "phone": None}, user_id
        )

        query, *params = conn.fetchrow.call_args.args
        assert "INSERT INTO voters (division_id, district_id, upazila_id, union_id, village_id, voter_name, age, created_by)" in query
        assert params == ["d1", "t1", "u2", "n3", "v4", "Rahim", 40, str(user_id)]
        assert voter["created_by"] == str(user_id)

    @pytest.mark.asyncio
    async def test_get_voter_is_scoped(self, conn):
        conn.fetchrow.return_value = None
        voter_id = uuid4()
        constraint = build_constraint(ScopeAnchor(LocationLevel.UNION, "n1"))

        assert await voter_service.get_voter(conn, voter_id, constraint) is None

        query, *params = conn.fetchrow.call_args.args
        assert "WHERE id = $1 AND union_id = $2" in query
        assert params == [str(voter_id), "n1"]

    @pytest.mark.asyncio
    async def test_get_voter_unrestricted(self, conn):
        conn.fetchrow.return_value = None

        await voter_service.get_voter(conn, uuid4(), build_constraint(UNRESTRICTED))

        assert "WHERE id = $1 AND TRUE" in conn.fetchrow.call_args.args[0]

    @pytest.mark.asyncio
    async def test_list_voters_with_search(self, conn):
        conn.fetchval.return_value = 1
        conn.fetch.return_value = [{"id": uuid4(), "voter_name": "Karim", "created_by": None}]
        constraint = build_constraint(
            ScopeAnchor(LocationLevel.DISTRICT, "t1"), voter_service.caller_filters({"gender": "Male"})
        )

        voters, total = await voter_service.list_voters(conn, constraint, search="Kar", limit=10, offset=20)

        count_query, *count_params = conn.fetchval.call_args.args
        assert "district_id = $1 AND gender = $2 AND (voter_name ILIKE $3" in count_query
        assert count_params == ["t1", "Male", "%Kar%"]

        list_query, *list_params = conn.fetch.call_args.args
        assert "LIMIT $4 OFFSET $5" in list_query
        assert list_params == ["t1", "Male", "%Kar%", 10, 20]
        assert total == 1
        assert voters[0]["voter_name"] == "Karim"
        assert isinstance(voters[0]["id"], str)

    @pytest.mark.asyncio
    async def test_update_voter_ignores_location_fields(self, conn):
        conn.fetchrow.return_value = {"id": "x", "voter_name": "New"}
        voter_id = uuid4()
        constraint = build_constraint(ScopeAnchor(LocationLevel.VILLAGE, "v1"))

        await voter_service.update_voter(
            conn, voter_id, constraint, voter_name="New", village_id="v5", remarks=None
        )

        query, *params = conn.fetchrow.call_args.args
        assert "SET voter_name = $1, updated_at = CURRENT_TIMESTAMP" in query
        assert "WHERE id = $2 AND village_id = $3" in query
        assert params == ["New", str(voter_id), "v1"]

    @pytest.mark.asyncio
    async def test_update_without_changes_reads_voter(self, conn):
        conn.fetchrow.return_value = None

        await voter_service.update_voter(conn, uuid4(), build_constraint(UNRESTRICTED))

        assert conn.fetchrow.call_args.args[0].startswith("SELECT * FROM voters")

    @pytest.mark.asyncio
    async def test_delete_voter(self, conn):
        conn.execute.return_value = "DELETE 1"
        voter_id = uuid4()

        assert await voter_service.delete_voter(conn, voter_id, build_constraint(UNRESTRICTED))

        conn.execute.return_value = "DELETE 0"
        assert not await voter_service.delete_voter(conn, voter_id, build_constraint(UNRESTRICTED))

    @pytest.mark.asyncio
    async def test_voter_stats(self, conn):
        conn.fetchval.return_value = 3
        conn.fetch.return_value = [{"key": "yes", "count": 2}, {"key": "unknown", "count": 1}]

        stats = await voter_service.voter_stats(conn, build_constraint(ScopeAnchor(LocationLevel.UPAZILA, "u1")))

        assert stats["total"] == 3
        assert stats["by_will_vote"] == {"yes": 2, "unknown": 1}
        assert set(stats) == {"total"} | {f"by_{column}" for column in voter_service.STATS_GROUPS}
        for call in conn.fetch.call_args_list:
            assert call.args[1:] == ("u1",)

    @pytest.mark.asyncio
    async def test_list_recipient_phones(self, conn):
        conn.fetch.return_value = [{"phone": "01711111111"}, {"phone": "01822222222"}]

        phones = await voter_service.list_recipient_phones(
            conn, build_constraint(ScopeAnchor(LocationLevel.UNION, "n1"), {"will_vote": "yes"})
        )

        assert phones == ["01711111111", "01822222222"]
        assert conn.fetch.call_args.args[1:] == ("n1", "yes")
