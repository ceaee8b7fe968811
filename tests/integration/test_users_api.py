"""API tests for scoped user listing and approval."""

import json
from uuid import uuid4

V2_SCOPE = {
    "division_id": "d1",
    "district_id": "t1",
    "upazila_id": "u1",
    "union_id": "n1",
    "village_id": "v2",
}

V4_SCOPE = dict(V2_SCOPE, upazila_id="u2", union_id="n3", village_id="v4")


def pending_row(requested_role="village_admin", access_scope=None):
    return {
        "id": uuid4(),
        "username": "karim",
        "role": None,
        "requested_role": requested_role,
        "status": "pending",
        "access_scope": json.dumps(V2_SCOPE if access_scope is None else access_scope),
        "password_hash": "x",
    }


class TestApprove:
    """Test POST /users/{id}/approve."""

    def test_union_admin_approves_village_admin(self, client, conn, login_as):
        reviewer = login_as("union_admin")
        user_id = uuid4()
        conn.fetchrow.side_effect = [
            pending_row(),
            {"id": user_id, "username": "karim", "status": "approved", "role": "village_admin"},
        ]

        response = client.post(
            f"/users/{user_id}/approve",
            json={"role": "village_admin", "access_scope": {"village_id": "v2"}},
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "approved"
        role, scope, reviewed_by, target_id = conn.fetchrow.call_args.args[1:]
        assert role == "village_admin"
        assert json.loads(scope) == V2_SCOPE
        assert reviewed_by == reviewer["id"]
        assert target_id == str(user_id)

    def test_location_outside_scope(self, client, conn, login_as):
        login_as("union_admin")
        conn.fetchrow.return_value = pending_row()

        response = client.post(
            f"/users/{uuid4()}/approve",
            json={"role": "village_admin", "access_scope": {"village_id": "v4"}},
        )

        assert response.status_code == 403
        assert conn.fetchrow.await_count == 1

    def test_request_outside_scope_cannot_be_approved(self, client, conn, login_as):
        """Approval needs the same reach over the submitted request as rejection."""
        login_as("union_admin")
        conn.fetchrow.return_value = pending_row(access_scope=V4_SCOPE)

        response = client.post(
            f"/users/{uuid4()}/approve",
            json={"role": "village_admin", "access_scope": {"village_id": "v2"}},
        )

        assert response.status_code == 403
        assert response.json()["message"] == "You cannot review this user"
        assert conn.fetchrow.await_count == 1

    def test_peer_role_cannot_be_assigned(self, client, conn, login_as):
        login_as("union_admin")
        conn.fetchrow.return_value = pending_row("union_admin")

        response = client.post(
            f"/users/{uuid4()}/approve",
            json={"role": "union_admin", "access_scope": {"union_id": "n1"}},
        )

        assert response.status_code == 403

    def test_super_admin_cannot_create_super_admin(self, client, conn, login_as):
        login_as("super_admin")
        conn.fetchrow.return_value = pending_row()

        response = client.post(f"/users/{uuid4()}/approve", json={"role": "super_admin"})

        assert response.status_code == 403

    def test_inconsistent_scope(self, client, conn, login_as):
        login_as("super_admin")
        conn.fetchrow.return_value = pending_row()

        response = client.post(
            f"/users/{uuid4()}/approve",
            json={"role": "upazila_admin", "access_scope": {"district_id": "t3", "upazila_id": "u1"}},
        )

        assert response.status_code == 422

    def test_village_admin_cannot_verify(self, client, conn, login_as):
        login_as("village_admin")

        response = client.post(
            f"/users/{uuid4()}/approve",
            json={"role": "village_admin", "access_scope": {"village_id": "v1"}},
        )

        assert response.status_code == 403
        conn.fetchrow.assert_not_called()

    def test_already_reviewed(self, client, conn, login_as):
        login_as("super_admin")
        conn.fetchrow.side_effect = [pending_row(), None]

        response = client.post(
            f"/users/{uuid4()}/approve",
            json={"role": "division_admin", "access_scope": {"division_id": "d2"}},
        )

        assert response.status_code == 409

    def test_missing_user(self, client, conn, login_as):
        login_as("super_admin")
        conn.fetchrow.return_value = None

        response = client.post(f"/users/{uuid4()}/approve", json={"role": "division_admin"})

        assert response.status_code == 404


class TestReject:
    def test_reject_inside_scope(self, client, conn, login_as):
        login_as("upazila_admin")
        conn.fetchrow.side_effect = [
            pending_row("union_admin", {"union_id": "n2", "upazila_id": "u1"}),
            {"id": uuid4(), "username": "karim", "status": "rejected"},
        ]

        response = client.post(f"/users/{uuid4()}/reject")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "rejected"

    def test_reject_outside_scope(self, client, conn, login_as):
        login_as("upazila_admin")
        conn.fetchrow.return_value = pending_row("union_admin", {"union_id": "n3", "upazila_id": "u2"})

        response = client.post(f"/users/{uuid4()}/reject")

        assert response.status_code == 403


class TestPendingUsers:
    def test_only_reviewable_registrations(self, client, conn, login_as):
        login_as("upazila_admin")
        conn.fetch.return_value = [
            pending_row("union_admin", {"union_id": "n2", "upazila_id": "u1"}),
            pending_row("union_admin", {"union_id": "n3", "upazila_id": "u2"}),
            pending_row("upazila_admin", {"upazila_id": "u1"}),
        ]

        response = client.get("/users/pending")

        assert response.status_code == 200
        users = response.json()["data"]["users"]
        assert [u["access_scope"]["union_id"] for u in users] == ["n2"]
        assert conn.fetch.call_args.args[1:] == ("pending",)

    def test_registration_with_only_anchor_is_reviewable(self, client, conn, login_as):
        """A village id alone is enough for the union admin above it to find the request."""
        conn.fetchrow.side_effect = lambda query, *args: (
            None if "WHERE username" in query else {"id": uuid4(), "status": "pending"}
        )
        client.post(
            "/auth/register",
            json={
                "username": "karim",
                "password": "Dhaka#2026x",
                "requested_role": "village_admin",
                "access_scope": {"village_id": "v1"},
            },
        )
        stored_scope = conn.fetchrow.call_args.args[6]
        assert json.loads(stored_scope)["union_id"] == "n1"

        login_as("union_admin")
        conn.fetch.return_value = [
            {
                "id": uuid4(),
                "username": "karim",
                "requested_role": "village_admin",
                "status": "pending",
                "access_scope": stored_scope,
            }
        ]

        response = client.get("/users/pending")

        assert response.status_code == 200
        assert [u["username"] for u in response.json()["data"]["users"]] == ["karim"]

    def test_requires_verify_permission(self, client, conn, login_as):
        login_as("village_admin")

        assert client.get("/users/pending").status_code == 403
        conn.fetch.assert_not_called()


class TestListUsers:
    def test_only_users_in_scope(self, client, conn, login_as):
        login_as("district_admin")
        conn.fetch.return_value = [
            {"id": uuid4(), "username": "inside", "access_scope": json.dumps({"district_id": "t1"})},
            {"id": uuid4(), "username": "outside", "access_scope": json.dumps({"district_id": "t3"})},
            {"id": uuid4(), "username": "nowhere", "access_scope": None},
        ]

        response = client.get("/users", params={"status": "pending"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert [u["username"] for u in data["users"]] == ["inside"]
        assert conn.fetch.call_args.args[1:] == ("pending",)

    def test_invalid_status(self, client, login_as):
        login_as("super_admin")
        assert client.get("/users", params={"status": "deleted"}).status_code == 422


class TestAssignmentOptions:
    def test_upazila_admin_assigning_village_admin(self, client, login_as):
        login_as("upazila_admin")

        response = client.get("/users/assignment-options/village_admin")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["fixed"] == {"division_id": "d1", "district_id": "t1", "upazila_id": "u1"}
        assert data["selectable"] == ["union", "village"]
        assert data["required_fields"][-1] == "village_id"

    def test_role_not_assignable(self, client, login_as):
        login_as("upazila_admin")

        assert client.get("/users/assignment-options/district_admin").status_code == 403
