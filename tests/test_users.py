import pytest

from powerup.models import Instructor, User, UserRole


def user_body(user, **changes):
    body = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone_number": user.phone_number,
        "role": user.role.value,
        "is_admin": user.is_admin,
    }
    body.update(changes)
    return body


@pytest.mark.users
class TestUserReads:
    """Listing and reading user profiles."""

    def test_list_users_as_admin(self, client, admin_headers, member):
        response = client.get("/api/users", headers=admin_headers)

        assert response.status_code == 200
        emails = [u["email"] for u in response.json]
        assert "admin@powerup.test" in emails
        assert "mia@powerup.test" in emails
        assert all("password_hash" not in u for u in response.json)

    def test_list_users_forbidden_for_member(self, client, member_headers):
        response = client.get("/api/users", headers=member_headers)

        assert response.status_code == 403
        assert response.json["status"] == "error"

    def test_list_hides_deleted_unless_requested(
        self, client, admin_headers, make_user, db_session
    ):
        gone = make_user("Gone User", "gone@powerup.test")
        gone.soft_delete()
        db_session.commit()

        default = client.get("/api/users", headers=admin_headers)
        with_deleted = client.get("/api/users?include_deleted=true", headers=admin_headers)

        assert "gone@powerup.test" not in [u["email"] for u in default.json]
        assert "gone@powerup.test" in [u["email"] for u in with_deleted.json]

    def test_get_own_profile(self, client, member, member_headers):
        response = client.get(f"/api/users/{member.user_id}", headers=member_headers)

        assert response.status_code == 200
        assert response.json["email"] == "mia@powerup.test"
        assert response.json["role"] == "Member"

    def test_get_other_profile_forbidden(self, client, admin_user, member_headers):
        response = client.get(f"/api/users/{admin_user.id}", headers=member_headers)
        assert response.status_code == 403

    def test_admin_gets_any_profile(self, client, member, admin_headers):
        response = client.get(f"/api/users/{member.user_id}", headers=admin_headers)
        assert response.status_code == 200

    def test_get_missing_user(self, client, admin_headers):
        response = client.get("/api/users/9999", headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.users
class TestUserWrites:
    """Creating, updating and deleting users."""

    def test_admin_creates_user(self, client, admin_headers):
        response = client.post(
            "/api/users",
            headers=admin_headers,
            json={
                "name": "New Coach",
                "email": "coach@powerup.test",
                "password": "secret99",
                "role": "Instructor",
            },
        )

        assert response.status_code == 201
        assert response.json["role"] == "Instructor"
        assert response.headers["Location"].endswith(f"/api/users/{response.json['id']}")

    def test_create_user_bad_role(self, client, admin_headers):
        response = client.post(
            "/api/users",
            headers=admin_headers,
            json={
                "name": "Odd",
                "email": "odd@powerup.test",
                "password": "secret99",
                "role": "Janitor",
            },
        )
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "field, value",
        [("name", 123), ("email", {"at": "powerup"}), ("password", 12345678)],
    )
    def test_create_user_non_string_field(self, client, admin_headers, field, value):
        body = {"name": "Typed", "email": "typed@powerup.test", "password": "secret99"}
        body[field] = value
        response = client.post("/api/users", headers=admin_headers, json=body)

        assert response.status_code == 400
        assert field in response.json["message"]

    def test_create_user_duplicate_email(self, client, admin_headers, admin_user):
        response = client.post(
            "/api/users",
            headers=admin_headers,
            json={"name": "Copy", "email": admin_user.email, "password": "secret99"},
        )
        assert response.status_code == 409

    def test_update_own_profile(self, client, member, member_headers, db_session):
        user = member.user
        response = client.put(
            f"/api/users/{user.id}",
            headers=member_headers,
            json=user_body(user, name="Mia Lifter", phone_number="555-0111"),
        )

        assert response.status_code == 204
        db_session.expire_all()
        refreshed = db_session.get(User, user.id)
        assert refreshed.name == "Mia Lifter"
        assert refreshed.phone_number == "555-0111"

    def test_update_id_mismatch(self, client, member, member_headers):
        user = member.user
        response = client.put(
            f"/api/users/{user.id}",
            headers=member_headers,
            json=user_body(user, id=user.id + 100),
        )
        assert response.status_code == 400

    def test_member_cannot_grant_admin(self, client, member, member_headers):
        user = member.user
        response = client.put(
            f"/api/users/{user.id}",
            headers=member_headers,
            json=user_body(user, role="Admin", is_admin=True),
        )
        assert response.status_code == 403

    def test_update_other_profile_forbidden(
        self, client, admin_user, member_headers, db_session
    ):
        response = client.put(
            f"/api/users/{admin_user.id}",
            headers=member_headers,
            json=user_body(admin_user, name="Hacked"),
        )

        assert response.status_code == 403
        db_session.expire_all()
        assert db_session.get(User, admin_user.id).name != "Hacked"

    @pytest.mark.parametrize(
        "changes", [{"password": 12345678}, {"name": 42}, {"phone_number": 5550111}]
    )
    def test_update_non_string_field(self, client, member, member_headers, changes):
        user = member.user
        response = client.put(
            f"/api/users/{user.id}",
            headers=member_headers,
            json=user_body(user, **changes),
        )
        assert response.status_code == 400

    def test_update_email_conflict(self, client, member, member_headers, admin_user):
        user = member.user
        response = client.put(
            f"/api/users/{user.id}",
            headers=member_headers,
            json=user_body(user, email=admin_user.email),
        )
        assert response.status_code == 409

    def test_update_missing_user(self, client, admin_user, admin_headers):
        body = user_body(admin_user, id=9999)
        response = client.put("/api/users/9999", headers=admin_headers, json=body)
        assert response.status_code == 404

    def test_update_changes_password(
        self, client, member, member_headers, test_password
    ):
        user = member.user
        response = client.put(
            f"/api/users/{user.id}",
            headers=member_headers,
            json=user_body(user, password="brand-new-pass"),
        )
        assert response.status_code == 204

        old_login = client.post(
            "/api/auth/login", json={"email": user.email, "password": test_password}
        )
        new_login = client.post(
            "/api/auth/login", json={"email": user.email, "password": "brand-new-pass"}
        )
        assert old_login.status_code == 401
        assert new_login.status_code == 200

    def test_delete_is_soft(self, client, member, admin_headers, db_session):
        user_id = member.user_id
        response = client.delete(f"/api/users/{user_id}", headers=admin_headers)

        assert response.status_code == 204
        db_session.expire_all()
        row = db_session.get(User, user_id)
        assert row is not None
        assert row.is_deleted is True
        assert row.deleted_at is not None

        again = client.get(f"/api/users/{user_id}", headers=admin_headers)
        assert again.status_code == 404

    def test_delete_forbidden_for_member(self, client, admin_user, member_headers):
        response = client.delete(f"/api/users/{admin_user.id}", headers=member_headers)
        assert response.status_code == 403


@pytest.mark.users
class TestPromoteAndDistribution:
    """Admin-only role management endpoints."""

    def test_promote_to_instructor(self, client, admin_headers, make_user, db_session):
        """Promotion changes the role only; no instructor profile appears."""
        user = make_user("Pat Promote", "pat@powerup.test", UserRole.Member)

        response = client.post(f"/api/users/promote/{user.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json["message"] == "User promoted to Instructor."
        db_session.expire_all()
        assert db_session.get(User, user.id).role == UserRole.Instructor
        assert db_session.query(Instructor).filter_by(user_id=user.id).count() == 0

        listed = client.get("/api/instructor", headers=admin_headers)
        assert user.id not in [i["user_id"] for i in listed.json]

    def test_promote_missing_user(self, client, admin_headers):
        response = client.post("/api/users/promote/9999", headers=admin_headers)
        assert response.status_code == 404

    def test_promote_forbidden_for_member(self, client, member, member_headers):
        response = client.post(
            f"/api/users/promote/{member.user_id}", headers=member_headers
        )
        assert response.status_code == 403

    def test_distribution_counts_deleted_users(
        self, client, admin_headers, make_user, db_session
    ):
        make_user("Member One", "one@powerup.test")
        gone = make_user("Member Two", "two@powerup.test")
        gone.soft_delete()
        db_session.commit()

        response = client.get("/api/users/distribution", headers=admin_headers)

        assert response.status_code == 200
        counts = {row["role"]: row["count"] for row in response.json}
        assert counts == {"Admin": 1, "Member": 2}
