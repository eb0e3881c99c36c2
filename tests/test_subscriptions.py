from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import delete
from sqlalchemy.orm.exc import StaleDataError

from powerup.extensions import db as database
from powerup.models import Subscription, SubscriptionType, UserSubscription


@pytest.fixture
def monthly_plan(db_session):
    plan = Subscription(type=SubscriptionType.Monthly, total_price=Decimal("49.99"))
    db_session.add(plan)
    db_session.commit()
    return plan


def user_subscription_body(user_id, subscription_id, **changes):
    body = {
        "user_id": user_id,
        "subscription_id": subscription_id,
        "start_date": "2025-01-01T00:00:00Z",
        "end_date": "2025-01-31T00:00:00Z",
        "is_active": True,
    }
    body.update(changes)
    return body


@pytest.mark.subscriptions
class TestSubscriptionPlans:
    """Subscription plan catalogue."""

    def test_admin_creates_plan(self, client, admin_headers):
        response = client.post(
            "/api/subscriptions",
            headers=admin_headers,
            json={"type": "Yearly", "total_price": 399.5},
        )

        assert response.status_code == 201
        assert response.json["type"] == "Yearly"
        assert response.json["total_price"] == 399.5

    def test_member_cannot_create_plan(self, client, member_headers):
        response = client.post(
            "/api/subscriptions",
            headers=member_headers,
            json={"type": "Yearly", "total_price": 399.5},
        )
        assert response.status_code == 403

    def test_create_plan_bad_type(self, client, admin_headers):
        response = client.post(
            "/api/subscriptions",
            headers=admin_headers,
            json={"type": "Weekly", "total_price": 10},
        )
        assert response.status_code == 400

    def test_create_plan_negative_price(self, client, admin_headers):
        response = client.post(
            "/api/subscriptions",
            headers=admin_headers,
            json={"type": "Monthly", "total_price": -1},
        )
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "raw_price", ["NaN", '"NaN"', "Infinity", '"-Infinity"', "1e12"]
    )
    def test_create_plan_non_finite_or_huge_price(self, client, admin_headers, raw_price):
        """Prices that cannot be compared or stored are rejected as bad input."""
        response = client.post(
            "/api/subscriptions",
            headers=admin_headers,
            data='{"type": "Monthly", "total_price": %s}' % raw_price,
            content_type="application/json",
        )

        assert response.status_code == 400
        assert response.json["status"] == "error"
        assert "total_price" in response.json["message"]

    def test_list_plans_for_any_user(self, client, monthly_plan, member_headers):
        response = client.get("/api/subscriptions", headers=member_headers)

        assert response.status_code == 200
        assert response.json == [
            {"id": monthly_plan.id, "type": "Monthly", "total_price": 49.99}
        ]

    def test_update_plan(self, client, monthly_plan, admin_headers, db_session):
        response = client.put(
            f"/api/subscriptions/{monthly_plan.id}",
            headers=admin_headers,
            json={"id": monthly_plan.id, "type": "Semestral", "total_price": 250},
        )

        assert response.status_code == 204
        db_session.expire_all()
        plan = db_session.get(Subscription, monthly_plan.id)
        assert plan.type == SubscriptionType.Semestral
        assert plan.total_price == Decimal("250")

    def test_delete_plan_hides_it(self, client, monthly_plan, admin_headers):
        response = client.delete(
            f"/api/subscriptions/{monthly_plan.id}", headers=admin_headers
        )

        assert response.status_code == 204
        assert client.get(
            f"/api/subscriptions/{monthly_plan.id}", headers=admin_headers
        ).status_code == 404
        assert client.get("/api/subscriptions", headers=admin_headers).json == []


@pytest.mark.subscriptions
class TestMySubscription:
    """The caller's own subscription."""

    def test_my_subscription_not_found(self, client, member_headers):
        response = client.get("/api/subscriptions/my", headers=member_headers)

        assert response.status_code == 404
        assert response.json["message"] == "No subscription found"

    def test_my_subscription_prefers_active(
        self, client, member, member_headers, monthly_plan, db_session
    ):
        old = UserSubscription(
            user_id=member.user_id,
            subscription_id=monthly_plan.id,
            start_date=datetime(2025, 3, 1),
            end_date=datetime(2025, 4, 1),
            is_active=False,
        )
        current = UserSubscription(
            user_id=member.user_id,
            subscription_id=monthly_plan.id,
            start_date=datetime(2025, 1, 1),
            end_date=datetime(2025, 2, 1),
            is_active=True,
        )
        db_session.add_all([old, current])
        db_session.commit()

        response = client.get("/api/subscriptions/my", headers=member_headers)

        assert response.status_code == 200
        assert response.json["id"] == current.id

    def test_my_subscription_members_only(self, client, admin_headers):
        response = client.get("/api/subscriptions/my", headers=admin_headers)
        assert response.status_code == 403


@pytest.mark.subscriptions
class TestUserSubscriptions:
    """Plans held by users."""

    def test_create_user_subscription(self, client, member, monthly_plan, member_headers):
        response = client.post(
            "/api/usersubscription",
            headers=member_headers,
            json=user_subscription_body(member.user_id, monthly_plan.id),
        )

        assert response.status_code == 201
        data = response.json
        assert data["start_date"] == "2025-01-01T00:00:00"
        assert data["end_date"] == "2025-01-31T00:00:00"
        assert data["is_active"] is True

    def test_end_before_start(self, client, member, monthly_plan, member_headers):
        response = client.post(
            "/api/usersubscription",
            headers=member_headers,
            json=user_subscription_body(
                member.user_id, monthly_plan.id, end_date="2024-12-01T00:00:00Z"
            ),
        )
        assert response.status_code == 400

    def test_unknown_subscription(self, client, member, member_headers):
        response = client.post(
            "/api/usersubscription",
            headers=member_headers,
            json=user_subscription_body(member.user_id, 999),
        )
        assert response.status_code == 400

    def test_duplicate_active_pair(self, client, member, monthly_plan, member_headers):
        """Only one active row per user and plan."""
        body = user_subscription_body(member.user_id, monthly_plan.id)
        first = client.post("/api/usersubscription", headers=member_headers, json=body)
        second = client.post("/api/usersubscription", headers=member_headers, json=body)

        assert first.status_code == 201
        assert second.status_code == 409

    def test_inactive_pair_allowed(self, client, member, monthly_plan, member_headers):
        body = user_subscription_body(member.user_id, monthly_plan.id)
        client.post("/api/usersubscription", headers=member_headers, json=body)

        response = client.post(
            "/api/usersubscription",
            headers=member_headers,
            json=dict(body, is_active=False),
        )
        assert response.status_code == 201

    def test_update_user_subscription(
        self, client, member, monthly_plan, member_headers, db_session
    ):
        created = client.post(
            "/api/usersubscription",
            headers=member_headers,
            json=user_subscription_body(member.user_id, monthly_plan.id),
        ).json

        response = client.put(
            f"/api/usersubscription/{created['id']}",
            headers=member_headers,
            json=user_subscription_body(
                member.user_id,
                monthly_plan.id,
                id=created["id"],
                end_date="2025-02-28T00:00:00Z",
            ),
        )

        assert response.status_code == 204
        db_session.expire_all()
        row = db_session.get(UserSubscription, created["id"])
        assert row.end_date == datetime(2025, 2, 28)

    def test_delete_user_subscription(
        self, client, member, monthly_plan, member_headers
    ):
        created = client.post(
            "/api/usersubscription",
            headers=member_headers,
            json=user_subscription_body(member.user_id, monthly_plan.id),
        ).json

        response = client.delete(
            f"/api/usersubscription/{created['id']}", headers=member_headers
        )

        assert response.status_code == 204
        assert client.get(
            f"/api/usersubscription/{created['id']}", headers=member_headers
        ).status_code == 404
        # a deleted row no longer blocks a new active one
        again = client.post(
            "/api/usersubscription",
            headers=member_headers,
            json=user_subscription_body(member.user_id, monthly_plan.id),
        )
        assert again.status_code == 201

    def test_requires_token(self, client):
        assert client.get("/api/usersubscription").status_code == 401


@pytest.mark.subscriptions
class TestConcurrentPlanUpdates:
    """Commits that hit a row changed under a concurrent writer."""

    def update_body(self, plan):
        return {"id": plan.id, "type": "Yearly", "total_price": 420}

    def test_row_deleted_meanwhile_gives_404(
        self, client, monthly_plan, admin_headers, db_session, monkeypatch
    ):
        plan_id = monthly_plan.id
        real_commit = database.session.commit

        def commit_after_row_vanished():
            db_session.execute(
                delete(Subscription)
                .where(Subscription.id == plan_id)
                .execution_options(synchronize_session=False)
            )
            real_commit()
            raise StaleDataError("row was deleted by another writer")

        monkeypatch.setattr(database.session, "commit", commit_after_row_vanished)

        response = client.put(
            f"/api/subscriptions/{plan_id}",
            headers=admin_headers,
            json=self.update_body(monthly_plan),
        )

        assert response.status_code == 404
        assert response.json["message"] == "Subscription not found"

    def test_stale_row_still_present_is_not_hidden(
        self, client, monthly_plan, admin_headers, db_session, monkeypatch
    ):
        plan_id = monthly_plan.id

        def stale_commit():
            raise StaleDataError("version mismatch")

        monkeypatch.setattr(database.session, "commit", stale_commit)

        response = client.put(
            f"/api/subscriptions/{plan_id}",
            headers=admin_headers,
            json=self.update_body(monthly_plan),
        )
        monkeypatch.undo()

        assert response.status_code == 500
        db_session.expire_all()
        plan = db_session.get(Subscription, plan_id)
        # the failed update was rolled back
        assert plan.type == SubscriptionType.Monthly
        assert plan.total_price == Decimal("49.99")
