from datetime import datetime, timedelta
from types import SimpleNamespace

from app.models.payment import Payment
from app.models.user import User
from app.services.subscription_service import compute_valid_till, days_remaining, has_active_subscription


def test_has_access_flips_exactly_at_valid_till():
    valid_till = datetime(2026, 1, 1, 12, 0, 0)
    user = SimpleNamespace(subscription_valid_till=valid_till)

    assert has_active_subscription(user, valid_till - timedelta(microseconds=1)) is True
    assert has_active_subscription(user, valid_till) is False
    assert has_active_subscription(user, valid_till + timedelta(seconds=1)) is False


def test_compute_valid_till_extends_running_subscription():
    now = datetime(2026, 1, 1)
    plan = SimpleNamespace(duration_in_days=30)
    running = SimpleNamespace(subscription_valid_till=now + timedelta(days=5))
    lapsed = SimpleNamespace(subscription_valid_till=now - timedelta(days=5))

    assert compute_valid_till(running, plan, now) == now + timedelta(days=35)
    assert compute_valid_till(lapsed, plan, now) == now + timedelta(days=30)


def test_days_remaining_rounds_up_partial_days():
    now = datetime(2026, 1, 1)
    user = SimpleNamespace(subscription_valid_till=now + timedelta(days=2, hours=1))

    assert days_remaining(user, now) == 3


def test_choose_plan_extends_from_existing_expiry(client, make_user, make_plan, auth_headers, db):
    make_plan(name="basic", price=999)
    make_plan(name="premium", price=1999)
    member = make_user(plan="basic", valid_days=10)
    previous = db.get(User, member.id).subscription_valid_till

    response = client.post(
        "/api/member/subscription/choose",
        json={"plan_name": "premium"},
        headers=auth_headers(member),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["subscription"]["plan"] == "premium"
    assert data["payment"]["payment_status"] == "success"
    assert data["payment"]["payment_gateway"] == "mock"

    db.expire_all()
    refreshed = db.get(User, member.id)
    assert abs((refreshed.subscription_valid_till - (previous + timedelta(days=30))).total_seconds()) < 1
    assert db.query(Payment).filter(Payment.user_id == member.id).count() == 1


def test_choose_plan_after_expiry_starts_from_now(client, make_user, make_plan, auth_headers, db):
    make_plan(name="basic", price=999, duration_in_days=30)
    member = make_user(plan="basic", valid_days=-3)

    before = datetime.utcnow()
    response = client.post(
        "/api/member/subscription/choose",
        json={"plan_name": "basic"},
        headers=auth_headers(member),
    )

    assert response.status_code == 200
    valid_till = db.get(User, member.id).subscription_valid_till
    assert before + timedelta(days=30) <= valid_till <= datetime.utcnow() + timedelta(days=30)


def test_choose_unknown_plan_is_404(client, make_user, auth_headers):
    member = make_user()

    response = client.post(
        "/api/member/subscription/choose",
        json={"plan_name": "premium"},
        headers=auth_headers(member),
    )

    assert response.status_code == 404
    assert response.json()["code"] == "PLAN_NOT_FOUND"


def test_access_check_clears_expired_subscription(client, make_user, auth_headers, db):
    member = make_user(plan="premium", valid_days=-1)

    response = client.get("/api/plans/access/check", headers=auth_headers(member))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["has_access"] is False
    assert data["days_remaining"] == 0
    user = db.get(User, member.id)
    assert user.subscription_plan is None
    assert user.subscription_valid_till is None


def test_access_check_reports_running_subscription(client, make_user, auth_headers):
    member = make_user(plan="basic", valid_days=5)

    data = client.get("/api/plans/access/check", headers=auth_headers(member)).json()["data"]

    assert data["has_access"] is True
    assert data["plan"] == "basic"
    assert data["days_remaining"] == 5


def test_subscription_status_includes_latest_payment(client, make_user, make_plan, auth_headers):
    plan = make_plan(name="basic", price=999)
    member = make_user()
    client.post("/api/plans/subscribe", json={"plan_id": plan.id}, headers=auth_headers(member))

    response = client.get("/api/member/subscription/status", headers=auth_headers(member))

    data = response.json()["data"]
    assert data["subscription"]["is_active"] is True
    assert data["subscription"]["plan"] == "basic"
    assert data["latest_payment"]["amount_paid"] == 999


def test_my_plans_requires_running_premium(client, make_user, auth_headers):
    basic = make_user(plan="basic", valid_days=10)
    response = client.get("/api/member/my-plans", headers=auth_headers(basic))
    assert response.status_code == 200
    assert response.json()["data"] == {"workout_plan": None, "diet_plan": None}

    expired = make_user(plan="premium", valid_days=-1)
    response = client.get("/api/member/my-plans", headers=auth_headers(expired))
    assert response.status_code == 403
    assert response.json()["code"] == "SUBSCRIPTION_EXPIRED"

    unverified = make_user(plan="premium", valid_days=10, verified=False)
    response = client.get("/api/member/my-plans", headers=auth_headers(unverified))
    assert response.status_code == 403
    assert response.json()["code"] == "VERIFICATION_REQUIRED"


def test_member_routes_reject_other_roles(client, make_user, auth_headers):
    trainer = make_user(role="trainer")

    response = client.get("/api/member/profile", headers=auth_headers(trainer))

    assert response.status_code == 403
    assert response.json()["code"] == "INSUFFICIENT_ROLE"


def test_time_slot_requires_complete_slots(client, make_user, auth_headers):
    member = make_user()

    missing = client.put(
        "/api/member/time-slot",
        json={"preferred_time_slots": [{"day": "Monday", "from": "09:00"}]},
        headers=auth_headers(member),
    )
    assert missing.status_code == 400

    empty = client.put("/api/member/time-slot", json={"preferred_time_slots": []}, headers=auth_headers(member))
    assert empty.status_code == 400
    assert empty.json()["code"] == "MISSING_TIME_SLOTS"

    ok = client.put(
        "/api/member/time-slot",
        json={"preferred_time_slots": [{"day": "Monday", "from": "9:00", "to": "11:00"}]},
        headers=auth_headers(member),
    )
    assert ok.status_code == 200
    assert ok.json()["data"]["preferred_time_slots"] == [{"day": "Monday", "from": "09:00", "to": "11:00"}]


def test_trainer_change_request_needs_assigned_trainer(client, make_user, assign, auth_headers):
    member = make_user()
    response = client.post("/api/member/trainer/change-request", json={}, headers=auth_headers(member))
    assert response.status_code == 400
    assert response.json()["code"] == "NO_TRAINER_ASSIGNED"

    trainer = make_user(role="trainer")
    assign(member.id, trainer.id)
    response = client.post(
        "/api/member/trainer/change-request",
        json={"reason": "Schedule clash"},
        headers=auth_headers(member),
    )
    assert response.status_code == 200
    assert response.json()["data"]["current_trainer_id"] == trainer.id

    trainer_view = client.get("/api/member/trainer", headers=auth_headers(member)).json()["data"]["trainer"]
    assert trainer_view["id"] == trainer.id


def test_public_plan_catalog_and_admin_management(client, make_user, make_plan, auth_headers):
    admin = make_user(role="admin")
    make_plan(name="premium", price=1999)

    listing = client.get("/api/plans")
    assert listing.status_code == 200
    assert [plan["name"] for plan in listing.json()["data"]["plans"]] == ["premium"]
    assert listing.json()["data"]["plans"][0]["stats"]["total_subscribers"] == 0

    created = client.post(
        "/api/plans",
        json={"name": "basic", "price": 999, "duration_in_days": 30, "features": ["Gym access"]},
        headers=auth_headers(admin),
    )
    assert created.status_code == 201
    basic_id = created.json()["data"]["plan"]["id"]

    duplicate = client.post(
        "/api/plans",
        json={"name": "basic", "price": 500, "duration_in_days": 30},
        headers=auth_headers(admin),
    )
    assert duplicate.status_code == 409

    bad_name = client.post(
        "/api/plans",
        json={"name": "gold", "price": 500, "duration_in_days": 30},
        headers=auth_headers(admin),
    )
    assert bad_name.status_code == 400

    updated = client.put(f"/api/plans/{basic_id}", json={"price": 1099}, headers=auth_headers(admin))
    assert updated.json()["data"]["plan"]["price"] == 1099

    make_user(plan="basic", valid_days=10)
    blocked = client.delete(f"/api/plans/{basic_id}", headers=auth_headers(admin))
    assert blocked.status_code == 400
    assert blocked.json()["code"] == "PLAN_IN_USE"

    detail = client.get(f"/api/plans/{basic_id}").json()["data"]["plan"]
    assert detail["stats"]["active_subscribers"] == 1
    assert len(detail["recent_subscribers"]) == 1


def test_plan_writes_require_admin(client, make_user, auth_headers):
    member = make_user()

    response = client.post(
        "/api/plans",
        json={"name": "basic", "price": 999, "duration_in_days": 30},
        headers=auth_headers(member),
    )

    assert response.status_code == 403
