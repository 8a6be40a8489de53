from datetime import datetime, timedelta

from app.models.payment import Payment
from app.models.user import User


def _process(client, headers, plan_id, success=True):
    return client.post(
        "/api/payments/process",
        json={"plan_id": plan_id, "mock_success": success},
        headers=headers,
    )


def test_successful_payment_activates_subscription(client, make_user, make_plan, auth_headers, db):
    plan = make_plan(name="premium", price=1999)
    member = make_user()

    response = _process(client, auth_headers(member), plan.id)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["payment"]["payment_status"] == "success"
    assert data["payment"]["transaction_id"].startswith("TXN_")
    assert data["subscription"]["plan"] == "premium"
    assert db.get(User, member.id).subscription_plan == "premium"


def test_failed_payment_is_recorded_without_subscription(client, make_user, make_plan, auth_headers, db):
    plan = make_plan(name="premium")
    member = make_user()

    response = _process(client, auth_headers(member), plan.id, success=False)

    assert response.status_code == 400
    assert response.json()["code"] == "PAYMENT_FAILED"
    payment = db.query(Payment).filter(Payment.user_id == member.id).one()
    assert payment.payment_status == "failed"
    assert db.get(User, member.id).subscription_plan is None


def test_history_lists_own_payments_with_total_spent(client, make_user, make_plan, auth_headers):
    plan = make_plan(name="basic", price=999)
    member = make_user()
    other = make_user()
    headers = auth_headers(member)
    _process(client, headers, plan.id)
    _process(client, headers, plan.id, success=False)
    _process(client, auth_headers(other), plan.id)

    response = client.get("/api/payments/history", headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pagination"]["total"] == 2
    assert data["total_spent"] == 999

    failed_only = client.get("/api/payments/history?status=failed", headers=headers).json()["data"]
    assert [payment["payment_status"] for payment in failed_only["payments"]] == ["failed"]


def test_payment_detail_is_owner_only(client, make_user, make_plan, auth_headers):
    plan = make_plan()
    owner = make_user()
    stranger = make_user()
    payment_id = _process(client, auth_headers(owner), plan.id).json()["data"]["payment"]["id"]

    assert client.get(f"/api/payments/{payment_id}", headers=auth_headers(owner)).status_code == 200
    response = client.get(f"/api/payments/{payment_id}", headers=auth_headers(stranger))
    assert response.status_code == 404
    assert response.json()["code"] == "PAYMENT_NOT_FOUND"


def test_refund_clears_matching_subscription(client, make_user, make_plan, auth_headers, db):
    admin = make_user(role="admin")
    plan = make_plan(name="premium")
    member = make_user()
    payment_id = _process(client, auth_headers(member), plan.id).json()["data"]["payment"]["id"]

    response = client.post(
        f"/api/payments/{payment_id}/refund",
        json={"reason": "Changed my mind"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    payment = response.json()["data"]["payment"]
    assert payment["payment_status"] == "refunded"
    assert payment["refund_reason"] == "Changed my mind"
    assert payment["refunded_at"] is not None
    user = db.get(User, member.id)
    assert user.subscription_plan is None
    assert user.subscription_valid_till is None


def test_refund_rejects_old_or_unsuccessful_payments(client, make_user, make_plan, auth_headers, db):
    admin = make_user(role="admin")
    plan = make_plan()
    member = make_user()
    old_id = _process(client, auth_headers(member), plan.id).json()["data"]["payment"]["id"]
    failed_id = _process(client, auth_headers(member), plan.id, success=False).json()["data"]["payment"]["id"]

    db.query(Payment).filter(Payment.id == old_id).update(
        {Payment.created_at: datetime.utcnow() - timedelta(days=8)}
    )
    db.commit()

    too_old = client.post(f"/api/payments/{old_id}/refund", json={}, headers=auth_headers(admin))
    assert too_old.status_code == 400
    assert too_old.json()["code"] == "REFUND_WINDOW_EXPIRED"

    not_success = client.post(f"/api/payments/{failed_id}/refund", headers=auth_headers(admin))
    assert not_success.status_code == 400
    assert not_success.json()["code"] == "REFUND_NOT_ALLOWED"

    db.expire_all()
    assert db.get(User, member.id).subscription_plan == "premium"


def test_refund_keeps_subscription_for_a_different_plan(client, make_user, make_plan, auth_headers, db):
    admin = make_user(role="admin")
    basic = make_plan(name="basic", price=999)
    premium = make_plan(name="premium", price=1999)
    member = make_user()
    basic_payment = _process(client, auth_headers(member), basic.id).json()["data"]["payment"]["id"]
    _process(client, auth_headers(member), premium.id)

    response = client.post(f"/api/payments/{basic_payment}/refund", json={}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert db.get(User, member.id).subscription_plan == "premium"


def test_admin_status_change_mirrors_subscription(client, make_user, make_plan, auth_headers, db):
    admin = make_user(role="admin")
    plan = make_plan(name="basic")
    member = make_user()
    payment_id = _process(client, auth_headers(member), plan.id, success=False).json()["data"]["payment"]["id"]

    activated = client.put(
        f"/api/payments/{payment_id}/status",
        json={"status": "success"},
        headers=auth_headers(admin),
    )
    assert activated.status_code == 200
    assert db.get(User, member.id).subscription_plan == "basic"

    client.put(f"/api/payments/{payment_id}/status", json={"status": "failed"}, headers=auth_headers(admin))
    db.expire_all()
    assert db.get(User, member.id).subscription_plan is None

    invalid = client.put(f"/api/payments/{payment_id}/status", json={"status": "lost"}, headers=auth_headers(admin))
    assert invalid.status_code == 400


def test_admin_listing_has_stats_and_revenue(client, make_user, make_plan, auth_headers):
    admin = make_user(role="admin")
    plan = make_plan(name="basic", price=999)
    member = make_user()
    _process(client, auth_headers(member), plan.id)
    _process(client, auth_headers(member), plan.id, success=False)

    response = client.get("/api/payments", headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_revenue"] == 999
    assert {row["status"]: row["count"] for row in data["stats"]} == {"success": 1, "failed": 1}

    filtered = client.get(f"/api/payments?status=success&user_id={member.id}", headers=auth_headers(admin))
    assert filtered.json()["data"]["pagination"]["total"] == 1

    forbidden = client.get("/api/payments", headers=auth_headers(member))
    assert forbidden.status_code == 403


def test_monthly_report_groups_by_month_newest_first(client, make_user, make_plan, auth_headers, db):
    admin = make_user(role="admin")
    plan = make_plan(name="basic", price=1000)
    member = make_user()
    ids = [
        _process(client, auth_headers(member), plan.id).json()["data"]["payment"]["id"],
        _process(client, auth_headers(member), plan.id).json()["data"]["payment"]["id"],
        _process(client, auth_headers(member), plan.id, success=False).json()["data"]["payment"]["id"],
    ]
    db.query(Payment).filter(Payment.id == ids[0]).update({Payment.created_at: datetime(2025, 3, 10)})
    db.query(Payment).filter(Payment.id.in_(ids[1:])).update(
        {Payment.created_at: datetime(2025, 5, 2)}, synchronize_session=False
    )
    db.commit()

    response = client.get("/api/payments/reports/generate", headers=auth_headers(admin))

    assert response.status_code == 200
    report = response.json()["data"]["report"]
    assert [(month["year"], month["month"]) for month in report] == [(2025, 5), (2025, 3)]
    may = report[0]
    assert may["total_transactions"] == 2
    assert may["total_revenue"] == 1000
    assert response.json()["data"]["summary"]["total_revenue"] == 2000


def test_check_expired_clears_lapsed_subscriptions(client, make_user, auth_headers, db):
    admin = make_user(role="admin")
    lapsed = make_user(plan="basic", valid_days=-2)
    running = make_user(plan="premium", valid_days=2)

    response = client.post("/api/payments/subscriptions/check-expired", headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["expired_count"] == 1
    assert data["expired_users"][0]["id"] == lapsed.id
    assert db.get(User, lapsed.id).subscription_plan is None
    assert db.get(User, running.id).subscription_plan == "premium"
