import logging
from collections import defaultdict
from datetime import datetime, timedelta

from fastapi import status
from sqlalchemy import extract, func
from sqlalchemy.orm import Session, joinedload

from app.models.payment import (
    PAYMENT_FAILED,
    PAYMENT_REFUNDED,
    PAYMENT_SUCCESS,
    Payment,
)
from app.models.user import User
from app.utils.pagination import page_offset, pagination_meta
from app.utils.response import ApiError

logger = logging.getLogger(__name__)

REFUND_WINDOW = timedelta(days=7)


def serialize_payment(payment: Payment) -> dict:
    user = payment.user
    plan = payment.plan
    return {
        "id": payment.id,
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "phone": user.phone,
            "role": user.role,
        } if user else None,
        "plan": {
            "id": plan.id,
            "name": plan.name,
            "price": plan.price,
            "duration_in_days": plan.duration_in_days,
            "features": plan.features or [],
        } if plan else None,
        "amount_paid": payment.amount_paid,
        "payment_status": payment.payment_status,
        "payment_gateway": payment.payment_gateway,
        "transaction_id": payment.transaction_id,
        "valid_till": payment.valid_till,
        "refund_reason": payment.refund_reason,
        "refunded_at": payment.refunded_at,
        "created_at": payment.created_at,
    }


def total_revenue(db: Session, user_id: int | None = None) -> float:
    query = db.query(func.coalesce(func.sum(Payment.amount_paid), 0)).filter(
        Payment.payment_status == PAYMENT_SUCCESS
    )
    if user_id is not None:
        query = query.filter(Payment.user_id == user_id)
    return float(query.scalar() or 0)


def filtered_payments(
    db: Session,
    status_filter: str | None = None,
    user_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
):
    query = db.query(Payment)
    if status_filter and status_filter != "all":
        query = query.filter(Payment.payment_status == status_filter)
    if user_id is not None:
        query = query.filter(Payment.user_id == user_id)
    if start_date:
        query = query.filter(Payment.created_at >= start_date)
    if end_date:
        query = query.filter(Payment.created_at <= end_date)
    return query


def payment_listing(db: Session, query, page: int, limit: int) -> dict:
    total = query.count()
    payments = (
        query.options(joinedload(Payment.user), joinedload(Payment.plan))
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset(page_offset(page, limit))
        .limit(limit)
        .all()
    )
    return {
        "payments": [serialize_payment(payment) for payment in payments],
        "pagination": pagination_meta(page, limit, total),
    }


def status_breakdown(query) -> list[dict]:
    rows = (
        query.with_entities(
            Payment.payment_status,
            func.count(Payment.id),
            func.coalesce(func.sum(Payment.amount_paid), 0),
        )
        .group_by(Payment.payment_status)
        .all()
    )
    return [
        {"status": payment_status, "count": count, "total_amount": float(amount)}
        for payment_status, count, amount in rows
    ]


def _clear_subscription(user: User | None) -> None:
    if user is not None:
        user.subscription_plan = None
        user.subscription_valid_till = None


def refund_payment(payment: Payment, reason: str | None, now: datetime | None = None) -> Payment:
    """Refund a successful payment made in the last seven days. Caller commits."""
    now = now or datetime.utcnow()
    if payment.payment_status != PAYMENT_SUCCESS:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Only successful payments can be refunded",
            code="REFUND_NOT_ALLOWED",
        )
    if payment.created_at < now - REFUND_WINDOW:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "Refund period has expired (7 days limit)",
            code="REFUND_WINDOW_EXPIRED",
        )

    user = payment.user
    if user is not None and payment.plan is not None and user.subscription_plan == payment.plan.name:
        _clear_subscription(user)
        logger.info("Refund of payment %s revoked %s subscription of user %s", payment.id, payment.plan.name, user.id)

    payment.payment_status = PAYMENT_REFUNDED
    payment.refund_reason = reason or "Refund requested"
    payment.refunded_at = now
    return payment


def apply_status_change(payment: Payment, new_status: str) -> Payment:
    """Move a payment to ``new_status`` and mirror the effect on the subscription. Caller commits."""
    old_status = payment.payment_status
    payment.payment_status = new_status
    user = payment.user

    if new_status == PAYMENT_SUCCESS and old_status != PAYMENT_SUCCESS:
        if user is not None and payment.plan is not None:
            user.subscription_plan = payment.plan.name
            user.subscription_valid_till = payment.valid_till
    elif new_status in (PAYMENT_FAILED, PAYMENT_REFUNDED) and old_status == PAYMENT_SUCCESS:
        _clear_subscription(user)
    return payment


def monthly_report(db: Session, start_date: datetime | None = None, end_date: datetime | None = None) -> list[dict]:
    year = extract("year", Payment.created_at)
    month = extract("month", Payment.created_at)
    query = filtered_payments(db, start_date=start_date, end_date=end_date)
    rows = (
        query.with_entities(
            year.label("year"),
            month.label("month"),
            Payment.payment_status,
            func.count(Payment.id),
            func.coalesce(func.sum(Payment.amount_paid), 0),
        )
        .group_by(year, month, Payment.payment_status)
        .all()
    )

    buckets: dict[tuple[int, int], dict] = defaultdict(
        lambda: {"status_breakdown": [], "total_transactions": 0, "total_revenue": 0.0}
    )
    for row_year, row_month, payment_status, count, amount in rows:
        bucket = buckets[(int(row_year), int(row_month))]
        bucket["status_breakdown"].append(
            {"status": payment_status, "count": count, "amount": float(amount)}
        )
        bucket["total_transactions"] += count
        if payment_status == PAYMENT_SUCCESS:
            bucket["total_revenue"] += float(amount)

    return [
        {"year": key[0], "month": key[1], **buckets[key]}
        for key in sorted(buckets, reverse=True)
    ]
