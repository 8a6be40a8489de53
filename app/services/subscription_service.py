import math
import time
import uuid
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.models.payment import PAYMENT_FAILED, PAYMENT_SUCCESS, Payment
from app.models.plan import Plan
from app.models.user import PLAN_PREMIUM, ROLE_MEMBER, User

SECONDS_PER_DAY = 24 * 60 * 60


def has_active_subscription(user: User, now: datetime | None = None) -> bool:
    now = now or datetime.utcnow()
    return bool(user.subscription_valid_till and user.subscription_valid_till > now)


def has_premium_access(user: User, now: datetime | None = None) -> bool:
    return user.subscription_plan == PLAN_PREMIUM and has_active_subscription(user, now)


def days_remaining(user: User, now: datetime | None = None) -> int:
    now = now or datetime.utcnow()
    if not has_active_subscription(user, now):
        return 0
    return math.ceil((user.subscription_valid_till - now).total_seconds() / SECONDS_PER_DAY)


def expire_if_needed(user: User, now: datetime | None = None) -> bool:
    """Clear a lapsed subscription in place. Returns True when something was cleared."""
    if user.subscription_plan and not has_active_subscription(user, now):
        user.subscription_plan = None
        user.subscription_valid_till = None
        return True
    return False


def compute_valid_till(user: User, plan: Plan, now: datetime | None = None) -> datetime:
    """Extend from the current expiry while it is still running, otherwise from now."""
    now = now or datetime.utcnow()
    start = user.subscription_valid_till if has_active_subscription(user, now) else now
    return start + timedelta(days=plan.duration_in_days)


def generate_transaction_id(user_id: int) -> str:
    return f"TXN_{int(time.time() * 1000)}_{user_id}_{uuid.uuid4().hex[:9]}"


def purchase_plan(
    db: Session,
    user: User,
    plan: Plan,
    gateway: str = "mock",
    succeeded: bool = True,
    now: datetime | None = None,
) -> Payment:
    """Record a (mock) payment and activate the subscription when it succeeded.

    The caller commits.
    """
    now = now or datetime.utcnow()
    valid_till = compute_valid_till(user, plan, now)
    payment = Payment(
        user_id=user.id,
        plan_id=plan.id,
        amount_paid=plan.price,
        payment_status=PAYMENT_SUCCESS if succeeded else PAYMENT_FAILED,
        payment_gateway=gateway,
        transaction_id=generate_transaction_id(user.id),
        valid_till=valid_till,
        created_at=now,
    )
    db.add(payment)

    if succeeded:
        user.subscription_plan = plan.name
        user.subscription_valid_till = valid_till
    return payment


def clear_expired_subscriptions(db: Session, now: datetime | None = None) -> list[dict]:
    now = now or datetime.utcnow()
    expired_users = (
        db.query(User)
        .filter(
            User.subscription_plan.isnot(None),
            User.subscription_valid_till < now,
        )
        .all()
    )
    expired = [
        {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "expired_plan": user.subscription_plan,
            "expired_date": user.subscription_valid_till,
        }
        for user in expired_users
    ]
    for user in expired_users:
        user.subscription_plan = None
        user.subscription_valid_till = None
    return expired


def subscription_snapshot(user: User, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    return {
        "plan": user.subscription_plan,
        "valid_till": user.subscription_valid_till,
        "is_active": has_active_subscription(user, now),
        "days_remaining": days_remaining(user, now),
        "has_premium_access": user.role == ROLE_MEMBER and has_premium_access(user, now),
    }
