from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.models.payment import Payment
from app.models.user import ROLE_MEMBER, ROLE_TRAINER, User
from app.services.payment_service import serialize_payment, total_revenue

RECENT_PAYMENTS_LIMIT = 5


def get_dashboard_metrics(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    total_users = db.query(func.count(User.id)).scalar() or 0
    total_members = db.query(func.count(User.id)).filter(User.role == ROLE_MEMBER).scalar() or 0
    total_trainers = db.query(func.count(User.id)).filter(User.role == ROLE_TRAINER).scalar() or 0
    verified_users = db.query(func.count(User.id)).filter(User.is_verified == True).scalar() or 0
    active_subscriptions = (
        db.query(func.count(User.id))
        .filter(User.subscription_plan.isnot(None), User.subscription_valid_till > now)
        .scalar()
        or 0
    )

    recent_payments = (
        db.query(Payment)
        .options(joinedload(Payment.user), joinedload(Payment.plan))
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(RECENT_PAYMENTS_LIMIT)
        .all()
    )

    return {
        "stats": {
            "total_users": total_users,
            "total_members": total_members,
            "total_trainers": total_trainers,
            "verified_users": verified_users,
            "unverified_users": total_users - verified_users,
            "active_subscriptions": active_subscriptions,
            "total_revenue": total_revenue(db),
        },
        "recent_payments": [serialize_payment(payment) for payment in recent_payments],
    }
