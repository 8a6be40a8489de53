import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.payment import PAYMENT_SUCCESS, Payment
from app.models.plan import Plan
from app.models.user import User
from app.schemas.plan import PlanCreate, PlanResponse, PlanUpdate, SubscribeRequest
from app.services.auth_middleware import get_current_admin, get_current_user
from app.services.payment_service import filtered_payments, payment_listing, serialize_payment
from app.services.subscription_service import (
    days_remaining,
    expire_if_needed,
    has_active_subscription,
    purchase_plan,
    subscription_snapshot,
)
from app.utils.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.utils.response import ApiError, create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["Plans"])

RECENT_SUBSCRIBERS_LIMIT = 10


def _plan_stats(db: Session, plan: Plan, now: datetime) -> dict:
    subscribers = db.query(func.count(User.id)).filter(User.subscription_plan == plan.name)
    revenue = (
        db.query(func.coalesce(func.sum(Payment.amount_paid), 0))
        .filter(Payment.plan_id == plan.id, Payment.payment_status == PAYMENT_SUCCESS)
        .scalar()
    )
    return {
        "total_subscribers": subscribers.scalar() or 0,
        "active_subscribers": subscribers.filter(User.subscription_valid_till > now).scalar() or 0,
        "total_revenue": float(revenue or 0),
    }


def _plan_payload(plan: Plan) -> dict:
    return PlanResponse.model_validate(plan).model_dump()


def _get_plan(db: Session, plan_id: int) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if not plan:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Plan not found", code="PLAN_NOT_FOUND")
    return plan


@router.get("")
def list_plans(db: Session = Depends(get_db)):
    try:
        now = datetime.utcnow()
        plans = db.query(Plan).order_by(Plan.price.asc()).all()
        data = []
        for plan in plans:
            payload = _plan_payload(plan)
            payload["stats"] = _plan_stats(db, plan, now)
            data.append(payload)
        return create_response(message="Plans fetched", data={"plans": data, "count": len(data)})
    except Exception as exc:
        return handle_exception(exc)


@router.get("/access/check")
def check_access(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        now = datetime.utcnow()
        if expire_if_needed(user, now):
            db.commit()
            db.refresh(user)
            logger.info("Cleared expired subscription for user %s", user.id)
        return create_response(
            message="Subscription access checked",
            data={
                "has_access": has_active_subscription(user, now),
                "plan": user.subscription_plan,
                "valid_till": user.subscription_valid_till,
                "days_remaining": days_remaining(user, now),
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/subscription/history")
def subscription_history(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        data = payment_listing(db, filtered_payments(db, user_id=user.id), page, limit)
        return create_response(message="Subscription history fetched", data=data)
    except Exception as exc:
        return handle_exception(exc)


@router.post("/subscribe")
def subscribe(body: SubscribeRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        plan = _get_plan(db, body.plan_id)
        payment = purchase_plan(db, user, plan)
        db.commit()
        db.refresh(user)
        logger.info("User %s subscribed to %s until %s", user.id, plan.name, user.subscription_valid_till)
        return create_response(
            message="Successfully subscribed to plan",
            data={"subscription": subscription_snapshot(user), "payment": serialize_payment(payment)},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/{plan_id}")
def get_plan(plan_id: int, db: Session = Depends(get_db)):
    try:
        now = datetime.utcnow()
        plan = _get_plan(db, plan_id)
        recent = (
            db.query(User)
            .filter(User.subscription_plan == plan.name)
            .order_by(User.created_at.desc())
            .limit(RECENT_SUBSCRIBERS_LIMIT)
            .all()
        )
        payload = _plan_payload(plan)
        payload["stats"] = _plan_stats(db, plan, now)
        payload["recent_subscribers"] = [
            {
                "id": subscriber.id,
                "name": subscriber.name,
                "email": subscriber.email,
                "subscription_valid_till": subscriber.subscription_valid_till,
                "created_at": subscriber.created_at,
            }
            for subscriber in recent
        ]
        return create_response(message="Plan fetched", data={"plan": payload})
    except Exception as exc:
        return handle_exception(exc)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_plan(body: PlanCreate, db: Session = Depends(get_db), admin=Depends(get_current_admin)):
    del admin
    try:
        if db.query(Plan).filter(Plan.name == body.name.value).first():
            raise ApiError(status.HTTP_409_CONFLICT, "Plan with this name already exists", code="PLAN_EXISTS")
        data = body.model_dump()
        data["name"] = body.name.value
        plan = Plan(**data)
        db.add(plan)
        db.commit()
        db.refresh(plan)
        return create_response(
            message="Plan created successfully",
            data={"plan": _plan_payload(plan)},
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/{plan_id}")
def update_plan(plan_id: int, body: PlanUpdate, db: Session = Depends(get_db), admin=Depends(get_current_admin)):
    del admin
    try:
        plan = _get_plan(db, plan_id)
        for field, value in body.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(plan, field, value)
        db.commit()
        db.refresh(plan)
        return create_response(message="Plan updated successfully", data={"plan": _plan_payload(plan)})
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/{plan_id}")
def delete_plan(plan_id: int, db: Session = Depends(get_db), admin=Depends(get_current_admin)):
    del admin
    try:
        plan = _get_plan(db, plan_id)
        subscribers = db.query(func.count(User.id)).filter(User.subscription_plan == plan.name).scalar() or 0
        if subscribers:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                f"Cannot delete plan. {subscribers} users are currently subscribed to this plan.",
                code="PLAN_IN_USE",
            )
        db.delete(plan)
        db.commit()
        return create_response(message="Plan deleted successfully", data=None)
    except Exception as exc:
        return handle_exception(exc)
