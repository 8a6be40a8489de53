import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.payment import Payment
from app.models.plan import Plan
from app.models.user import PLAN_PREMIUM, ROLE_MEMBER, User
from app.schemas.plan import ChoosePlanRequest, PlanResponse
from app.schemas.user import MemberProfileUpdate, TimeSlotSelection, TrainerChangeRequest, UserResponse
from app.services.auth_middleware import require_role, require_verified_role
from app.services.fitness_plan_service import plans_for_member
from app.services.membership_service import get_or_create_member_profile
from app.services.payment_service import serialize_payment
from app.services.profile_service import (
    find_member_profile,
    find_trainer_profile,
    member_profile_payload,
    trainer_profile_payload,
    update_member_profile,
)
from app.services.subscription_service import expire_if_needed, purchase_plan, subscription_snapshot
from app.utils.response import ApiError, create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/member", tags=["Member"])

get_member = require_role(ROLE_MEMBER)
get_verified_member = require_verified_role(ROLE_MEMBER)


@router.get("/profile")
def get_profile(db: Session = Depends(get_db), member: User = Depends(get_member)):
    try:
        return create_response(
            message="Member profile fetched",
            data={
                "user": UserResponse.model_validate(member).model_dump(),
                "profile": member_profile_payload(find_member_profile(db, member.id)),
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/profile")
def update_profile(
    body: MemberProfileUpdate,
    db: Session = Depends(get_db),
    member: User = Depends(get_member),
):
    try:
        profile = update_member_profile(db, member, body)
        db.commit()
        db.refresh(profile)
        return create_response(
            message="Member profile updated successfully",
            data={"profile": member_profile_payload(profile)},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/plans/available")
def available_plans(db: Session = Depends(get_db), member: User = Depends(get_member)):
    del member
    try:
        plans = db.query(Plan).order_by(Plan.price.asc()).all()
        return create_response(
            message="Available plans fetched",
            data={"plans": [PlanResponse.model_validate(plan).model_dump() for plan in plans]},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/subscription/choose")
def choose_subscription(
    body: ChoosePlanRequest,
    db: Session = Depends(get_db),
    member: User = Depends(get_member),
):
    try:
        plan = db.query(Plan).filter(Plan.name == body.plan_name.value).first()
        if not plan:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Plan not found", code="PLAN_NOT_FOUND")

        payment = purchase_plan(db, member, plan)
        db.commit()
        db.refresh(member)
        logger.info("Member %s chose %s plan until %s", member.id, plan.name, member.subscription_valid_till)
        return create_response(
            message="Subscription plan updated successfully",
            data={
                "subscription": subscription_snapshot(member),
                "payment": serialize_payment(payment),
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/subscription/status")
def subscription_status(db: Session = Depends(get_db), member: User = Depends(get_member)):
    try:
        if expire_if_needed(member):
            db.commit()
            db.refresh(member)
        latest_payment = (
            db.query(Payment)
            .filter(Payment.user_id == member.id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .first()
        )
        return create_response(
            message="Subscription status fetched",
            data={
                "subscription": subscription_snapshot(member),
                "latest_payment": serialize_payment(latest_payment) if latest_payment else None,
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/time-slot")
def update_time_slot(
    body: TimeSlotSelection,
    db: Session = Depends(get_db),
    member: User = Depends(get_member),
):
    try:
        if not body.preferred_time_slots:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Preferred time slot array is required",
                code="MISSING_TIME_SLOTS",
            )
        profile = get_or_create_member_profile(db, member.id)
        profile.preferred_time_slots = [slot.as_document() for slot in body.preferred_time_slots]
        db.commit()
        db.refresh(profile)
        return create_response(
            message="Preferred time slot updated successfully",
            data={"preferred_time_slots": profile.preferred_time_slots},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/trainer")
def assigned_trainer(db: Session = Depends(get_db), member: User = Depends(get_member)):
    try:
        trainer = member.trainer
        if not trainer:
            return create_response(message="No trainer assigned yet", data={"trainer": None})
        return create_response(
            message="Assigned trainer fetched",
            data={
                "trainer": {
                    "id": trainer.id,
                    "name": trainer.name,
                    "email": trainer.email,
                    "phone": trainer.phone,
                    "is_verified": trainer.is_verified,
                    "profile": trainer_profile_payload(db, find_trainer_profile(db, trainer.id), include_members=False),
                }
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/trainer/change-request")
def request_trainer_change(
    body: TrainerChangeRequest,
    member: User = Depends(get_verified_member),
):
    try:
        if not member.trainer_assigned_id:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "No trainer currently assigned", code="NO_TRAINER_ASSIGNED")
        logger.info(
            "Member %s requested a trainer change from %s: %s",
            member.id,
            member.trainer_assigned_id,
            body.reason or "no reason given",
        )
        return create_response(
            message="Trainer change request submitted successfully. Admin will review your request.",
            data={"current_trainer_id": member.trainer_assigned_id, "reason": body.reason},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/my-plans")
def my_plans(db: Session = Depends(get_db), member: User = Depends(get_verified_member)):
    try:
        if member.subscription_plan != PLAN_PREMIUM:
            return create_response(
                message="Premium subscription required for workout and diet plans",
                data={"workout_plan": None, "diet_plan": None},
            )
        if not member.subscription_valid_till or member.subscription_valid_till <= datetime.utcnow():
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "Subscription expired. Please renew to access plans",
                code="SUBSCRIPTION_EXPIRED",
            )
        return create_response(message="Plans fetched", data=plans_for_member(db, member.id))
    except Exception as exc:
        return handle_exception(exc)
