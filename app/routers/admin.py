import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.database import get_db
from app.models.profile import MemberProfile, TrainerProfile
from app.models.user import ROLE_ADMIN, ROLE_MEMBER, ROLE_TRAINER, User
from app.schemas.user import (
    AssignTrainerRequest,
    UnassignTrainerRequest,
    UserResponse,
    VerifyUserRequest,
)
from app.services.auth_middleware import get_current_admin
from app.services.dashboard_service import get_dashboard_metrics
from app.services.membership_service import assign_trainer, remove_user_records, unassign_member
from app.services.payment_service import filtered_payments, payment_listing, total_revenue
from app.services.profile_service import matching_slots
from app.utils.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, page_offset, pagination_meta
from app.utils.response import ApiError, create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _user_contact(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "is_verified": user.is_verified,
    }


def _subscriber(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "subscription_plan": user.subscription_plan,
        "subscription_valid_till": user.subscription_valid_till,
    }


def _user_with_trainer(user: User) -> dict:
    payload = UserResponse.model_validate(user).model_dump()
    trainer = user.trainer
    payload["trainer_assigned"] = {"id": trainer.id, "name": trainer.name, "email": trainer.email} if trainer else None
    return payload


@router.get("/users")
def list_users(
    role: Optional[str] = Query(None, description="admin, trainer, member or all"),
    is_verified: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Case-insensitive match on name, email or phone"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        query = db.query(User)
        if role and role != "all":
            query = query.filter(User.role == role)
        if is_verified is not None:
            query = query.filter(User.is_verified == is_verified)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(User.name.ilike(pattern), User.email.ilike(pattern), User.phone.ilike(pattern))
            )

        total = query.count()
        users = (
            query.options(joinedload(User.trainer))
            .order_by(User.created_at.desc(), User.id.desc())
            .offset(page_offset(page, limit))
            .limit(limit)
            .all()
        )
        return create_response(
            message="Users fetched",
            data={
                "users": [_user_with_trainer(user) for user in users],
                "pagination": pagination_meta(page, limit, total),
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/users/timing")
def users_by_timing(
    day: Optional[str] = Query(None, description="Day of week, e.g. Monday"),
    time_from: Optional[str] = Query(None, description="HH:MM"),
    time_to: Optional[str] = Query(None, description="HH:MM"),
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        if not day or not day.strip():
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Day parameter is required", code="MISSING_DAY")

        members = []
        for profile in db.query(MemberProfile).options(joinedload(MemberProfile.user)).all():
            slots = matching_slots(profile.preferred_time_slots, day, time_from, time_to)
            if slots and profile.user:
                members.append({"user": _user_contact(profile.user), "matching_slots": slots})

        trainers = []
        for profile in db.query(TrainerProfile).options(joinedload(TrainerProfile.user)).all():
            slots = matching_slots(profile.available_time_slots, day, time_from, time_to)
            if slots and profile.user:
                trainers.append({"user": _user_contact(profile.user), "matching_slots": slots})

        return create_response(message="Users by timing fetched", data={"members": members, "trainers": trainers})
    except Exception as exc:
        return handle_exception(exc)


@router.put("/users/{user_id}/verify")
def verify_user(
    user_id: int,
    body: VerifyUserRequest,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ApiError(status.HTTP_404_NOT_FOUND, "User not found", code="USER_NOT_FOUND")
        user.is_verified = body.is_verified
        db.commit()
        db.refresh(user)
        return create_response(
            message=f"User {'verified' if user.is_verified else 'unverified'} successfully",
            data={"user": {"id": user.id, "name": user.name, "email": user.email, "role": user.role, "is_verified": user.is_verified}},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/users/{user_id}")
def remove_user(user_id: int, db: Session = Depends(get_db), admin=Depends(get_current_admin)):
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ApiError(status.HTTP_404_NOT_FOUND, "User not found", code="USER_NOT_FOUND")
        if user.role == ROLE_ADMIN:
            raise ApiError(status.HTTP_403_FORBIDDEN, "Cannot remove admin users", code="CANNOT_REMOVE_ADMIN")

        remove_user_records(db, user)
        db.commit()
        logger.info("Admin %s removed user %s", admin.id, user_id)
        return create_response(message="User removed successfully", data=None)
    except Exception as exc:
        return handle_exception(exc)


@router.get("/payments")
def list_payments(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        query = filtered_payments(db, status_filter=status_filter, user_id=user_id)
        data = payment_listing(db, query, page, limit)
        data["total_revenue"] = total_revenue(db)
        return create_response(message="Payments fetched", data=data)
    except Exception as exc:
        return handle_exception(exc)


@router.get("/subscriptions")
def list_subscriptions(
    plan: Optional[str] = Query(None, description="basic, premium or all"),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        now = datetime.utcnow()
        query = db.query(User).filter(User.role == ROLE_MEMBER)
        if plan and plan != "all":
            query = query.filter(User.subscription_plan == plan)
        if is_active is True:
            query = query.filter(User.subscription_valid_till > now)
        elif is_active is False:
            query = query.filter(or_(User.subscription_valid_till <= now, User.subscription_valid_till.is_(None)))

        total = query.count()
        users = (
            query.options(joinedload(User.trainer))
            .order_by(User.subscription_valid_till.desc(), User.id.desc())
            .offset(page_offset(page, limit))
            .limit(limit)
            .all()
        )

        stats = [
            {"plan": plan_name, "count": count}
            for plan_name, count in (
                db.query(User.subscription_plan, func.count(User.id))
                .filter(User.role == ROLE_MEMBER)
                .group_by(User.subscription_plan)
                .all()
            )
        ]

        subscriptions = []
        for user in users:
            entry = _subscriber(user)
            entry["is_active"] = bool(user.subscription_valid_till and user.subscription_valid_till > now)
            entry["trainer_assigned"] = (
                {"id": user.trainer.id, "name": user.trainer.name, "email": user.trainer.email}
                if user.trainer
                else None
            )
            subscriptions.append(entry)

        return create_response(
            message="Subscriptions fetched",
            data={
                "subscriptions": subscriptions,
                "stats": stats,
                "pagination": pagination_meta(page, limit, total),
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/trainer-assignments")
def trainer_assignments(db: Session = Depends(get_db), admin=Depends(get_current_admin)):
    del admin
    try:
        trainers = db.query(User).filter(User.role == ROLE_TRAINER).order_by(User.name.asc()).all()
        profiles = {
            profile.user_id: profile
            for profile in db.query(TrainerProfile).filter(
                TrainerProfile.user_id.in_([trainer.id for trainer in trainers])
            )
        } if trainers else {}

        assignments = []
        for trainer in trainers:
            members = (
                db.query(User)
                .filter(User.role == ROLE_MEMBER, User.trainer_assigned_id == trainer.id)
                .order_by(User.name.asc())
                .all()
            )
            profile = profiles.get(trainer.id)
            assignments.append(
                {
                    "trainer": _user_contact(trainer),
                    "expertise": profile.expertise if profile else [],
                    "members_assigned": [_subscriber(member) for member in members],
                }
            )

        unassigned = (
            db.query(User)
            .filter(User.role == ROLE_MEMBER, User.trainer_assigned_id.is_(None))
            .order_by(User.created_at.desc())
            .all()
        )
        return create_response(
            message="Trainer assignments fetched",
            data={
                "trainers": assignments,
                "unassigned_members": [_subscriber(member) for member in unassigned],
            },
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/assign-trainer")
def assign_trainer_to_member(
    body: AssignTrainerRequest,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        member = db.query(User).filter(User.id == body.member_id, User.role == ROLE_MEMBER).first()
        if not member:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Member not found", code="MEMBER_NOT_FOUND")
        trainer = db.query(User).filter(User.id == body.trainer_id, User.role == ROLE_TRAINER).first()
        if not trainer:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Trainer not found", code="TRAINER_NOT_FOUND")

        assign_trainer(db, member, trainer)
        db.commit()
        return create_response(
            message="Trainer assigned to member successfully",
            data={"member_id": member.id, "trainer_id": trainer.id},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/unassign-trainer")
def unassign_trainer_from_member(
    body: UnassignTrainerRequest,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    del admin
    try:
        member = db.query(User).filter(User.id == body.member_id, User.role == ROLE_MEMBER).first()
        if not member:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Member not found", code="MEMBER_NOT_FOUND")
        if not member.trainer_assigned_id:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Member has no trainer assigned", code="NO_TRAINER_ASSIGNED")

        previous = unassign_member(db, member)
        db.commit()
        return create_response(
            message="Trainer unassigned from member successfully",
            data={"member_id": member.id, "previous_trainer_id": previous},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/dashboard-stats")
def dashboard_stats(db: Session = Depends(get_db), admin=Depends(get_current_admin)):
    del admin
    try:
        return create_response(message="Dashboard stats fetched", data=get_dashboard_metrics(db))
    except Exception as exc:
        return handle_exception(exc)
