import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.fitness_plan import DietPlan, WorkoutPlan
from app.models.user import ROLE_MEMBER, ROLE_TRAINER, User
from app.schemas.fitness_plan import DietPlanAssign, DietPlanUpdate, WorkoutPlanAssign, WorkoutPlanUpdate
from app.schemas.user import TrainerProfileUpdate
from app.services.auth_middleware import require_verified_role
from app.services.fitness_plan_service import (
    diet_plan_payload,
    ensure_premium_member,
    get_assigned_member,
    plans_for_member,
    upsert_diet_plan,
    upsert_workout_plan,
    workout_plan_payload,
)
from app.services.profile_service import (
    find_member_profile,
    find_trainer_profile,
    member_profile_payload,
    trainer_profile_payload,
    update_trainer_profile,
)
from app.services.subscription_service import subscription_snapshot
from app.utils.response import ApiError, create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trainer", tags=["Trainer"])

get_trainer = require_verified_role(ROLE_TRAINER)


def _own_workout_plan(db: Session, trainer: User, plan_id: int) -> WorkoutPlan:
    plan = (
        db.query(WorkoutPlan)
        .filter(WorkoutPlan.id == plan_id, WorkoutPlan.created_by_id == trainer.id)
        .first()
    )
    if not plan:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Workout plan not found", code="PLAN_NOT_FOUND")
    return plan


def _own_diet_plan(db: Session, trainer: User, plan_id: int) -> DietPlan:
    plan = (
        db.query(DietPlan)
        .filter(DietPlan.id == plan_id, DietPlan.created_by_id == trainer.id)
        .first()
    )
    if not plan:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Diet plan not found", code="PLAN_NOT_FOUND")
    return plan


@router.get("/members")
def assigned_members(db: Session = Depends(get_db), trainer: User = Depends(get_trainer)):
    try:
        members = (
            db.query(User)
            .filter(User.role == ROLE_MEMBER, User.trainer_assigned_id == trainer.id)
            .order_by(User.name.asc())
            .all()
        )
        data = [
            {
                "id": member.id,
                "name": member.name,
                "email": member.email,
                "phone": member.phone,
                "subscription": subscription_snapshot(member),
                "profile": member_profile_payload(find_member_profile(db, member.id)),
            }
            for member in members
        ]
        return create_response(message="Assigned members fetched", data={"members": data, "count": len(data)})
    except Exception as exc:
        return handle_exception(exc)


@router.get("/members/{member_id}/plans")
def member_plans(member_id: int, db: Session = Depends(get_db), trainer: User = Depends(get_trainer)):
    try:
        member = get_assigned_member(db, trainer, member_id)
        data = plans_for_member(db, member.id)
        data["member"] = {"id": member.id, "name": member.name, "email": member.email}
        return create_response(message="Member plans fetched", data=data)
    except Exception as exc:
        return handle_exception(exc)


@router.post("/workout-plan", status_code=status.HTTP_201_CREATED)
def assign_workout_plan(
    body: WorkoutPlanAssign,
    db: Session = Depends(get_db),
    trainer: User = Depends(get_trainer),
):
    try:
        member = get_assigned_member(db, trainer, body.member_id)
        ensure_premium_member(member)
        plan, created = upsert_workout_plan(db, trainer, member, [item.model_dump() for item in body.exercises])
        db.commit()
        db.refresh(plan)
        logger.info("Trainer %s %s workout plan for member %s", trainer.id, "created" if created else "updated", member.id)
        return create_response(
            message="Workout plan created successfully" if created else "Workout plan updated successfully",
            data={"workout_plan": workout_plan_payload(plan)},
            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/workout-plan/{plan_id}")
def update_workout_plan(
    plan_id: int,
    body: WorkoutPlanUpdate,
    db: Session = Depends(get_db),
    trainer: User = Depends(get_trainer),
):
    try:
        plan = _own_workout_plan(db, trainer, plan_id)
        if body.exercises is not None:
            plan.exercises = [item.model_dump() for item in body.exercises]
        db.commit()
        db.refresh(plan)
        return create_response(message="Workout plan updated successfully", data={"workout_plan": workout_plan_payload(plan)})
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/workout-plan/{plan_id}")
def delete_workout_plan(plan_id: int, db: Session = Depends(get_db), trainer: User = Depends(get_trainer)):
    try:
        plan = _own_workout_plan(db, trainer, plan_id)
        db.delete(plan)
        db.commit()
        return create_response(message="Workout plan deleted successfully", data=None)
    except Exception as exc:
        return handle_exception(exc)


@router.post("/diet-plan", status_code=status.HTTP_201_CREATED)
def assign_diet_plan(
    body: DietPlanAssign,
    db: Session = Depends(get_db),
    trainer: User = Depends(get_trainer),
):
    try:
        member = get_assigned_member(db, trainer, body.member_id)
        ensure_premium_member(member)
        plan, created = upsert_diet_plan(db, trainer, member, [item.model_dump() for item in body.meals])
        db.commit()
        db.refresh(plan)
        return create_response(
            message="Diet plan created successfully" if created else "Diet plan updated successfully",
            data={"diet_plan": diet_plan_payload(plan)},
            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/diet-plan/{plan_id}")
def update_diet_plan(
    plan_id: int,
    body: DietPlanUpdate,
    db: Session = Depends(get_db),
    trainer: User = Depends(get_trainer),
):
    try:
        plan = _own_diet_plan(db, trainer, plan_id)
        if body.meals is not None:
            plan.meals = [item.model_dump() for item in body.meals]
        db.commit()
        db.refresh(plan)
        return create_response(message="Diet plan updated successfully", data={"diet_plan": diet_plan_payload(plan)})
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/diet-plan/{plan_id}")
def delete_diet_plan(plan_id: int, db: Session = Depends(get_db), trainer: User = Depends(get_trainer)):
    try:
        plan = _own_diet_plan(db, trainer, plan_id)
        db.delete(plan)
        db.commit()
        return create_response(message="Diet plan deleted successfully", data=None)
    except Exception as exc:
        return handle_exception(exc)


@router.get("/profile")
def get_profile(db: Session = Depends(get_db), trainer: User = Depends(get_trainer)):
    try:
        profile = find_trainer_profile(db, trainer.id)
        if not profile:
            raise ApiError(status.HTTP_404_NOT_FOUND, "Trainer profile not found", code="PROFILE_NOT_FOUND")
        return create_response(message="Trainer profile fetched", data={"profile": trainer_profile_payload(db, profile)})
    except Exception as exc:
        return handle_exception(exc)


@router.put("/profile")
def update_profile(
    body: TrainerProfileUpdate,
    db: Session = Depends(get_db),
    trainer: User = Depends(get_trainer),
):
    try:
        profile = update_trainer_profile(db, trainer, body)
        db.commit()
        db.refresh(profile)
        return create_response(
            message="Trainer profile updated successfully",
            data={"profile": trainer_profile_payload(db, profile)},
        )
    except Exception as exc:
        return handle_exception(exc)
