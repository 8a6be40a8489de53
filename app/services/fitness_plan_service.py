from datetime import datetime

from fastapi import status
from sqlalchemy.orm import Session

from app.models.fitness_plan import DietPlan, WorkoutPlan
from app.models.user import PLAN_PREMIUM, ROLE_MEMBER, User
from app.utils.response import ApiError


def _author(plan) -> dict | None:
    author = plan.created_by
    return {"id": author.id, "name": author.name, "email": author.email} if author else None


def workout_plan_payload(plan: WorkoutPlan | None) -> dict | None:
    if plan is None:
        return None
    return {
        "id": plan.id,
        "member_id": plan.member_id,
        "created_by": _author(plan),
        "exercises": plan.exercises or [],
        "created_at": plan.created_at,
        "updated_at": plan.updated_at,
    }


def diet_plan_payload(plan: DietPlan | None) -> dict | None:
    if plan is None:
        return None
    return {
        "id": plan.id,
        "member_id": plan.member_id,
        "created_by": _author(plan),
        "meals": plan.meals or [],
        "created_at": plan.created_at,
        "updated_at": plan.updated_at,
    }


def plans_for_member(db: Session, member_id: int) -> dict:
    workout = db.query(WorkoutPlan).filter(WorkoutPlan.member_id == member_id).first()
    diet = db.query(DietPlan).filter(DietPlan.member_id == member_id).first()
    return {"workout_plan": workout_plan_payload(workout), "diet_plan": diet_plan_payload(diet)}


def get_assigned_member(db: Session, trainer: User, member_id: int) -> User:
    member = (
        db.query(User)
        .filter(User.id == member_id, User.role == ROLE_MEMBER, User.trainer_assigned_id == trainer.id)
        .first()
    )
    if not member:
        raise ApiError(
            status.HTTP_404_NOT_FOUND,
            "Member not found or not assigned to you",
            code="MEMBER_NOT_FOUND",
        )
    return member


def ensure_premium_member(member: User, now: datetime | None = None) -> None:
    """Workout and diet plans are a premium feature."""
    now = now or datetime.utcnow()
    if member.subscription_plan != PLAN_PREMIUM:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Member must have premium subscription for workout and diet plans",
            code="PREMIUM_REQUIRED",
        )
    if not member.subscription_valid_till or member.subscription_valid_till <= now:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Member's subscription has expired",
            code="SUBSCRIPTION_EXPIRED",
        )


def upsert_workout_plan(db: Session, trainer: User, member: User, exercises: list[dict]) -> tuple[WorkoutPlan, bool]:
    plan = db.query(WorkoutPlan).filter(WorkoutPlan.member_id == member.id).first()
    created = plan is None
    if created:
        plan = WorkoutPlan(member_id=member.id)
        db.add(plan)
    plan.created_by_id = trainer.id
    plan.exercises = exercises
    return plan, created


def upsert_diet_plan(db: Session, trainer: User, member: User, meals: list[dict]) -> tuple[DietPlan, bool]:
    plan = db.query(DietPlan).filter(DietPlan.member_id == member.id).first()
    created = plan is None
    if created:
        plan = DietPlan(member_id=member.id)
        db.add(plan)
    plan.created_by_id = trainer.id
    plan.meals = meals
    return plan, created
