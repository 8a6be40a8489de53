import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.plan import Plan
from app.models.profile import TrainerProfile
from app.models.user import ROLE_MEMBER, ROLE_TRAINER, User
from app.utils.response import create_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stats", tags=["Stats"])

FEATURED_TRAINERS_LIMIT = 6
FEATURED_PLANS_LIMIT = 8

DEFAULT_STATS = {
    "active_users": 10000,
    "gyms_connected": 500,
    "satisfaction": 98,
    "trainers_count": 150,
    "active_plans": 25,
    "total_workouts": 50000,
    "avg_rating": 4.8,
}

FALLBACK_TRAINERS = [
    {
        "id": None,
        "name": "Sarah Johnson",
        "expertise": ["Weight Training"],
        "bio": "Certified personal trainer specialising in strength training.",
    },
    {
        "id": None,
        "name": "Mike Chen",
        "expertise": ["Cardio", "HIIT"],
        "bio": "Interval training coach focused on cardiovascular health.",
    },
    {
        "id": None,
        "name": "Emily Davis",
        "expertise": ["Yoga", "Flexibility"],
        "bio": "Yoga instructor helping clients improve flexibility and mindfulness.",
    },
]

FALLBACK_PLANS = [
    {"id": None, "name": "basic", "price": 999, "duration_in_days": 30, "features": ["Gym access", "Trainer assignment"]},
    {"id": None, "name": "premium", "price": 1999, "duration_in_days": 30, "features": ["Workout plans", "Diet plans", "Trainer chat"]},
]

TRAINER_BIO = "Certified fitness trainer dedicated to helping you achieve your goals."


@router.get("")
def platform_stats(db: Session = Depends(get_db)):
    try:
        members = db.query(func.count(User.id)).filter(User.role == ROLE_MEMBER).scalar() or 0
        trainers = db.query(func.count(User.id)).filter(User.role == ROLE_TRAINER).scalar() or 0
        plans = db.query(func.count(Plan.id)).scalar() or 0
    except SQLAlchemyError:
        logger.warning("Stats unavailable; serving defaults", exc_info=True)
        return create_response(message="Fallback stats provided", data={"stats": DEFAULT_STATS})

    stats = {
        "active_users": members or DEFAULT_STATS["active_users"],
        "gyms_connected": max(members // 20, DEFAULT_STATS["gyms_connected"]),
        "satisfaction": DEFAULT_STATS["satisfaction"],
        "trainers_count": trainers or DEFAULT_STATS["trainers_count"],
        "active_plans": plans or DEFAULT_STATS["active_plans"],
        "total_workouts": max(members * 45, DEFAULT_STATS["total_workouts"]),
        "avg_rating": DEFAULT_STATS["avg_rating"],
    }
    return create_response(message="Stats retrieved successfully", data={"stats": stats})


@router.get("/trainers")
def featured_trainers(db: Session = Depends(get_db)):
    try:
        rows = (
            db.query(User, TrainerProfile)
            .outerjoin(TrainerProfile, TrainerProfile.user_id == User.id)
            .filter(User.role == ROLE_TRAINER, User.is_verified == True)
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(FEATURED_TRAINERS_LIMIT)
            .all()
        )
    except SQLAlchemyError:
        logger.warning("Trainer listing unavailable; serving fallback trainers", exc_info=True)
        return create_response(message="Fallback trainers provided", data={"trainers": FALLBACK_TRAINERS})

    trainers = [
        {
            "id": trainer.id,
            "name": trainer.name,
            "expertise": (profile.expertise if profile else None) or ["Fitness Training"],
            "bio": TRAINER_BIO,
        }
        for trainer, profile in rows
    ]
    return create_response(message="Featured trainers retrieved successfully", data={"trainers": trainers})


@router.get("/plans")
def featured_plans(db: Session = Depends(get_db)):
    try:
        plans = db.query(Plan).order_by(Plan.created_at.desc()).limit(FEATURED_PLANS_LIMIT).all()
    except SQLAlchemyError:
        logger.warning("Plan listing unavailable; serving fallback plans", exc_info=True)
        return create_response(message="Fallback plans provided", data={"plans": FALLBACK_PLANS})

    data = [
        {
            "id": plan.id,
            "name": plan.name,
            "price": plan.price,
            "duration_in_days": plan.duration_in_days,
            "features": plan.features or [],
        }
        for plan in plans
    ]
    return create_response(message="Featured plans retrieved successfully", data={"plans": data})
