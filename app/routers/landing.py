import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.plan import Plan
from app.models.user import PLAN_PREMIUM, ROLE_MEMBER, ROLE_TRAINER, User
from app.utils.response import create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/landing", tags=["Landing"])

HEADING = "Transform Your Fitness Journey with GymSync"
SUBHEADING = (
    "Your gym management platform with personalised workout plans, personal trainer access "
    "and real-time chat support."
)
CTA_BUTTONS = [
    {"label": "Join Now", "link": "/register", "style": "primary"},
    {"label": "Explore Plans", "link": "/plans", "style": "secondary"},
]
DEFAULT_HERO_STATS = {
    "active_users": 10000,
    "trainers": 150,
    "workouts_completed": 85000,
    "satisfaction": 98,
}

FEATURES = [
    {
        "title": "Personalised Workout Plans",
        "description": "Routines built by your trainer around your fitness level, goals and schedule.",
        "icon": "/icons/workout.svg",
        "highlights": ["Goal-specific routines", "Weekly schedule", "Trainer adjustments"],
    },
    {
        "title": "Personal Trainer Access",
        "description": "Get matched with a certified trainer who follows your progress.",
        "icon": "/icons/trainer.svg",
        "highlights": ["Certified professionals", "Matched to your time slots", "Custom programs"],
    },
    {
        "title": "Real-Time Chat",
        "description": "Premium members message their assigned trainer directly.",
        "icon": "/icons/chat.svg",
        "highlights": ["Direct trainer messaging", "Message history", "Premium feature"],
    },
    {
        "title": "Nutrition Guidance",
        "description": "Diet plans with meals and food items chosen for your goal.",
        "icon": "/icons/nutrition.svg",
        "highlights": ["Meal-by-meal plans", "Goal-based diets", "Trainer notes"],
    },
    {
        "title": "Flexible Subscriptions",
        "description": "Basic and premium plans that extend from your current expiry when renewed early.",
        "icon": "/icons/plans.svg",
        "highlights": ["No lost days on renewal", "Payment history", "Refunds within 7 days"],
    },
]

FALLBACK_PLANS = [
    {
        "id": "basic",
        "name": "basic",
        "price": 999,
        "duration_in_days": 30,
        "features": ["Access to gym facilities", "Trainer assignment", "Progress tracking"],
        "popular": False,
        "button_text": "Get Started",
        "button_link": "/register",
    },
    {
        "id": "premium",
        "name": "premium",
        "price": 1999,
        "duration_in_days": 30,
        "features": [
            "Everything in Basic",
            "Personal workout plans",
            "Personal diet plans",
            "Chat with your trainer",
        ],
        "popular": True,
        "button_text": "Get Started",
        "button_link": "/register",
    },
]


@router.get("")
def landing_data(db: Session = Depends(get_db)):
    try:
        members = db.query(func.count(User.id)).filter(User.role == ROLE_MEMBER).scalar() or 0
        trainers = db.query(func.count(User.id)).filter(User.role == ROLE_TRAINER).scalar() or 0
        hero_stats = dict(DEFAULT_HERO_STATS)
        hero_stats["active_users"] = members or DEFAULT_HERO_STATS["active_users"]
        hero_stats["trainers"] = trainers or DEFAULT_HERO_STATS["trainers"]
        message = "Landing data retrieved successfully"
    except SQLAlchemyError:
        logger.warning("Landing counts unavailable; serving defaults", exc_info=True)
        hero_stats = dict(DEFAULT_HERO_STATS)
        message = "Fallback landing data provided"

    return create_response(
        message=message,
        data={
            "heading": HEADING,
            "subheading": SUBHEADING,
            "cta_buttons": CTA_BUTTONS,
            "hero_stats": hero_stats,
        },
    )


@router.get("/features")
def features():
    return create_response(message="Features retrieved successfully", data={"features": FEATURES})


@router.get("/plans")
def landing_plans(db: Session = Depends(get_db)):
    try:
        try:
            plans = db.query(Plan).order_by(Plan.price.asc()).all()
        except SQLAlchemyError:
            logger.warning("Plan catalog unavailable; serving fallback plans", exc_info=True)
            plans = []

        if not plans:
            return create_response(message="Fallback plans provided", data={"plans": FALLBACK_PLANS})

        data = [
            {
                "id": plan.id,
                "name": plan.name,
                "price": plan.price,
                "duration_in_days": plan.duration_in_days,
                "features": plan.features or [],
                "popular": plan.name == PLAN_PREMIUM,
                "button_text": "Get Started",
                "button_link": "/register",
            }
            for plan in plans
        ]
        return create_response(message="Plans retrieved successfully", data={"plans": data})
    except Exception as exc:
        return handle_exception(exc)
