from app.config import settings
from app.database import SessionLocal, init_database
from app.models.plan import Plan
from app.models.user import PLAN_BASIC, PLAN_PREMIUM, ROLE_ADMIN, User
from app.services.auth_service import hash_password

DEFAULT_PLANS = [
    {
        "name": PLAN_BASIC,
        "price": 999,
        "duration_in_days": 30,
        "features": [
            "Access to gym equipment",
            "Basic workout guidelines",
            "Health tracking",
            "Monthly progress report",
        ],
    },
    {
        "name": PLAN_PREMIUM,
        "price": 1999,
        "duration_in_days": 30,
        "features": [
            "Access to gym equipment",
            "Personal trainer assignment",
            "Custom workout plans",
            "Custom diet plans",
            "Direct chat with trainer",
            "Weekly progress reviews",
            "Nutrition counseling",
            "Priority booking for classes",
        ],
    },
]


def seed_plans(db):
    if db.query(Plan).count() > 0:
        print("✔ Plans already present, skipping plan seeding.")
        return
    for data in DEFAULT_PLANS:
        db.add(Plan(**data))
    db.commit()
    print("✔ Default basic and premium plans seeded!")


def seed_admin(db):
    if db.query(User).filter(User.role == ROLE_ADMIN).first():
        print("✔ Admin already present, skipping admin seeding.")
        return
    admin_user = User(
        name=settings.SEED_ADMIN_NAME,
        email=settings.SEED_ADMIN_EMAIL,
        phone=settings.SEED_ADMIN_PHONE,
        password=hash_password(settings.SEED_ADMIN_PASSWORD),
        role=ROLE_ADMIN,
        is_verified=True,
    )
    db.add(admin_user)
    db.commit()
    print(f"✔ Default admin user seeded! ({settings.SEED_ADMIN_EMAIL})")


def run_seed():
    db = SessionLocal()
    try:
        seed_plans(db)
        seed_admin(db)
    except Exception as e:
        db.rollback()
        print("❌ Seeding error:", e)
    finally:
        db.close()


if __name__ == "__main__":
    init_database()
    run_seed()
