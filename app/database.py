import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import settings

logger = logging.getLogger(__name__)


def _normalize_db_url(url: str) -> str:
    # Heroku-style URLs use postgres://; SQLAlchemy expects postgresql://
    return url.replace("postgres://", "postgresql://", 1) if url.startswith("postgres://") else url


DATABASE_URL = _normalize_db_url(settings.DATABASE_URL)

if DATABASE_URL.startswith("sqlite"):
    # SQLite needs this flag for multi-threaded FastAPI usage
    connect_args = {"check_same_thread": False}
else:
    connect_args = {"connect_timeout": settings.DB_CONNECT_TIMEOUT_SECONDS}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_database() -> bool:
    """Create missing tables. Outside production a dead database only degrades the API."""
    # Register every model on Base.metadata before create_all.
    from app.models import chat, fitness_plan, otp, payment, plan, profile, user  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
        return True
    except SQLAlchemyError:
        if settings.is_production:
            logger.critical("Database connection failed; refusing to start in production")
            raise
        logger.exception("Database connection failed; running in degraded mode without persistence")
        return False
