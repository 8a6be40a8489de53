import logging
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import BASE_DIR, settings
from app.database import init_database
from app.routers import (
    admin,
    auth,
    chat,
    landing,
    member,
    payments,
    plans,
    stats,
    trainer,
    users,
)
from app.utils.response import create_response, handle_exception
from seed import run_seed

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# CORS for the SPA; cookies need credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and not getattr(exc, "code", None):
        return create_response(
            message=f"Route {request.url.path} not found",
            data=None,
            status_code=status.HTTP_404_NOT_FOUND,
            code="ROUTE_NOT_FOUND",
        )
    return handle_exception(exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return create_response(
        message="Validation error",
        data=None,
        status_code=status.HTTP_400_BAD_REQUEST,
        code="VALIDATION_ERROR",
        details=[
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ],
    )


@app.on_event("startup")
def startup_event():
    if init_database():
        run_seed()
    else:
        logger.warning("Skipping seed; database unavailable")


app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(member.router, prefix="/api")
app.include_router(trainer.router, prefix="/api")
app.include_router(plans.router, prefix="/api")
app.include_router(payments.router, prefix="/api")
app.include_router(chat.router, prefix="/api")
app.include_router(landing.router, prefix="/api")
app.include_router(stats.router, prefix="/api")

# Serve the built SPA when present
static_dir = Path(settings.STATIC_DIR)
if not static_dir.is_absolute():
    static_dir = BASE_DIR / static_dir
if static_dir.is_dir():
    app.mount("/static", StaticFiles(directory=static_dir), name="static")


@app.get("/")
def home():
    try:
        return create_response(
            message="Gym Management API is running",
            data={"service": "gymsync-backend", "environment": settings.APP_ENV},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT)
