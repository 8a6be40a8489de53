import base64
import binascii
import json
import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.otp import OTP, OTP_MAX_ATTEMPTS
from app.models.user import ROLE_MEMBER, ROLE_TRAINER, User
from app.schemas.auth import LoginRequest, RegisterInitiate, RegisterVerify, ResendOtp
from app.schemas.user import UserResponse
from app.services.auth_middleware import get_current_user
from app.services.auth_service import (
    clear_auth_cookie,
    create_access_token,
    hash_password,
    set_auth_cookie,
    verify_password,
)
from app.services.email_services import (
    EmailDeliveryError,
    generate_otp,
    send_otp_email,
    send_welcome_email,
)
from app.utils.response import ApiError, create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

RESEND_COOLDOWN = timedelta(seconds=60)
PENDING_USER_FIELDS = ("name", "email", "phone", "password", "role")


def _purge_expired_otps(db: Session, now: datetime) -> None:
    db.query(OTP).filter(OTP.expires_at <= now).delete(synchronize_session=False)


def _ensure_unique(db: Session, email: str, phone: str) -> None:
    existing = db.query(User).filter((User.email == email) | (User.phone == phone)).first()
    if existing:
        field = "email" if existing.email == email else "phone"
        raise ApiError(
            status.HTTP_409_CONFLICT,
            f"User with this {field} already exists",
            code="USER_EXISTS",
        )


def _issue_otp(db: Session, email: str, name: str) -> None:
    """Replace any OTP for ``email`` with a fresh one and mail it. Caller commits."""
    db.query(OTP).filter(OTP.email == email).delete(synchronize_session=False)
    otp = generate_otp()
    db.add(OTP(email=email, otp=otp))
    db.flush()
    try:
        send_otp_email(email, otp, name)
    except EmailDeliveryError:
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to send OTP email. Please try again.",
            code="EMAIL_SEND_FAILED",
        )


def _encode_pending_user(payload: dict) -> str:
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def _decode_pending_user(temp_data: str) -> dict:
    try:
        payload = json.loads(base64.b64decode(temp_data, validate=True).decode("utf-8"))
    except (binascii.Error, ValueError):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid registration data", code="INVALID_TEMP_DATA")
    if not isinstance(payload, dict) or any(
        not payload.get(field) or not isinstance(payload[field], str) for field in PENDING_USER_FIELDS
    ):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid registration data", code="INVALID_TEMP_DATA")
    return payload


def _session_response(user: User, message: str, status_code: int = status.HTTP_200_OK):
    token = create_access_token(user.id, user.role)
    response = create_response(
        message=message,
        data={"user": UserResponse.model_validate(user).model_dump(), "token": token},
        status_code=status_code,
    )
    set_auth_cookie(response, token)
    return response


@router.post("/register/initiate")
def register_initiate(body: RegisterInitiate, db: Session = Depends(get_db)):
    try:
        now = datetime.utcnow()
        _purge_expired_otps(db, now)
        _ensure_unique(db, body.email, body.phone)

        _issue_otp(db, body.email, body.name)
        db.commit()

        temp_data = _encode_pending_user(
            {
                "name": body.name,
                "email": body.email,
                "phone": body.phone,
                "password": hash_password(body.password),
                "role": body.role.value,
            }
        )
        logger.info("Registration OTP issued for %s", body.email)
        return create_response(
            message="OTP sent to your email. Please verify to complete registration.",
            data={"email": body.email, "temp_data": temp_data},
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/register/verify", status_code=status.HTTP_201_CREATED)
def register_verify(body: RegisterVerify, db: Session = Depends(get_db)):
    try:
        now = datetime.utcnow()
        _purge_expired_otps(db, now)

        record = (
            db.query(OTP)
            .filter(OTP.email == body.email, OTP.verified == False, OTP.expires_at > now)
            .order_by(OTP.created_at.desc())
            .first()
        )
        if not record:
            db.commit()
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid or expired OTP", code="OTP_EXPIRED")

        if record.attempts >= OTP_MAX_ATTEMPTS:
            db.query(OTP).filter(OTP.email == body.email).delete(synchronize_session=False)
            db.commit()
            logger.warning("OTP attempts exhausted for %s", body.email)
            raise ApiError(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "Too many failed attempts. Please request a new OTP.",
                code="TOO_MANY_ATTEMPTS",
            )

        if record.otp != body.otp:
            record.attempts += 1
            attempts_left = OTP_MAX_ATTEMPTS - record.attempts
            db.commit()
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Invalid OTP",
                code="INVALID_OTP",
                data={"attempts_left": attempts_left},
            )

        pending = _decode_pending_user(body.temp_data)
        if pending["email"].lower() != body.email.lower():
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Email mismatch", code="EMAIL_MISMATCH")
        if pending["role"] not in (ROLE_MEMBER, ROLE_TRAINER):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid role", code="INVALID_ROLE")
        _ensure_unique(db, pending["email"], pending["phone"])

        user = User(
            name=pending["name"],
            email=pending["email"],
            phone=pending["phone"],
            password=pending["password"],
            role=pending["role"],
            is_verified=True,
            last_login_at=now,
        )
        db.add(user)
        db.query(OTP).filter(OTP.email == body.email).delete(synchronize_session=False)
        db.commit()
        db.refresh(user)
        logger.info("Registered %s %s", user.role, user.id)

        try:
            send_welcome_email(user.email, user.name)
        except EmailDeliveryError:
            logger.warning("Welcome email to %s was not delivered", user.email)

        return _session_response(user, "Registration completed successfully", status.HTTP_201_CREATED)
    except Exception as exc:
        return handle_exception(exc)


@router.post("/register/resend-otp")
def resend_otp(body: ResendOtp, db: Session = Depends(get_db)):
    try:
        now = datetime.utcnow()
        _purge_expired_otps(db, now)

        recent = (
            db.query(OTP)
            .filter(OTP.email == body.email, OTP.created_at > now - RESEND_COOLDOWN)
            .first()
        )
        if recent:
            db.commit()
            raise ApiError(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "Please wait before requesting another OTP",
                code="OTP_COOLDOWN",
            )

        _issue_otp(db, body.email, body.name)
        db.commit()
        return create_response(message="OTP resent successfully", data={"email": body.email})
    except Exception as exc:
        return handle_exception(exc)


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.email == body.email).first()
        if not user or not verify_password(body.password, user.password):
            raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid credentials", code="INVALID_CREDENTIALS")

        user.last_login_at = datetime.utcnow()
        db.commit()
        db.refresh(user)
        return _session_response(user, "Login successful")
    except Exception as exc:
        return handle_exception(exc)


@router.post("/logout")
def logout():
    response = create_response(message="Logged out successfully", data=None)
    clear_auth_cookie(response)
    return response


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return create_response(
        message="User fetched",
        data={"user": UserResponse.model_validate(user).model_dump()},
    )
