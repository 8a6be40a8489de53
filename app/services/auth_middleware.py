from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import ROLE_ADMIN, User
from app.services.auth_service import decode_access_token
from app.utils.response import ApiError


def _extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


def _get_auth_context(token: str, db: Session) -> dict:
    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Token expired", code="TOKEN_EXPIRED")
    except JWTError:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid token", code="INVALID_TOKEN")

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Invalid token payload", code="INVALID_TOKEN")

    user = db.query(User).filter(User.id == int(subject)).first()
    if not user:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "User not found", code="USER_NOT_FOUND")

    return {"user": user, "payload": payload}


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(settings.bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    token = _extract_token(request, credentials)
    if not token:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "Authentication required", code="NO_TOKEN")
    return _get_auth_context(token, db)["user"]


def require_role(*roles: str):
    """Dependency factory rejecting users whose role is not in ``roles``."""

    def _role_gate(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                f"Access denied. Required role: {' or '.join(roles)}",
                code="INSUFFICIENT_ROLE",
            )
        return user

    return _role_gate


def require_verification(user: User = Depends(get_current_user)) -> User:
    if not user.is_verified:
        raise ApiError(
            status.HTTP_403_FORBIDDEN,
            "Account verification required",
            code="VERIFICATION_REQUIRED",
        )
    return user


get_current_admin = require_role(ROLE_ADMIN)


def require_verified_role(*roles: str):
    role_gate = require_role(*roles)

    def _verified_role_gate(user: User = Depends(role_gate)) -> User:
        return require_verification(user)

    return _verified_role_gate
