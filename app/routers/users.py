import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import ROLE_MEMBER, ROLE_TRAINER, User
from app.schemas.user import (
    ChangePassword,
    MemberProfileUpdate,
    ProfileUpdate,
    TrainerProfileUpdate,
    UserResponse,
)
from app.services.auth_middleware import get_current_user, require_verification
from app.services.auth_service import clear_auth_cookie, hash_password, verify_password
from app.services.membership_service import remove_user_records
from app.services.profile_service import (
    MEMBER_FIELDS,
    find_member_profile,
    find_trainer_profile,
    member_profile_payload,
    trainer_profile_payload,
    update_member_profile,
    update_trainer_profile,
)
from app.utils.response import ApiError, create_response, handle_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["User"])


def _profile_data(db: Session, user: User) -> dict:
    data = {"user": UserResponse.model_validate(user).model_dump(), "profile": None}
    if user.role == ROLE_MEMBER:
        data["profile"] = member_profile_payload(find_member_profile(db, user.id))
    elif user.role == ROLE_TRAINER:
        data["profile"] = trainer_profile_payload(db, find_trainer_profile(db, user.id))
    return data


@router.get("/profile")
def get_profile(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        return create_response(message="Profile fetched", data=_profile_data(db, user))
    except Exception as exc:
        return handle_exception(exc)


@router.put("/profile")
def update_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        if body.phone and body.phone != user.phone:
            taken = db.query(User).filter(User.phone == body.phone, User.id != user.id).first()
            if taken:
                raise ApiError(status.HTTP_409_CONFLICT, "Phone number already in use", code="PHONE_EXISTS")
            user.phone = body.phone
        if body.name:
            user.name = body.name.strip()

        fields = body.model_dump(exclude_unset=True, by_alias=True)
        if user.role == ROLE_MEMBER:
            member_fields = set(MEMBER_FIELDS) | {"preferred_time_slots"}
            update_member_profile(
                db,
                user,
                MemberProfileUpdate.model_validate({k: v for k, v in fields.items() if k in member_fields}),
            )
        elif user.role == ROLE_TRAINER:
            trainer_fields = {"expertise", "available_time_slots"}
            update_trainer_profile(
                db,
                user,
                TrainerProfileUpdate.model_validate({k: v for k, v in fields.items() if k in trainer_fields}),
            )

        db.commit()
        db.refresh(user)
        return create_response(message="Profile updated successfully", data=_profile_data(db, user))
    except Exception as exc:
        return handle_exception(exc)


@router.put("/change-password")
def change_password(
    body: ChangePassword,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        if not verify_password(body.current_password, user.password):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Current password is incorrect", code="INVALID_PASSWORD")
        user.password = hash_password(body.new_password)
        db.commit()
        logger.info("User %s changed password", user.id)
        return create_response(message="Password changed successfully", data=None)
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/delete-account")
def delete_account(db: Session = Depends(get_db), user: User = Depends(require_verification)):
    try:
        user_id = user.id
        remove_user_records(db, user)
        db.commit()
        logger.info("User %s deleted their account", user_id)
        response = create_response(message="Account deleted successfully", data=None)
        clear_auth_cookie(response)
        return response
    except Exception as exc:
        return handle_exception(exc)
