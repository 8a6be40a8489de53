from sqlalchemy.orm import Session

from app.models.profile import MemberProfile, TrainerProfile
from app.models.user import User
from app.schemas.user import MemberProfileUpdate, TrainerProfileUpdate
from app.services.membership_service import get_or_create_member_profile, get_or_create_trainer_profile

MEMBER_FIELDS = ("age", "weight", "height", "goal")


def member_profile_payload(profile: MemberProfile | None) -> dict | None:
    if profile is None:
        return None
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "age": profile.age,
        "weight": profile.weight,
        "height": profile.height,
        "goal": profile.goal,
        "preferred_time_slots": profile.preferred_time_slots or [],
    }


def trainer_profile_payload(db: Session, profile: TrainerProfile | None, include_members: bool = True) -> dict | None:
    if profile is None:
        return None
    payload = {
        "id": profile.id,
        "user_id": profile.user_id,
        "expertise": profile.expertise or [],
        "available_time_slots": profile.available_time_slots or [],
        "members_assigned": list(profile.members_assigned or []),
    }
    if include_members:
        member_ids = profile.members_assigned or []
        members = db.query(User).filter(User.id.in_(member_ids)).all() if member_ids else []
        payload["members"] = [
            {"id": member.id, "name": member.name, "email": member.email}
            for member in members
        ]
    return payload


def matching_slots(slots: list[dict] | None, day: str, time_from: str | None = None, time_to: str | None = None) -> list[dict]:
    """Slots on ``day`` that lie inside [time_from, time_to]. Times are zero-padded HH:MM strings."""
    time_from = time_from.strip().rjust(5, "0") if time_from else None
    time_to = time_to.strip().rjust(5, "0") if time_to else None
    matches = []
    for slot in slots or []:
        if str(slot.get("day", "")).lower() != day.strip().lower():
            continue
        if time_from and slot.get("from", "") < time_from:
            continue
        if time_to and slot.get("to", "") > time_to:
            continue
        matches.append(slot)
    return matches


def find_member_profile(db: Session, user_id: int) -> MemberProfile | None:
    return db.query(MemberProfile).filter(MemberProfile.user_id == user_id).first()


def find_trainer_profile(db: Session, user_id: int) -> TrainerProfile | None:
    return db.query(TrainerProfile).filter(TrainerProfile.user_id == user_id).first()


def update_member_profile(db: Session, user: User, body: MemberProfileUpdate) -> MemberProfile:
    """Upsert the member profile with the fields present in ``body``. Caller commits."""
    profile = get_or_create_member_profile(db, user.id)
    data = body.model_dump(exclude_unset=True, include=set(MEMBER_FIELDS))
    for field, value in data.items():
        setattr(profile, field, value)
    if body.preferred_time_slots is not None:
        profile.preferred_time_slots = [slot.as_document() for slot in body.preferred_time_slots]
    return profile


def update_trainer_profile(db: Session, user: User, body: TrainerProfileUpdate) -> TrainerProfile:
    profile = get_or_create_trainer_profile(db, user.id)
    if body.expertise is not None:
        profile.expertise = [item.strip() for item in body.expertise if item.strip()]
    if body.available_time_slots is not None:
        profile.available_time_slots = [slot.as_document() for slot in body.available_time_slots]
    return profile
