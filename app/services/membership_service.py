"""Bookkeeping for the member <-> trainer link.

``User.trainer_assigned_id`` on the member and ``TrainerProfile.members_assigned``
on the trainer describe the same edge. Every mutation path goes through this
module so both sides change together. Callers commit.
"""
import logging

from sqlalchemy.orm import Session

from app.models.chat import Chat
from app.models.fitness_plan import DietPlan, WorkoutPlan
from app.models.profile import MemberProfile, TrainerProfile
from app.models.user import ROLE_MEMBER, ROLE_TRAINER, User

logger = logging.getLogger(__name__)


def get_or_create_trainer_profile(db: Session, trainer_id: int) -> TrainerProfile:
    profile = db.query(TrainerProfile).filter(TrainerProfile.user_id == trainer_id).first()
    if not profile:
        profile = TrainerProfile(
            user_id=trainer_id,
            expertise=[],
            available_time_slots=[],
            members_assigned=[],
        )
        db.add(profile)
        db.flush()
    return profile


def get_or_create_member_profile(db: Session, member_id: int) -> MemberProfile:
    profile = db.query(MemberProfile).filter(MemberProfile.user_id == member_id).first()
    if not profile:
        profile = MemberProfile(user_id=member_id, preferred_time_slots=[])
        db.add(profile)
        db.flush()
    return profile


def _pull_member(db: Session, trainer_id: int, member_id: int) -> None:
    profile = db.query(TrainerProfile).filter(TrainerProfile.user_id == trainer_id).first()
    if profile and member_id in (profile.members_assigned or []):
        profile.members_assigned = [mid for mid in profile.members_assigned if mid != member_id]


def assign_trainer(db: Session, member: User, trainer: User) -> None:
    if member.trainer_assigned_id and member.trainer_assigned_id != trainer.id:
        _pull_member(db, member.trainer_assigned_id, member.id)

    member.trainer_assigned_id = trainer.id

    profile = get_or_create_trainer_profile(db, trainer.id)
    current = list(profile.members_assigned or [])
    if member.id not in current:
        profile.members_assigned = current + [member.id]
    logger.info("Assigned trainer %s to member %s", trainer.id, member.id)


def unassign_member(db: Session, member: User) -> int | None:
    previous = member.trainer_assigned_id
    if previous:
        _pull_member(db, previous, member.id)
    member.trainer_assigned_id = None
    return previous


def release_trainer_members(db: Session, trainer: User) -> list[int]:
    """Clear trainer_assigned_id on every member pointing at ``trainer``."""
    profile = db.query(TrainerProfile).filter(TrainerProfile.user_id == trainer.id).first()
    member_ids = set(profile.members_assigned or []) if profile else set()
    # Also catch members whose reference drifted out of the trainer's list.
    linked = db.query(User).filter(User.trainer_assigned_id == trainer.id).all()
    member_ids.update(member.id for member in linked)

    if member_ids:
        (
            db.query(User)
            .filter(User.id.in_(member_ids))
            .update({User.trainer_assigned_id: None}, synchronize_session="fetch")
        )
    if profile:
        profile.members_assigned = []
    return sorted(member_ids)


def remove_user_records(db: Session, user: User) -> None:
    """Delete a user together with profile, fitness plans and chats, unlinking assignments."""
    if user.role == ROLE_TRAINER:
        released = release_trainer_members(db, user)
        logger.info("Released %s members from trainer %s", len(released), user.id)
        # ORM delete so the pending members_assigned change is dropped with the row.
        profile = db.query(TrainerProfile).filter(TrainerProfile.user_id == user.id).first()
        if profile:
            db.delete(profile)
        db.query(WorkoutPlan).filter(WorkoutPlan.created_by_id == user.id).update(
            {WorkoutPlan.created_by_id: None}, synchronize_session=False
        )
        db.query(DietPlan).filter(DietPlan.created_by_id == user.id).update(
            {DietPlan.created_by_id: None}, synchronize_session=False
        )
    elif user.role == ROLE_MEMBER:
        unassign_member(db, user)
        # Drift guard: pull the id from any other trainer list still holding it.
        for profile in db.query(TrainerProfile).all():
            if user.id in (profile.members_assigned or []):
                profile.members_assigned = [mid for mid in profile.members_assigned if mid != user.id]
        db.query(MemberProfile).filter(MemberProfile.user_id == user.id).delete(synchronize_session=False)
        db.query(WorkoutPlan).filter(WorkoutPlan.member_id == user.id).delete(synchronize_session=False)
        db.query(DietPlan).filter(DietPlan.member_id == user.id).delete(synchronize_session=False)

    chats = db.query(Chat).filter((Chat.member_id == user.id) | (Chat.trainer_id == user.id)).all()
    for chat in chats:
        db.delete(chat)

    db.delete(user)
