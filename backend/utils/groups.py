"""Contacts and group membership: the plumbing behind group-scoped authorization and leave rules."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import models
import schemas
from utils.activity import record_activity
from utils.errors import ValidationError
from utils.validation import (
    assert_zero_group_balance,
    get_group_or_404,
    get_membership,
    get_user_by_email,
    verify_group_admin,
    verify_group_membership,
)

logger = logging.getLogger(__name__)


def find_or_create_user(
    db: Session,
    name: str,
    email: Optional[str],
    phone: Optional[str],
    invited_by: models.User,
    default_currency: str
) -> models.User:
    """Look a contact up by email, then phone; otherwise create an invited placeholder user."""
    if email:
        user = get_user_by_email(db, email)
        if user:
            return user
    if phone:
        user = db.query(models.User).filter(models.User.phone == phone).first()
        if user:
            return user

    user = models.User(
        name=name,
        email=email,
        phone=phone,
        status="invited",
        default_currency=default_currency,
        invited_by_id=invited_by.id
    )
    db.add(user)
    db.flush()
    return user


def add_contact(db: Session, actor: models.User, contact: schemas.ContactCreate) -> models.User:
    """Resolve a contact to an existing user, or create them as invited."""
    if not contact.email and not contact.phone:
        raise ValidationError("Provide an email or a phone number")

    user = find_or_create_user(db, contact.name, contact.email, contact.phone, actor, actor.default_currency)
    if user.id == actor.id:
        db.rollback()
        raise ValidationError("You cannot add yourself as a contact")
    db.commit()
    db.refresh(user)
    logger.info("User %s added contact %s", actor.id, user.id)
    return user


def create_group(db: Session, actor: models.User, group: schemas.GroupCreate) -> models.Group:
    db_group = models.Group(
        name=group.name,
        created_by_id=actor.id,
        default_currency=group.default_currency,
        type=group.type,
        simplify_debts=group.simplify_debts
    )
    db.add(db_group)
    db.flush()

    # Add creator as admin
    db.add(models.GroupMember(
        group_id=db_group.id,
        user_id=actor.id,
        role="admin",
        status="joined",
        invited_by_id=actor.id,
        joined_at=datetime.utcnow()
    ))

    added = []
    for invite in group.members:
        user = find_or_create_user(db, invite.name, invite.email, invite.phone, actor, group.default_currency)
        if user.id == actor.id or get_membership(db, db_group.id, user.id):
            continue
        db.add(models.GroupMember(
            group_id=db_group.id,
            user_id=user.id,
            role="member",
            status="invited",
            invited_by_id=actor.id
        ))
        db.flush()
        added.append(user)

    db.commit()
    db.refresh(db_group)

    for user in added:
        record_activity(
            db,
            type="member_added",
            actor_id=actor.id,
            group_id=db_group.id,
            involved_user_ids=[actor.id, user.id],
            details={"member_name": user.name, "member_user_id": user.id}
        )
    record_activity(
        db,
        type="group_created",
        actor_id=actor.id,
        group_id=db_group.id,
        involved_user_ids=[actor.id],
        details={"description": db_group.name}
    )
    return db_group


def update_group(db: Session, actor: models.User, group_id: int, update: schemas.GroupUpdate) -> models.Group:
    group = get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, actor.id)

    changes = update.model_dump(exclude_none=True)
    if not changes:
        return group

    for field, value in changes.items():
        setattr(group, field, value)
    db.commit()
    db.refresh(group)

    record_activity(
        db,
        type="group_updated",
        actor_id=actor.id,
        group_id=group_id,
        involved_user_ids=[actor.id],
        details={"description": group.name}
    )
    return group


def add_member(db: Session, actor: models.User, group_id: int, member: schemas.GroupMemberAdd) -> models.User:
    group = get_group_or_404(db, group_id)
    verify_group_membership(db, group_id, actor.id)

    user = find_or_create_user(db, member.name, member.email, member.phone, actor, group.default_currency)

    existing = get_membership(db, group_id, user.id)
    if existing:
        if existing.status != "left":
            db.rollback()
            raise ValidationError("User is already a member of this group")
        # Re-add: set back to invited
        existing.status = "invited"
        existing.invited_by_id = actor.id
    else:
        db.add(models.GroupMember(
            group_id=group_id,
            user_id=user.id,
            role="member",
            status="invited",
            invited_by_id=actor.id
        ))
    db.commit()
    db.refresh(user)

    record_activity(
        db,
        type="member_added",
        actor_id=actor.id,
        group_id=group_id,
        involved_user_ids=[actor.id, user.id],
        details={"member_name": user.name, "member_user_id": user.id}
    )
    return user


def remove_member(db: Session, actor: models.User, group_id: int, user_id: int) -> None:
    """Admin removes another member. Their balances in the group must be settled."""
    get_group_or_404(db, group_id)
    verify_group_admin(db, group_id, actor.id)
    if user_id == actor.id:
        raise ValidationError("Use leave to leave the group")

    target = get_membership(db, group_id, user_id)
    if not target or target.status == "left":
        raise ValidationError("User is not a member of this group")

    assert_zero_group_balance(db, group_id, user_id)
    target.status = "left"
    db.commit()

    removed = db.query(models.User).filter(models.User.id == user_id).first()
    record_activity(
        db,
        type="member_removed",
        actor_id=actor.id,
        group_id=group_id,
        involved_user_ids=[actor.id, user_id],
        details={"member_name": removed.name if removed else "Unknown", "member_user_id": user_id}
    )


def leave_group(db: Session, actor: models.User, group_id: int) -> None:
    get_group_or_404(db, group_id)
    membership = verify_group_membership(db, group_id, actor.id)
    assert_zero_group_balance(db, group_id, actor.id)

    membership.status = "left"
    db.commit()

    record_activity(
        db,
        type="member_removed",
        actor_id=actor.id,
        group_id=group_id,
        involved_user_ids=[actor.id],
        details={"member_name": actor.name, "member_user_id": actor.id}
    )


def delete_group(db: Session, actor: models.User, group_id: int) -> None:
    """Admin deletes a group once every balance in it is settled."""
    group = get_group_or_404(db, group_id)
    verify_group_admin(db, group_id, actor.id)
    assert_zero_group_balance(db, group_id)

    db.query(models.GroupMember).filter(
        models.GroupMember.group_id == group_id,
        models.GroupMember.status != "left"
    ).update({"status": "left"}, synchronize_session=False)
    db.delete(group)
    db.commit()
