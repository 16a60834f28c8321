"""
Display utilities for user and group names
"""
from typing import Optional

from sqlalchemy.orm import Session

import models


def get_user_display_name(user: Optional[models.User], viewer_id: Optional[int] = None) -> str:
    """The user's name, "You" for the viewer, "Unknown" for a missing user."""
    if not user:
        return "Unknown"
    if viewer_id is not None and user.id == viewer_id:
        return "You"
    return user.name


def get_short_name(name: str) -> str:
    """
    Abbreviate a full name for compact display.
    Example: Abin Benny -> Abin B.
    """
    parts = name.split()
    if len(parts) > 1:
        return f"{parts[0]} {parts[-1][0]}."
    return name


def load_users(db: Session, user_ids) -> dict[int, models.User]:
    """Batch fetch users by ID."""
    user_ids = set(user_ids)
    if not user_ids:
        return {}
    users = db.query(models.User).filter(models.User.id.in_(user_ids)).all()
    return {u.id: u for u in users}


def load_group_names(db: Session, group_ids) -> dict[int, str]:
    group_ids = {gid for gid in group_ids if gid is not None}
    if not group_ids:
        return {}
    groups = db.query(models.Group).filter(models.Group.id.in_(group_ids)).all()
    return {g.id: g.name for g in groups}


def get_context_name(group_id: Optional[int], group_names: dict[int, str]) -> str:
    if group_id is None:
        return "Non-group"
    return group_names.get(group_id, "Deleted group")
