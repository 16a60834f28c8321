"""Users router: the authenticated caller and the people they transact with."""

from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from utils import groups as group_service


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=schemas.User)
def read_current_user(current_user: Annotated[models.User, Depends(get_current_user)]):
    return current_user


@router.post("/contacts", response_model=schemas.User)
def add_contact(
    contact: schemas.ContactCreate,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    """Find a user by email or phone, creating an invited user if there is none."""
    return group_service.add_contact(db, current_user, contact)
