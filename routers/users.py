from typing import List, Literal, Optional

from fastapi import APIRouter
from sqlmodel import col, select

from db import SessionDep
from errors import NotFoundError
from models import User
from schemas import UserRead

router = APIRouter(tags=["users"])


@router.get("/", response_model=List[UserRead])
def list_users(
    session: SessionDep,
    role: Optional[Literal["donor", "recipient"]] = None,
):
    """
    List users, optionally only donors or only recipients.
    """
    query = select(User)
    if role == "donor":
        query = query.where(User.is_donor == True)  # noqa: E712
    elif role == "recipient":
        query = query.where(User.is_recipient == True)  # noqa: E712
    return session.exec(query.order_by(col(User.id).asc())).all()


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, session: SessionDep):
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("user", user_id)
    return user
