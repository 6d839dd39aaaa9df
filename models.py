from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True)
    name: str
    phone: Optional[str] = None
    is_donor: bool = False
    is_recipient: bool = False
    password_hash: str


class Request(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    requester_id: int = Field(foreign_key="user.id")

    food_needed: str
    quantity_label: str  # free-form, e.g. "50 meals"; kept for display
    numeric_requested: float = 0
    fulfilled_quantity: float = 0
    location: str
    requester_type: str = "individual"  # ngo | individual
    requester_name: Optional[str] = None
    requester_phone: Optional[str] = None
    status: str = Field(default="open", index=True)  # open | accepted | fulfilled
    created_at: datetime = Field(default_factory=_utcnow, index=True)


class Donation(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    donor_id: int = Field(foreign_key="user.id")
    request_id: Optional[int] = Field(default=None, foreign_key="request.id", index=True)

    food_type: str
    quantity_label: str
    numeric_quantity: float = 0
    location: str
    manufacturing_date: Optional[str] = None
    photo_ref: Optional[str] = None
    quality_label: Optional[str] = None  # fresh | check | not-suitable
    quality_notes: Optional[str] = None
    status: str = "available"  # available | claimed | completed
    claimed_by: Optional[int] = Field(default=None, foreign_key="user.id")
    donor_phone: Optional[str] = None
    claimant_phone: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
