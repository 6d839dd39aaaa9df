from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    name: str
    password: str
    phone: Optional[str] = None
    is_donor: bool = False
    is_recipient: bool = False


class UserRead(BaseModel):
    id: int
    email: EmailStr
    name: str
    phone: Optional[str] = None
    is_donor: bool
    is_recipient: bool

    model_config = ConfigDict(from_attributes=True)


class LoginData(BaseModel):
    email: EmailStr
    password: str

    role: Literal["donor", "recipient"]


class RequestCreate(BaseModel):
    food_needed: str = Field(min_length=1)
    quantity_label: str = Field(min_length=1)
    # Explicit override; parsed from quantity_label when omitted.
    numeric_requested: Optional[float] = Field(default=None, ge=0)
    location: str
    requester_type: Literal["ngo", "individual"] = "individual"
    requester_name: Optional[str] = None
    requester_phone: Optional[str] = None


class RequestUpdate(BaseModel):
    food_needed: Optional[str] = Field(default=None, min_length=1)
    quantity_label: Optional[str] = Field(default=None, min_length=1)
    numeric_requested: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = None
    requester_phone: Optional[str] = None


class RequestRead(BaseModel):
    id: int
    requester_id: int
    food_needed: str
    quantity_label: str
    numeric_requested: float
    fulfilled_quantity: float
    remaining_quantity: float
    location: str
    requester_type: str
    requester_name: Optional[str] = None
    requester_phone: Optional[str] = None
    status: str
    created_at: datetime


class QualityAnnotation(BaseModel):
    quality: Literal["fresh", "check", "not-suitable"]
    notes: Optional[str] = None


class DonationCreate(BaseModel):
    food_type: str = Field(min_length=1)
    quantity_label: str = Field(min_length=1)
    location: str
    request_id: Optional[int] = None
    manufacturing_date: Optional[str] = None
    photo_ref: Optional[str] = None
    quality: Optional[QualityAnnotation] = None
    donor_phone: Optional[str] = None


class DonationRead(BaseModel):
    id: int
    donor_id: int
    request_id: Optional[int] = None
    food_type: str
    quantity_label: str
    numeric_quantity: float
    location: str
    manufacturing_date: Optional[str] = None
    photo_ref: Optional[str] = None
    quality_label: Optional[str] = None
    quality_notes: Optional[str] = None
    status: str
    claimed_by: Optional[int] = None
    donor_phone: Optional[str] = None
    claimant_phone: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DonationResult(BaseModel):
    success: bool = True
    donation: DonationRead
    linked_request: Optional[RequestRead] = None


class ClaimData(BaseModel):
    claimant_phone: Optional[str] = None
