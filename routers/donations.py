from typing import List, Optional

from fastapi import APIRouter, HTTPException
from sqlmodel import col, select

from db import SessionDep
from models import Donation
from schemas import ClaimData, DonationCreate, DonationRead, DonationResult
from services import fulfillment
from .auth import CurrentUserRoleDep, require_role
from .requests import read_request

router = APIRouter(tags=["donations"])


@router.post("/", response_model=DonationResult, status_code=201)
def create_donation(
    donation_in: DonationCreate,
    session: SessionDep,
    current: CurrentUserRoleDep,
):
    """
    Offer a donation, optionally for a specific request. Without a request_id
    the donation is linked to a matching open request when one has room.
    """
    donor = require_role(current, "donor")
    donation, linked = fulfillment.create_donation(session, donation_in, donor)
    return DonationResult(
        donation=DonationRead.model_validate(donation),
        linked_request=read_request(linked) if linked is not None else None,
    )


@router.get("/my", response_model=List[DonationRead])
def my_donations(session: SessionDep, current: CurrentUserRoleDep):
    user = require_role(current, "donor")
    return session.exec(
        select(Donation).where(Donation.donor_id == user.id).order_by(col(Donation.id).desc())
    ).all()


@router.get("/", response_model=List[DonationRead])
def list_donations(
    session: SessionDep,
    status: Optional[str] = None,
    request_id: Optional[int] = None,
):
    query = select(Donation)
    if status is not None:
        query = query.where(Donation.status == status)
    if request_id is not None:
        query = query.where(Donation.request_id == request_id)
    return session.exec(query.order_by(col(Donation.id).desc())).all()


@router.get("/{donation_id}", response_model=DonationRead)
def get_donation(donation_id: int, session: SessionDep):
    return fulfillment.get_donation(session, donation_id)


@router.post("/{donation_id}/claim", response_model=DonationRead)
def claim_donation(
    donation_id: int,
    session: SessionDep,
    current: CurrentUserRoleDep,
    claim: Optional[ClaimData] = None,
):
    recipient = require_role(current, "recipient")
    return fulfillment.claim_donation(
        session,
        donation_id,
        recipient,
        claimant_phone=claim.claimant_phone if claim else None,
    )


@router.post("/{donation_id}/complete", response_model=DonationRead)
def complete_donation(
    donation_id: int,
    session: SessionDep,
    current: CurrentUserRoleDep,
):
    user = current["user"]
    donation = fulfillment.get_donation(session, donation_id)
    if user.id not in (donation.donor_id, donation.claimed_by):
        raise HTTPException(
            status_code=403,
            detail="Only the donor or the claimant can complete a donation.",
        )
    return fulfillment.complete_donation(session, donation_id)


@router.post("/{donation_id}/release", response_model=DonationResult)
def release_donation(
    donation_id: int,
    session: SessionDep,
    current: CurrentUserRoleDep,
):
    """
    Undo a claim, e.g. when a pickup falls through. A donation that counted
    towards a request gives that quantity back to the request.
    """
    user = current["user"]
    donation = fulfillment.get_donation(session, donation_id)
    if user.id not in (donation.donor_id, donation.claimed_by):
        raise HTTPException(
            status_code=403,
            detail="Only the donor or the claimant can release a donation.",
        )
    donation, request = fulfillment.release_donation(session, donation_id)
    return DonationResult(
        donation=DonationRead.model_validate(donation),
        linked_request=read_request(request) if request is not None else None,
    )
