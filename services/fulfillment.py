"""
Donation submission and the donation lifecycle around a Request.

``create_donation`` is the whole submission transaction:

1. load the explicitly targeted request (``NotFoundError`` if missing)
2. parse the donation quantity (``ValidationError`` unless positive)
3. without an explicit target, try to auto-link via ``find_match``
4. reject a quantity above the request's remaining capacity
   (``CapacityExceededError``); nothing is written on any of these paths
5. write the donation
6. atomically add its quantity to the request; a donation that uses up the
   last of the request is ``completed``

Steps 5 and 6 share one transaction. The conditional increment is the
authoritative capacity check: a donation that loses a race against another
one is rolled back and reported as ``CapacityExceededError``. Transient
database failures while recording are retried; once the attempts run out
the submission fails with a retryable ``InconsistentStateError`` and no
donation row is left behind.
"""

import time
from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from config import INCREMENT_MAX_ATTEMPTS, INCREMENT_RETRY_DELAY
from errors import (
    CapacityExceededError,
    FulfillmentError,
    InconsistentStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from logging_config import LogContext, get_logger
from models import Donation, Request, User
from schemas import DonationCreate
from services.ledger import increment_fulfilled, remaining, reverse_fulfilled
from services.matching import find_match
from services.quantity import parse_quantity

logger = get_logger("services.fulfillment")

AVAILABLE = "available"
CLAIMED = "claimed"
COMPLETED = "completed"


def _build_donation(
    payload: DonationCreate,
    donor: User,
    quantity: float,
    request_id: Optional[int] = None,
    requester_id: Optional[int] = None,
) -> Donation:
    donation = Donation(
        donor_id=donor.id,
        request_id=request_id,
        food_type=payload.food_type,
        quantity_label=payload.quantity_label,
        numeric_quantity=quantity,
        location=payload.location,
        manufacturing_date=payload.manufacturing_date,
        photo_ref=payload.photo_ref,
        quality_label=payload.quality.quality if payload.quality else None,
        quality_notes=payload.quality.notes if payload.quality else None,
        donor_phone=payload.donor_phone or donor.phone,
        status=AVAILABLE,
    )
    # A donation for someone else's request is claimed by that requester.
    if request_id is not None and requester_id != donor.id:
        donation.status = CLAIMED
        donation.claimed_by = requester_id
    return donation


def create_donation(
    session: Session,
    payload: DonationCreate,
    donor: User,
) -> tuple[Donation, Optional[Request]]:
    with LogContext.bind(actor_id=donor.id):
        linked = None
        if payload.request_id is not None:
            linked = session.get(Request, payload.request_id)
            if linked is None:
                raise NotFoundError("request", payload.request_id)

        quantity = parse_quantity(payload.quantity_label)
        if quantity <= 0:
            raise ValidationError(
                f"Quantity '{payload.quantity_label}' has no positive amount",
                field="quantity_label",
            )

        if linked is None:
            linked = find_match(session, payload.food_type, quantity)

        if linked is None:
            donation = _build_donation(payload, donor, quantity)
            session.add(donation)
            session.commit()
            session.refresh(donation)
            logger.info(
                "donation_created",
                extra={"donation_id": donation.id, "quantity": quantity, "linked": False},
            )
            return donation, None

        with LogContext.bind(request_id=linked.id):
            left = remaining(linked)
            if quantity > left:
                logger.warning(
                    "capacity_exceeded",
                    extra={"quantity": quantity, "remaining": left},
                )
                raise CapacityExceededError(quantity, left, linked.id)

            return _record_linked_donation(session, payload, donor, quantity, linked)


def _record_linked_donation(
    session: Session,
    payload: DonationCreate,
    donor: User,
    quantity: float,
    linked: Request,
) -> tuple[Donation, Request]:
    request_id = linked.id
    requester_id = linked.requester_id
    last_error = None

    for attempt in range(1, INCREMENT_MAX_ATTEMPTS + 1):
        donation = _build_donation(payload, donor, quantity, request_id, requester_id)
        session.add(donation)
        try:
            session.flush()
            request = increment_fulfilled(session, request_id, quantity)
            if remaining(request) == 0:
                donation.status = COMPLETED
            # Commit failures are retried like the flush and the update.
            session.commit()
        except OperationalError as exc:
            session.rollback()
            last_error = exc
            logger.warning(
                "increment_retry",
                extra={"request_id": request_id, "attempt": attempt, "error": str(exc)},
            )
            if attempt < INCREMENT_MAX_ATTEMPTS:
                time.sleep(INCREMENT_RETRY_DELAY * attempt)
            continue
        except FulfillmentError:
            session.rollback()
            raise

        session.refresh(donation)
        session.refresh(request)
        logger.info(
            "donation_created",
            extra={
                "donation_id": donation.id,
                "request_id": request_id,
                "quantity": quantity,
                "status": donation.status,
                "linked": True,
            },
        )
        return donation, request

    logger.error(
        "increment_failed",
        extra={"request_id": request_id, "quantity": quantity, "attempts": INCREMENT_MAX_ATTEMPTS},
    )
    raise InconsistentStateError(request_id, quantity, INCREMENT_MAX_ATTEMPTS) from last_error


def get_donation(session: Session, donation_id: int) -> Donation:
    donation = session.get(Donation, donation_id)
    if donation is None:
        raise NotFoundError("donation", donation_id)
    return donation


def _transition(
    session: Session,
    donation: Donation,
    allowed: Iterable[str],
    target: str,
    extra_where=(),
    **values,
) -> None:
    """Move a donation forward only if nobody else moved it first."""
    table = Donation.__table__
    stmt = (
        update(table)
        .where(table.c.id == donation.id, table.c.status.in_(tuple(allowed)), *extra_where)
        .values(status=target, **values)
    )
    result = session.connection().execute(stmt)
    if result.rowcount == 0:
        session.rollback()
        session.refresh(donation)
        raise InvalidTransitionError(donation.id, donation.status, target)


def claim_donation(
    session: Session,
    donation_id: int,
    recipient: User,
    claimant_phone: Optional[str] = None,
) -> Donation:
    """A recipient takes an available donation that is not tied to a request."""
    with LogContext.bind(actor_id=recipient.id, donation_id=donation_id):
        donation = get_donation(session, donation_id)
        if donation.request_id is not None:
            raise InvalidTransitionError(donation.id, donation.status, CLAIMED)
        table = Donation.__table__
        _transition(
            session,
            donation,
            (AVAILABLE,),
            CLAIMED,
            extra_where=(table.c.request_id.is_(None),),
            claimed_by=recipient.id,
            claimant_phone=claimant_phone or recipient.phone,
        )
        session.commit()
        session.refresh(donation)
        logger.info("donation_claimed", extra={"claimed_by": recipient.id})
        return donation


def complete_donation(session: Session, donation_id: int) -> Donation:
    with LogContext.bind(donation_id=donation_id):
        donation = get_donation(session, donation_id)
        _transition(session, donation, (CLAIMED,), COMPLETED)
        session.commit()
        session.refresh(donation)
        logger.info("donation_completed")
        return donation


def release_donation(session: Session, donation_id: int) -> tuple[Donation, Optional[Request]]:
    """
    Undo a claim. The donation is available again and, when it was counted
    towards a request, its quantity comes back off that request and the
    link is cleared. Both changes commit together.

    A linked donation is releasable from any status, including a donor's
    ``available`` donation to their own request. An unlinked one must be
    ``claimed`` or ``completed``.
    """
    with LogContext.bind(donation_id=donation_id):
        donation = get_donation(session, donation_id)
        request_id = donation.request_id
        amount = donation.numeric_quantity

        table = Donation.__table__
        if request_id is not None:
            allowed = (AVAILABLE, CLAIMED, COMPLETED)
            # Only the caller that still sees the link may reverse it.
            extra_where = (table.c.request_id == request_id,)
        else:
            allowed = (CLAIMED, COMPLETED)
            extra_where = (table.c.request_id.is_(None),)

        with LogContext.bind(request_id=request_id):
            _transition(
                session,
                donation,
                allowed,
                AVAILABLE,
                extra_where=extra_where,
                claimed_by=None,
                claimant_phone=None,
                request_id=None,
            )
            request = None
            if request_id is not None:
                try:
                    request = reverse_fulfilled(session, request_id, amount)
                except FulfillmentError:
                    session.rollback()
                    raise
            session.commit()
            session.refresh(donation)
            if request is not None:
                session.refresh(request)
            logger.info("donation_released", extra={"amount": amount})
            return donation, request
