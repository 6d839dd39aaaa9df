"""
Numeric bookkeeping for a Request: requested, fulfilled, remaining, status.

Every write path (create, edit, increment, reversal) runs the request
through ``derive_and_clamp`` so that ``0 <= fulfilled_quantity <=
numeric_requested`` and the status always agree with the numbers.

The database-side operations never read a value into Python and write it
back; the add, the capacity condition and the new status are one UPDATE.
"""

from typing import Optional

from sqlalchemy import case, update
from sqlmodel import Session, select

from errors import CapacityExceededError, NotFoundError
from logging_config import get_logger
from models import Request
from services.quantity import parse_quantity

logger = get_logger("services.ledger")

OPEN = "open"
ACCEPTED = "accepted"
FULFILLED = "fulfilled"
MATCHABLE_STATUSES = (OPEN, ACCEPTED)


def derive_numeric_requested(request: Request, label_changed: bool = False) -> Request:
    if not request.numeric_requested or label_changed:
        request.numeric_requested = parse_quantity(request.quantity_label)
    return request


def clamp(request: Request) -> Request:
    ceiling = request.numeric_requested or 0
    request.fulfilled_quantity = max(0, min(request.fulfilled_quantity or 0, ceiling))
    return request


def status_for(numeric_requested: float, fulfilled_quantity: float, current: Optional[str] = None) -> str:
    """Status implied by the numbers; zero-capacity requests keep their status."""
    if numeric_requested > 0:
        if fulfilled_quantity >= numeric_requested:
            return FULFILLED
        if fulfilled_quantity > 0:
            return ACCEPTED
        return OPEN
    return current or OPEN


def derive_status(request: Request) -> Request:
    request.status = status_for(
        request.numeric_requested or 0,
        request.fulfilled_quantity or 0,
        request.status,
    )
    return request


def remaining(request: Request) -> float:
    return max(0, (request.numeric_requested or 0) - (request.fulfilled_quantity or 0))


def derive_and_clamp(request: Request, label_changed: bool = False) -> Request:
    derive_numeric_requested(request, label_changed=label_changed)
    clamp(request)
    derive_status(request)
    return request


def apply_edit(
    request: Request,
    quantity_label: Optional[str] = None,
    numeric_requested: Optional[float] = None,
) -> Request:
    """
    Requester edit of the quantity. An explicit ``numeric_requested`` wins
    over the label; otherwise a changed label is re-parsed. The fulfilled
    quantity is re-clamped to the new ceiling straight away.
    """
    label_changed = quantity_label is not None and quantity_label != request.quantity_label
    if quantity_label is not None:
        request.quantity_label = quantity_label
    if numeric_requested is not None:
        request.numeric_requested = numeric_requested
        clamp(request)
        return derive_status(request)
    return derive_and_clamp(request, label_changed=label_changed)


def _status_after(new_fulfilled):
    table = Request.__table__
    return case(
        (table.c.numeric_requested <= 0, table.c.status),
        (new_fulfilled >= table.c.numeric_requested, FULFILLED),
        (new_fulfilled > 0, ACCEPTED),
        else_=OPEN,
    )


def _reload(session: Session, request_id: int) -> Optional[Request]:
    stmt = (
        select(Request)
        .where(Request.id == request_id)
        .execution_options(populate_existing=True)
    )
    return session.exec(stmt).first()


def increment_fulfilled(session: Session, request_id: int, amount: float) -> Request:
    """
    Atomically add ``amount`` to the stored fulfilled quantity.

    The UPDATE only matches while the result stays within
    ``numeric_requested``, so two racing donations can never overfill a
    request. Does not commit.
    """
    table = Request.__table__
    new_fulfilled = table.c.fulfilled_quantity + amount
    stmt = (
        update(table)
        .where(table.c.id == request_id, new_fulfilled <= table.c.numeric_requested)
        .values(fulfilled_quantity=new_fulfilled, status=_status_after(new_fulfilled))
    )
    result = session.connection().execute(stmt)

    request = _reload(session, request_id)
    if request is None:
        raise NotFoundError("request", request_id)
    if result.rowcount == 0:
        logger.warning(
            "increment_rejected_capacity",
            extra={"request_id": request_id, "amount": amount, "remaining": remaining(request)},
        )
        raise CapacityExceededError(amount, remaining(request), request_id)

    derive_and_clamp(request)
    logger.info(
        "request_incremented",
        extra={
            "request_id": request_id,
            "amount": amount,
            "fulfilled_quantity": request.fulfilled_quantity,
            "status": request.status,
        },
    )
    return request


def reverse_fulfilled(session: Session, request_id: int, amount: float) -> Request:
    """
    Atomically take ``amount`` back off the fulfilled quantity, the
    counterpart of ``increment_fulfilled`` for released donations.
    Never goes below zero. Does not commit.
    """
    table = Request.__table__
    new_fulfilled = case(
        (table.c.fulfilled_quantity > amount, table.c.fulfilled_quantity - amount),
        else_=0,
    )
    stmt = (
        update(table)
        .where(table.c.id == request_id)
        .values(fulfilled_quantity=new_fulfilled, status=_status_after(new_fulfilled))
    )
    result = session.connection().execute(stmt)
    if result.rowcount == 0:
        raise NotFoundError("request", request_id)

    request = _reload(session, request_id)
    derive_and_clamp(request)
    logger.info(
        "request_reversed",
        extra={
            "request_id": request_id,
            "amount": amount,
            "fulfilled_quantity": request.fulfilled_quantity,
            "status": request.status,
        },
    )
    return request
