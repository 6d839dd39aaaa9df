from typing import Iterable, Optional

from sqlmodel import Session, col, select

from logging_config import get_logger
from models import Request
from services.ledger import MATCHABLE_STATUSES, remaining

logger = get_logger("services.matching")


def normalize_label(label: Optional[str]) -> str:
    return (label or "").strip().casefold()


def labels_match(donation_label: str, request_label: str) -> bool:
    """Either normalized label contains the other."""
    d = normalize_label(donation_label)
    r = normalize_label(request_label)
    if not d or not r:
        return False
    return d in r or r in d


def select_match(
    food_type: str,
    quantity: float,
    candidates: Iterable[Request],
) -> Optional[Request]:
    """
    First candidate, in the order given, that is still open or accepted,
    whose food label matches, and that can take the whole quantity.
    """
    for request in candidates:
        if request.status not in MATCHABLE_STATUSES:
            continue
        if not labels_match(food_type, request.food_needed):
            continue
        if remaining(request) >= quantity:
            return request
    return None


def find_match(session: Session, food_type: str, quantity: float) -> Optional[Request]:
    """
    Look for an open/accepted request to auto-link a donation to.

    Candidates are scanned oldest first (``created_at``, then ``id``), so the
    longest-waiting request with room for the donation gets it.
    """
    if not normalize_label(food_type):
        return None
    query = (
        select(Request)
        .where(
            col(Request.status).in_(MATCHABLE_STATUSES),
            Request.numeric_requested - Request.fulfilled_quantity >= quantity,
        )
        .order_by(col(Request.created_at).asc(), col(Request.id).asc())
    )
    chosen = select_match(food_type, quantity, session.exec(query))
    if chosen is not None:
        logger.info(
            "donation_auto_matched",
            extra={"request_id": chosen.id, "food_type": food_type, "quantity": quantity},
        )
    return chosen
