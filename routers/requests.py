from typing import List, Optional

from fastapi import APIRouter, HTTPException
from sqlmodel import col, select

from db import SessionDep
from errors import NotFoundError
from logging_config import get_logger
from models import Request as RequestModel
from schemas import RequestCreate, RequestRead, RequestUpdate
from services.ledger import apply_edit, derive_and_clamp, remaining
from .auth import CurrentUserRoleDep, require_role

router = APIRouter(tags=["requests"])
logger = get_logger("routers.requests")


def read_request(req: RequestModel) -> RequestRead:
    return RequestRead(
        **req.model_dump(),
        remaining_quantity=remaining(req),
    )


@router.get("/{request_id}", response_model=RequestRead)
def get_request(request_id: int, session: SessionDep):
    req = session.get(RequestModel, request_id)
    if req is None:
        raise NotFoundError("request", request_id)
    return read_request(req)


@router.post("/", response_model=RequestRead, status_code=201)
def create_request(
    request_data: RequestCreate,
    session: SessionDep,
    current: CurrentUserRoleDep,
):
    user = require_role(current, "recipient")
    new_request = RequestModel(
        requester_id=user.id,
        food_needed=request_data.food_needed,
        quantity_label=request_data.quantity_label,
        numeric_requested=request_data.numeric_requested or 0,
        fulfilled_quantity=0,
        location=request_data.location,
        requester_type=request_data.requester_type,
        requester_name=request_data.requester_name or user.name,
        requester_phone=request_data.requester_phone or user.phone,
        status="open",
    )
    derive_and_clamp(new_request)
    session.add(new_request)
    session.commit()
    session.refresh(new_request)
    logger.info(
        "request_created",
        extra={"request_id": new_request.id, "numeric_requested": new_request.numeric_requested},
    )
    return read_request(new_request)


@router.get("/", response_model=List[RequestRead])
def list_requests(
    session: SessionDep,
    requester_id: Optional[int] = None,
    status: Optional[str] = None,
    food: Optional[str] = None,
):
    query = select(RequestModel)
    if requester_id is not None:
        query = query.where(RequestModel.requester_id == requester_id)
    if status is not None:
        query = query.where(RequestModel.status == status)
    if food is not None:
        query = query.where(col(RequestModel.food_needed).icontains(food))
    query = query.order_by(col(RequestModel.created_at).asc(), col(RequestModel.id).asc())
    return [read_request(req) for req in session.exec(query).all()]


@router.patch("/{request_id}", response_model=RequestRead)
def update_request(
    request_id: int,
    update: RequestUpdate,
    session: SessionDep,
    current: CurrentUserRoleDep,
):
    user = require_role(current, "recipient")
    # Lock the row so a concurrent increment waits for the re-clamp.
    db_request = session.exec(
        select(RequestModel).where(RequestModel.id == request_id).with_for_update()
    ).first()
    if db_request is None:
        raise NotFoundError("request", request_id)
    if db_request.requester_id != user.id:
        raise HTTPException(
            status_code=403,
            detail="You can only edit your own requests.",
        )

    if update.food_needed is not None:
        db_request.food_needed = update.food_needed
    if update.location is not None:
        db_request.location = update.location
    if update.requester_phone is not None:
        db_request.requester_phone = update.requester_phone
    apply_edit(
        db_request,
        quantity_label=update.quantity_label,
        numeric_requested=update.numeric_requested,
    )

    session.add(db_request)
    session.commit()
    session.refresh(db_request)
    logger.info(
        "request_updated",
        extra={
            "request_id": db_request.id,
            "numeric_requested": db_request.numeric_requested,
            "fulfilled_quantity": db_request.fulfilled_quantity,
            "status": db_request.status,
        },
    )
    return read_request(db_request)
