from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from fastapi.responses import JSONResponse
from itsdangerous import BadSignature, URLSafeTimedSerializer
from passlib.context import CryptContext
from sqlmodel import select

from config import SECRET_KEY, SESSION_MAX_AGE
from db import SessionDep
from logging_config import get_logger
from models import User
from schemas import LoginData, UserCreate

router = APIRouter(tags=["auth"])
logger = get_logger("routers.auth")

serializer = URLSafeTimedSerializer(SECRET_KEY)


pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(user_id: int, role: str) -> str:
    """
    Store user_id + role in the signed token.
    Example data:
        {"user_id": 3, "role": "donor"}
    """
    return serializer.dumps({"user_id": user_id, "role": role})


def verify_session_token(token: str, max_age_seconds: int = SESSION_MAX_AGE):
    """
    Returns dict {'user_id': ..., 'role': ...} if valid,
    or None if token is invalid/expired.
    """
    try:
        return serializer.loads(token, max_age=max_age_seconds)
    except BadSignature:
        return None


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=SESSION_MAX_AGE,
    )


def get_current_user_and_role(
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias="session"),
) -> dict:
    """
    Reads the 'session' cookie, verifies the token,
    looks up the user, and returns {"user": User, "role": str}.
    Raises 401 if not logged in / invalid.
    """
    if session_token is None:
        raise HTTPException(status_code=401, detail="Not logged in")

    data = verify_session_token(session_token)
    if not data:
        raise HTTPException(
            status_code=401, detail="Invalid or expired session")

    user = session.get(User, data["user_id"])
    if user is None:
        raise HTTPException(
            status_code=401, detail="User not found for this session")

    return {"user": user, "role": data["role"]}


CurrentUserRoleDep = Annotated[dict, Depends(get_current_user_and_role)]


def require_role(current: dict, role: str) -> User:
    if current["role"] != role:
        raise HTTPException(
            status_code=403,
            detail=f"Only {role}s can do this.",
        )
    return current["user"]


@router.post("/register")
def register(user_in: UserCreate, session: SessionDep):
    """
    Register a new user with a hashed password and log them in.
    """
    if user_in.is_donor:
        role = "donor"
    elif user_in.is_recipient:
        role = "recipient"
    else:
        raise HTTPException(
            status_code=400,
            detail="User must be registered as donor or recipient",
        )

    existing = session.exec(
        select(User).where(User.email == user_in.email)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=user_in.email,
        name=user_in.name,
        phone=user_in.phone,
        password_hash=hash_password(user_in.password),
        is_donor=user_in.is_donor,
        is_recipient=user_in.is_recipient,
    )

    session.add(user)
    session.commit()
    session.refresh(user)

    if user.id is None:
        raise HTTPException(
            status_code=500, detail="User was not created successfully"
        )

    logger.info("user_registered", extra={"user_id": user.id, "role": role})
    resp = JSONResponse({"message": "Registration successful", "role": role, "id": user.id})
    _set_session_cookie(resp, create_session_token(user.id, role))
    return resp


@router.post("/login")
def login(payload: LoginData, session: SessionDep, response: Response):
    """
    Log in with email + password + chosen role ("donor" / "recipient"),
    set a signed cookie.
    """
    user = session.exec(
        select(User).where(User.email == payload.email)
    ).first()

    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=400, detail="Invalid email or password"
        )

    if payload.role == "donor" and not user.is_donor:
        raise HTTPException(
            status_code=400, detail="User is not registered as donor"
        )

    if payload.role == "recipient" and not user.is_recipient:
        raise HTTPException(
            status_code=400, detail="User is not registered as recipient"
        )

    _set_session_cookie(response, create_session_token(user.id, payload.role))
    return {"message": "Login successful", "role": payload.role}


@router.post("/logout")
def logout(response: Response):
    """
    Clear the session cookie.
    """
    response.delete_cookie("session")
    return {"message": "Logged out"}


@router.get("/me")
def read_me(current: CurrentUserRoleDep):
    """
    Get info about the currently logged-in user + active role.
    """
    user = current["user"]
    role = current["role"]
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": role,
        "is_donor": user.is_donor,
        "is_recipient": user.is_recipient,
    }
