import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader
from jose import jwt, JWTError
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, BCRYPT_ROUNDS
from errors import Conflict, Forbidden, InvalidCredentials, Unauthenticated
from models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
# raw header: missing -> 401 here, anything present but unverifiable -> 403
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


class Principal(BaseModel):
    id: int
    username: str
    email: str


# ---------- Helpers ----------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + timedelta(minutes=expires_minutes)})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def issue_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "username": user.username, "email": user.email})


def decode_access_token(token: str) -> Principal:
    """Verify signature and expiry, returning the principal the token names.

    Any failure (bad signature, expired, malformed claims) is a ``Forbidden``.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise Forbidden()

    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        logger.info("Rejected bearer token: missing or malformed subject")
        raise Forbidden()

    return Principal(id=user_id, username=payload.get("username") or "", email=payload.get("email") or "")


# ---------- Operations ----------
def register_user(db: Session, username: str, email: str, password: str) -> User:
    existing = db.query(User.id).filter(User.email == email).first()
    if existing:
        raise Conflict("Email already registered.")

    user = User(username=username, email=email, hashed_password=hash_password(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration of the same email
        db.rollback()
        raise Conflict("Email already registered.")
    db.refresh(user)
    logger.info("Registered user id=%s", user.id)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        # keep timing close to the wrong-password path
        pwd_context.dummy_verify()
        logger.info("Login failed for %s", email)
        raise InvalidCredentials()
    if not verify_password(password, user.hashed_password):
        logger.info("Login failed for %s", email)
        raise InvalidCredentials()
    return user


# ---------- Dependency ----------
def bearer_token(header: Optional[str]) -> Optional[str]:
    """Second word of an ``Authorization`` header, e.g. ``Bearer <token>``.

    The scheme word is not checked; whatever follows it goes to verification.
    """
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1]


def get_current_user(header: Optional[str] = Depends(authorization_header)) -> Principal:
    token = bearer_token(header)
    if token is None:
        raise Unauthenticated()
    return decode_access_token(token)
