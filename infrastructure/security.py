from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from domain.auth import Actor
from infrastructure.config import settings


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_actor_token(actor: Actor, expires_delta: Optional[timedelta] = None) -> str:
    """Token carrying the actor id, role tag and display name"""
    data = {"sub": str(actor.actor_id), "role": actor.role.value}
    if actor.name:
        data["name"] = actor.name
    return create_access_token(data, expires_delta)


def decode_actor(token: str) -> Actor:
    """Decode a bearer token issued upstream into an Actor

    Raises ValueError when the token is invalid, expired or lacks claims.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise ValueError(f"Invalid token: {e}") from e

    subject = payload.get("sub")
    role = payload.get("role")
    if subject is None or role is None:
        raise ValueError("Token is missing sub or role")
    return Actor(actor_id=subject, role=role, name=payload.get("name"))
