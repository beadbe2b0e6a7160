import logging
from datetime import datetime, timedelta, timezone
from typing import Iterator

import jwt
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session, sessionmaker

from eventy.entities.user import User
from eventy.repositories.user_repository import user_repository
from eventy.utils.config import settings
from eventy.utils.database import SessionLocal

logger = logging.getLogger(__name__)


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_db(session_factory: sessionmaker = Depends(get_session_factory)) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def create_access_token(user_id: int, expires_in: timedelta = timedelta(hours=1)) -> str:
    now = datetime.now(timezone.utc)
    claims = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def get_current_user(
    authorization: str | None = Header(default=None),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> User:
    """Resolve the buyer identity carried by the bearer token.

    The identity provider is trusted: a valid signature and a `sub` naming a
    known user is all that is checked. The user is loaded on a short-lived
    session so no transaction stays open while the route runs.
    """
    if not authorization or not authorization.startswith("Bearer "):
        logger.error("No valid Authorization header found")
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization.split(" ", 1)[1]
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        user_id = int(claims["sub"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.error(f"Failed to decode JWT token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token format")
    except (KeyError, ValueError) as e:
        logger.error(f"Missing or malformed subject in token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token structure")

    with session_factory() as db:
        user = user_repository.get(db, user_id)
    if not user:
        logger.error(f"User {user_id} from token not found")
        raise HTTPException(status_code=404, detail="User not found")
    return user
