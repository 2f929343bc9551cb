from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings
from .errors import InvalidToken

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def create_token(user_id: int, ttl: Optional[timedelta] = None) -> str:
    """Issue an opaque bearer token for ``user_id`` that expires after ``ttl``."""
    expires = datetime.now(timezone.utc) + (ttl or timedelta(hours=settings.token_ttl_hours))
    payload = {"sub": str(user_id), "exp": expires}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.token_algorithm)


def decode_token(token: str) -> int:
    """Return the user id carried by ``token``.

    Raises:
        InvalidToken: the token is malformed, forged or expired.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.token_algorithm])
        return int(payload["sub"])
    except (JWTError, KeyError, TypeError, ValueError) as exc:
        raise InvalidToken("Invalid or expired token") from exc
