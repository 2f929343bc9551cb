"""User registration, login and token verification."""

import logging
import secrets
from typing import Dict, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..crud import commit
from ..errors import (
    AccountDisabled,
    ConflictError,
    InvalidCredentials,
    InvalidToken,
    UserNotFound,
    ValidationError,
)
from ..security import create_token, decode_token, hash_password, verify_password
from .verification import CodeSender, code_sender

logger = logging.getLogger(__name__)

_UNIQUE_FIELDS = (
    ("username", "Username already exists"),
    ("email", "Email is already registered"),
    ("phone", "Phone number is already registered"),
)


def _avatar_for(seed: str) -> str:
    return f"https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"


def _find_conflict(db: Session, values: Dict[str, Optional[str]], exclude_id: int = None) -> None:
    """Raise ConflictError for the first taken field, in username/email/phone order."""
    wanted = [(field, values.get(field)) for field, _ in _UNIQUE_FIELDS if values.get(field)]
    if not wanted:
        return
    stmt = select(models.User).where(
        or_(*(getattr(models.User, field) == value for field, value in wanted))
    )
    existing = [user for user in db.execute(stmt).scalars().all() if user.id != exclude_id]
    for field, message in _UNIQUE_FIELDS:
        value = values.get(field)
        if value and any(getattr(user, field) == value for user in existing):
            raise ConflictError(message, field=field)


def _insert_user(db: Session, user: models.User) -> models.User:
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # A concurrent registration won the race past the lookup above.
        db.rollback()
        raise ConflictError("Username, email or phone is already registered") from exc
    db.refresh(user)
    return user


def register(
    db: Session, username: str, email: str, password: str, phone: str = None
) -> Tuple[models.User, str]:
    if not username or not email or not password:
        raise ValidationError("Username, email and password are required")
    _find_conflict(db, {"username": username, "email": email, "phone": phone})

    user = _insert_user(
        db,
        models.User(
            username=username,
            email=email,
            phone=phone,
            password_hash=hash_password(password),
            avatar=_avatar_for(username),
        ),
    )
    logger.info("Registered user %s", user.username)
    return user, create_token(user.id)


def login(
    db: Session,
    username: str = None,
    email: str = None,
    password: str = None,
    phone: str = None,
    verification_code: str = None,
    sender: CodeSender = code_sender,
) -> Tuple[models.User, str]:
    if phone and verification_code:
        return login_with_phone(db, phone, verification_code, sender=sender)

    if not password:
        raise ValidationError("Password is required")
    if username:
        criteria = models.User.username == username
    elif email:
        criteria = models.User.email == email
    else:
        raise ValidationError("Username or email is required")

    user = db.execute(select(models.User).where(criteria)).scalar_one_or_none()
    if user is None:
        raise UserNotFound("User does not exist")
    if not user.is_active:
        raise AccountDisabled("Account is disabled")
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials("Incorrect password")

    logger.info("User %s logged in", user.username)
    return user, create_token(user.id)


def login_with_phone(
    db: Session, phone: str, verification_code: str, sender: CodeSender = code_sender
) -> Tuple[models.User, str]:
    """Log in by SMS code, creating the account on first use of the phone."""
    if not sender.verify(phone, verification_code):
        raise InvalidCredentials("Invalid verification code")

    user = db.execute(select(models.User).where(models.User.phone == phone)).scalar_one_or_none()
    if user is None:
        user = _insert_user(
            db,
            models.User(
                username=f"user{phone[-4:]}_{secrets.token_hex(3)}",
                email=f"{phone}@temp.com",
                phone=phone,
                password_hash=hash_password(secrets.token_urlsafe(16)),
                avatar=_avatar_for(phone),
            ),
        )
        logger.info("Auto-registered user %s for phone login", user.username)

    if not user.is_active:
        raise AccountDisabled("Account is disabled")
    return user, create_token(user.id)


def send_verification_code(phone: str, sender: CodeSender = code_sender) -> None:
    if not phone or not phone.strip():
        raise ValidationError("Phone number is required")
    sender.send(phone.strip())


def verify_token(db: Session, token: str) -> models.User:
    """Resolve a bearer token to its active user. Pure lookup, no side effects."""
    if not token:
        raise InvalidToken("Invalid or expired token")
    user = db.get(models.User, decode_token(token))
    if user is None or not user.is_active:
        raise InvalidToken("Invalid or expired token")
    return user


def update_profile(db: Session, user: models.User, changes: Dict[str, Optional[str]]) -> models.User:
    changes = {key: value for key, value in changes.items() if value is not None}
    _find_conflict(
        db,
        {key: value for key, value in changes.items() if value != getattr(user, key, None)},
        exclude_id=user.id,
    )
    for key, value in changes.items():
        setattr(user, key, value)
    commit(db)
    db.refresh(user)
    return user


def change_password(db: Session, user: models.User, old_password: str, new_password: str) -> None:
    if not verify_password(old_password, user.password_hash):
        raise InvalidCredentials("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    commit(db)


def deactivate(db: Session, user: models.User) -> None:
    """Users are never hard-deleted; their tokens stop verifying instead."""
    user.is_active = False
    commit(db)
    logger.info("Deactivated user %s", user.username)
