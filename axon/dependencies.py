from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .database import get_db
from .errors import Unauthorized
from .services import auth as auth_service
from .services.proxy import ProxyService
from .services.verification import CodeSender, code_sender

bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials


def get_current_user(
    token: Optional[str] = Depends(get_bearer_token), db: Session = Depends(get_db)
) -> models.User:
    if not token:
        raise Unauthorized("Access token is required")
    return auth_service.verify_token(db, token)


def get_code_sender() -> CodeSender:
    return code_sender


def get_proxy_service(db: Session = Depends(get_db)) -> ProxyService:
    return ProxyService(verify_token=lambda token: auth_service.verify_token(db, token))
