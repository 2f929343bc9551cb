import logging
import secrets
from typing import Dict, Optional

from ..config import settings

logger = logging.getLogger(__name__)


class CodeSender:
    """Dispatches verification codes out of band and checks them later.

    No SMS gateway is wired in: codes are logged, remembered per phone, and
    the configured development code is always accepted as well.
    """

    def __init__(self, static_code: Optional[str] = None):
        self.static_code = static_code
        self._issued: Dict[str, str] = {}

    def send(self, phone: str) -> None:
        code = self.static_code or f"{secrets.randbelow(10 ** 6):06d}"
        self._issued[phone] = code
        logger.info("Verification code for %s: %s", phone, code)

    def verify(self, phone: str, code: str) -> bool:
        if not code:
            return False
        if self._issued.get(phone) == code:
            return True
        return self.static_code is not None and code == self.static_code


code_sender = CodeSender(static_code=settings.static_verification_code)
