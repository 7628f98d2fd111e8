from __future__ import annotations
from typing import Protocol
import structlog
from storysquad.models.user import User

log = structlog.get_logger()


class Mailer(Protocol):
    async def send_validation_email(self, to: str, url: str) -> None: ...
    async def send_password_reset_email(self, user: User, code: str) -> None: ...


class LogMailer:
    """Default mailer: writes the message to the structured log instead of sending it."""

    def __init__(self, logger=None):
        self.log = logger or log

    async def send_validation_email(self, to: str, url: str) -> None:
        # the url carries the activation token
        self.log.info("mail_validation", to=to)

    async def send_password_reset_email(self, user: User, code: str) -> None:
        # never log the reset code
        self.log.info("mail_password_reset", to=user.email, user_id=user.id)
