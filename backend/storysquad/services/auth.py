from __future__ import annotations
from urllib.parse import urlencode
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import structlog

from storysquad.config import settings
from storysquad.deps import Deps
from storysquad.errors import ConflictError, NotFoundError, RateLimitedError, UnauthorizedError, ValidationError
from storysquad.models.user import User, Validation, Reset
from storysquad.schemas.auth import SignUpRequest, UserPublic, AuthResponse
from storysquad.security import hash_password, verify_password, make_access_token
from storysquad.services.clock import utcnow, as_utc
from storysquad.services.join_codes import generate_code
from storysquad.services.transactions import transaction

log = structlog.get_logger()

MIN_UNSUPERVISED_AGE = 13


def _auth_response(user: User) -> AuthResponse:
    # password hash never leaves this module
    return AuthResponse(
        user=UserPublic.model_validate(user),
        token=make_access_token(str(user.id), user.email),
    )


class AuthService:
    """Sign-up with e-mail validation, sign-in, and code-based password reset."""

    def __init__(self, deps: Deps, reset_cooldown_seconds: int | None = None):
        self.deps = deps
        self.session = deps.session
        self.reset_cooldown_seconds = (
            settings.reset_code_cooldown_seconds if reset_cooldown_seconds is None else reset_cooldown_seconds
        )

    def _validation_url(self, codename: str, email: str) -> tuple[str, str]:
        code = generate_code(codename)
        url = f"{settings.server_url.rstrip('/')}/auth/activation?" + urlencode({"token": code, "email": email})
        return url, code

    async def sign_up(self, body: SignUpRequest) -> UserPublic:
        # Under-13s are validated through a parent address
        if body.age is None:
            log.warning("signup_missing_age", email=body.email)
            raise ValidationError("No age sent")
        if body.age < MIN_UNSUPERVISED_AGE:
            if not body.parent_email or body.parent_email == body.email:
                log.warning("signup_missing_parent_email", email=body.email)
                raise ValidationError("Underage users must have a parent email on file")
            send_to, validator = body.parent_email, "parent"
        else:
            send_to, validator = body.email, "user"

        taken = await self.session.scalar(
            select(User.id).where((User.email == body.email) | (User.codename == body.codename))
        )
        if taken:
            log.warning("signup_duplicate", email=body.email, codename=body.codename)
            raise ConflictError("Email or codename already registered")

        try:
            async with transaction(self.session):
                user = User(
                    codename=body.codename,
                    email=body.email,
                    password_hash=hash_password(body.password),
                    role="student",
                    is_validated=False,
                    parent_email=body.parent_email,
                )
                self.session.add(user)
                await self.session.flush()

                url, code = self._validation_url(body.codename, send_to)
                self.session.add(Validation(user_id=user.id, code=code, email=send_to, validator=validator))
                await self.session.flush()
                await self.deps.mailer.send_validation_email(send_to, url)
                await self.session.refresh(user)
        except IntegrityError:
            log.warning("signup_duplicate", email=body.email, codename=body.codename)
            raise ConflictError("Email or codename already registered")

        log.info("user_registered", user_id=user.id, validator=validator)
        return UserPublic.model_validate(user)

    async def validate(self, email: str, code: str) -> AuthResponse:
        row = (await self.session.execute(
            select(User, Validation)
            .join(Validation, Validation.user_id == User.id)
            .where(Validation.email == email)
            .order_by(Validation.id.desc())
            .limit(1)
        )).first()
        if not row:
            log.warning("validation_user_not_found", email=email)
            raise NotFoundError("User not found")
        user, validation = row
        if user.is_validated:
            log.warning("validation_already_done", user_id=user.id)
            raise ConflictError("User has already been validated")
        if code != validation.code:
            log.warning("validation_code_mismatch", user_id=user.id)
            raise UnauthorizedError("Invalid activation code")

        now = utcnow()
        async with transaction(self.session):
            user.is_validated = True
            user.updated_at = now
            validation.completed_at = now

        log.info("user_validated", user_id=user.id)
        return _auth_response(user)

    async def sign_in(self, email: str, password: str) -> AuthResponse:
        user = await self.session.scalar(select(User).where(User.email == email))
        if not user:
            log.warning("signin_user_not_found", email=email)
            raise NotFoundError("User not found")
        if not user.is_validated:
            log.warning("signin_unvalidated", user_id=user.id)
            raise UnauthorizedError("Account must be validated")
        if not verify_password(password, user.password_hash):
            log.warning("signin_bad_password", user_id=user.id)
            raise UnauthorizedError("Invalid password")
        return _auth_response(user)

    async def _latest_reset(self, user_id: int) -> Reset | None:
        return await self.session.scalar(
            select(Reset).where(Reset.user_id == user_id).order_by(Reset.created_at.desc(), Reset.id.desc()).limit(1)
        )

    async def request_password_reset(self, email: str) -> None:
        """
        Issue a reset code, at most once per cooldown window.

        The window is a check-then-act on the latest reset row: two requests
        racing each other can both pass the check. Accepted for now.
        """
        user = await self.session.scalar(select(User).where(User.email == email))
        if not user:
            log.warning("reset_email_not_found", email=email)
            raise NotFoundError("Email not found")

        last = await self._latest_reset(user.id)

        async with transaction(self.session):
            if last:
                elapsed = (utcnow() - as_utc(last.created_at)).total_seconds()
                if elapsed < self.reset_cooldown_seconds:
                    log.warning("reset_rate_limited", user_id=user.id, elapsed_seconds=int(elapsed))
                    raise RateLimitedError("Cannot get another code so soon")
                last.completed = True

            code = generate_code(user.codename)
            # code row + e-mail: joins the outer unit, a mail failure undoes both
            async with transaction(self.session):
                self.session.add(Reset(user_id=user.id, code=code))
                await self.session.flush()
                await self.deps.mailer.send_password_reset_email(user, code)

        log.info("reset_code_issued", user_id=user.id)

    async def reset_password(self, email: str, password: str, code: str) -> None:
        user = await self.session.scalar(select(User).where(User.email == email))
        if not user:
            log.warning("reset_email_not_found", email=email)
            raise NotFoundError("Email not found")

        active = await self.session.scalar(
            select(Reset)
            .where(Reset.user_id == user.id, Reset.completed.is_(False))
            .order_by(Reset.created_at.desc(), Reset.id.desc())
            .limit(1)
        )
        if not active:
            log.warning("reset_none_active", user_id=user.id)
            raise ConflictError("No password resets are active")
        if active.code != code:
            log.warning("reset_code_mismatch", user_id=user.id)
            raise UnauthorizedError("Invalid password reset code")

        new_hash = hash_password(password)
        async with transaction(self.session):
            user.password_hash = new_hash
            user.updated_at = utcnow()
            active.completed = True
        log.info("password_reset", user_id=user.id)
