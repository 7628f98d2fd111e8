from __future__ import annotations
from urllib.parse import urlparse, parse_qs
import pydantic
import pytest
from sqlalchemy import select, func
from storysquad.errors import ConflictError, NotFoundError, RateLimitedError, UnauthorizedError, ValidationError
from storysquad.models.user import User, Validation, Reset
from storysquad.schemas.auth import SignUpRequest
from storysquad.security import decode_token, verify_password
from storysquad.services.auth import AuthService

PASSWORD = "Passw0rd1"


def _signup(**overrides) -> SignUpRequest:
    body = {"codename": "Quill", "email": "quill@example.com", "password": PASSWORD, "age": 14}
    body.update(overrides)
    return SignUpRequest(**body)


def _token_from(url: str) -> str:
    return parse_qs(urlparse(url).query)["token"][0]


def test_weak_password_rejected():
    with pytest.raises(pydantic.ValidationError):
        _signup(password="alllowercase1")


@pytest.mark.asyncio
async def test_sign_up_sends_validation_to_user(deps, session, mailer):
    user = await AuthService(deps).sign_up(_signup())

    assert user.is_validated is False
    assert user.role == "student"
    to, url = mailer.validations[0]
    assert to == "quill@example.com"
    assert "/auth/activation?" in url
    v = await session.scalar(select(Validation).where(Validation.user_id == user.id))
    assert v.validator == "user"
    assert v.code == _token_from(url)


@pytest.mark.asyncio
async def test_under_13_needs_parent_email(deps, mailer):
    svc = AuthService(deps)
    with pytest.raises(ValidationError):
        await svc.sign_up(_signup(age=9))
    with pytest.raises(ValidationError):
        await svc.sign_up(_signup(age=9, parent_email="quill@example.com"))
    with pytest.raises(ValidationError):
        await svc.sign_up(_signup(age=None))

    await svc.sign_up(_signup(age=9, parent_email="parent@example.com"))
    assert mailer.validations[0][0] == "parent@example.com"


@pytest.mark.asyncio
async def test_duplicate_sign_up(deps):
    svc = AuthService(deps)
    await svc.sign_up(_signup())
    with pytest.raises(ConflictError):
        await svc.sign_up(_signup(codename="Other"))
    with pytest.raises(ConflictError):
        await svc.sign_up(_signup(email="other@example.com"))


@pytest.mark.asyncio
async def test_mail_failure_undoes_sign_up(deps, session, mailer):
    mailer.fail = True
    with pytest.raises(RuntimeError):
        await AuthService(deps).sign_up(_signup())

    assert await session.scalar(select(func.count()).select_from(User)) == 0
    assert await session.scalar(select(func.count()).select_from(Validation)) == 0


@pytest.mark.asyncio
async def test_validate_then_sign_in(deps, mailer):
    svc = AuthService(deps)
    await svc.sign_up(_signup())
    code = _token_from(mailer.validations[0][1])

    with pytest.raises(UnauthorizedError):
        await svc.sign_in("quill@example.com", PASSWORD)
    with pytest.raises(UnauthorizedError):
        await svc.validate("quill@example.com", "not-the-code")

    validated = await svc.validate("quill@example.com", code)
    assert validated.user.is_validated is True
    assert decode_token(validated.token)["sub"] == str(validated.user.id)

    with pytest.raises(ConflictError):
        await svc.validate("quill@example.com", code)

    signed_in = await svc.sign_in("quill@example.com", PASSWORD)
    assert signed_in.user.codename == "Quill"
    with pytest.raises(UnauthorizedError):
        await svc.sign_in("quill@example.com", "Wr0ngPassword")
    with pytest.raises(NotFoundError):
        await svc.sign_in("nobody@example.com", PASSWORD)


@pytest.mark.asyncio
async def test_parent_validates_under_13(deps, mailer):
    svc = AuthService(deps)
    await svc.sign_up(_signup(age=8, parent_email="parent@example.com"))
    to, url = mailer.validations[0]

    out = await svc.validate(to, _token_from(url))
    assert out.user.email == "quill@example.com"
    assert out.user.is_validated is True


@pytest.mark.asyncio
async def test_reset_code_is_rate_limited(deps, mailer, factory):
    await factory.user(email="kid@example.com")
    svc = AuthService(deps)

    await svc.request_password_reset("kid@example.com")
    assert mailer.resets[0][0] == "kid@example.com"
    with pytest.raises(RateLimitedError):
        await svc.request_password_reset("kid@example.com")
    assert len(mailer.resets) == 1
    with pytest.raises(NotFoundError):
        await svc.request_password_reset("ghost@example.com")


@pytest.mark.asyncio
async def test_new_code_retires_previous_one(deps, session, mailer, factory):
    user = await factory.user(email="kid@example.com")
    svc = AuthService(deps, reset_cooldown_seconds=0)

    await svc.request_password_reset("kid@example.com")
    await svc.request_password_reset("kid@example.com")

    rows = (await session.execute(
        select(Reset.code, Reset.completed).where(Reset.user_id == user.id).order_by(Reset.id)
    )).all()
    assert [completed for _, completed in rows] == [True, False]
    assert rows[1][0] == mailer.resets[1][1]


@pytest.mark.asyncio
async def test_mail_failure_keeps_previous_code_active(deps, session, mailer, factory):
    user = await factory.user(email="kid@example.com")
    user_id = user.id
    svc = AuthService(deps, reset_cooldown_seconds=0)
    await svc.request_password_reset("kid@example.com")

    mailer.fail = True
    with pytest.raises(RuntimeError):
        await svc.request_password_reset("kid@example.com")

    rows = (await session.execute(select(Reset.completed).where(Reset.user_id == user_id))).scalars().all()
    assert rows == [False]


@pytest.mark.asyncio
async def test_reset_password(deps, session, mailer, factory):
    user = await factory.user(email="kid@example.com")
    svc = AuthService(deps)

    with pytest.raises(ConflictError):
        await svc.reset_password("kid@example.com", "N3wPassword", "whatever")

    await svc.request_password_reset("kid@example.com")
    code = mailer.resets[0][1]

    with pytest.raises(UnauthorizedError):
        await svc.reset_password("kid@example.com", "N3wPassword", "wrong-code")

    await svc.reset_password("kid@example.com", "N3wPassword", code)
    await session.refresh(user)
    assert verify_password("N3wPassword", user.password_hash)

    with pytest.raises(ConflictError):
        await svc.reset_password("kid@example.com", "An0therOne", code)
    with pytest.raises(NotFoundError):
        await svc.reset_password("ghost@example.com", "An0therOne", code)


class _StaleReadAuthService(AuthService):
    """Every request sees the latest reset row as it was before any of them ran."""

    def __init__(self, deps, snapshot, **kwargs):
        super().__init__(deps, **kwargs)
        self.snapshot = snapshot

    async def _latest_reset(self, user_id: int):
        return self.snapshot


@pytest.mark.asyncio
async def test_requests_sharing_a_stale_read_both_get_codes(deps, session, mailer, factory):
    # the cooldown is check-then-act: two requests that read before either
    # writes both pass, and both codes stay active
    user = await factory.user(email="kid@example.com")
    user_id = user.id
    snapshot = await AuthService(deps)._latest_reset(user_id)
    assert snapshot is None
    svc = _StaleReadAuthService(deps, snapshot)

    await svc.request_password_reset("kid@example.com")
    await svc.request_password_reset("kid@example.com")

    rows = (await session.execute(
        select(Reset.code, Reset.completed).where(Reset.user_id == user_id).order_by(Reset.id)
    )).all()
    assert [completed for _, completed in rows] == [False, False]
    assert [code for code, _ in rows] == [code for _, code in mailer.resets]

    # a request that reads the current state is still held back
    with pytest.raises(RateLimitedError):
        await AuthService(deps).request_password_reset("kid@example.com")
