from __future__ import annotations
import hashlib
import io
import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
import httpx
from PIL import Image
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from storysquad.db import Base, get_session
from storysquad.deps import Deps, get_blob_store, get_scorer, get_mailer
from storysquad.errors import NotFoundError
from storysquad.models.contest import Top3, Winner, Vote  # noqa: F401 (register tables)
from storysquad.models.rumble import Prompt, Rumble, RumbleSection
from storysquad.models.section import Section, SectionTeacher
from storysquad.models.submission import Submission, SubmissionSource
from storysquad.models.user import User
from storysquad.security import hash_password, make_access_token
from storysquad.services.scoring import ScoreResult
from storysquad.main import app


def png_bytes(color=(200, 30, 30), size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeBlobStore:
    def __init__(self):
        self.blobs: dict[str, tuple[str, bytes]] = {}

    async def put(self, label: str, data: bytes, content_type: str) -> str:
        etag = hashlib.md5(data).hexdigest()
        self.blobs[label] = (etag, data)
        return etag

    async def get(self, label: str, etag: str) -> bytes:
        stored = self.blobs.get(label)
        if stored is None or stored[0] != etag:
            raise NotFoundError(f"Artifact not found: {label}")
        return stored[1]

    async def remove(self, label: str) -> None:
        self.blobs.pop(label, None)


class FakeScorer:
    def __init__(self, score=50.0, confidence=90.0, rotation=0.0, transcription="once upon a time", error=None, raw=None):
        self.raw = raw
        self.score = score
        self.confidence = confidence
        self.rotation = rotation
        self.transcription = transcription
        self.error = error
        self.calls: list[tuple[list, int]] = []

    async def send_submission(self, pages, prompt_id):
        self.calls.append((pages, prompt_id))
        if self.error is not None:
            raise self.error
        raw = self.raw if self.raw is not None else {
            "Confidence": self.confidence,
            "Rotation": self.rotation,
            "SquadScore": self.score,
            "Transcription": self.transcription,
        }
        return ScoreResult(
            confidence=self.confidence,
            rotation=self.rotation,
            score=self.score,
            transcription=self.transcription,
            raw=raw,
        )


class FakeMailer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.validations: list[tuple[str, str]] = []
        self.resets: list[tuple[str, str]] = []

    async def send_validation_email(self, to: str, url: str) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.validations.append((to, url))

    async def send_password_reset_email(self, user: User, code: str) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.resets.append((user.email, code))


class Factory:
    """Direct inserts for test setup, bypassing the services."""

    def __init__(self, session, blobs: FakeBlobStore):
        self.session = session
        self.blobs = blobs

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        await self.session.refresh(obj)
        return obj

    async def user(self, role="student", codename=None, email=None, password="Passw0rd1", validated=True) -> User:
        tag = uuid.uuid4().hex[:8]
        return await self._save(User(
            codename=codename or f"{role}{tag}",
            email=email or f"{role}-{tag}@example.com",
            password_hash=hash_password(password),
            role=role,
            is_validated=validated,
        ))

    async def prompt(self, text="Write about a dragon who is afraid of the dark", active=True) -> Prompt:
        return await self._save(Prompt(prompt=text, active=active))

    async def section(self, name="Period 1", teacher: User | None = None) -> Section:
        section = await self._save(Section(
            name=name, join_code=uuid.uuid4().hex, subject_id=1, grade_id=5, active=True,
        ))
        if teacher is not None:
            await self._save(SectionTeacher(section_id=section.id, user_id=teacher.id, is_primary=True))
        return section

    async def rumble(self, prompt: Prompt, section: Section, num_minutes=30) -> Rumble:
        r = await self._save(Rumble(join_code=uuid.uuid4().hex, prompt_id=prompt.id, num_minutes=num_minutes))
        await self._save(RumbleSection(rumble_id=r.id, section_id=section.id))
        return r

    async def submission(self, user: User, prompt: Prompt, score=50, rumble: Rumble | None = None) -> Submission:
        data = png_bytes((score % 256, 10, 10))
        label = f"sub/{user.id}/{uuid.uuid4().hex}.png"
        etag = await self.blobs.put(label, data, "image/png")
        return await self._save(Submission(
            user_id=user.id,
            prompt_id=prompt.id,
            rumble_id=rumble.id if rumble else None,
            source_id=int(SubmissionSource.RUMBLE if rumble else SubmissionSource.FDSC),
            blob_label=label,
            etag=etag,
            score=score,
            confidence=90,
            rotation=0,
        ))


def auth_header(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_access_token(str(user.id), user.email)}"}


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(engine, expire_on_commit=False)
    async with maker() as s:
        yield s
    await engine.dispose()


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def scorer():
    return FakeScorer()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def deps(session, blobs, scorer, mailer):
    return Deps(session=session, blobs=blobs, scorer=scorer, mailer=mailer)


@pytest.fixture
def factory(session, blobs):
    return Factory(session, blobs)


@pytest.fixture
def headers_for():
    return auth_header


@pytest.fixture
def png():
    return png_bytes


@pytest_asyncio.fixture
async def client(session, blobs, scorer, mailer):
    async def _session():
        yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_blob_store] = lambda: blobs
    app.dependency_overrides[get_scorer] = lambda: scorer
    app.dependency_overrides[get_mailer] = lambda: mailer
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
