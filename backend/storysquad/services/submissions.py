from __future__ import annotations
import asyncio
import base64
import math
from typing import Sequence
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
import structlog

from storysquad.deps import Deps
from storysquad.errors import ConflictError, NotFoundError
from storysquad.models.rumble import Prompt
from storysquad.models.submission import (
    Submission, SubmissionSource, Transcription, TranscriptionSource, FlagType, SubmissionFlag,
)
from storysquad.models.user import User
from storysquad.schemas.submission import SubItem, UploadResponse, FlagPublic
from storysquad.services.media import media_type_for
from storysquad.services.scoring import ScoreResult
from storysquad.services.transactions import transaction, best_effort

log = structlog.get_logger()


def round_half_up(x: float) -> int:
    """Half-up, like JS Math.round: 87.5 -> 88, 92.2 -> 92, -0.5 -> 0."""
    return int(math.floor(x + 0.5))


def format_new_sub(
    upload: UploadResponse,
    result: ScoreResult,
    prompt_id: int,
    user_id: int,
    source_id: int,
    rumble_id: int | None,
) -> Submission:
    return Submission(
        user_id=user_id,
        prompt_id=prompt_id,
        rumble_id=rumble_id,
        source_id=int(source_id),
        blob_label=upload.blob_label,
        etag=upload.etag,
        confidence=round_half_up(result.confidence),
        rotation=round_half_up(result.rotation),
        score=round_half_up(result.score),
        transcription=result.transcription,
    )


def to_data_uri(data: bytes) -> str:
    return f"data:{media_type_for(data)};base64,{base64.b64encode(data).decode('ascii')}"


def _sub_item(s: Submission, src: str, prompt: str, codename: str) -> SubItem:
    # 🔒 strips blob label, etag and confidence
    return SubItem(
        id=s.id,
        src=src,
        score=s.score,
        prompt=prompt,
        rotation=s.rotation,
        codename=codename,
        user_id=s.user_id,
        rumble_id=s.rumble_id,
    )


class SubmissionService:
    """
    Submission pipeline: received -> scored -> persisted -> (transcribed).

    Also turns stored submissions back into display items (artifact bytes as
    a data URI, prompt text, author codename) and handles moderation flags.
    """

    def __init__(self, deps: Deps):
        self.deps = deps
        self.session = deps.session

    # ---------- intake ----------

    async def process_submission(
        self,
        upload: UploadResponse,
        prompt_id: int,
        user: User,
        source_id: int = SubmissionSource.FDSC,
        rumble_id: int | None = None,
        transcription: str | None = None,
        transcription_source_id: int = TranscriptionSource.DS,
    ) -> SubItem:
        # The uploaded blob is not removed if a later step fails.
        log.debug("submission_scoring", user_id=user.id, prompt_id=prompt_id, label=upload.blob_label)
        result = await self.deps.scorer.send_submission([upload], prompt_id)

        sub = format_new_sub(upload, result, prompt_id, user.id, source_id, rumble_id)
        try:
            async with transaction(self.session):
                self.session.add(sub)
                await self.session.flush()
                await self.session.refresh(sub)
        except IntegrityError as e:
            log.error("submission_insert_failed", user_id=user.id, prompt_id=prompt_id, error=str(e.orig))
            raise ConflictError("Could not add to database")
        if sub.id is None:
            log.error("submission_insert_no_row", user_id=user.id, prompt_id=prompt_id)
            raise ConflictError("Could not add to database")
        log.info("submission_created", submission_id=sub.id, user_id=user.id, score=sub.score, rumble_id=rumble_id)

        item = await self.retrieve_sub_item(sub, codename=user.codename)

        async with best_effort("record_transcription", submission_id=sub.id):
            async with transaction(self.session):
                self.session.add(Transcription(
                    submission_id=item.id,
                    user_id=user.id,
                    source_id=int(source_id),
                    transcription_source_id=int(transcription_source_id),
                    transcription=transcription if transcription is not None else result.transcription,
                    payload=result.raw,
                ))
        return item

    # ---------- display items ----------

    async def image_src(self, s: Submission) -> str:
        data = await self.deps.blobs.get(s.blob_label, s.etag)
        return to_data_uri(data)

    async def retrieve_sub_item(self, s: Submission, codename: str | None = None) -> SubItem:
        src = await self.image_src(s)

        prompt = await self.session.scalar(select(Prompt.prompt).where(Prompt.id == s.prompt_id))
        if prompt is None:
            log.warning("prompt_not_found", prompt_id=s.prompt_id, submission_id=s.id)
            raise NotFoundError("Prompt not found")

        if codename is None:
            codename = await self.session.scalar(select(User.codename).where(User.id == s.user_id))
            if codename is None:
                log.warning("user_not_found", user_id=s.user_id, submission_id=s.id)
                raise NotFoundError("User not found")

        return _sub_item(s, src, prompt, codename)

    async def to_sub_items(self, subs: Sequence[Submission], codename: str | None = None) -> list[SubItem]:
        """
        Batch version of retrieve_sub_item. Prompts and codenames are loaded
        with one query each; the artifact fetches run concurrently. The output
        keeps the input order.
        """
        if not subs:
            return []

        prompt_ids = {s.prompt_id for s in subs}
        prompts: dict[int, str] = dict((await self.session.execute(
            select(Prompt.id, Prompt.prompt).where(Prompt.id.in_(prompt_ids))
        )).all())
        missing = prompt_ids - prompts.keys()
        if missing:
            log.warning("prompt_not_found", prompt_ids=sorted(missing))
            raise NotFoundError("Prompt not found")

        if codename is None:
            user_ids = {s.user_id for s in subs}
            codenames: dict[int, str] = dict((await self.session.execute(
                select(User.id, User.codename).where(User.id.in_(user_ids))
            )).all())
            if user_ids - codenames.keys():
                log.warning("user_not_found", user_ids=sorted(user_ids - codenames.keys()))
                raise NotFoundError("User not found")
        else:
            codenames = {s.user_id: codename for s in subs}

        # only the blob store is hit concurrently; the session stays sequential
        srcs = await asyncio.gather(*(self.image_src(s) for s in subs))
        return [
            _sub_item(s, src, prompts[s.prompt_id], codenames[s.user_id])
            for s, src in zip(subs, srcs)
        ]

    async def get_by_id(self, submission_id: int) -> SubItem:
        s = await self.session.get(Submission, submission_id)
        if not s:
            log.warning("submission_not_found", submission_id=submission_id)
            raise NotFoundError("Submission not found")
        return await self.retrieve_sub_item(s)

    async def get_user_submissions(self, user_id: int, limit: int = 10, offset: int = 0) -> list[SubItem]:
        user = await self.session.get(User, user_id)
        if not user:
            log.warning("user_not_found", user_id=user_id)
            raise NotFoundError("User not found")

        subs = (await self.session.execute(
            select(Submission)
            .where(Submission.user_id == user_id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
            .limit(limit)
            .offset(offset)
        )).scalars().all()
        # codename resolved once for the whole page
        return await self.to_sub_items(subs, codename=user.codename)

    # ---------- moderation ----------

    async def flag_submission(self, submission_id: int, flag_ids: list[int], creator_id: int | None = None) -> list[FlagPublic]:
        if not await self.session.get(Submission, submission_id):
            log.warning("submission_not_found", submission_id=submission_id)
            raise NotFoundError("Submission not found")

        flags = [SubmissionFlag(submission_id=submission_id, flag_id=fid, creator_id=creator_id) for fid in flag_ids]
        async with transaction(self.session):
            self.session.add_all(flags)
            await self.session.flush()
            for f in flags:
                await self.session.refresh(f)
        log.info("submission_flagged", submission_id=submission_id, flag_ids=flag_ids, anonymous=creator_id is None)
        return [FlagPublic.model_validate(f) for f in flags]

    async def remove_flag(self, submission_id: int, flag_id: int) -> int:
        async with transaction(self.session):
            res = await self.session.execute(
                delete(SubmissionFlag).where(
                    SubmissionFlag.submission_id == submission_id,
                    SubmissionFlag.flag_id == flag_id,
                )
            )
        log.info("submission_flag_removed", submission_id=submission_id, flag_id=flag_id, removed=res.rowcount)
        return int(res.rowcount or 0)

    async def get_flags_by_sub_id(self, submission_id: int) -> list[str]:
        rows = (await self.session.execute(
            select(FlagType.flag)
            .join(SubmissionFlag, SubmissionFlag.flag_id == FlagType.id)
            .where(SubmissionFlag.submission_id == submission_id)
            .order_by(SubmissionFlag.id.asc())
        )).scalars().all()
        return list(rows)
