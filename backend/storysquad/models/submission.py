from __future__ import annotations
from datetime import datetime
from enum import IntEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, JSON, func
from storysquad.db import Base


class SubmissionSource(IntEnum):
    FDSC = 1     # free daily squad challenge
    RUMBLE = 2


class TranscriptionSource(IntEnum):
    DS = 1
    USER = 2


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    prompt_id: Mapped[int] = mapped_column(Integer, ForeignKey("prompts.id", ondelete="CASCADE"), index=True, nullable=False)
    rumble_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("rumbles.id", ondelete="SET NULL"), index=True, nullable=True
    )
    source_id: Mapped[int] = mapped_column(Integer, nullable=False, default=int(SubmissionSource.FDSC))

    # 🔒 storage internals, never exposed
    blob_label: Mapped[str] = mapped_column(Text(), nullable=False)
    etag: Mapped[str] = mapped_column(String(128), nullable=False)

    score: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    confidence: Mapped[int] = mapped_column(Integer, nullable=False)
    rotation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transcription: Mapped[str | None] = mapped_column(Text(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Transcription(Base):
    """Raw scoring-service answer kept next to the submission. Written best-effort."""
    __tablename__ = "transcriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("submissions.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    source_id: Mapped[int] = mapped_column(Integer, nullable=False)
    transcription_source_id: Mapped[int] = mapped_column(Integer, nullable=False, default=int(TranscriptionSource.DS))
    transcription: Mapped[str | None] = mapped_column(Text(), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class FlagType(Base):
    __tablename__ = "flag_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    flag: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)


class SubmissionFlag(Base):
    __tablename__ = "submission_flags"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("submissions.id", ondelete="CASCADE"), index=True, nullable=False
    )
    flag_id: Mapped[int] = mapped_column(Integer, ForeignKey("flag_types.id", ondelete="CASCADE"), nullable=False)
    # NULL = anonymous flag
    creator_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
