from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Text, func
from storysquad.db import Base

class Prompt(Base):
    __tablename__ = "prompts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prompt: Mapped[str] = mapped_column(Text(), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

class Rumble(Base):
    """
    Contest template. Scheduling lives on RumbleSection so the same rumble
    can run on a different clock per section.
    """
    __tablename__ = "rumbles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    join_code: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    prompt_id: Mapped[int] = mapped_column(Integer, ForeignKey("prompts.id", ondelete="CASCADE"), index=True, nullable=False)
    num_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    can_join: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_sections: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

class RumbleSection(Base):
    __tablename__ = "rumble_sections"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rumble_id: Mapped[int] = mapped_column(Integer, ForeignKey("rumbles.id", ondelete="CASCADE"), index=True, nullable=False)
    section_id: Mapped[int] = mapped_column(Integer, ForeignKey("sections.id", ondelete="CASCADE"), index=True, nullable=False)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)  # NULL until started
