from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class UploadResponse(BaseModel):
    """Where an uploaded page landed in blob storage."""
    blob_label: str
    etag: str
    raw: bytes | None = None


class SubItem(BaseModel):
    """Display item. 🔒 no blob label / etag / confidence here."""
    id: int
    src: str          # data URI
    score: int
    prompt: str
    rotation: int
    codename: str
    user_id: int
    rumble_id: int | None = None


class FlagCreate(BaseModel):
    flag_ids: list[int] = Field(min_length=1)


class FlagPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    submission_id: int
    flag_id: int
    creator_id: int | None = None
    created_at: datetime
