from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal
from datetime import datetime

RumblePhase = Literal["pending", "active", "ended"]

class RumbleCreate(BaseModel):
    num_minutes: int = Field(ge=1, le=24 * 60)
    prompt_id: int

class RumbleBatchCreate(BaseModel):
    rumble: RumbleCreate
    section_ids: list[int] = Field(min_length=1)

class RumblePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    join_code: str
    prompt_id: int
    num_minutes: int
    can_join: bool
    max_sections: int
    created_at: datetime
    # section-specific schedule
    start_time: datetime | None = None
    end_time: datetime | None = None
    phase: RumblePhase = "pending"

class RumbleWithSectionInfo(RumblePublic):
    section_id: int
    section_name: str

class RumbleStarted(BaseModel):
    rumble_id: int
    section_id: int
    end_time: datetime
