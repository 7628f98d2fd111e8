from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from storysquad.schemas.rumble import RumblePublic

class SectionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    subject_id: int
    grade_id: int

class EnrollRequest(BaseModel):
    join_code: str

class SectionPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    join_code: str
    subject_id: int
    grade_id: int
    active: bool
    created_at: datetime

class SectionWithRumbles(SectionPublic):
    rumbles: list[RumblePublic] = Field(default_factory=list)

class StudentPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    codename: str
    email: str
