from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime
from storysquad.schemas.submission import SubItem

class TopTen(BaseModel):
    subs: list[SubItem]
    has_voted: bool

class Top3Create(BaseModel):
    ids: list[int] = Field(min_length=1)

class LogEntryPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    submission_id: int
    created_at: datetime

class VoteCreate(BaseModel):
    first_place_id: int
    second_place_id: int
    third_place_id: int

    @model_validator(mode="after")
    def distinct_places(self):
        if len({self.first_place_id, self.second_place_id, self.third_place_id}) != 3:
            raise ValueError("each place must be a different submission")
        return self

class VotePublic(VoteCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    voter_id: int
    created_at: datetime

class VoteTallyRow(BaseModel):
    submission_id: int
    points: int
