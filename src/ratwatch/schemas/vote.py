# src/ratwatch/schemas/vote.py
"""Vote-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class VoteCreate(BaseModel):
    """Schema for casting a vote on a watch."""

    watch_id: str = Field(..., min_length=1)
    voter_id: int = Field(..., ge=0)
    is_guilty: bool = Field(..., description="True for guilty, False for not guilty")


class VoteResponse(BaseModel):
    """A recorded vote."""

    watch_id: str
    voter_user_id: int
    is_guilty_vote: bool
    voted_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TallyResponse(BaseModel):
    """Vote counts for a watch."""

    watch_id: str
    state: str
    guilty_votes: int
    not_guilty_votes: int
    final: bool = Field(..., description="True once the verdict has been committed")
