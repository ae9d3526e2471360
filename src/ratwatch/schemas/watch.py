# src/ratwatch/schemas/watch.py
"""Watch-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WatchCreate(BaseModel):
    """Schema for putting a user on watch."""

    group_id: int = Field(..., ge=0, description="Group (guild) the watch belongs to")
    channel_id: int = Field(..., ge=0, description="Channel where the watch was created")
    accused_user_id: int = Field(..., ge=0)
    initiator_user_id: int = Field(..., ge=0)
    origin_message_id: int = Field(0, ge=0, description="Message that prompted the watch")
    deadline: datetime = Field(..., description="Absolute check-in deadline; naive values are UTC")
    custom_message: str | None = None


class WatchResponse(BaseModel):
    """Schema for watch information returned by the API."""

    id: str
    group_id: int
    channel_id: int
    accused_user_id: int
    initiator_user_id: int
    origin_message_id: int
    deadline: datetime
    custom_message: str | None
    state: str
    created_at: datetime
    cleared_at: datetime | None = None
    voting_started_at: datetime | None = None
    voting_closes_at: datetime | None = None
    voting_ended_at: datetime | None = None
    guilty_votes: int = 0
    not_guilty_votes: int = 0
    cancel_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class WatchPage(BaseModel):
    """One page of a group's watches."""

    items: list[WatchResponse]
    total: int
    page: int
    page_size: int


class ClearRequest(BaseModel):
    """Schema for an early check-in by the accused."""

    requester_id: int = Field(..., ge=0, description="User asking to clear the watch")


class ClearAllRequest(BaseModel):
    """Schema for clearing every pending watch on a user."""

    group_id: int = Field(..., ge=0)
    user_id: int = Field(..., ge=0)


class ClearAllResponse(BaseModel):
    """How many watches a clear-all moved."""

    cleared: int


class CancelRequest(BaseModel):
    """Schema for cancelling a pending watch."""

    reason: str | None = Field(None, max_length=200)
