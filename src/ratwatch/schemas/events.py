"""Outbound lifecycle events consumed by the delivery layer."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

WatchEventType = Literal["watch_created", "voting_started", "voting_closed"]


class WatchEvent(BaseModel):
    """Denormalized notification describing one lifecycle step of a watch."""

    event_type: WatchEventType
    watch_id: str
    group_id: int
    channel_id: int
    accused_user_id: int
    initiator_user_id: int
    deadline: datetime
    custom_message: str | None = None
    state: str
    guilty_votes: int = Field(default=0, description="Final tally, set on voting_closed")
    not_guilty_votes: int = Field(default=0, description="Final tally, set on voting_closed")
    voting_closes_at: datetime | None = None
    occurred_at: datetime
