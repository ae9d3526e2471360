# src/ratwatch/api/v1/endpoints/votes.py
"""Voting endpoints."""

from fastapi import APIRouter, status

from ratwatch.models import WatchState, WatchVote
from ratwatch.schemas.vote import TallyResponse, VoteCreate, VoteResponse
from ratwatch.services.errors import WatchError

from ..dependencies import VotingDep, http_error

router = APIRouter(prefix="/votes", tags=["votes"])

_FINAL_STATES = {WatchState.GUILTY.value, WatchState.NOT_GUILTY.value}


@router.post("/", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(vote_data: VoteCreate, voting: VotingDep) -> WatchVote:
    """Cast a guilty or not-guilty vote on a watch in its voting window.

    Each voter gets one vote per watch; it cannot be changed afterwards.
    """
    try:
        return voting.cast_vote(vote_data.watch_id, vote_data.voter_id, vote_data.is_guilty)
    except WatchError as err:
        raise http_error(err) from err


@router.get("/{watch_id}/tally", response_model=TallyResponse)
async def get_tally(watch_id: str, voting: VotingDep) -> TallyResponse:
    """Return the live tally, or the final tally once the verdict is in."""
    try:
        tally = voting.get_tally(watch_id)
    except WatchError as err:
        raise http_error(err) from err
    watch = voting.repo.get(watch_id)
    state = watch.state if watch is not None else WatchState.VOTING.value
    return TallyResponse(
        watch_id=watch_id,
        state=state,
        guilty_votes=tally.guilty,
        not_guilty_votes=tally.not_guilty,
        final=state in _FINAL_STATES,
    )
