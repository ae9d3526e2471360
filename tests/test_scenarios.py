# mypy: ignore-errors
"""End-to-end watch scenarios driven through the scheduler with a fixed clock."""

from datetime import timedelta

import pytest

from ratwatch.models import WatchState
from ratwatch.repositories.watch_repo import WatchRepository
from ratwatch.schemas.watch import WatchCreate
from ratwatch.services.errors import VotingClosedError
from ratwatch.services.scheduler import WatchScheduler
from ratwatch.services.voting import compute_verdict

from .conftest import ACCUSED_ID, CHANNEL_ID, GROUP_ID, INITIATOR_ID, NOW

WINDOW = timedelta(minutes=5)


@pytest.fixture()
def scheduler(session_factory, notifier):
    return WatchScheduler(session_factory=session_factory, notifier=notifier)


@pytest.fixture()
def watch(lifecycle):
    """A watch created an hour before its deadline at NOW."""
    request = WatchCreate(
        group_id=GROUP_ID,
        channel_id=CHANNEL_ID,
        accused_user_id=ACCUSED_ID,
        initiator_user_id=INITIATOR_ID,
        origin_message_id=444444444,
        deadline=NOW,
        custom_message="home by noon",
    )
    return lifecycle.create(request, now=NOW - timedelta(hours=1))


def test_clear_one_second_before_deadline(scheduler, lifecycle, voting, watch) -> None:
    assert lifecycle.clear_early(watch.id, ACCUSED_ID, now=NOW - timedelta(seconds=1))

    report = scheduler.tick(NOW)

    assert report.started == 0
    assert lifecycle.get(watch.id).state == WatchState.CLEARED_EARLY.value
    with pytest.raises(VotingClosedError):
        voting.cast_vote(watch.id, 501, True, now=NOW)


def test_three_to_one_is_guilty(events, scheduler, lifecycle, voting, watch, db_session) -> None:
    assert scheduler.tick(NOW).started == 1
    for voter, guilty in ((501, True), (502, True), (503, True), (504, False)):
        voting.cast_vote(watch.id, voter, guilty, now=NOW + timedelta(minutes=2))

    assert scheduler.tick(NOW + WINDOW).closed == 1

    stored = lifecycle.get(watch.id)
    assert stored.state == WatchState.GUILTY.value
    record = WatchRepository(db_session).outcome_for_watch(watch.id)
    assert (record.guilty_votes, record.not_guilty_votes) == (3, 1)
    assert record.user_id == ACCUSED_ID
    assert [event.event_type for event in events] == [
        "watch_created",
        "voting_started",
        "voting_closed",
    ]


def test_late_vote_is_rejected(scheduler, voting, watch) -> None:
    scheduler.tick(NOW)
    voting.cast_vote(watch.id, 501, False, now=NOW)

    with pytest.raises(VotingClosedError):
        voting.cast_vote(watch.id, 502, True, now=NOW + WINDOW + timedelta(seconds=1))

    assert (voting.get_tally(watch.id).guilty, voting.get_tally(watch.id).not_guilty) == (0, 1)


def test_verdict_is_reproducible_after_close(scheduler, lifecycle, voting, watch) -> None:
    """Recomputing the verdict from the committed votes gives the stored result."""
    scheduler.tick(NOW)
    for voter, guilty in ((501, True), (502, False), (503, True)):
        voting.cast_vote(watch.id, voter, guilty, now=NOW + timedelta(seconds=voter - 500))
    scheduler.tick(NOW + WINDOW)

    stored = lifecycle.get(watch.id)
    guilty, not_guilty = voting.repo.tally(watch.id, before=stored.voting_closes_at)

    assert (guilty, not_guilty) == (stored.guilty_votes, stored.not_guilty_votes)
    assert compute_verdict(guilty, not_guilty).value == stored.state


def test_missed_deadline_never_stays_pending(scheduler, lifecycle, watch) -> None:
    """A tick long after the deadline expires the watch instead of calling a vote."""
    scheduler.tick(NOW + timedelta(hours=2))

    assert lifecycle.get(watch.id).state == WatchState.EXPIRED.value
