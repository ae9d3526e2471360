"""Verdict rule for a closed voting window."""

from __future__ import annotations

from dataclasses import dataclass

from ratwatch.core.settings import settings
from ratwatch.models import WatchState


@dataclass(frozen=True)
class Tally:
    """Final vote counts for a watch."""

    guilty: int = 0
    not_guilty: int = 0

    @property
    def total(self) -> int:
        return self.guilty + self.not_guilty

    @property
    def margin(self) -> int:
        return abs(self.guilty - self.not_guilty)


def decide_verdict(tally: Tally, tie_verdict: str | None = None) -> WatchState:
    """Return the verdict for ``tally``.

    A strict guilty majority is guilty. Equal counts, including no votes at
    all, resolve to ``tie_verdict`` (``TIE_VERDICT`` when not given).
    """
    if tally.guilty > tally.not_guilty:
        return WatchState.GUILTY
    if tally.guilty < tally.not_guilty:
        return WatchState.NOT_GUILTY
    tie = WatchState(tie_verdict or settings.tie_verdict)
    if tie not in (WatchState.GUILTY, WatchState.NOT_GUILTY):
        raise ValueError(f"Tie verdict must be guilty or not_guilty, got {tie.value!r}")
    return tie
