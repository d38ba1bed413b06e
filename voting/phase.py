"""Phase derivation from session timestamps and the current time.

The phase is never stored. ``Setup`` lasts until ``start``; ``Open`` covers
``[start_time, end_time]`` inclusive; anything after ``end_time`` is
``Closed`` whether or not ``close`` has been called yet.
"""
from __future__ import annotations

import enum

from voting.errors import VotingNotActive, VotingNotEnded
from voting.models import VotingSession


class Phase(str, enum.Enum):
    SETUP = "Setup"
    OPEN = "Open"
    CLOSED = "Closed"


def current_phase(session: VotingSession, now: int) -> Phase:
    if session.start_time is None or session.end_time is None:
        return Phase.SETUP
    if now > session.end_time:
        return Phase.CLOSED
    if session.closed:
        return Phase.CLOSED
    if now >= session.start_time:
        return Phase.OPEN
    return Phase.SETUP


def has_elapsed(session: VotingSession, now: int) -> bool:
    return session.end_time is not None and now > session.end_time


def time_remaining(session: VotingSession, now: int) -> int:
    if session.end_time is None:
        return 0
    return max(0, session.end_time - now)


def require_open(session: VotingSession, now: int) -> None:
    phase = current_phase(session, now)
    if phase is not Phase.OPEN:
        raise VotingNotActive(f"voting is not open (phase {phase.value})")


def require_elapsed(session: VotingSession, now: int) -> None:
    if not has_elapsed(session, now):
        if session.end_time is None:
            raise VotingNotEnded("voting has not started")
        raise VotingNotEnded(f"voting window ends at {session.end_time}")
