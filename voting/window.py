"""Opening and closing the voting window (admin only)."""
from __future__ import annotations

from voting.access import require_admin
from voting.errors import AlreadyClosed, AlreadyStarted, InvalidDuration
from voting.ledger import LedgerStore
from voting.models import VotingSession
from voting.phase import require_elapsed

SECONDS_PER_HOUR = 3600


def start_voting(
    store: LedgerStore,
    session: VotingSession,
    caller: str,
    now: int,
    duration_hours: int,
) -> VotingSession:
    """Open the window at ``now`` for ``duration_hours``; callable once."""

    require_admin(session, caller)
    if session.started:
        raise AlreadyStarted(f"voting already started at {session.start_time}")
    if isinstance(duration_hours, bool) or not isinstance(duration_hours, int) or duration_hours < 0:
        raise InvalidDuration(f"duration must be a non-negative number of hours, got {duration_hours!r}")
    session.start_time = now
    session.end_time = now + duration_hours * SECONDS_PER_HOUR
    store.put_session(session)
    return session


def close_voting(
    store: LedgerStore,
    session: VotingSession,
    caller: str,
    now: int,
) -> VotingSession:
    require_admin(session, caller)
    require_elapsed(session, now)
    if session.closed:
        raise AlreadyClosed("voting is already closed")
    session.closed = True
    store.put_session(session)
    return session
