import pytest

from voting.errors import VotingNotActive, VotingNotEnded
from voting.models import VotingSession
from voting.phase import (
    Phase,
    current_phase,
    require_elapsed,
    require_open,
    time_remaining,
)


def _session(start: int | None = None, hours: int = 1, closed: bool = False) -> VotingSession:
    session = VotingSession(administrator="admin")
    if start is not None:
        session.start_time = start
        session.end_time = start + hours * 3600
    session.closed = closed
    return session


def test_setup_until_started() -> None:
    session = _session()
    assert current_phase(session, 0) is Phase.SETUP
    assert current_phase(session, 10**9) is Phase.SETUP
    assert time_remaining(session, 5) == 0
    with pytest.raises(VotingNotActive):
        require_open(session, 5)
    with pytest.raises(VotingNotEnded):
        require_elapsed(session, 5)


def test_open_window_is_inclusive_at_both_ends() -> None:
    session = _session(start=100)
    assert current_phase(session, 100) is Phase.OPEN
    assert current_phase(session, 100 + 3600) is Phase.OPEN
    require_open(session, 100 + 3600)
    assert current_phase(session, 100 + 3601) is Phase.CLOSED
    with pytest.raises(VotingNotActive):
        require_open(session, 100 + 3601)


def test_elapsed_only_after_end_time() -> None:
    session = _session(start=100)
    with pytest.raises(VotingNotEnded):
        require_elapsed(session, 100 + 3600)
    require_elapsed(session, 100 + 3601)


def test_closed_without_explicit_close_once_elapsed() -> None:
    session = _session(start=0, hours=2)
    assert current_phase(session, 7201) is Phase.CLOSED
    assert session.closed is False


def test_time_remaining_counts_down_to_zero() -> None:
    session = _session(start=0)
    assert time_remaining(session, 0) == 3600
    assert time_remaining(session, 3000) == 600
    assert time_remaining(session, 5000) == 0


def test_zero_duration_window_is_open_for_one_instant() -> None:
    session = _session(start=50, hours=0)
    assert current_phase(session, 50) is Phase.OPEN
    assert current_phase(session, 51) is Phase.CLOSED
