import pytest

from voting.clock import ManualClock
from voting.config import EnginePolicy
from voting.engine import VotingEngine
from voting.errors import InvalidProposal, VotingNotEnded
from voting.ledger import MemoryLedgerStore
from voting.models import Proposal
from voting.reporter import leading_index

ADMIN = "admin"


def _proposals(*counts: int) -> list[Proposal]:
    return [Proposal(name=f"P{index}", vote_count=count) for index, count in enumerate(counts)]


def test_ties_go_to_lowest_index() -> None:
    assert leading_index(_proposals(5, 5, 3)) == 0
    assert leading_index(_proposals(1, 4, 4)) == 1


def test_all_zero_tallies_pick_first() -> None:
    assert leading_index(_proposals(0, 0, 0)) == 0


def test_later_strictly_greater_tally_takes_the_lead() -> None:
    assert leading_index(_proposals(2, 3, 1, 7)) == 3


def _engine(clock: ManualClock, policy: EnginePolicy | None = None) -> VotingEngine:
    engine = VotingEngine(MemoryLedgerStore(), administrator=ADMIN, clock=clock, policy=policy)
    engine.register_voter(ADMIN, "alice", 2)
    engine.add_proposal(ADMIN, "Parks")
    engine.add_proposal(ADMIN, "Roads")
    return engine


def test_status_before_and_during_voting(clock: ManualClock) -> None:
    engine = _engine(clock)
    status = engine.status()
    assert status.is_active is False
    assert status.time_remaining == 0
    assert status.total_proposals == 2
    assert status.phase == "Setup"

    engine.start(ADMIN, 1)
    clock.advance(600)
    status = engine.status()
    assert status.is_active is True
    assert status.time_remaining == 3000
    assert status.total_votes_cast == 0


def test_status_after_window_elapsed(clock: ManualClock) -> None:
    engine = _engine(clock)
    engine.start(ADMIN, 1)
    clock.advance(7200)
    status = engine.status()
    assert status.is_active is False
    assert status.time_remaining == 0
    assert status.phase == "Closed"
    assert status.closed is False


def test_winner_requires_elapsed_window(clock: ManualClock) -> None:
    engine = _engine(clock)
    with pytest.raises(VotingNotEnded):
        engine.winner()
    engine.start(ADMIN, 1)
    engine.cast_vote("alice", 1)
    with pytest.raises(VotingNotEnded):
        engine.winner()
    clock.advance(3601)
    winner = engine.winner()
    assert winner.proposal_id == 1
    assert winner.name == "Roads"
    assert winner.vote_count == 2


def test_winner_without_close_follows_policy(clock: ManualClock) -> None:
    engine = _engine(clock, EnginePolicy(require_close_for_winner=True))
    engine.start(ADMIN, 1)
    clock.advance(3601)
    with pytest.raises(VotingNotEnded):
        engine.winner()
    engine.close(ADMIN)
    assert engine.winner().proposal_id == 0


def test_winner_with_empty_catalog(clock: ManualClock) -> None:
    engine = VotingEngine(MemoryLedgerStore(), administrator=ADMIN, clock=clock)
    engine.start(ADMIN, 0)
    clock.advance(1)
    with pytest.raises(InvalidProposal):
        engine.winner()
