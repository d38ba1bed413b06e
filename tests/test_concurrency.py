import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from scripts import audit_events
from voting.clock import ManualClock
from voting.engine import VotingEngine
from voting.errors import AlreadyVoted
from voting.events import (
    PROPOSAL_ADDED,
    VOTE_CAST,
    VOTER_REGISTERED,
    VOTING_STARTED,
    Event,
    EventLog,
    JsonlEventSink,
)
from voting.ledger import FileLedgerStore, MemoryLedgerStore

ADMIN = "admin"


def _open_engine(clock: ManualClock, voters: dict[str, int]) -> tuple[VotingEngine, EventLog]:
    events = EventLog()
    engine = VotingEngine(MemoryLedgerStore(), administrator=ADMIN, clock=clock, events=events)
    for voter_id, weight in voters.items():
        engine.register_voter(ADMIN, voter_id, weight)
    engine.add_proposal(ADMIN, "P0")
    engine.add_proposal(ADMIN, "P1")
    engine.add_proposal(ADMIN, "P2")
    engine.start(ADMIN, 1)
    return engine, events


def test_concurrent_votes_sum_to_total_weight(clock: ManualClock) -> None:
    voters = {f"voter-{index}": index % 5 + 1 for index in range(200)}
    engine, events = _open_engine(clock, voters)

    def vote(voter_id: str) -> None:
        engine.cast_vote(voter_id, int(voter_id.rsplit("-", 1)[1]) % 3)

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(vote, voters))

    proposals = engine.all_proposals()
    assert engine.session().total_votes_cast == sum(voters.values())
    assert sum(item.vote_count for item in proposals) == sum(voters.values())
    assert events.names().count("VoteCast") == len(voters)
    assert [event.seq for event in events] == list(range(1, len(events) + 1))


def test_racing_double_vote_succeeds_once(clock: ManualClock) -> None:
    engine, _ = _open_engine(clock, {"alice": 7})

    def vote(proposal_id: int) -> str:
        try:
            engine.cast_vote("alice", proposal_id)
        except AlreadyVoted:
            return "rejected"
        return "accepted"

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(vote, [index % 3 for index in range(24)]))

    assert outcomes.count("accepted") == 1
    assert engine.session().total_votes_cast == 7
    assert sorted(item.vote_count for item in engine.all_proposals()) == [0, 0, 7]


class DelayedRegistrationSink:
    """Forwards to an inner sink, stalling on voter registrations."""

    def __init__(self, inner: EventLog) -> None:
        self.inner = inner
        self.entered = threading.Event()

    def publish(self, event: Event) -> Event:
        if event.name == VOTER_REGISTERED:
            self.entered.set()
            time.sleep(0.2)
        return self.inner.publish(event)


def test_event_log_follows_commit_order(clock: ManualClock) -> None:
    log = EventLog()
    sink = DelayedRegistrationSink(log)
    engine = VotingEngine(MemoryLedgerStore(), administrator=ADMIN, clock=clock, events=sink)
    engine.add_proposal(ADMIN, "P0")

    registering = threading.Thread(target=engine.register_voter, args=(ADMIN, "alice", 2))
    registering.start()
    assert sink.entered.wait(2)
    engine.start(ADMIN, 1)
    engine.cast_vote("alice", 0)
    registering.join(2)

    assert log.names() == [PROPOSAL_ADDED, VOTER_REGISTERED, VOTING_STARTED, VOTE_CAST]
    records = [event.to_record() for event in log]
    _, issues = audit_events.replay(records)
    assert issues == []


def test_concurrent_election_passes_event_audit(tmp_path: Path, clock: ManualClock, capsys) -> None:
    ledger = tmp_path / "ledger.json"
    events = tmp_path / "events.jsonl"
    engine = VotingEngine(
        FileLedgerStore(ledger),
        administrator=ADMIN,
        clock=clock,
        events=JsonlEventSink(events),
    )
    for index in range(3):
        engine.add_proposal(ADMIN, f"P{index}")
    engine.start(ADMIN, 1)

    def enrol_and_vote(index: int) -> None:
        voter_id = f"voter-{index}"
        engine.register_voter(ADMIN, voter_id, index % 4 + 1)
        if index % 10 == 0:
            engine.add_proposal(ADMIN, f"late-{index}")
        engine.cast_vote(voter_id, index % 3)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(enrol_and_vote, range(40)))
    clock.advance(3601)
    engine.close(ADMIN)

    assert audit_events.main([str(events), "--ledger", str(ledger)]) == 0
    assert "event audit: ok" in capsys.readouterr().out
