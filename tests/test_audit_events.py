import json
from pathlib import Path

from scripts import audit_events
from voting.clock import ManualClock
from voting.engine import VotingEngine
from voting.events import JsonlEventSink
from voting.ledger import FileLedgerStore

ADMIN = "admin"


def _run_election(tmp_path: Path, clock: ManualClock) -> tuple[Path, Path]:
    ledger = tmp_path / "ledger.json"
    events = tmp_path / "events.jsonl"
    engine = VotingEngine(
        FileLedgerStore(ledger),
        administrator=ADMIN,
        clock=clock,
        events=JsonlEventSink(events),
    )
    engine.register_voter(ADMIN, "alice", 1)
    engine.register_voter(ADMIN, "bob", 3)
    engine.add_proposal(ADMIN, "P0")
    engine.add_proposal(ADMIN, "P1")
    engine.start(ADMIN, 1)
    engine.cast_vote("alice", 0)
    engine.cast_vote("bob", 1)
    clock.advance(3601)
    engine.close(ADMIN)
    return ledger, events


def _append(path: Path, record: dict) -> None:
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record) + "\n")


def test_audit_passes_for_engine_log(tmp_path: Path, clock: ManualClock, capsys) -> None:
    ledger, events = _run_election(tmp_path, clock)
    assert audit_events.main([str(events), "--ledger", str(ledger)]) == 0
    out = capsys.readouterr().out
    assert "#1 P1: 3" in out
    assert "event audit: ok" in out


def test_replay_tallies_weights(tmp_path: Path, clock: ManualClock) -> None:
    _, events = _run_election(tmp_path, clock)
    state, issues = audit_events.replay(audit_events.load_events(events))
    assert issues == []
    assert state.total_votes == 4
    assert state.closed_total == 4
    assert dict(state.tallies) == {0: 1, 1: 3}


def test_double_vote_detected(tmp_path: Path, clock: ManualClock) -> None:
    _, events = _run_election(tmp_path, clock)
    _append(events, {"t": 1, "seq": 99, "event": "VoteCast", "voter": "alice", "proposal": 1, "weight": 1})
    _, issues = audit_events.replay(audit_events.load_events(events))
    assert any("voted twice" in issue for issue in issues)


def test_sequence_regression_detected(tmp_path: Path, clock: ManualClock) -> None:
    _, events = _run_election(tmp_path, clock)
    _append(events, {"t": 1, "seq": 2, "event": "VoterRegistered", "voter": "carol"})
    issues = audit_events.validate_events(audit_events.load_events(events))
    assert any("sequence 2" in issue for issue in issues)


def test_missing_fields_and_unknown_events() -> None:
    issues = audit_events.validate_events(
        [
            {"seq": 1, "event": "VoterRegistered", "voter": "a"},
            {"t": 1, "seq": 2, "event": "Mystery"},
            {"t": 1, "seq": 3, "event": "VoteCast", "voter": "a"},
        ]
    )
    assert len(issues) == 3
    assert "missing fields ['t']" in issues[0]
    assert "unknown event" in issues[1]
    assert "VoteCast missing" in issues[2]


def test_ledger_mismatch_fails_audit(tmp_path: Path, clock: ManualClock, capsys) -> None:
    ledger, events = _run_election(tmp_path, clock)
    data = json.loads(ledger.read_text(encoding="utf-8"))
    data["proposals"][0]["vote_count"] = 10
    ledger.write_text(json.dumps(data), encoding="utf-8")
    assert audit_events.main([str(events), "--ledger", str(ledger)]) == 1
    assert "proposal #0" in capsys.readouterr().out


def test_missing_log_fails(tmp_path: Path) -> None:
    assert audit_events.main([str(tmp_path / "none.jsonl")]) == 1
