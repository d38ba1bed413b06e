"""Audit a voting event log and replay its tallies.

Checks performed:
- every record carries ``t``, ``seq`` and ``event`` plus the fields its event needs;
- sequence numbers strictly increase;
- each voter casts at most one vote, only after being registered and only for
  a proposal added earlier in the log;
- replayed weighted tallies match the ``VotingClosed`` total and, with
  ``--ledger``, the proposal counts stored in the ledger.

Usage: ``python -m scripts.audit_events .voting/events.jsonl [--ledger .voting/ledger.json]``
"""

from __future__ import annotations

import argparse
import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List

from voting.errors import InfrastructureError
from voting.events import (
    EVENT_FIELDS,
    PROPOSAL_ADDED,
    VOTE_CAST,
    VOTER_REGISTERED,
    VOTING_CLOSED,
)
from voting.ledger import FileLedgerStore

REQUIRED_FIELDS = {"t", "seq", "event"}


@dataclass
class Replay:
    proposals: List[str] = field(default_factory=list)
    tallies: Counter = field(default_factory=Counter)
    voters: set = field(default_factory=set)
    voted: set = field(default_factory=set)
    total_votes: int = 0
    closed_total: int | None = None


def load_events(path: Path) -> List[dict]:
    records: List[dict] = []
    if not path.exists():
        return records
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        records.append(json.loads(line))
    return records


def validate_events(events: Iterable[dict]) -> List[str]:
    issues: List[str] = []
    last_seq = 0
    for idx, event in enumerate(events):
        missing = REQUIRED_FIELDS - event.keys()
        if missing:
            issues.append(f"event #{idx}: missing fields {sorted(missing)}")
            continue
        name = event["event"]
        if name not in EVENT_FIELDS:
            issues.append(f"event #{idx}: unknown event {name!r}")
            continue
        absent = [key for key in EVENT_FIELDS[name] if key not in event]
        if absent:
            issues.append(f"event #{idx}: {name} missing {absent}")
        seq = int(event["seq"])
        if seq <= last_seq:
            issues.append(f"event #{idx}: sequence {seq} does not follow {last_seq}")
        last_seq = max(last_seq, seq)
    return issues


def replay(events: Iterable[dict]) -> tuple[Replay, List[str]]:
    state = Replay()
    issues: List[str] = []
    for idx, event in enumerate(events):
        name = event.get("event")
        if name == VOTER_REGISTERED:
            state.voters.add(event.get("voter"))
        elif name == PROPOSAL_ADDED:
            index = int(event.get("index", -1))
            if index != len(state.proposals):
                issues.append(f"event #{idx}: proposal index {index} out of order")
            state.proposals.append(str(event.get("name", "")))
        elif name == VOTE_CAST:
            voter = event.get("voter")
            proposal = int(event.get("proposal", -1))
            weight = int(event.get("weight", 0))
            if voter not in state.voters:
                issues.append(f"event #{idx}: vote from unregistered voter {voter}")
            if voter in state.voted:
                issues.append(f"event #{idx}: voter {voter} voted twice")
            if proposal < 0 or proposal >= len(state.proposals):
                issues.append(f"event #{idx}: vote for unknown proposal {proposal}")
            state.voted.add(voter)
            state.tallies[proposal] += weight
            state.total_votes += weight
        elif name == VOTING_CLOSED:
            state.closed_total = int(event.get("total_votes", 0))
    if state.closed_total is not None and state.closed_total != state.total_votes:
        issues.append(
            f"VotingClosed reports {state.closed_total} votes but log replays {state.total_votes}"
        )
    return state, issues


def compare_ledger(state: Replay, ledger_path: Path) -> List[str]:
    try:
        store = FileLedgerStore(ledger_path)
    except InfrastructureError as exc:
        return [str(exc)]
    issues: List[str] = []
    proposals = store.list_proposals()
    if len(proposals) != len(state.proposals):
        issues.append(f"ledger has {len(proposals)} proposals, log has {len(state.proposals)}")
    for index, proposal in enumerate(proposals):
        replayed = state.tallies.get(index, 0)
        if proposal.vote_count != replayed:
            issues.append(
                f"proposal #{index} ({proposal.name}): ledger {proposal.vote_count}, log {replayed}"
            )
    session = store.get_session()
    if session is not None and session.total_votes_cast != state.total_votes:
        issues.append(
            f"ledger total {session.total_votes_cast} differs from log total {state.total_votes}"
        )
    return issues


def print_replay(state: Replay) -> None:
    print(f"Proposals: {len(state.proposals)}")
    print(f"Registered voters: {len(state.voters)}")
    print(f"Votes cast: {len(state.voted)} (weight {state.total_votes})")
    for index, name in enumerate(state.proposals):
        print(f"  #{index} {name}: {state.tallies.get(index, 0)}")


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("events", type=Path, help="Event log JSONL")
    parser.add_argument("--ledger", type=Path, default=None, help="Ledger JSON to cross-check")
    args = parser.parse_args(argv)

    if not args.events.exists():
        print(f"event log {args.events} not found")
        return 1
    try:
        events = load_events(args.events)
    except json.JSONDecodeError as exc:
        print(f"event log {args.events} is not valid JSONL: {exc}")
        return 1

    issues = validate_events(events)
    state, replay_issues = replay(events)
    issues.extend(replay_issues)
    if args.ledger is not None:
        issues.extend(compare_ledger(state, args.ledger))

    print_replay(state)
    if issues:
        for issue in issues:
            print(issue)
        return 1
    print("event audit: ok")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
