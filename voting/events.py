"""Notification sinks for committed engine state changes.

Publishing is fire-and-forget: the engine calls :func:`publish_safely`, which
logs and drops sink failures so a committed change is never reported as failed.
"""
from __future__ import annotations

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterator, List, Mapping, Protocol

LOGGER = logging.getLogger(__name__)

VOTER_REGISTERED = "VoterRegistered"
PROPOSAL_ADDED = "ProposalAdded"
VOTING_STARTED = "VotingStarted"
VOTE_CAST = "VoteCast"
VOTING_CLOSED = "VotingClosed"

EVENT_FIELDS: Dict[str, tuple[str, ...]] = {
    VOTER_REGISTERED: ("voter",),
    PROPOSAL_ADDED: ("index", "name"),
    VOTING_STARTED: ("start", "end"),
    VOTE_CAST: ("voter", "proposal", "weight"),
    VOTING_CLOSED: ("total_votes",),
}


@dataclass(frozen=True)
class Event:
    name: str
    t: int
    payload: Mapping[str, Any] = field(default_factory=dict)
    seq: int = 0

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"t": self.t, "seq": self.seq, "event": self.name}
        record.update(self.payload)
        return record


class EventSink(Protocol):
    def publish(self, event: Event) -> Event: ...


class EventLog:
    """Ordered in-memory event log with push delivery to subscribers.

    Subscribers run on the publishing thread and may read the log or publish
    again; events published from a subscriber are queued and delivered after
    the current one, so every subscriber sees events in log order.
    """

    def __init__(self) -> None:
        self._events: List[Event] = []
        self._subscribers: List[Callable[[Event], object]] = []
        self._pending: Deque[Event] = deque()
        self._delivering = False
        self._lock = threading.RLock()

    def subscribe(self, callback: Callable[[Event], object]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def publish(self, event: Event) -> Event:
        with self._lock:
            sequenced = Event(
                name=event.name,
                t=event.t,
                payload=dict(event.payload),
                seq=len(self._events) + 1,
            )
            self._events.append(sequenced)
            self._pending.append(sequenced)
            if not self._delivering:
                self._deliver()
        return sequenced

    def _deliver(self) -> None:
        self._delivering = True
        try:
            while self._pending:
                item = self._pending.popleft()
                for callback in list(self._subscribers):
                    try:
                        callback(item)
                    except Exception as exc:
                        LOGGER.warning(
                            "Event subscriber %r failed on %s #%s: %s",
                            callback,
                            item.name,
                            item.seq,
                            exc,
                        )
        finally:
            self._delivering = False

    def __iter__(self) -> Iterator[Event]:
        with self._lock:
            return iter(list(self._events))

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def names(self) -> List[str]:
        return [event.name for event in self]


class JsonlEventSink:
    """Append-only JSONL file, one record per event."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._last_seq: int | None = None

    def _existing_records(self) -> int:
        if not self.path.exists():
            return 0
        with self.path.open("r", encoding="utf-8") as handle:
            return sum(1 for line in handle if line.strip())

    def publish(self, event: Event) -> Event:
        with self._lock:
            if self._last_seq is None:
                self._last_seq = self._existing_records()
            if event.seq == 0:
                event = Event(name=event.name, t=event.t, payload=event.payload, seq=self._last_seq + 1)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(event.to_record(), ensure_ascii=False) + "\n")
            self._last_seq = max(self._last_seq, event.seq)
        return event


def publish_safely(sink: EventSink | None, event: Event) -> Event | None:
    if sink is None:
        return None
    try:
        return sink.publish(event)
    except Exception as exc:
        LOGGER.warning("Event sink failed to publish %s: %s", event.name, exc)
        return None
