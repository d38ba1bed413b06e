"""Voting engine wiring the ledger store, clock and event sink together.

Every mutating call runs inside one store transaction: the clock is read once
inside it, all checks run, and the writes commit together. Notifications are
published only after the commit succeeds, before the store lock is released,
and never fail the call.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, List, TypeVar

from voting import ballot, catalog, registration, reporter, window
from voting.clock import Clock, SystemClock
from voting.config import ElectionConfig, EnginePolicy
from voting.errors import InfrastructureError, VotingError
from voting.events import (
    PROPOSAL_ADDED,
    VOTE_CAST,
    VOTER_REGISTERED,
    VOTING_CLOSED,
    VOTING_STARTED,
    Event,
    EventSink,
    JsonlEventSink,
    publish_safely,
)
from voting.ledger import FileLedgerStore, LedgerStore, MemoryLedgerStore
from voting.models import Proposal, Status, Voter, VotingSession, Winner

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class VotingEngine:
    """One voting event: a single administrator, catalog and window.

    Independent events are independent instances, each over its own store.
    """

    def __init__(
        self,
        store: LedgerStore | None = None,
        *,
        administrator: str | None = None,
        title: str = "",
        description: str = "",
        clock: Clock | None = None,
        events: EventSink | None = None,
        policy: EnginePolicy | None = None,
    ) -> None:
        self._store = store if store is not None else MemoryLedgerStore()
        self._clock = clock or SystemClock()
        self._events = events
        self.policy = policy or EnginePolicy()

        with self._store.transaction():
            session = self._store.get_session()
            if session is None:
                if not administrator:
                    raise ValueError("administrator is required to initialise a new ledger")
                self._store.put_session(
                    VotingSession(administrator=administrator, title=title, description=description)
                )
                LOGGER.info("Initialised voting session %r administered by %s", title, administrator)
            elif administrator and administrator != session.administrator:
                raise ValueError(
                    f"ledger is administered by {session.administrator!r}, not {administrator!r}"
                )

    @classmethod
    def from_config(
        cls,
        config: ElectionConfig,
        *,
        clock: Clock | None = None,
        ledger_path: Path | None = None,
        events_path: Path | None = None,
    ) -> "VotingEngine":
        return cls(
            FileLedgerStore(ledger_path or config.ledger_path),
            administrator=config.administrator,
            title=config.title,
            description=config.description,
            clock=clock,
            events=JsonlEventSink(events_path or config.events_path),
            policy=config.policy,
        )

    @property
    def store(self) -> LedgerStore:
        return self._store

    # -- plumbing -----------------------------------------------------

    def _session(self) -> VotingSession:
        session = self._store.get_session()
        if session is None:
            raise InfrastructureError("ledger has no voting session")
        return session

    def _mutate(
        self,
        operation: str,
        caller: str,
        apply: Callable[[VotingSession, int], T],
        announce: Callable[[T], tuple[str, dict[str, Any]]],
    ) -> T:
        """Run ``apply`` in one transaction, then publish its event.

        The event is published while the store lock is still held, so events
        reach the sink in commit order.
        """

        try:
            with self._store.snapshot():
                with self._store.transaction():
                    now = self._clock.now()
                    result = apply(self._session(), now)
                event_name, payload = announce(result)
                self._emit(event_name, now, payload)
        except VotingError as exc:
            LOGGER.debug("%s rejected for %s: %s (%s)", operation, caller, exc.kind, exc)
            raise
        return result

    def _emit(self, event_name: str, now: int, payload: dict[str, Any]) -> None:
        publish_safely(self._events, Event(name=event_name, t=now, payload=payload))

    # -- administration -----------------------------------------------

    def register_voter(self, caller: str, voter_id: str, weight: int) -> Voter:
        voter = self._mutate(
            "register",
            caller,
            lambda session, _now: registration.register_voter(
                self._store, session, caller, voter_id, weight, self.policy
            ),
            lambda voter: (VOTER_REGISTERED, {"voter": voter_id, "weight": voter.weight}),
        )
        LOGGER.info("Registered voter %s with weight %s", voter_id, weight)
        return voter

    def add_proposal(
        self,
        caller: str,
        name: str,
        description: str = "",
        image_reference: str = "",
    ) -> int:
        index = self._mutate(
            "add_proposal",
            caller,
            lambda session, _now: catalog.add_proposal(
                self._store, session, caller, name, description, image_reference, self.policy
            ),
            lambda index: (PROPOSAL_ADDED, {"index": index, "name": name}),
        )
        LOGGER.info("Added proposal #%s %r", index, name)
        return index

    def start(self, caller: str, duration_hours: int) -> VotingSession:
        session = self._mutate(
            "start",
            caller,
            lambda session, now: window.start_voting(self._store, session, caller, now, duration_hours),
            lambda session: (VOTING_STARTED, {"start": session.start_time, "end": session.end_time}),
        )
        LOGGER.info("Voting opened at %s until %s", session.start_time, session.end_time)
        return session

    def close(self, caller: str) -> VotingSession:
        session = self._mutate(
            "close",
            caller,
            lambda session, now: window.close_voting(self._store, session, caller, now),
            lambda session: (VOTING_CLOSED, {"total_votes": session.total_votes_cast}),
        )
        LOGGER.info("Voting closed with %s votes cast", session.total_votes_cast)
        return session

    # -- voting -------------------------------------------------------

    def cast_vote(self, caller: str, proposal_id: int) -> Voter:
        voter = self._mutate(
            "cast_vote",
            caller,
            lambda session, now: ballot.cast_vote(self._store, session, caller, proposal_id, now),
            lambda voter: (VOTE_CAST, {"voter": caller, "proposal": proposal_id, "weight": voter.weight}),
        )
        LOGGER.info("Voter %s cast %s for proposal #%s", caller, voter.weight, proposal_id)
        return voter

    # -- queries ------------------------------------------------------

    def session(self) -> VotingSession:
        return self._session()

    def status(self) -> Status:
        with self._store.snapshot():
            now = self._clock.now()
            return reporter.build_status(self._session(), self._store.proposal_count(), now)

    def all_proposals(self) -> List[Proposal]:
        return self._store.list_proposals()

    def voter_details(self, voter_id: str) -> Voter:
        return reporter.voter_details(self._store, voter_id)

    def winner(self) -> Winner:
        with self._store.snapshot():
            now = self._clock.now()
            return reporter.winning_proposal(
                self._session(), self._store.list_proposals(), now, self.policy
            )


def bootstrap(engine: VotingEngine, config: ElectionConfig) -> dict[str, int]:
    """Register the configured roster and catalog on behalf of the administrator."""

    admin = config.administrator
    for seed in config.voters:
        engine.register_voter(admin, seed.voter_id, seed.weight)
    for seed in config.proposals:
        engine.add_proposal(admin, seed.name, seed.description, seed.image_reference)
    return {"voters": len(config.voters), "proposals": len(config.proposals)}
