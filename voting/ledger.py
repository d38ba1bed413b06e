"""Ledger stores holding voter, proposal and session records.

Records handed out by a store are copies. Changes only land through the
``put_*``/``append_*`` calls, and a group of those calls made inside
:meth:`MemoryLedgerStore.transaction` either commits as a whole or not at all.
"""
from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterator, List, Protocol

from voting.errors import InfrastructureError
from voting.models import Proposal, Voter, VotingSession

LOGGER = logging.getLogger(__name__)

LEDGER_FORMAT = 1


class LedgerStore(Protocol):
    """Operations the engine needs from a durable store."""

    def get_voter(self, voter_id: str) -> Voter | None: ...

    def put_voter(self, voter_id: str, voter: Voter) -> None: ...

    def append_proposal(self, proposal: Proposal) -> int: ...

    def get_proposal(self, index: int) -> Proposal: ...

    def put_proposal(self, index: int, proposal: Proposal) -> None: ...

    def list_proposals(self) -> List[Proposal]: ...

    def proposal_count(self) -> int: ...

    def get_session(self) -> VotingSession | None: ...

    def put_session(self, session: VotingSession) -> None: ...

    def transaction(self) -> Any: ...

    def snapshot(self) -> Any: ...


class MemoryLedgerStore:
    """Process-local store guarded by a reentrant lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._in_transaction = False
        self._session: VotingSession | None = None
        self._voters: dict[str, Voter] = {}
        self._proposals: list[Proposal] = []

    # -- transactions -------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["MemoryLedgerStore"]:
        """Serialise a read-modify-write sequence and apply it atomically.

        Nested calls join the outer transaction. Any exception restores the
        state captured on entry before propagating.
        """

        with self._lock:
            if self._in_transaction:
                yield self
                return
            backup = self._capture()
            self._in_transaction = True
            try:
                yield self
                self._persist()
            except BaseException:
                self._restore(backup)
                raise
            finally:
                self._in_transaction = False

    @contextmanager
    def snapshot(self) -> Iterator["MemoryLedgerStore"]:
        """Hold the store still for a group of reads."""

        with self._lock:
            yield self

    def _capture(self) -> tuple[VotingSession | None, dict[str, Voter], list[Proposal]]:
        session = replace(self._session) if self._session is not None else None
        voters = {key: replace(value) for key, value in self._voters.items()}
        proposals = [replace(item) for item in self._proposals]
        return session, voters, proposals

    def _restore(
        self, backup: tuple[VotingSession | None, dict[str, Voter], list[Proposal]]
    ) -> None:
        self._session, self._voters, self._proposals = backup

    def _persist(self) -> None:
        """Make the current state durable. Memory stores have nothing to do."""

    # -- voters -------------------------------------------------------

    def get_voter(self, voter_id: str) -> Voter | None:
        with self._lock:
            voter = self._voters.get(voter_id)
            return replace(voter) if voter is not None else None

    def put_voter(self, voter_id: str, voter: Voter) -> None:
        with self.transaction():
            self._voters[voter_id] = replace(voter)

    def voter_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._voters)

    # -- proposals ----------------------------------------------------

    def append_proposal(self, proposal: Proposal) -> int:
        with self.transaction():
            self._proposals.append(replace(proposal))
            return len(self._proposals) - 1

    def get_proposal(self, index: int) -> Proposal:
        with self._lock:
            if index < 0 or index >= len(self._proposals):
                raise IndexError(f"proposal index out of range: {index}")
            return replace(self._proposals[index])

    def put_proposal(self, index: int, proposal: Proposal) -> None:
        with self.transaction():
            if index < 0 or index >= len(self._proposals):
                raise IndexError(f"proposal index out of range: {index}")
            self._proposals[index] = replace(proposal)

    def list_proposals(self) -> List[Proposal]:
        with self._lock:
            return [replace(item) for item in self._proposals]

    def proposal_count(self) -> int:
        with self._lock:
            return len(self._proposals)

    # -- session ------------------------------------------------------

    def get_session(self) -> VotingSession | None:
        with self._lock:
            return replace(self._session) if self._session is not None else None

    def put_session(self, session: VotingSession) -> None:
        with self.transaction():
            self._session = replace(session)

    # -- serialisation ------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "format": LEDGER_FORMAT,
                "session": self._session.to_dict() if self._session is not None else None,
                "voters": {key: value.to_dict() for key, value in sorted(self._voters.items())},
                "proposals": [item.to_dict() for item in self._proposals],
            }

    def _load_dict(self, data: dict[str, Any]) -> None:
        session_raw = data.get("session")
        self._session = VotingSession.from_mapping(session_raw) if session_raw else None
        self._voters = {
            str(key): Voter.from_mapping(value)
            for key, value in (data.get("voters") or {}).items()
        }
        self._proposals = [Proposal.from_mapping(item) for item in data.get("proposals") or []]


class FileLedgerStore(MemoryLedgerStore):
    """JSON document on disk, rewritten atomically on every commit."""

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise InfrastructureError(f"unable to read ledger {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            LOGGER.warning("Ledger file %s is corrupted", self.path)
            raise InfrastructureError(f"ledger {self.path} is corrupted: {exc}") from exc
        if not isinstance(data, dict):
            raise InfrastructureError(f"ledger {self.path} is not a mapping")
        try:
            self._load_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise InfrastructureError(f"ledger {self.path} has invalid records: {exc}") from exc

    def _persist(self) -> None:
        payload = json.dumps(self.to_dict(), ensure_ascii=False, indent=2)
        tmp_path = self.path.with_name(f"{self.path.name}.{os.getpid()}.{uuid.uuid4().hex}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise InfrastructureError(f"unable to write ledger {self.path}: {exc}") from exc
