"""Append-only proposal catalog (admin only)."""
from __future__ import annotations

from voting.access import require_admin
from voting.config import EnginePolicy
from voting.errors import AlreadyStarted
from voting.ledger import LedgerStore
from voting.models import Proposal, VotingSession


def add_proposal(
    store: LedgerStore,
    session: VotingSession,
    caller: str,
    name: str,
    description: str,
    image_reference: str,
    policy: EnginePolicy,
) -> int:
    require_admin(session, caller)
    if session.started and not policy.allow_late_proposals:
        raise AlreadyStarted("proposals cannot be added once voting has started")
    return store.append_proposal(
        Proposal(
            name=name,
            description=description,
            image_reference=image_reference,
            vote_count=0,
        )
    )
