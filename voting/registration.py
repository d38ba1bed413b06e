"""Voter registration (admin only)."""
from __future__ import annotations

from voting.access import require_admin
from voting.config import EnginePolicy
from voting.errors import AlreadyRegistered, InvalidWeight
from voting.ledger import LedgerStore
from voting.models import Voter, VotingSession


def validate_weight(weight: int, policy: EnginePolicy) -> int:
    if isinstance(weight, bool) or not isinstance(weight, int):
        raise InvalidWeight(f"weight must be an integer, got {weight!r}")
    if weight < 0:
        raise InvalidWeight(f"weight must not be negative, got {weight}")
    if weight == 0 and not policy.allow_zero_weight:
        raise InvalidWeight("zero-weight voters are not accepted")
    return weight


def register_voter(
    store: LedgerStore,
    session: VotingSession,
    caller: str,
    voter_id: str,
    weight: int,
    policy: EnginePolicy,
) -> Voter:
    """Create the voter record for ``voter_id``.

    Registration is allowed in every phase; identities are registered once.
    """

    require_admin(session, caller)
    validate_weight(weight, policy)
    existing = store.get_voter(voter_id)
    if existing is not None and existing.is_registered:
        raise AlreadyRegistered(f"voter {voter_id!r} is already registered")
    voter = Voter(is_registered=True, has_voted=False, voted_proposal_id=None, weight=weight)
    store.put_voter(voter_id, voter)
    return voter
