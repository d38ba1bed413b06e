"""Read-only views over the ledger: status, proposals, voters and the winner."""
from __future__ import annotations

from typing import List, Sequence

from voting.config import EnginePolicy
from voting.errors import InvalidProposal, VotingNotEnded
from voting.ledger import LedgerStore
from voting.models import Proposal, Status, Voter, VotingSession, Winner
from voting.phase import Phase, current_phase, require_elapsed, time_remaining


def build_status(session: VotingSession, proposal_count: int, now: int) -> Status:
    phase = current_phase(session, now)
    return Status(
        is_active=phase is Phase.OPEN,
        time_remaining=time_remaining(session, now),
        total_proposals=proposal_count,
        total_votes_cast=session.total_votes_cast,
        phase=phase.value,
        closed=session.closed,
    )


def voter_details(store: LedgerStore, voter_id: str) -> Voter:
    """Return the stored record, or an unregistered default for unknown ids."""

    voter = store.get_voter(voter_id)
    return voter if voter is not None else Voter()


def leading_index(proposals: Sequence[Proposal]) -> int:
    """Index of the first proposal holding the highest tally.

    Only a strictly greater count replaces the leader, so ties stay with the
    lower index and an all-zero catalog yields index 0.
    """

    leader = 0
    best = 0
    for index, proposal in enumerate(proposals):
        if proposal.vote_count > best:
            best = proposal.vote_count
            leader = index
    return leader


def winning_proposal(
    session: VotingSession,
    proposals: List[Proposal],
    now: int,
    policy: EnginePolicy,
) -> Winner:
    require_elapsed(session, now)
    if policy.require_close_for_winner and not session.closed:
        raise VotingNotEnded("voting must be closed before the winner is published")
    if not proposals:
        raise InvalidProposal("no proposals were added")
    index = leading_index(proposals)
    proposal = proposals[index]
    return Winner(proposal_id=index, name=proposal.name, vote_count=proposal.vote_count)
