"""Ballot processing: eligibility checks and weighted tally updates.

All checks run before the first write. The caller wraps :func:`cast_vote` in a
store transaction so the voter flag, the proposal tally and the session total
are committed together or not at all.
"""
from __future__ import annotations

from voting.errors import AlreadyVoted, InvalidProposal, VoterNotRegistered
from voting.ledger import LedgerStore
from voting.models import Voter, VotingSession
from voting.phase import require_open


def check_proposal_id(proposal_id: object, proposal_count: int) -> int:
    if isinstance(proposal_id, bool) or not isinstance(proposal_id, int):
        raise InvalidProposal(f"proposal id must be an integer, got {proposal_id!r}")
    if proposal_id < 0 or proposal_id >= proposal_count:
        raise InvalidProposal(f"proposal {proposal_id} does not exist ({proposal_count} proposals)")
    return proposal_id


def cast_vote(
    store: LedgerStore,
    session: VotingSession,
    caller: str,
    proposal_id: int,
    now: int,
) -> Voter:
    voter = store.get_voter(caller)
    # unregistered callers are rejected the same way in every phase
    if voter is None or not voter.is_registered:
        raise VoterNotRegistered(f"{caller!r} is not a registered voter")
    require_open(session, now)
    if voter.has_voted:
        raise AlreadyVoted(f"{caller!r} already voted for proposal {voter.voted_proposal_id}")
    check_proposal_id(proposal_id, store.proposal_count())

    proposal = store.get_proposal(proposal_id)
    proposal.vote_count += voter.weight
    voter.has_voted = True
    voter.voted_proposal_id = proposal_id
    session.total_votes_cast += voter.weight

    store.put_voter(caller, voter)
    store.put_proposal(proposal_id, proposal)
    store.put_session(session)
    return voter
