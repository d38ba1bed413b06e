"""Administrator checks for admin-only operations."""
from __future__ import annotations

from voting.errors import Unauthorized
from voting.models import VotingSession


def is_admin(session: VotingSession, caller: str) -> bool:
    return caller == session.administrator


def require_admin(session: VotingSession, caller: str) -> None:
    if not is_admin(session, caller):
        raise Unauthorized(f"{caller!r} is not the administrator")
