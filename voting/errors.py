"""Error kinds raised by the voting engine.

Every :class:`VotingError` is a caller precondition violation: the engine
never retries and leaves state untouched when one is raised. Store failures
are reported separately as :class:`InfrastructureError`.
"""
from __future__ import annotations


class VotingError(RuntimeError):
    """Base class for rejected voting operations."""

    kind = "VotingError"
    exit_code = 1

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "message": str(self)}


class Unauthorized(VotingError):
    kind = "Unauthorized"
    exit_code = 10


class AlreadyRegistered(VotingError):
    kind = "AlreadyRegistered"
    exit_code = 11


class AlreadyStarted(VotingError):
    kind = "AlreadyStarted"
    exit_code = 12


class AlreadyClosed(VotingError):
    kind = "AlreadyClosed"
    exit_code = 13


class VotingNotActive(VotingError):
    kind = "VotingNotActive"
    exit_code = 14


class VotingNotEnded(VotingError):
    kind = "VotingNotEnded"
    exit_code = 15


class VoterNotRegistered(VotingError):
    kind = "VoterNotRegistered"
    exit_code = 16


class AlreadyVoted(VotingError):
    kind = "AlreadyVoted"
    exit_code = 17


class InvalidProposal(VotingError):
    kind = "InvalidProposal"
    exit_code = 18


class InvalidWeight(VotingError):
    kind = "InvalidWeight"
    exit_code = 19


class InvalidDuration(VotingError):
    kind = "InvalidDuration"
    exit_code = 20


class InfrastructureError(RuntimeError):
    """Raised when a collaborator (ledger store) fails underneath an operation."""

    kind = "InfrastructureError"
    exit_code = 2


class ConfigError(ValueError):
    """Raised when an election configuration document is invalid."""

    kind = "ConfigError"
    exit_code = 3


ERROR_KINDS: dict[str, type[VotingError]] = {
    cls.kind: cls
    for cls in (
        Unauthorized,
        AlreadyRegistered,
        AlreadyStarted,
        AlreadyClosed,
        VotingNotActive,
        VotingNotEnded,
        VoterNotRegistered,
        AlreadyVoted,
        InvalidProposal,
        InvalidWeight,
        InvalidDuration,
    )
}
