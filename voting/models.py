"""Records held by the ledger store and values returned by the reporter."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping


def _int_or_none(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)  # type: ignore[arg-type]


@dataclass(slots=True)
class Voter:
    """Eligibility record for one principal.

    ``voted_proposal_id`` stays ``None`` until the voter casts a ballot.
    """

    is_registered: bool = False
    has_voted: bool = False
    voted_proposal_id: int | None = None
    weight: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "Voter":
        return cls(
            is_registered=bool(data.get("is_registered", False)),
            has_voted=bool(data.get("has_voted", False)),
            voted_proposal_id=_int_or_none(data.get("voted_proposal_id")),
            weight=int(data.get("weight", 0) or 0),  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class Proposal:
    name: str
    description: str = ""
    image_reference: str = ""
    vote_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "Proposal":
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description", "") or ""),
            image_reference=str(data.get("image_reference", "") or ""),
            vote_count=int(data.get("vote_count", 0) or 0),  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class VotingSession:
    """Singleton state of one voting event.

    ``start_time`` is written once by ``start``; ``end_time`` is always
    ``start_time + duration`` once set.
    """

    administrator: str
    title: str = ""
    description: str = ""
    start_time: int | None = None
    end_time: int | None = None
    closed: bool = False
    total_votes_cast: int = 0

    @property
    def started(self) -> bool:
        return self.start_time is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "VotingSession":
        return cls(
            administrator=str(data["administrator"]),
            title=str(data.get("title", "") or ""),
            description=str(data.get("description", "") or ""),
            start_time=_int_or_none(data.get("start_time")),
            end_time=_int_or_none(data.get("end_time")),
            closed=bool(data.get("closed", False)),
            total_votes_cast=int(data.get("total_votes_cast", 0) or 0),  # type: ignore[arg-type]
        )


@dataclass(frozen=True, slots=True)
class Status:
    is_active: bool
    time_remaining: int
    total_proposals: int
    total_votes_cast: int
    phase: str
    closed: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Winner:
    proposal_id: int
    name: str
    vote_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
