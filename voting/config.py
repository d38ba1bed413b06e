"""Election configuration loaded from YAML.

Example::

    administrator: "admin-01"
    title: "Board seat 2026"
    ledger: {path: ".voting/ledger.json"}
    events: {path: ".voting/events.jsonl"}
    policy: {allow_late_proposals: false}
    voters:
      - {id: "alice", weight: 1}
    proposals:
      - {name: "Alice", description: "Incumbent", image: "img/alice.png"}

``VOTING_LEDGER_PATH`` and ``VOTING_EVENTS_PATH`` override the file paths.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml
from jsonschema import Draft202012Validator

from voting.errors import ConfigError

DEFAULT_LEDGER_PATH = Path(".voting/ledger.json")
DEFAULT_EVENTS_PATH = Path(".voting/events.jsonl")

SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["administrator", "title"],
    "properties": {
        "administrator": {"type": "string", "minLength": 1},
        "title": {"type": "string"},
        "description": {"type": "string"},
        "ledger": {
            "type": "object",
            "properties": {"path": {"type": "string", "minLength": 1}},
        },
        "events": {
            "type": "object",
            "properties": {"path": {"type": "string", "minLength": 1}},
        },
        "policy": {
            "type": "object",
            "properties": {
                "allow_late_proposals": {"type": "boolean"},
                "allow_zero_weight": {"type": "boolean"},
                "require_close_for_winner": {"type": "boolean"},
            },
            "additionalProperties": False,
        },
        "voters": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "weight": {"type": "integer", "minimum": 0},
                },
            },
        },
        "proposals": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "description": {"type": "string"},
                    "image": {"type": "string"},
                },
            },
        },
    },
}


@dataclass(slots=True)
class EnginePolicy:
    """Switches for behaviour left open by the base design.

    Defaults keep the permissive behaviour: proposals may be added in any
    phase, zero-weight voters are accepted and the winner is readable once
    the window has elapsed.
    """

    allow_late_proposals: bool = True
    allow_zero_weight: bool = True
    require_close_for_winner: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, object] | None) -> "EnginePolicy":
        if not data:
            return cls()
        return cls(
            allow_late_proposals=bool(data.get("allow_late_proposals", True)),
            allow_zero_weight=bool(data.get("allow_zero_weight", True)),
            require_close_for_winner=bool(data.get("require_close_for_winner", False)),
        )


@dataclass(slots=True)
class VoterSeed:
    voter_id: str
    weight: int = 1


@dataclass(slots=True)
class ProposalSeed:
    name: str
    description: str = ""
    image_reference: str = ""


@dataclass(slots=True)
class ElectionConfig:
    administrator: str
    title: str
    description: str = ""
    ledger_path: Path = DEFAULT_LEDGER_PATH
    events_path: Path = DEFAULT_EVENTS_PATH
    policy: EnginePolicy = field(default_factory=EnginePolicy)
    voters: List[VoterSeed] = field(default_factory=list)
    proposals: List[ProposalSeed] = field(default_factory=list)

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        env: Mapping[str, str] | None = None,
    ) -> "ElectionConfig":
        errors = validate_config(data)
        if errors:
            raise ConfigError("invalid election config: " + ", ".join(errors))
        env = os.environ if env is None else env

        ledger_raw = (data.get("ledger") or {}).get("path")
        events_raw = (data.get("events") or {}).get("path")
        ledger_path = Path(env.get("VOTING_LEDGER_PATH") or ledger_raw or DEFAULT_LEDGER_PATH)
        events_path = Path(env.get("VOTING_EVENTS_PATH") or events_raw or DEFAULT_EVENTS_PATH)

        voters = [
            VoterSeed(voter_id=str(item["id"]), weight=int(item.get("weight", 1)))
            for item in data.get("voters") or []
        ]
        proposals = [
            ProposalSeed(
                name=str(item["name"]),
                description=str(item.get("description", "")),
                image_reference=str(item.get("image", "")),
            )
            for item in data.get("proposals") or []
        ]
        seen: set[str] = set()
        duplicates: set[str] = set()
        for seed in voters:
            if seed.voter_id in seen:
                duplicates.add(seed.voter_id)
            seen.add(seed.voter_id)
        if duplicates:
            raise ConfigError(f"duplicate voter ids: {', '.join(sorted(duplicates))}")

        return cls(
            administrator=str(data["administrator"]),
            title=str(data["title"]),
            description=str(data.get("description", "")),
            ledger_path=ledger_path,
            events_path=events_path,
            policy=EnginePolicy.from_mapping(data.get("policy")),
            voters=voters,
            proposals=proposals,
        )


def validate_config(data: object) -> List[str]:
    validator = Draft202012Validator(SCHEMA)
    return [
        f"{error.message} @ {'/'.join(map(str, error.path))}"
        for error in validator.iter_errors(data)
    ]


def load_config(path: Path | str, *, env: Mapping[str, str] | None = None) -> ElectionConfig:
    config_path = Path(path)
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise ConfigError(f"unable to read config {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"config {config_path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("election config must be a mapping")
    return ElectionConfig.from_mapping(data, env=env)


def resolve_paths(
    ledger: str | Path | None,
    events: str | Path | None,
    *,
    env: Mapping[str, str] | None = None,
) -> tuple[Path, Path]:
    """Pick ledger/event paths: explicit argument, then environment, then defaults."""

    env = os.environ if env is None else env
    ledger_path = Path(ledger or env.get("VOTING_LEDGER_PATH") or DEFAULT_LEDGER_PATH)
    events_path = Path(events or env.get("VOTING_EVENTS_PATH") or DEFAULT_EVENTS_PATH)
    return ledger_path, events_path


def log_level_from_env(default: str = "WARNING", *, env: Mapping[str, str] | None = None) -> str:
    env = os.environ if env is None else env
    return str(env.get("VOTING_LOG_LEVEL") or default).upper()
