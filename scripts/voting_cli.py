"""Voting CLI: administer an election and cast ballots against a ledger file.

State lives in a JSON ledger (``.voting/ledger.json`` by default) and every
committed change is appended to a JSONL event log
(``.voting/events.jsonl``). Both paths come from ``--ledger``/``--events``,
then ``VOTING_LEDGER_PATH``/``VOTING_EVENTS_PATH``, then the election config.

Each command prints one JSON object. Rejected operations print
``{"ok": false, "error": <kind>, "message": ...}`` and exit with the kind's
status code.

Usage: ``python -m scripts.voting_cli --config election.yaml status``
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List

from voting.attest import (
    AttestationError,
    dsse_sign,
    dsse_verify,
    keygen_ed25519,
    result_statement,
    write_envelope,
)
from voting.clock import Clock
from voting.config import (
    ElectionConfig,
    EnginePolicy,
    load_config,
    log_level_from_env,
    resolve_paths,
)
from voting.engine import VotingEngine, bootstrap
from voting.errors import ConfigError, InfrastructureError, VotingError
from voting.events import JsonlEventSink
from voting.ledger import FileLedgerStore

LOGGER = logging.getLogger(__name__)

NOT_INITIALISED_EXIT = 4


class LedgerNotInitialised(FileNotFoundError):
    """Raised when a command needs a ledger that `init` has not created."""


def _emit(record: dict[str, Any]) -> None:
    print(json.dumps(record, ensure_ascii=False))


def _config(args: argparse.Namespace) -> ElectionConfig | None:
    if not args.config:
        return None
    return load_config(Path(args.config))


def _paths(args: argparse.Namespace, config: ElectionConfig | None) -> tuple[Path, Path]:
    ledger_path, events_path = resolve_paths(args.ledger, args.events)
    if config is not None:
        ledger_path = Path(args.ledger) if args.ledger else config.ledger_path
        events_path = Path(args.events) if args.events else config.events_path
    return ledger_path, events_path


def _open_engine(args: argparse.Namespace) -> VotingEngine:
    config = _config(args)
    ledger_path, events_path = _paths(args, config)
    if not ledger_path.exists():
        raise LedgerNotInitialised(f"ledger {ledger_path} not initialised; run 'init' first")
    return VotingEngine(
        FileLedgerStore(ledger_path),
        clock=args.clock,
        events=JsonlEventSink(events_path),
        policy=config.policy if config is not None else EnginePolicy(),
    )


def cmd_init(args: argparse.Namespace) -> int:
    config = load_config(Path(args.election))
    ledger_path = Path(args.ledger) if args.ledger else config.ledger_path
    events_path = Path(args.events) if args.events else config.events_path
    if ledger_path.exists():
        _emit({"ok": False, "error": "AlreadyInitialised", "message": f"ledger {ledger_path} exists"})
        return 1
    engine = VotingEngine.from_config(
        config,
        clock=args.clock,
        ledger_path=ledger_path,
        events_path=events_path,
    )
    counts = bootstrap(engine, config)
    _emit(
        {
            "ok": True,
            "event": "init",
            "title": config.title,
            "ledger": str(ledger_path),
            "events": str(events_path),
            **counts,
        }
    )
    return 0


def cmd_register(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    voter = engine.register_voter(args.caller, args.voter, args.weight)
    _emit({"ok": True, "event": "register", "voter": args.voter, "weight": voter.weight})
    return 0


def cmd_add_proposal(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    index = engine.add_proposal(args.caller, args.name, args.description, args.image)
    _emit({"ok": True, "event": "add-proposal", "index": index, "name": args.name})
    return 0


def cmd_start(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    session = engine.start(args.caller, args.hours)
    _emit({"ok": True, "event": "start", "start": session.start_time, "end": session.end_time})
    return 0


def cmd_close(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    session = engine.close(args.caller)
    _emit({"ok": True, "event": "close", "total_votes": session.total_votes_cast})
    return 0


def cmd_vote(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    voter = engine.cast_vote(args.caller, args.proposal)
    _emit(
        {
            "ok": True,
            "event": "vote",
            "voter": args.caller,
            "proposal": args.proposal,
            "weight": voter.weight,
        }
    )
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    _emit({"ok": True, "event": "status", **engine.status().to_dict()})
    return 0


def cmd_proposals(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    proposals = [
        {"index": index, **proposal.to_dict()}
        for index, proposal in enumerate(engine.all_proposals())
    ]
    _emit({"ok": True, "event": "proposals", "proposals": proposals})
    return 0


def cmd_voter(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    _emit({"ok": True, "event": "voter", "voter": args.voter_id, **engine.voter_details(args.voter_id).to_dict()})
    return 0


def cmd_winner(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    _emit({"ok": True, "event": "winner", **engine.winner().to_dict()})
    return 0


def cmd_keygen(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    priv = out_dir / "ed25519.key"
    pub = out_dir / "ed25519.pub"
    keygen_ed25519(priv, pub)
    _emit({"ok": True, "event": "keygen", "priv": str(priv), "pub": str(pub)})
    return 0


def cmd_attest(args: argparse.Namespace) -> int:
    engine = _open_engine(args)
    statement = result_statement(engine)
    envelope = dsse_sign(statement, Path(args.priv), key_id=args.keyid or "")
    out_path = write_envelope(envelope, Path(args.out))
    _emit(
        {
            "ok": True,
            "event": "attest",
            "dsse": str(out_path),
            "winner": statement["predicate"]["winner"],
        }
    )
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    envelope = json.loads(Path(args.dsse).read_text(encoding="utf-8"))
    statement = dsse_verify(envelope, Path(args.pub))
    _emit(
        {
            "ok": True,
            "event": "verify",
            "dsse": args.dsse,
            "winner": statement["predicate"]["winner"],
        }
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--config", default=os.getenv("VOTING_CONFIG"), help="Election YAML (policy and paths)")
    parser.add_argument("--ledger", default=None, help="Ledger JSON path")
    parser.add_argument("--events", default=None, help="Event log JSONL path")
    parser.add_argument("--log-level", default=None, help="Logging level (default VOTING_LOG_LEVEL or WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="create the ledger and seed voters/proposals from an election YAML")
    init.add_argument("election", help="Path to election YAML")
    init.set_defaults(func=cmd_init)

    register = sub.add_parser("register", help="register a voter with a weight")
    register.add_argument("--caller", required=True)
    register.add_argument("--voter", required=True)
    register.add_argument("--weight", type=int, default=1)
    register.set_defaults(func=cmd_register)

    add_proposal = sub.add_parser("add-proposal", help="append a proposal to the catalog")
    add_proposal.add_argument("--caller", required=True)
    add_proposal.add_argument("--name", required=True)
    add_proposal.add_argument("--description", default="")
    add_proposal.add_argument("--image", default="")
    add_proposal.set_defaults(func=cmd_add_proposal)

    start = sub.add_parser("start", help="open the voting window")
    start.add_argument("--caller", required=True)
    start.add_argument("--hours", type=int, required=True)
    start.set_defaults(func=cmd_start)

    close = sub.add_parser("close", help="close the voting window once it has elapsed")
    close.add_argument("--caller", required=True)
    close.set_defaults(func=cmd_close)

    vote = sub.add_parser("vote", help="cast a weighted vote")
    vote.add_argument("--caller", required=True)
    vote.add_argument("--proposal", type=int, required=True)
    vote.set_defaults(func=cmd_vote)

    status = sub.add_parser("status", help="show phase, time remaining and totals")
    status.set_defaults(func=cmd_status)

    proposals = sub.add_parser("proposals", help="list proposals with tallies")
    proposals.set_defaults(func=cmd_proposals)

    voter = sub.add_parser("voter", help="show a voter record")
    voter.add_argument("voter_id")
    voter.set_defaults(func=cmd_voter)

    winner = sub.add_parser("winner", help="report the winning proposal")
    winner.set_defaults(func=cmd_winner)

    keygen = sub.add_parser("keygen", help="generate an Ed25519 keypair for result attestations")
    keygen.add_argument("--out", default="keys", help="output directory for keypair")
    keygen.set_defaults(func=cmd_keygen)

    attest = sub.add_parser("attest", help="sign the result as a DSSE envelope")
    attest.add_argument("--priv", default="keys/ed25519.key")
    attest.add_argument("--out", default=".voting/result.dsse")
    attest.add_argument("--keyid", default="")
    attest.set_defaults(func=cmd_attest)

    verify = sub.add_parser("verify", help="verify a signed result envelope")
    verify.add_argument("dsse", help="Path to DSSE envelope")
    verify.add_argument("--pub", default="keys/ed25519.pub")
    verify.set_defaults(func=cmd_verify)
    return parser


def main(argv: List[str] | None = None, *, clock: Clock | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.clock = clock
    logging.basicConfig(
        level=(args.log_level or log_level_from_env()).upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args)
    except VotingError as exc:
        _emit({"ok": False, **exc.to_dict()})
        return exc.exit_code
    except (InfrastructureError, ConfigError) as exc:
        LOGGER.error("%s: %s", exc.kind, exc)
        _emit({"ok": False, "error": exc.kind, "message": str(exc)})
        return exc.exit_code
    except AttestationError as exc:
        _emit({"ok": False, "error": "AttestationError", "message": str(exc)})
        return 1
    except LedgerNotInitialised as exc:
        _emit({"ok": False, "error": "NotInitialised", "message": str(exc)})
        return NOT_INITIALISED_EXIT
    except (OSError, ValueError, TypeError) as exc:
        _emit({"ok": False, "error": type(exc).__name__, "message": str(exc)})
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
