"""Signed result statements (in-toto Statement wrapped in a DSSE envelope).

Once the winner is queryable the tallies can be published as a statement
signed with the administrator's Ed25519 key, so observers can check that a
result document was not altered after the fact.
"""
from __future__ import annotations

import base64
import hashlib
import json
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, cast

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from jsonschema import Draft202012Validator

from voting.engine import VotingEngine

PAYLOAD_TYPE = "application/vnd.in-toto+json"
STATEMENT_TYPE = "https://in-toto.io/Statement/v1"
PREDICATE_TYPE = "https://voting.example/schemas/result@v1"

STATEMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["_type", "subject", "predicateType", "predicate"],
    "properties": {
        "_type": {
            "type": "string",
            "pattern": r"^https://in-toto\.io/Statement/v(0\.1|1)$",
        },
        "subject": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["name", "digest"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "digest": {
                        "type": "object",
                        "required": ["sha256"],
                        "properties": {"sha256": {"type": "string", "pattern": r"^[0-9a-f]{64}$"}},
                    },
                },
            },
        },
        "predicateType": {"type": "string", "pattern": r"^https://.+"},
        "predicate": {
            "type": "object",
            "required": ["title", "total_votes_cast", "proposals", "winner"],
        },
    },
    "additionalProperties": True,
}


class AttestationError(RuntimeError):
    """Raised when a result envelope is malformed or fails verification."""


def canonical_json(data: Any) -> bytes:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, sort_keys=True).encode()


def pae(payload_type: str, payload: bytes) -> bytes:
    return b" ".join(
        [
            b"DSSEv1",
            str(len(payload_type)).encode(),
            payload_type.encode(),
            str(len(payload)).encode(),
            payload,
        ]
    )


def keygen_ed25519(priv_path: Path, pub_path: Path) -> None:
    private_key = Ed25519PrivateKey.generate()
    priv_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    pub_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    priv_path.parent.mkdir(parents=True, exist_ok=True)
    pub_path.parent.mkdir(parents=True, exist_ok=True)
    priv_path.write_bytes(priv_bytes)
    pub_path.write_bytes(pub_bytes)


def load_priv(path: Path) -> Ed25519PrivateKey:
    key = serialization.load_pem_private_key(path.read_bytes(), password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise TypeError("Expected Ed25519 private key")
    return cast(Ed25519PrivateKey, key)


def load_pub(path: Path) -> Ed25519PublicKey:
    key = serialization.load_pem_public_key(path.read_bytes())
    if not isinstance(key, Ed25519PublicKey):
        raise TypeError("Expected Ed25519 public key")
    return cast(Ed25519PublicKey, key)


def key_fingerprint(public_key: Ed25519PublicKey) -> str:
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashes.Hash(hashes.SHA256())
    digest.update(raw)
    return digest.finalize().hex()[:16]


def result_statement(engine: VotingEngine) -> Dict[str, Any]:
    """Build the result statement; raises the same errors as ``winner()``."""

    # one snapshot so the winner, totals and catalog describe the same state
    with engine.store.snapshot():
        winner = engine.winner()
        session = engine.session()
        listed = engine.all_proposals()
    proposals = [
        {"index": index, "name": item.name, "vote_count": item.vote_count}
        for index, item in enumerate(listed)
    ]
    tallies = {
        "total_votes_cast": session.total_votes_cast,
        "proposals": proposals,
    }
    return {
        "_type": STATEMENT_TYPE,
        "subject": [
            {
                "name": f"tally:{session.title or 'untitled'}",
                "digest": {"sha256": hashlib.sha256(canonical_json(tallies)).hexdigest()},
            }
        ],
        "predicateType": PREDICATE_TYPE,
        "predicate": {
            "title": session.title,
            "administrator": session.administrator,
            "start_time": session.start_time,
            "end_time": session.end_time,
            "closed": session.closed,
            "total_votes_cast": session.total_votes_cast,
            "proposals": proposals,
            "winner": winner.to_dict(),
        },
    }


def validate_statement(statement: Dict[str, Any]) -> List[str]:
    validator = Draft202012Validator(STATEMENT_SCHEMA)
    return [
        f"{error.message} @ {'/'.join(map(str, error.path))}"
        for error in validator.iter_errors(statement)
    ]


def check_tally_digest(statement: Dict[str, Any]) -> List[str]:
    predicate = statement.get("predicate", {})
    tallies = {
        "total_votes_cast": predicate.get("total_votes_cast"),
        "proposals": predicate.get("proposals"),
    }
    expected = hashlib.sha256(canonical_json(tallies)).hexdigest()
    errors: List[str] = []
    for subject in statement.get("subject", []):
        actual = subject.get("digest", {}).get("sha256", "")
        if actual.lower() != expected:
            errors.append(f"subject digest mismatch for {subject.get('name')}")
    summed = sum(int(item.get("vote_count", 0)) for item in predicate.get("proposals") or [])
    if summed != predicate.get("total_votes_cast"):
        errors.append("proposal tallies do not add up to total_votes_cast")
    return errors


def dsse_sign(statement: Dict[str, Any], priv_pem: Path, key_id: str = "") -> Dict[str, Any]:
    errors = validate_statement(statement)
    if errors:
        raise AttestationError("invalid statement: " + ", ".join(errors))
    payload = canonical_json(statement)
    private_key = load_priv(priv_pem)
    if not key_id:
        key_id = key_fingerprint(private_key.public_key())
    signature = private_key.sign(pae(PAYLOAD_TYPE, payload))
    return {
        "payloadType": PAYLOAD_TYPE,
        "payload": base64.b64encode(payload).decode(),
        "signatures": [
            {
                "keyid": key_id,
                "sig": base64.b64encode(signature).decode(),
            }
        ],
    }


def dsse_verify(envelope: Dict[str, Any], pub_pem: Path) -> Dict[str, Any]:
    """Verify the envelope and return the embedded statement."""

    payload_type = envelope.get("payloadType")
    if payload_type != PAYLOAD_TYPE:
        raise AttestationError(f"unsupported payloadType: {payload_type}")
    try:
        payload = base64.b64decode(envelope["payload"])
        signature = base64.b64decode(envelope["signatures"][0]["sig"])
    except (KeyError, IndexError, ValueError) as exc:
        raise AttestationError(f"malformed envelope: {exc}") from exc
    try:
        load_pub(pub_pem).verify(signature, pae(payload_type, payload))
    except InvalidSignature as exc:
        raise AttestationError("signature verification failed") from exc
    statement = json.loads(payload.decode())
    errors = validate_statement(statement) + check_tally_digest(statement)
    if errors:
        raise AttestationError("invalid statement: " + ", ".join(errors))
    return statement


def write_envelope(envelope: Dict[str, Any], out_path: Path) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = out_path.with_name(f"{out_path.name}.{os.getpid()}.{uuid.uuid4().hex}.tmp")
    tmp_path.write_text(json.dumps(envelope, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp_path.replace(out_path)
    return out_path
