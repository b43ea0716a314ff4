"""Signed claims: JWTs whose issuer is an nkey and whose signature is Ed25519.

Wire form is ``header.payload.signature``, each part base64url without
padding. The signature covers ``header.payload`` and must verify against the
public key named in ``iss``; nothing in a claim is trusted before that check.
"""
from __future__ import annotations

import binascii
import dataclasses
import json
import logging
import secrets
from typing import Any, Dict, List, Optional, Tuple, Union

from ngschat.config import AUDIENCE, CLOCK_SKEW_S
from ngschat.crypto import KeyPair, b64url_decode, b64url_encode, sha256_hex
from ngschat.models import now_ts

log = logging.getLogger(__name__)

ALGORITHM = "ed25519-nkey"
ACCEPTED_ALGORITHMS = {ALGORITHM, "ed25519"}
HEADER = {"typ": "JWT", "alg": ALGORITHM}


class ClaimError(ValueError):
    pass


@dataclasses.dataclass(frozen=True)
class Claims:
    subject: str
    issuer: str = ""
    claim_type: str = ""
    name: str = ""
    id: str = ""
    issued_at: int = 0
    expires: int = 0
    not_before: int = 0
    audience: str = ""
    tags: Tuple[str, ...] = ()
    data: Dict[str, Any] = dataclasses.field(default_factory=dict)
    nats: Dict[str, Any] = dataclasses.field(default_factory=dict)

    def has_tag(self, tag: str) -> bool:
        return tag.lower() in self.tags

    @property
    def text(self) -> str:
        return str(self.data.get("msg", ""))

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "jti": self.id,
            "iat": self.issued_at,
            "iss": self.issuer,
            "sub": self.subject,
        }
        optional = {
            "name": self.name,
            "exp": self.expires,
            "nbf": self.not_before,
            "aud": self.audience,
            "type": self.claim_type,
            "tags": list(self.tags),
            "data": self.data,
            "nats": self.nats,
        }
        payload.update({k: v for k, v in optional.items() if v})
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Claims:
        tags = payload.get("tags") or []
        data = payload.get("data") or {}
        nats = payload.get("nats") or {}
        if not isinstance(tags, list) or not isinstance(data, dict) or not isinstance(nats, dict):
            raise ClaimError("malformed claim payload")
        try:
            return cls(
                subject=str(payload.get("sub", "")),
                issuer=str(payload.get("iss", "")),
                claim_type=str(payload.get("type", "") or nats.get("type", "")),
                name=str(payload.get("name", "")),
                id=str(payload.get("jti", "")),
                issued_at=int(payload.get("iat", 0) or 0),
                expires=int(payload.get("exp", 0) or 0),
                not_before=int(payload.get("nbf", 0) or 0),
                audience=str(payload.get("aud", "")),
                tags=tuple(str(t).strip().lower() for t in tags),
                data=data,
                nats=nats,
            )
        except (TypeError, ValueError, OverflowError, RecursionError) as e:
            raise ClaimError(f"malformed claim payload: {e}") from e


def new_claim_id(issuer: str) -> str:
    return sha256_hex(f"{issuer}|{now_ts()}|{secrets.token_hex(8)}".encode("utf-8"))[:32]


def _json_part(obj: Dict[str, Any]) -> str:
    return b64url_encode(json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8"))


def encode(claims: Claims, key_pair: KeyPair) -> str:
    """Sign *claims* with *key_pair*. The issuer is always the signer."""
    claims = dataclasses.replace(
        claims,
        issuer=key_pair.public_key,
        issued_at=claims.issued_at or now_ts(),
    )
    signing_input = f"{_json_part(HEADER)}.{_json_part(claims.to_payload())}"
    sig = key_pair.sign(signing_input.encode("ascii"))
    return f"{signing_input}.{b64url_encode(sig)}"


def decode(token: Union[str, bytes]) -> Claims:
    """Parse *token* and verify its signature against the embedded issuer."""
    if isinstance(token, (bytes, bytearray)):
        try:
            token = bytes(token).decode("ascii")
        except UnicodeDecodeError as e:
            raise ClaimError("claim is not ascii") from e
    parts = token.strip().split(".")
    if len(parts) != 3:
        raise ClaimError("expected 3 chunks")
    try:
        header = json.loads(b64url_decode(parts[0]))
        payload = json.loads(b64url_decode(parts[1]))
        sig = b64url_decode(parts[2])
    except (binascii.Error, ValueError, RecursionError) as e:
        raise ClaimError(f"malformed claim: {e}") from e
    if not isinstance(header, dict) or not isinstance(payload, dict):
        raise ClaimError("malformed claim")
    if str(header.get("typ", "")).upper() != "JWT":
        raise ClaimError(f"not supported type {header.get('typ')!r}")
    alg = header.get("alg")
    if not isinstance(alg, str) or alg not in ACCEPTED_ALGORITHMS:
        raise ClaimError(f"unexpected algorithm {alg!r}")

    claims = Claims.from_payload(payload)
    if not claims.issuer:
        raise ClaimError("claim has no issuer")
    try:
        issuer = KeyPair.from_public_key(claims.issuer)
    except ValueError as e:
        raise ClaimError(f"issuer is not a public key: {e}") from e
    if not issuer.verify(f"{parts[0]}.{parts[1]}".encode("ascii"), sig):
        raise ClaimError("claim failed signature verification")
    return claims


# ── Validation ────────────────────────────────────────────────────────────────

@dataclasses.dataclass
class ValidationIssue:
    description: str
    blocking: bool
    time_check: bool = False


class ValidationResults:
    def __init__(self) -> None:
        self.issues: List[ValidationIssue] = []

    def add(self, description: str, blocking: bool = False, time_check: bool = False) -> None:
        self.issues.append(ValidationIssue(description, blocking, time_check))

    def is_blocking(self, include_time_checks: bool = True) -> bool:
        return any(
            i.blocking and (include_time_checks or not i.time_check) for i in self.issues
        )

    def __repr__(self) -> str:
        return "; ".join(
            f"{i.description}{' (blocking)' if i.blocking else ''}" for i in self.issues
        ) or "ok"


def validate(claims: Claims, now: Optional[int] = None) -> ValidationResults:
    now = now_ts() if now is None else now
    vr = ValidationResults()
    if not claims.issuer:
        vr.add("claim has no issuer", blocking=True)
    if not claims.subject:
        vr.add("claim has no subject", blocking=True)
    if claims.expires and claims.expires < now:
        vr.add("claim is expired", blocking=True, time_check=True)
    if claims.not_before and claims.not_before > now:
        vr.add("claim is not yet valid", blocking=True, time_check=True)
    if claims.issued_at > now + CLOCK_SKEW_S:
        vr.add("claim was issued in the future")
    if claims.audience and claims.audience != AUDIENCE:
        vr.add(f"unexpected audience {claims.audience!r}")
    return vr


def check_claim(
    data: Union[str, bytes], claim_type: str, now: Optional[int] = None
) -> Optional[Claims]:
    """Decode and validate an untrusted claim. Returns None when it must be dropped."""
    try:
        claims = decode(data)
    except ClaimError as e:
        log.warning("-ERR Received a bad claim: %s", e)
        return None
    vr = validate(claims, now)
    if vr.is_blocking(True):
        log.warning("-ERR Blocking issues for %s: %r", claim_type, vr)
        return None
    if claims.claim_type != claim_type:
        log.warning("-ERR Unexpected claim type %r, wanted %r", claims.claim_type, claim_type)
        return None
    return claims
