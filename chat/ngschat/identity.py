from __future__ import annotations

import re
from pathlib import Path
from typing import Union

from ngschat.claims import ClaimError, Claims, decode, validate
from ngschat.crypto import KeyPair
from ngschat.keys import PREFIX_BYTE_USER, InvalidKeyError, wipe
from ngschat.models import Identity

# A block is the text between two "---- ... ----" delimiter lines.
_DECORATED_RE = re.compile(
    rb"\s*(?:(?:-{3,}[^\n]*-{3,}\n)(.+)(?:\n\s*-{3,}[^\n]*-{3,}(?:\n|$)))"
)

_CREDS_TEMPLATE = """-----BEGIN NATS USER JWT-----
{jwt}
------END NATS USER JWT------

************************* IMPORTANT *************************
NKEY Seed printed below can be used to sign and prove identity.
NKEYs are sensitive and should be treated as secrets.

-----BEGIN USER NKEY SEED-----
{seed}
------END USER NKEY SEED------

*************************************************************
"""


class CredentialsError(Exception):
    pass


def decode_user_claims(token: Union[str, bytes]) -> Claims:
    claims = decode(token)
    if claims.claim_type != "user":
        raise ClaimError(f"not a user claim: {claims.claim_type!r}")
    vr = validate(claims)
    if vr.is_blocking(True):
        raise ClaimError(f"blocking issues for user claim: {vr!r}")
    return claims


def load_user(creds: Union[str, Path]) -> Identity:
    """Load a user JWT + seed bundle. Raises CredentialsError on any problem."""
    try:
        contents = bytearray(Path(creds).read_bytes())
    except OSError as e:
        raise CredentialsError(f"Could not load user credentials: {e}") from e

    items = list(_DECORATED_RE.finditer(contents))
    if len(items) != 2:
        raise CredentialsError("Expected user JWT and seed!")
    user_jwt = bytes(items[0].group(1)).strip()
    seed_start, seed_end = items[1].span(1)

    seed = contents[seed_start:seed_end]
    try:
        key_pair = KeyPair.from_seed(seed)
    except InvalidKeyError as e:
        raise CredentialsError(f"Could not decode seed: {e}") from e
    finally:
        wipe(seed, ord("x"))
        contents[seed_start:seed_end] = b"x" * (seed_end - seed_start)

    if key_pair.prefix != PREFIX_BYTE_USER:
        raise CredentialsError("Seed is not a user seed")

    try:
        user_claims = decode_user_claims(user_jwt)
    except ClaimError as e:
        raise CredentialsError(f"Could not decode user: {e}") from e

    if user_claims.subject != key_pair.public_key:
        raise CredentialsError("Seed does not belong to the user JWT subject")

    return Identity(
        subject=user_claims.subject,
        name=user_claims.name,
        user_claims=user_claims,
        key_pair=key_pair,
    )


def format_creds(user_jwt: str, seed: str) -> str:
    return _CREDS_TEMPLATE.format(jwt=user_jwt.strip(), seed=seed.strip())
