from __future__ import annotations

import base64
import hashlib
from typing import Iterable, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from ngschat.keys import (
    decode_public,
    decode_seed,
    encode_public,
    encode_seed,
    wipe,
)


def sha256_hex(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()


def b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).decode("ascii").rstrip("=")


def b64url_decode(s: str) -> bytes:
    padding = "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode((s + padding).encode("ascii"))


class KeyPair:
    """An Ed25519 key tagged with its nkey type prefix.

    Built from a seed it can sign; built from a public key it can only verify.
    """

    def __init__(
        self,
        prefix: int,
        public_key: Ed25519PublicKey,
        private_key: Optional[Ed25519PrivateKey] = None,
    ) -> None:
        self.prefix = prefix
        self._public_key = public_key
        self._private_key = private_key

    @classmethod
    def from_seed(cls, seed: Union[str, bytes, bytearray]) -> KeyPair:
        prefix, raw = decode_seed(seed)
        try:
            private_key = Ed25519PrivateKey.from_private_bytes(raw)
        finally:
            wipe(raw)
        return cls(prefix, private_key.public_key(), private_key)

    @classmethod
    def from_public_key(cls, text: str, prefixes: Optional[Iterable[int]] = None) -> KeyPair:
        prefix, raw = decode_public(text, prefixes)
        return cls(prefix, Ed25519PublicKey.from_public_bytes(raw))

    @classmethod
    def generate(cls, prefix: int) -> KeyPair:
        private_key = Ed25519PrivateKey.generate()
        return cls(prefix, private_key.public_key(), private_key)

    @property
    def public_key(self) -> str:
        return encode_public(self.prefix, self._public_key.public_bytes_raw())

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    def seed(self) -> str:
        if self._private_key is None:
            raise ValueError("public-only key pair has no seed")
        return encode_seed(self.prefix, self._private_key.private_bytes_raw())

    def sign(self, data: bytes) -> bytes:
        if self._private_key is None:
            raise ValueError("public-only key pair cannot sign")
        return self._private_key.sign(data)

    def verify(self, data: bytes, sig: bytes) -> bool:
        try:
            self._public_key.verify(sig, data)
        except InvalidSignature:
            return False
        return True
