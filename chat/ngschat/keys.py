"""Text encoding for nkeys: base32 with a type prefix and a CRC16 trailer.

Seed packing, prefix bytes and the checksum come from ``nkeys``. Public keys
are decoded here because ``nkeys`` can only build a key pair from a seed.
"""
from __future__ import annotations

import base64
import binascii
from typing import Iterable, Optional, Tuple, Union

import nkeys
from nkeys import PREFIX_BYTE_ACCOUNT, PREFIX_BYTE_OPERATOR, PREFIX_BYTE_USER

PUBLIC_PREFIXES = (PREFIX_BYTE_OPERATOR, PREFIX_BYTE_ACCOUNT, PREFIX_BYTE_USER)

KEY_LEN = 32


class InvalidKeyError(ValueError):
    pass


def wipe(buf: bytearray, fill: int = 0) -> None:
    for i in range(len(buf)):
        buf[i] = fill


def strip_buffer(buf: bytearray) -> None:
    """Trim surrounding whitespace from *buf* in place."""
    end = len(buf)
    while end and chr(buf[end - 1]).isspace():
        end -= 1
    del buf[end:]
    start = 0
    while start < len(buf) and chr(buf[start]).isspace():
        start += 1
    del buf[:start]


def _as_buffer(text: Union[str, bytes, bytearray]) -> bytearray:
    if isinstance(text, str):
        buf = bytearray(text.encode("ascii", errors="replace"))
    else:
        buf = bytearray(text)
    strip_buffer(buf)
    return buf


def _b32decode(buf: bytearray) -> bytearray:
    """Decode *buf* and check its trailer. *buf* gains padding in place."""
    buf.extend(b"=" * (-len(buf) % 8))
    try:
        raw = bytearray(base64.b32decode(buf))
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyError(f"invalid base32: {e}") from e
    if len(raw) < 4:
        wipe(raw)
        raise InvalidKeyError("key too short")
    if nkeys.crc16_checksum(raw[:-2]) != bytes(raw[-2:]):
        wipe(raw)
        raise InvalidKeyError("checksum mismatch")
    return raw


def encode_public(prefix: int, key: bytes) -> str:
    if prefix not in PUBLIC_PREFIXES:
        raise InvalidKeyError(f"invalid public key prefix {prefix}")
    if len(key) != KEY_LEN:
        raise InvalidKeyError("public key must be 32 bytes")
    src = bytes([prefix]) + key
    return base64.b32encode(src + nkeys.crc16_checksum(src)).decode("ascii").rstrip("=")


def decode_public(
    text: Union[str, bytes], prefixes: Optional[Iterable[int]] = None
) -> Tuple[int, bytes]:
    raw = _b32decode(_as_buffer(text))
    prefix = raw[0]
    allowed = tuple(prefixes) if prefixes is not None else PUBLIC_PREFIXES
    if prefix not in allowed:
        raise InvalidKeyError(f"unexpected public key prefix {prefix}")
    key = bytes(raw[1:-2])
    if len(key) != KEY_LEN:
        raise InvalidKeyError("public key must be 32 bytes")
    return prefix, key


def encode_seed(public_prefix: int, seed: Union[bytes, bytearray]) -> str:
    if public_prefix not in PUBLIC_PREFIXES:
        raise InvalidKeyError(f"invalid public key prefix {public_prefix}")
    if len(seed) != KEY_LEN:
        raise InvalidKeyError("seed must be 32 bytes")
    return nkeys.encode_seed(bytes(seed), public_prefix).decode("ascii")


def decode_seed(text: Union[str, bytes, bytearray]) -> Tuple[int, bytearray]:
    """Return ``(public_prefix, seed)``. The caller should wipe *seed* after use.

    A bytearray argument is stripped, padded and wiped in place.
    """
    buf = text if isinstance(text, bytearray) else _as_buffer(text)
    strip_buffer(buf)
    try:
        wipe(_b32decode(buf))
        try:
            public_prefix, raw = nkeys.decode_seed(buf)
        except nkeys.NkeysError as e:
            raise InvalidKeyError(str(e)) from e
    finally:
        wipe(buf)
    if public_prefix not in PUBLIC_PREFIXES:
        raise InvalidKeyError(f"invalid seed prefix {public_prefix}")
    seed = bytearray(raw)
    if len(seed) != KEY_LEN:
        wipe(seed)
        raise InvalidKeyError("seed must be 32 bytes")
    return public_prefix, seed
