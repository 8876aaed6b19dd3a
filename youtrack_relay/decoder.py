"""Best-effort decoding of base64+gzip encoded text fields."""

import base64
import binascii
import gzip
import zlib
from typing import Callable, Optional, Sequence


def _b64decode(raw: str) -> Optional[bytes]:
    try:
        return base64.b64decode(raw.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None


def _gunzip(data: bytes) -> Optional[bytes]:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error):
        return None


def _utf8(data: bytes) -> Optional[str]:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


_STEPS: Sequence[Callable] = (_b64decode, _gunzip, _utf8)


def decode_content(raw: str) -> str:
    """
    Decode a possibly base64+gzip encoded string.

    Each step returns None on failure; the first failure falls back to the
    original string, so this never raises.

    Args:
        raw: The field value as received from the API.

    Returns:
        The decoded text, or ``raw`` unchanged.
    """
    if not raw:
        return raw

    value = raw
    for step in _STEPS:
        value = step(value)
        if value is None:
            return raw
    return value
