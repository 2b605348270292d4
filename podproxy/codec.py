"""Reversible URL obfuscation.

A token is ``px`` + URL-safe Base64 (no padding) of the URL's UTF-8 bytes XOR-ed
with a repeating, publicly known key. This hides URLs from casual inspection and
keeps them safe inside a query string. It is not encryption.
"""
import base64
import logging

from podproxy.config import ENCODED_PREFIX, XOR_KEY
from podproxy.errors import DecodeFailure

logger = logging.getLogger(__name__)

_KEY = XOR_KEY.encode("utf-8")


def _xor(data: bytes, key: bytes = _KEY) -> bytes:
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))


def encode(url: str) -> str:
    raw = base64.b64encode(_xor(url.encode("utf-8"))).decode("ascii")
    return ENCODED_PREFIX + raw.replace("+", "-").replace("/", "_").rstrip("=")


def _decode_strict(token: str) -> str:
    data = token
    if data.startswith(ENCODED_PREFIX):
        data = data[len(ENCODED_PREFIX):]

    data = data.replace("-", "+").replace("_", "/")
    while len(data) % 4 != 0:
        data += "="

    try:
        xored = base64.b64decode(data, validate=True)
        return _xor(xored).decode("utf-8")
    except ValueError as e:
        # covers binascii.Error and UnicodeDecodeError
        raise DecodeFailure(f"Malformed token: {e}") from e


def decode(token: str) -> str:
    """Best-effort decode of a token back to its URL.

    Never raises. When the token cannot be decoded it is returned unchanged,
    so callers may still try it as a literal URL.
    """
    try:
        return _decode_strict(token)
    except DecodeFailure as e:
        logger.debug("Falling back to raw token: %s", e)
        return token
