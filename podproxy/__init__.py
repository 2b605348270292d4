"""Podcast search, feed and media relay."""

from podproxy.codec import decode, encode
from podproxy.relay import RelayResponse, fetch

__all__ = ["decode", "encode", "fetch", "RelayResponse"]
