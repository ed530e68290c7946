"""
zkcash.codec

Canonical CBOR encoding of the persisted pool state record.

The record is opaque to storage: a byte string written back whole after each
successful instruction. Encoding is canonical (RFC 8949 §4.2.1 deterministic
map ordering, minimal integer widths) so two equal states always produce
byte-identical records; tests compare records byte for byte.

Public API
----------
- dumps_canonical(obj) -> bytes
- loads(data) -> Any
- encode_state(state: PoolState) -> bytes
- decode_state(data: bytes) -> PoolState      # InvalidState on any malformation
"""

from __future__ import annotations

from io import BytesIO
from typing import Any

import cbor2

from .errors import InvalidState, PoolError
from .state import PoolState


def dumps_canonical(obj: Any) -> bytes:
    bio = BytesIO()
    cbor2.CBOREncoder(bio, canonical=True).encode(obj)
    return bio.getvalue()


def loads(data: bytes) -> Any:
    return cbor2.loads(data)


def encode_state(state: PoolState) -> bytes:
    return dumps_canonical(state.to_record())


def decode_state(data: bytes) -> PoolState:
    try:
        rec = loads(bytes(data))
    except (cbor2.CBORDecodeError, ValueError, TypeError, EOFError) as e:
        raise InvalidState(f"state record is not valid CBOR: {e}") from e
    try:
        return PoolState.from_record(rec)
    except InvalidState:
        raise
    except PoolError as e:
        raise InvalidState(f"malformed state record: {e.message}") from e


__all__ = ["dumps_canonical", "loads", "encode_state", "decode_state"]
