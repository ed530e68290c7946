"""
BN254 scalar field (Fr) boundary helpers.

Every value that crosses into the pool from the outside (commitments, roots,
nullifiers, public inputs) is a 32-byte big-endian integer that must be a
*canonical* element of Fr, i.e. strictly below the group order `R`. Values at
or above `R` are rejected here, at the boundary, with
`InvalidPublicInputEncoding`. They are never reduced: two encodings of the same
residue would let a spender present one nullifier in two forms.

The hasher and the accumulator only ever see canonical ints.

References:
- EVM precompiles (alt_bn128) and the BN254 curve used by Groth16 (snarkjs / circom).
"""

from __future__ import annotations

from typing import Union

from ..errors import InvalidPublicInputEncoding

# BN254 / alt_bn128 scalar field order (the circuit's native field).
R: int = 21888242871839275222246405745257275088548364400416034343698204186575808495617
# BN254 base field prime (curve coordinates).
P: int = 21888242871839275222246405745257275088696311157297823662689037894645226208583

FIELD_BYTES = 32

FieldLike = Union[int, bytes, bytearray, memoryview, str]


def is_canonical(x: int) -> bool:
    return isinstance(x, int) and not isinstance(x, bool) and 0 <= x < R


def is_canonical_bytes(b: bytes) -> bool:
    """True if `b` is exactly 32 bytes and encodes an integer < R."""
    if len(b) != FIELD_BYTES:
        return False
    return int.from_bytes(b, "big") < R


def field_from_bytes(b: Union[bytes, bytearray, memoryview], *, what: str = "field element") -> int:
    """Parse a 32-byte big-endian canonical field element."""
    if not isinstance(b, (bytes, bytearray, memoryview)):
        raise InvalidPublicInputEncoding(f"{what} must be bytes, got {type(b).__name__}", field=what)
    raw = bytes(b)
    if len(raw) != FIELD_BYTES:
        raise InvalidPublicInputEncoding(
            f"{what} must be {FIELD_BYTES} bytes, got {len(raw)}", field=what
        )
    x = int.from_bytes(raw, "big")
    if x >= R:
        raise InvalidPublicInputEncoding(f"{what} is not below the field modulus", field=what)
    return x


def field_to_bytes(x: int) -> bytes:
    """Encode a canonical field element as 32 bytes big-endian."""
    if not is_canonical(x):
        raise InvalidPublicInputEncoding("value is not a canonical field element")
    return x.to_bytes(FIELD_BYTES, "big")


def to_field(x: FieldLike, *, what: str = "field element") -> int:
    """
    Normalize an int, 32-byte string or hex/decimal string to a canonical
    field element, rejecting anything out of range.
    """
    if isinstance(x, bool):
        raise InvalidPublicInputEncoding(f"{what} must not be a bool", field=what)
    if isinstance(x, (bytes, bytearray, memoryview)):
        return field_from_bytes(x, what=what)
    if isinstance(x, str):
        s = x.strip().lower()
        try:
            v = int(s, 16) if s.startswith("0x") else int(s, 10)
        except ValueError as e:
            raise InvalidPublicInputEncoding(f"{what} is not a number: {x!r}", field=what) from e
        return to_field(v, what=what)
    if isinstance(x, int):
        if not 0 <= x < R:
            raise InvalidPublicInputEncoding(f"{what} is out of range for Fr", field=what)
        return x
    raise InvalidPublicInputEncoding(f"unsupported type for {what}: {type(x).__name__}", field=what)


def to_hex(x: int) -> str:
    """0x-prefixed, zero-padded 64-hex-digit rendering of a field element."""
    return "0x" + field_to_bytes(x).hex()


__all__ = [
    "R",
    "P",
    "FIELD_BYTES",
    "FieldLike",
    "is_canonical",
    "is_canonical_bytes",
    "field_from_bytes",
    "field_to_bytes",
    "to_field",
    "to_hex",
]
