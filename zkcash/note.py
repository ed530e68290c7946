"""
Off-chain note helpers.

A note is a pair of secrets known only to its owner:

    commitment     = hash2(secret, nullifier)   inserted on Shield
    nullifier_hash = hash1(secret)              revealed on Withdraw

The circuit proves knowledge of (secret, nullifier) for a leaf under a known
root and that `nullifier_hash` was derived from the same secret. Nothing here
stores, scans or selects notes, and nothing here generates proofs.
"""

from __future__ import annotations

import secrets as _secrets
from dataclasses import dataclass, field

from .crypto.field import R, FieldLike, to_field
from .crypto.poseidon import hash1, hash2


def derive_commitment(secret: FieldLike, nullifier: FieldLike) -> int:
    return hash2(to_field(secret, what="secret"), to_field(nullifier, what="nullifier"))


def derive_nullifier_hash(secret: FieldLike) -> int:
    return hash1(to_field(secret, what="secret"))


@dataclass(frozen=True)
class Note:
    secret: int = field(repr=False)
    nullifier: int = field(repr=False)

    @classmethod
    def random(cls) -> "Note":
        return cls(secret=_secrets.randbelow(R), nullifier=_secrets.randbelow(R))

    @property
    def commitment(self) -> int:
        return derive_commitment(self.secret, self.nullifier)

    @property
    def nullifier_hash(self) -> int:
        return derive_nullifier_hash(self.secret)


__all__ = ["derive_commitment", "derive_nullifier_hash", "Note"]
