"""
Nullifier registry
==================

Write-once set of spent-note nullifiers. A nullifier is a canonical BN254 Fr
element revealed by a withdrawal; once recorded it can never be removed, so a
second withdrawal presenting the same nullifier is rejected forever.

    contains(nullifier) -> bool
    insert(nullifier) -> None        # NullifierAlreadyUsed on duplicates
    len(registry), iter(registry)    # insertion order

Notes
-----
- Deterministic and in-memory; persistence goes through `to_record()` /
  `from_record()` and the pool state codec.
- No crypto here. Nullifiers are opaque field elements derived upstream.
- There is no delete / prune API.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Mapping, Protocol

from .crypto.field import field_from_bytes, field_to_bytes, is_canonical
from .errors import InvalidPublicInputEncoding, InvalidState, NullifierAlreadyUsed, PoolError


class NullifierSet(Protocol):
    def contains(self, nullifier: int) -> bool: ...
    def insert(self, nullifier: int) -> None: ...
    def __len__(self) -> int: ...


class NullifierRegistry:
    """
    In-memory write-once set.

    Data structures:
      - _seen: {nullifier -> insertion ordinal}; dicts keep insertion order, so
        iteration and the persisted record are deterministic.
    """

    __slots__ = ("_seen",)

    def __init__(self, nullifiers: Iterable[int] = ()) -> None:
        self._seen: Dict[int, int] = {}
        for n in nullifiers:
            self.insert(n)

    def contains(self, nullifier: int) -> bool:
        return nullifier in self._seen

    __contains__ = contains

    def insert(self, nullifier: int) -> None:
        if not is_canonical(nullifier):
            raise InvalidPublicInputEncoding("nullifier is not a canonical field element", field="nullifier")
        if nullifier in self._seen:
            raise NullifierAlreadyUsed(nullifier=hex(nullifier))
        self._seen[nullifier] = len(self._seen)

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self) -> Iterator[int]:
        return iter(self._seen)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NullifierRegistry):
            return NotImplemented
        return list(self._seen) == list(other._seen)

    def __repr__(self) -> str:
        return f"NullifierRegistry(size={len(self._seen)})"

    def copy(self) -> "NullifierRegistry":
        out = NullifierRegistry()
        out._seen = dict(self._seen)
        return out

    # Persistence --------------------------------------------------------------

    def to_record(self) -> Dict[str, Any]:
        return {"nullifiers": [field_to_bytes(n) for n in self._seen]}

    @classmethod
    def from_record(cls, rec: Mapping[str, Any]) -> "NullifierRegistry":
        try:
            items = [field_from_bytes(b, what="nullifier") for b in rec["nullifiers"]]
            return cls(items)
        except (KeyError, TypeError) as e:
            raise InvalidState(f"malformed nullifier record: {e}") from e
        except PoolError as e:
            raise InvalidState(f"malformed nullifier record: {e.message}") from e


__all__ = ["NullifierSet", "NullifierRegistry"]
