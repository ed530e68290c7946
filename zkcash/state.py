"""
Pool state: the single explicit handle every instruction handler mutates.

    Uninitialized --Initialize--> Initialized

An uninitialized pool has no accumulator. Once initialized it holds the
Merkle accumulator, the nullifier registry and the custody total.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidState, NotInitialized
from .merkle import MerkleAccumulator
from .nullifiers import NullifierRegistry

STATE_VERSION = 1


@dataclass
class PoolState:
    initialized: bool = False
    accumulator: Optional[MerkleAccumulator] = None
    nullifiers: NullifierRegistry = field(default_factory=NullifierRegistry)
    total_amount: int = 0

    @property
    def merkle_tree_height(self) -> Optional[int]:
        return self.accumulator.depth if self.accumulator is not None else None

    def require_initialized(self) -> MerkleAccumulator:
        if not self.initialized or self.accumulator is None:
            raise NotInitialized()
        return self.accumulator

    def copy(self) -> "PoolState":
        return PoolState(
            initialized=self.initialized,
            accumulator=self.accumulator.copy() if self.accumulator is not None else None,
            nullifiers=self.nullifiers.copy(),
            total_amount=self.total_amount,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "initialized": self.initialized,
            "total_amount": self.total_amount,
            "tree": self.accumulator.to_record() if self.accumulator is not None else None,
            "nullifiers": self.nullifiers.to_record(),
        }

    @classmethod
    def from_record(cls, rec: Mapping[str, Any]) -> "PoolState":
        if not isinstance(rec, Mapping):
            raise InvalidState("state record must be a map")
        if rec.get("version") != STATE_VERSION:
            raise InvalidState(f"unsupported state version {rec.get('version')!r}")
        initialized = rec.get("initialized")
        total = rec.get("total_amount")
        tree = rec.get("tree")
        if not isinstance(initialized, bool):
            raise InvalidState("initialized must be a bool")
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            raise InvalidState("total_amount must be a non-negative int")
        if initialized != (tree is not None):
            raise InvalidState("tree must be present exactly when the pool is initialized")
        if not isinstance(rec.get("nullifiers"), Mapping):
            raise InvalidState("nullifiers must be a map")
        return cls(
            initialized=initialized,
            accumulator=MerkleAccumulator.from_record(tree) if tree is not None else None,
            nullifiers=NullifierRegistry.from_record(rec["nullifiers"]),
            total_amount=total,
        )


__all__ = ["STATE_VERSION", "PoolState"]
