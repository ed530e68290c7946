"""
zkcash.merkle
=============

Fixed-depth, append-only Poseidon Merkle accumulator of note commitments.

Layout
------
- Leaves live at level 0; the root is at level `depth`. An empty slot holds
  `ZERO_LEAF` and an empty subtree of height i hashes to `zeros[i]`, with
  `zeros[i+1] = hash_left_right(zeros[i], zeros[i])`.
- `index` bits decide the side at each level: bit i == 1 means the node is the
  *right* child at level i (parent = H(sibling, node)).

Incremental insert
------------------
Only the frontier (`filled_subtrees`, one node per level) is stored. For the
leaf at position `index`, walking up from level 0:

    if bit i of index is 0:  filled[i] = node;  node = H(node, zeros[i])
    else:                                       node = H(filled[i], node)

This yields exactly the root of the full tree whose first `next_index + 1`
leaves are the inserted commitments and whose remaining leaves are ZERO_LEAF.

Root history
------------
A ring buffer of the last `root_history_size` roots (`current_root_index`
points at the newest). Spenders prove membership against a slightly stale
root; `is_known_root` accepts any root still in the window, never 0 (unused
slots are 0).

API
---
- zero_hashes(depth) -> tuple[int, ...]        zeros[0..depth]
- empty_root(depth) -> int
- MerkleAccumulator.initialize(depth, *, root_history_size=30)
- acc.insert(leaf) -> (leaf_index, new_root)
- acc.is_known_root(root) -> bool
- acc.to_record() / MerkleAccumulator.from_record(rec)
- compute_root(leaves, depth), merkle_path(leaves, index, depth)
- compute_merkle_root(leaf, path, index), verify_merkle_path(root, leaf, path, index)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .crypto.field import field_from_bytes, field_to_bytes, is_canonical
from .crypto.poseidon import hash_left_right
from .errors import CapacityExceeded, InvalidConfig, InvalidDepth, InvalidPublicInputEncoding, InvalidState, PoolError

ZERO_LEAF = 0
MIN_DEPTH = 1
MAX_DEPTH = 32
DEFAULT_ROOT_HISTORY_SIZE = 30

# zeros[0..n] grown on demand; zeros[i] only depends on i.
_ZEROS: List[int] = [ZERO_LEAF]


# -----------------------------------------------------------------------------
# Empty-subtree hashes
# -----------------------------------------------------------------------------


def _check_depth(depth: int) -> int:
    if isinstance(depth, bool) or not isinstance(depth, int) or not MIN_DEPTH <= depth <= MAX_DEPTH:
        raise InvalidDepth(f"depth must be in [{MIN_DEPTH}, {MAX_DEPTH}]", depth=str(depth))
    return depth


def zero_hashes(depth: int) -> Tuple[int, ...]:
    """Return (zeros[0], ..., zeros[depth])."""
    _check_depth(depth)
    while len(_ZEROS) <= depth:
        z = _ZEROS[-1]
        _ZEROS.append(hash_left_right(z, z))
    return tuple(_ZEROS[: depth + 1])


def empty_root(depth: int) -> int:
    """Root of a depth-`depth` tree whose leaves are all ZERO_LEAF."""
    return zero_hashes(depth)[depth]


def _check_leaf(leaf: int, what: str = "leaf") -> int:
    if not is_canonical(leaf):
        raise InvalidPublicInputEncoding(f"{what} is not a canonical field element", field=what)
    return leaf


# -----------------------------------------------------------------------------
# Incremental accumulator
# -----------------------------------------------------------------------------


@dataclass
class MerkleAccumulator:
    depth: int
    next_index: int = 0
    filled_subtrees: List[int] = field(default_factory=list)
    root_history: List[int] = field(default_factory=list)
    current_root_index: int = 0

    @classmethod
    def initialize(cls, depth: int, *, root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE) -> "MerkleAccumulator":
        """Empty accumulator: frontier = zeros[0..D-1], history seeded with zeros[D]."""
        _check_depth(depth)
        if isinstance(root_history_size, bool) or not isinstance(root_history_size, int) or root_history_size < 1:
            raise InvalidConfig("root_history_size must be >= 1", root_history_size=str(root_history_size))
        zeros = zero_hashes(depth)
        history = [0] * root_history_size
        history[0] = zeros[depth]
        return cls(
            depth=depth,
            next_index=0,
            filled_subtrees=list(zeros[:depth]),
            root_history=history,
            current_root_index=0,
        )

    # -- views ---------------------------------------------------------------

    @property
    def current_root(self) -> int:
        return self.root_history[self.current_root_index]

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def root_history_size(self) -> int:
        return len(self.root_history)

    def is_full(self) -> bool:
        return self.next_index >= self.capacity

    def __len__(self) -> int:
        return self.next_index

    def known_roots(self) -> List[int]:
        """Roots still in the window, newest first."""
        k = len(self.root_history)
        out: List[int] = []
        for off in range(k):
            r = self.root_history[(self.current_root_index - off) % k]
            if r == 0:
                break
            out.append(r)
        return out

    def is_known_root(self, root: int) -> bool:
        if root == 0:
            return False
        return root in self.root_history

    # -- mutation ------------------------------------------------------------

    def insert(self, leaf: int) -> Tuple[int, int]:
        """
        Append `leaf`; returns (leaf_index, new_root).

        Raises CapacityExceeded when all 2^depth slots are used; the
        accumulator is untouched in that case.
        """
        _check_leaf(leaf)
        if self.is_full():
            raise CapacityExceeded(depth=self.depth, next_index=self.next_index)

        zeros = zero_hashes(self.depth)
        leaf_index = self.next_index
        idx = leaf_index
        node = leaf
        for level in range(self.depth):
            if idx & 1 == 0:
                self.filled_subtrees[level] = node
                node = hash_left_right(node, zeros[level])
            else:
                node = hash_left_right(self.filled_subtrees[level], node)
            idx >>= 1

        self.current_root_index = (self.current_root_index + 1) % len(self.root_history)
        self.root_history[self.current_root_index] = node
        self.next_index = leaf_index + 1
        return leaf_index, node

    def copy(self) -> "MerkleAccumulator":
        return MerkleAccumulator(
            depth=self.depth,
            next_index=self.next_index,
            filled_subtrees=list(self.filled_subtrees),
            root_history=list(self.root_history),
            current_root_index=self.current_root_index,
        )

    # -- persistence ---------------------------------------------------------

    def to_record(self) -> Dict[str, Any]:
        return {
            "depth": self.depth,
            "next_index": self.next_index,
            "filled_subtrees": [field_to_bytes(v) for v in self.filled_subtrees],
            "root_history": [field_to_bytes(v) for v in self.root_history],
            "current_root_index": self.current_root_index,
        }

    @classmethod
    def from_record(cls, rec: Mapping[str, Any]) -> "MerkleAccumulator":
        """Rebuild from `to_record()` output; any inconsistency is InvalidState."""
        try:
            depth = _check_depth(rec["depth"])
            next_index = rec["next_index"]
            cursor = rec["current_root_index"]
            filled = [field_from_bytes(b, what="filled_subtree") for b in rec["filled_subtrees"]]
            history = [field_from_bytes(b, what="root") for b in rec["root_history"]]
        except (KeyError, TypeError) as e:
            raise InvalidState(f"malformed accumulator record: {e}") from e
        except PoolError as e:
            raise InvalidState(f"malformed accumulator record: {e.message}") from e

        if not isinstance(next_index, int) or not 0 <= next_index <= (1 << depth):
            raise InvalidState("next_index out of range", next_index=str(next_index))
        if len(filled) != depth:
            raise InvalidState("filled_subtrees length does not match depth", depth=depth)
        if not history or not isinstance(cursor, int) or not 0 <= cursor < len(history):
            raise InvalidState("root history cursor out of range", current_root_index=str(cursor))
        if history[cursor] == 0:
            raise InvalidState("current root is empty")
        return cls(
            depth=depth,
            next_index=next_index,
            filled_subtrees=filled,
            root_history=history,
            current_root_index=cursor,
        )


# -----------------------------------------------------------------------------
# Full-tree helpers (witness building, reference roots)
# -----------------------------------------------------------------------------


def _levels(leaves: Sequence[int], depth: int) -> List[List[int]]:
    """Non-empty prefix of every level; absent nodes are implicit zeros."""
    _check_depth(depth)
    if len(leaves) > (1 << depth):
        raise CapacityExceeded("too many leaves for depth", depth=depth, leaves=len(leaves))
    zeros = zero_hashes(depth)
    level = [_check_leaf(v) for v in leaves]
    levels = [level]
    for i in range(depth):
        if len(level) % 2 == 1:
            level = level + [zeros[i]]
        level = [hash_left_right(level[j], level[j + 1]) for j in range(0, len(level), 2)]
        levels.append(level)
    return levels


def compute_root(leaves: Sequence[int], depth: int) -> int:
    """Root of the depth-`depth` tree holding `leaves` left-aligned, zero-padded."""
    top = _levels(leaves, depth)[depth]
    return top[0] if top else empty_root(depth)


def merkle_path(leaves: Sequence[int], index: int, depth: int) -> List[int]:
    """Sibling hashes, leaf level first, for the leaf at `index`."""
    if not 0 <= index < len(leaves):
        raise IndexError(f"leaf index {index} out of range")
    levels = _levels(leaves, depth)
    zeros = zero_hashes(depth)
    path: List[int] = []
    idx = index
    for i in range(depth):
        sib = idx ^ 1
        level = levels[i]
        path.append(level[sib] if sib < len(level) else zeros[i])
        idx >>= 1
    return path


def compute_merkle_root(leaf: int, path: Sequence[int], index: int) -> int:
    """
    Fold `leaf` up through `path` (leaf level first). Bit i of `index` set
    means the node is the right child at level i.
    """
    if not path:
        raise ValueError("empty merkle path")
    if not 0 <= index < (1 << len(path)):
        raise ValueError(f"index {index} does not fit a path of length {len(path)}")
    node = _check_leaf(leaf)
    for i, sib in enumerate(path):
        _check_leaf(sib, "sibling")
        if (index >> i) & 1:
            node = hash_left_right(sib, node)
        else:
            node = hash_left_right(node, sib)
    return node


def verify_merkle_path(root: int, leaf: int, path: Sequence[int], index: int) -> bool:
    """True iff `leaf` at `index` with siblings `path` hashes to `root`."""
    try:
        return compute_merkle_root(leaf, path, index) == root
    except (ValueError, PoolError):
        return False


__all__ = [
    "ZERO_LEAF",
    "MIN_DEPTH",
    "MAX_DEPTH",
    "DEFAULT_ROOT_HISTORY_SIZE",
    "zero_hashes",
    "empty_root",
    "MerkleAccumulator",
    "compute_root",
    "merkle_path",
    "compute_merkle_root",
    "verify_merkle_path",
]
