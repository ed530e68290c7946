"""
zkcash.processor — instruction handlers for the shielded pool.

Every handler takes the explicit `PoolState` handle, validates *before* it
mutates anything, and returns a receipt carrying the `Transfer` the ledger
must execute. Handlers never move funds themselves.

Withdraw check order (callers and tests depend on the exact code raised):

    0. NotInitialized
    1. InvalidPublicInputEncoding (root, nullifier, change, recipient), InvalidAmount
    2. UnknownRoot                root not in the accepted history window
    3. NullifierAlreadyUsed
    4. InvalidProof
    5. CapacityExceeded           only when a change commitment is present
    6. InsufficientFunds          total_amount < amount

then: insert change leaf, decrement total, record nullifier (last).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .crypto.field import FieldLike, to_field, to_hex
from .errors import (
    AlreadyInitialized,
    CapacityExceeded,
    InsufficientFunds,
    InvalidAmount,
    InvalidProof,
    InvalidPublicInputEncoding,
    NullifierAlreadyUsed,
    PoolError,
    UnknownRoot,
)
from .instruction import Initialize, Instruction, Shield, Withdraw, instruction_name
from .logging import get_logger, trace_scope
from .merkle import DEFAULT_ROOT_HISTORY_SIZE, MerkleAccumulator
from .state import PoolState
from .verifier import MAX_AMOUNT, NO_CHANGE, ProofVerifier, PublicInputs

log = get_logger(__name__)

ADDRESS_BYTES = 32


@dataclass(frozen=True)
class Transfer:
    """Authorization for the ledger to move `amount` from `source` to `destination`."""

    source: bytes
    destination: bytes
    amount: int


@dataclass(frozen=True)
class InitializeReceipt:
    depth: int
    root: int


@dataclass(frozen=True)
class ShieldReceipt:
    leaf_index: int
    root: int
    transfer: Transfer


@dataclass(frozen=True)
class WithdrawReceipt:
    nullifier: int
    amount: int
    change_index: Optional[int]
    root: int
    transfer: Transfer


Receipt = Union[InitializeReceipt, ShieldReceipt, WithdrawReceipt]


def _check_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or not 0 < amount <= MAX_AMOUNT:
        raise InvalidAmount(amount=str(amount))
    return amount


def _check_address(addr: bytes, what: str) -> bytes:
    if not isinstance(addr, (bytes, bytearray)) or len(addr) != ADDRESS_BYTES:
        raise InvalidPublicInputEncoding(f"{what} must be a {ADDRESS_BYTES}-byte address", field=what)
    return bytes(addr)


# ---------------------------------------------------------------------------
# Initialize
# ---------------------------------------------------------------------------


def process_initialize(
    state: PoolState, depth: int, *, root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE
) -> InitializeReceipt:
    """Uninitialized -> Initialized with an empty depth-`depth` accumulator."""
    if state.initialized:
        raise AlreadyInitialized(depth=state.merkle_tree_height)
    acc = MerkleAccumulator.initialize(depth, root_history_size=root_history_size)
    state.accumulator = acc
    state.total_amount = 0
    state.initialized = True
    log.info("pool initialized", extra={"depth": depth, "root": to_hex(acc.current_root)})
    return InitializeReceipt(depth=depth, root=acc.current_root)


# ---------------------------------------------------------------------------
# Shield
# ---------------------------------------------------------------------------


def process_shield(
    state: PoolState,
    amount: int,
    commitment: FieldLike,
    *,
    depositor: bytes,
    pool_address: bytes,
) -> ShieldReceipt:
    """Insert `commitment` as the next leaf and credit `amount` to the pool."""
    acc = state.require_initialized()
    _check_amount(amount)
    if state.total_amount + amount > MAX_AMOUNT:
        raise InvalidAmount("pool total would overflow a u64", amount=amount)
    leaf = to_field(commitment, what="commitment")
    depositor = _check_address(depositor, "depositor")

    leaf_index, root = acc.insert(leaf)
    state.total_amount += amount

    log.info("shield accepted", extra={"leaf_index": leaf_index, "root": to_hex(root), "amount": amount})
    return ShieldReceipt(
        leaf_index=leaf_index,
        root=root,
        transfer=Transfer(source=depositor, destination=bytes(pool_address), amount=amount),
    )


# ---------------------------------------------------------------------------
# Withdraw
# ---------------------------------------------------------------------------


def process_withdraw(
    state: PoolState,
    *,
    amount: int,
    root: FieldLike,
    nullifier: FieldLike,
    recipient: bytes,
    proof: bytes,
    verifier: ProofVerifier,
    pool_address: bytes,
    output_commitment: FieldLike = NO_CHANGE,
) -> WithdrawReceipt:
    """
    Spend one note: verify the proof against a recent root and an unused
    nullifier, then release `amount` to `recipient`.
    """
    acc = state.require_initialized()

    # 1. encoding + amount
    root_v = to_field(root, what="root")
    nullifier_v = to_field(nullifier, what="nullifier")
    change_v = to_field(output_commitment, what="output_commitment")
    recipient = _check_address(recipient, "recipient")
    _check_amount(amount)
    public = PublicInputs.for_withdraw(
        root=root_v,
        nullifier=nullifier_v,
        output_commitment=change_v,
        amount=amount,
        recipient=recipient,
    )
    public.validate()

    # 2. root window
    if not acc.is_known_root(root_v):
        raise UnknownRoot(root=to_hex(root_v))

    # 3. double spend
    if state.nullifiers.contains(nullifier_v):
        raise NullifierAlreadyUsed(nullifier=to_hex(nullifier_v))

    # 4. proof
    if not verifier.verify(bytes(proof), public):
        raise InvalidProof(root=to_hex(root_v))

    # 5. room for the change note
    has_change = change_v != NO_CHANGE
    if has_change and acc.is_full():
        raise CapacityExceeded(depth=acc.depth, next_index=acc.next_index)

    # 6. custody
    if state.total_amount < amount:
        raise InsufficientFunds(available=state.total_amount, requested=amount)

    change_index: Optional[int] = None
    if has_change:
        change_index, _ = acc.insert(change_v)
    state.total_amount -= amount
    state.nullifiers.insert(nullifier_v)

    log.info(
        "withdraw accepted",
        extra={"nullifier": to_hex(nullifier_v), "amount": amount, "change_index": change_index},
    )
    return WithdrawReceipt(
        nullifier=nullifier_v,
        amount=amount,
        change_index=change_index,
        root=acc.current_root,
        transfer=Transfer(source=bytes(pool_address), destination=recipient, amount=amount),
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def process(
    state: PoolState,
    ix: Instruction,
    *,
    verifier: Optional[ProofVerifier] = None,
    signer: Optional[bytes] = None,
    pool_address: bytes = b"\x00" * ADDRESS_BYTES,
    root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE,
) -> Receipt:
    """
    Route a decoded instruction to its handler. `signer` is the depositor for
    Shield; Withdraw needs a `verifier`. Rejections are logged, then re-raised.
    """
    with trace_scope(instruction=instruction_name(ix)):
        try:
            if isinstance(ix, Initialize):
                return process_initialize(state, ix.merkle_tree_height, root_history_size=root_history_size)
            if isinstance(ix, Shield):
                if signer is None:
                    raise InvalidPublicInputEncoding("shield requires a depositor", field="depositor")
                return process_shield(
                    state, ix.amount, ix.commitment, depositor=signer, pool_address=pool_address
                )
            if isinstance(ix, Withdraw):
                if verifier is None:
                    raise InvalidProof("no proof verifier configured")
                return process_withdraw(
                    state,
                    amount=ix.amount,
                    root=ix.root,
                    nullifier=ix.nullifier_hash,
                    recipient=ix.recipient,
                    output_commitment=ix.output_commitment,
                    proof=ix.proof,
                    verifier=verifier,
                    pool_address=pool_address,
                )
            raise TypeError(f"not an instruction: {type(ix).__name__}")
        except PoolError as e:
            log.warning("instruction rejected", extra={"code": e.code.value, "reason": e.message})
            raise


__all__ = [
    "ADDRESS_BYTES",
    "Transfer",
    "InitializeReceipt",
    "ShieldReceipt",
    "WithdrawReceipt",
    "Receipt",
    "process_initialize",
    "process_shield",
    "process_withdraw",
    "process",
]
