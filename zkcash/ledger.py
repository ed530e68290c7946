"""
zkcash.ledger — minimal in-memory host for the pool program.

Stands in for the account storage and fund-movement collaborators the core
only sees through interfaces:

- the pool state lives in one opaque canonical-CBOR record (`state_record`);
- balances are a plain {address: amount} book;
- the pool custody address is sha256(b"privacy_pool" ‖ program_id).

`execute` is all-or-nothing: it decodes a *fresh* working copy of the state,
runs the handler, applies the returned transfer to a copy of the balances,
re-encodes, and only then swaps both in. Any exception on the way leaves
`state_record` and `balances` exactly as they were.
"""

from __future__ import annotations

import hashlib
from typing import Any, Dict, Mapping, Optional, Union

from .codec import decode_state, encode_state
from .crypto.field import FieldLike
from .errors import InsufficientFunds, InvalidConfig, InvalidPublicInputEncoding
from .instruction import Initialize, Instruction, Shield, Withdraw, decode_instruction
from .logging import get_logger
from .merkle import DEFAULT_ROOT_HISTORY_SIZE
from .processor import ADDRESS_BYTES, Receipt, Transfer, process
from .state import PoolState
from .verifier import NO_CHANGE, ProofVerifier

log = get_logger(__name__)

POOL_SEED = b"privacy_pool"


def derive_pool_address(program_id: bytes) -> bytes:
    if len(program_id) != ADDRESS_BYTES:
        raise InvalidConfig(f"program_id must be {ADDRESS_BYTES} bytes", length=len(program_id))
    return hashlib.sha256(POOL_SEED + bytes(program_id)).digest()


def _field_bytes(v: FieldLike) -> bytes:
    if isinstance(v, int) and not isinstance(v, bool) and 0 <= v < (1 << 256):
        return v.to_bytes(32, "big")
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v)
    raise InvalidPublicInputEncoding(f"expected an int or 32 bytes, got {type(v).__name__}")


class Ledger:
    """In-memory accounts + atomic instruction execution."""

    def __init__(
        self,
        program_id: bytes = b"\x00" * ADDRESS_BYTES,
        *,
        verifier: Optional[ProofVerifier] = None,
        root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE,
        balances: Optional[Mapping[bytes, int]] = None,
    ):
        self.program_id = bytes(program_id)
        self.pool_address = derive_pool_address(self.program_id)
        self.verifier = verifier
        self.root_history_size = root_history_size
        self.state_record: bytes = encode_state(PoolState())
        self.balances: Dict[bytes, int] = dict(balances or {})

    @classmethod
    def from_config(cls, cfg: Any, *, verifier: Optional[ProofVerifier] = None) -> "Ledger":
        return cls(cfg.program_id_bytes, verifier=verifier, root_history_size=cfg.root_history_size)

    # -- accounts --------------------------------------------------------------

    def balance_of(self, address: bytes) -> int:
        return self.balances.get(bytes(address), 0)

    def credit(self, address: bytes, amount: int) -> None:
        """Mint plaintext funds to `address` (test/dev faucet)."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        a = bytes(address)
        self.balances[a] = self.balances.get(a, 0) + amount

    @property
    def state(self) -> PoolState:
        """A decoded snapshot; mutating it does not touch the ledger."""
        return decode_state(self.state_record)

    # -- execution -------------------------------------------------------------

    def execute(self, ix: Union[Instruction, bytes], *, signer: Optional[bytes] = None) -> Receipt:
        if isinstance(ix, (bytes, bytearray, memoryview)):
            ix = decode_instruction(bytes(ix))

        state = decode_state(self.state_record)
        receipt = process(
            state,
            ix,
            verifier=self.verifier,
            signer=signer,
            pool_address=self.pool_address,
            root_history_size=self.root_history_size,
        )
        balances = dict(self.balances)
        transfer: Optional[Transfer] = getattr(receipt, "transfer", None)
        if transfer is not None:
            _apply(balances, transfer)
        record = encode_state(state)

        self.state_record = record
        self.balances = balances
        return receipt

    # -- conveniences ----------------------------------------------------------

    def initialize(self, depth: int) -> Receipt:
        return self.execute(Initialize(merkle_tree_height=depth))

    def shield(self, depositor: bytes, amount: int, commitment: FieldLike) -> Receipt:
        return self.execute(Shield(amount=amount, commitment=_field_bytes(commitment)), signer=depositor)

    def withdraw(
        self,
        *,
        amount: int,
        root: FieldLike,
        nullifier: FieldLike,
        recipient: bytes,
        proof: bytes,
        output_commitment: FieldLike = NO_CHANGE,
    ) -> Receipt:
        return self.execute(
            Withdraw(
                amount=amount,
                root=_field_bytes(root),
                nullifier_hash=_field_bytes(nullifier),
                recipient=bytes(recipient),
                output_commitment=_field_bytes(output_commitment),
                proof=bytes(proof),
            )
        )


def _apply(balances: Dict[bytes, int], t: Transfer) -> None:
    have = balances.get(t.source, 0)
    if have < t.amount:
        raise InsufficientFunds(
            "source account cannot cover the transfer", available=have, requested=t.amount
        )
    balances[t.source] = have - t.amount
    balances[t.destination] = balances.get(t.destination, 0) + t.amount
    log.debug("transfer executed", extra={"amount": t.amount})


__all__ = ["POOL_SEED", "derive_pool_address", "Ledger"]
