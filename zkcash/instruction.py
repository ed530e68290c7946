"""
Instruction payloads and their binary codec.

Layout (borsh-style, little-endian integers, fixed arrays inline):

    tag u8
    0 Initialize   merkle_tree_height: u8
    1 Shield       amount: u64, commitment: [32]
    2 Withdraw     amount: u64, root: [32], nullifier_hash: [32], recipient: [32],
                   output_commitment: [32], proof: u32 length + bytes

Field-element arrays stay as raw 32-byte big-endian strings here; whether they
are canonical is decided by the handlers, which own the error codes for it.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Union

from .errors import InvalidInstruction

TAG_INITIALIZE = 0
TAG_SHIELD = 1
TAG_WITHDRAW = 2

MAX_PROOF_BYTES = 4096

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


@dataclass(frozen=True)
class Initialize:
    merkle_tree_height: int


@dataclass(frozen=True)
class Shield:
    amount: int
    commitment: bytes


@dataclass(frozen=True)
class Withdraw:
    amount: int
    root: bytes
    nullifier_hash: bytes
    recipient: bytes
    output_commitment: bytes
    proof: bytes


Instruction = Union[Initialize, Shield, Withdraw]


# ---------------------------
# Encoding
# ---------------------------


def _bytes32(name: str, v: bytes) -> bytes:
    b = bytes(v)
    if len(b) != 32:
        raise InvalidInstruction(f"{name} must be 32 bytes, got {len(b)}", field=name)
    return b


def _pack(s: struct.Struct, name: str, v: int) -> bytes:
    try:
        return s.pack(v)
    except struct.error as e:
        raise InvalidInstruction(f"{name} does not fit its integer width", field=name) from e


def encode_instruction(ix: Instruction) -> bytes:
    if isinstance(ix, Initialize):
        return _U8.pack(TAG_INITIALIZE) + _pack(_U8, "merkle_tree_height", ix.merkle_tree_height)
    if isinstance(ix, Shield):
        return _U8.pack(TAG_SHIELD) + _pack(_U64, "amount", ix.amount) + _bytes32("commitment", ix.commitment)
    if isinstance(ix, Withdraw):
        proof = bytes(ix.proof)
        if len(proof) > MAX_PROOF_BYTES:
            raise InvalidInstruction("proof length exceeds limit", length=len(proof))
        return b"".join(
            (
                _U8.pack(TAG_WITHDRAW),
                _pack(_U64, "amount", ix.amount),
                _bytes32("root", ix.root),
                _bytes32("nullifier_hash", ix.nullifier_hash),
                _bytes32("recipient", ix.recipient),
                _bytes32("output_commitment", ix.output_commitment),
                _pack(_U32, "proof length", len(proof)),
                proof,
            )
        )
    raise InvalidInstruction(f"unsupported instruction type {type(ix).__name__}")


# ---------------------------
# Decoding
# ---------------------------


class _Reader:
    __slots__ = ("buf", "off")

    def __init__(self, buf: bytes):
        self.buf = buf
        self.off = 0

    def take(self, n: int, what: str) -> bytes:
        end = self.off + n
        if end > len(self.buf):
            raise InvalidInstruction(f"truncated payload while reading {what}", offset=self.off)
        out = self.buf[self.off : end]
        self.off = end
        return out

    def unpack(self, s: struct.Struct, what: str) -> int:
        (v,) = s.unpack(self.take(s.size, what))
        return v

    def finish(self) -> None:
        if self.off != len(self.buf):
            raise InvalidInstruction("trailing bytes after instruction", extra=len(self.buf) - self.off)


def decode_instruction(data: bytes) -> Instruction:
    r = _Reader(bytes(data))
    tag = r.unpack(_U8, "tag")
    ix: Instruction
    if tag == TAG_INITIALIZE:
        ix = Initialize(merkle_tree_height=r.unpack(_U8, "merkle_tree_height"))
    elif tag == TAG_SHIELD:
        ix = Shield(amount=r.unpack(_U64, "amount"), commitment=r.take(32, "commitment"))
    elif tag == TAG_WITHDRAW:
        amount = r.unpack(_U64, "amount")
        root = r.take(32, "root")
        nullifier_hash = r.take(32, "nullifier_hash")
        recipient = r.take(32, "recipient")
        output_commitment = r.take(32, "output_commitment")
        n = r.unpack(_U32, "proof length")
        if n > MAX_PROOF_BYTES:
            raise InvalidInstruction("proof length exceeds limit", length=n)
        ix = Withdraw(
            amount=amount,
            root=root,
            nullifier_hash=nullifier_hash,
            recipient=recipient,
            output_commitment=output_commitment,
            proof=r.take(n, "proof"),
        )
    else:
        raise InvalidInstruction(f"unknown instruction tag {tag}", tag=tag)
    r.finish()
    return ix


def instruction_name(ix: Instruction) -> str:
    return type(ix).__name__.lower()


__all__ = [
    "TAG_INITIALIZE",
    "TAG_SHIELD",
    "TAG_WITHDRAW",
    "MAX_PROOF_BYTES",
    "Initialize",
    "Shield",
    "Withdraw",
    "Instruction",
    "encode_instruction",
    "decode_instruction",
    "instruction_name",
]
