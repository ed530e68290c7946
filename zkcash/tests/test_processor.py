from __future__ import annotations

import pytest

from zkcash.crypto.field import R
from zkcash.errors import (
    AlreadyInitialized,
    CapacityExceeded,
    InsufficientFunds,
    InvalidAmount,
    InvalidDepth,
    InvalidProof,
    InvalidPublicInputEncoding,
    NotInitialized,
    NullifierAlreadyUsed,
    UnknownRoot,
)
from zkcash.instruction import Initialize, Shield, Withdraw
from zkcash.merkle import compute_root
from zkcash.note import Note, derive_commitment, derive_nullifier_hash
from zkcash.processor import (
    InitializeReceipt,
    process,
    process_initialize,
    process_shield,
    process_withdraw,
)
from zkcash.state import PoolState
from zkcash.tests import ALICE, BOB, EMPTY_ROOT_20, POSEIDON_1_2, HashVerifier, hash_proof
from zkcash.verifier import MAX_AMOUNT, PublicInputs

POOL = b"\x99" * 32
NOTE = Note(secret=1, nullifier=2)


def _pool(depth: int = 3, history: int = 30) -> PoolState:
    st = PoolState()
    process_initialize(st, depth, root_history_size=history)
    return st


def _shield(st: PoolState, commitment: int, amount: int = 100):
    return process_shield(st, amount, commitment, depositor=ALICE, pool_address=POOL)


def _withdraw(st: PoolState, verifier=None, *, proof=None, **kw):
    args = dict(
        amount=40,
        root=st.accumulator.current_root,
        nullifier=NOTE.nullifier_hash,
        recipient=BOB,
        output_commitment=0,
    )
    args.update(kw)
    if proof is None:
        proof = hash_proof(PublicInputs.for_withdraw(**args))
    return process_withdraw(
        st, proof=proof, verifier=verifier or HashVerifier(), pool_address=POOL, **args
    )


# ---------------------------
# Initialize
# ---------------------------


def test_initialize_depth_20_empty_root():
    st = PoolState()
    rec = process_initialize(st, 20)
    assert rec == InitializeReceipt(depth=20, root=EMPTY_ROOT_20)
    assert st.initialized
    assert st.total_amount == 0
    assert st.merkle_tree_height == 20


def test_double_initialize_rejected_without_change():
    st = _pool()
    before = st.copy()
    with pytest.raises(AlreadyInitialized):
        process_initialize(st, 5)
    assert st == before


def test_initialize_bad_depth_leaves_pool_uninitialized():
    st = PoolState()
    with pytest.raises(InvalidDepth):
        process_initialize(st, 0)
    assert not st.initialized


def test_uninitialized_pool_rejects_everything():
    st = PoolState()
    with pytest.raises(NotInitialized):
        _shield(st, 5)
    with pytest.raises(NotInitialized):
        process_withdraw(
            st,
            amount=1,
            root=1,
            nullifier=1,
            recipient=BOB,
            proof=b"",
            verifier=HashVerifier(),
            pool_address=POOL,
        )


# ---------------------------
# Shield
# ---------------------------


def test_note_helpers():
    assert NOTE.commitment == derive_commitment(1, 2) == POSEIDON_1_2
    assert NOTE.nullifier_hash == derive_nullifier_hash(1)
    assert repr(Note.random()) == "Note()"


def test_shield_then_withdraw_depth_20():
    st = _pool(20)
    rec = _shield(st, NOTE.commitment)
    assert rec.leaf_index == 0
    assert rec.root == compute_root([NOTE.commitment], 20)
    assert rec.transfer.source == ALICE
    assert rec.transfer.destination == POOL
    assert rec.transfer.amount == 100
    assert st.total_amount == 100

    out = _withdraw(st, root=rec.root)
    assert out.amount == 40
    assert out.change_index is None
    assert out.transfer.source == POOL and out.transfer.destination == BOB
    assert st.total_amount == 60
    assert NOTE.nullifier_hash in st.nullifiers

    with pytest.raises(NullifierAlreadyUsed):
        _withdraw(st, root=rec.root)
    assert st.total_amount == 60


def test_shield_indices_are_sequential():
    st = _pool()
    assert [_shield(st, c).leaf_index for c in (11, 12, 13)] == [0, 1, 2]
    assert st.accumulator.current_root == compute_root([11, 12, 13], 3)
    assert st.total_amount == 300


@pytest.mark.parametrize("amount", [0, -1, MAX_AMOUNT + 1, True])
def test_shield_rejects_bad_amount(amount):
    st = _pool()
    with pytest.raises(InvalidAmount):
        _shield(st, 5, amount=amount)
    assert st.accumulator.next_index == 0


def test_shield_rejects_total_overflow():
    st = _pool()
    _shield(st, 5, amount=MAX_AMOUNT)
    with pytest.raises(InvalidAmount):
        _shield(st, 6, amount=1)
    assert st.accumulator.next_index == 1


def test_shield_rejects_non_canonical_commitment():
    st = _pool()
    with pytest.raises(InvalidPublicInputEncoding):
        _shield(st, R)
    with pytest.raises(InvalidPublicInputEncoding):
        _shield(st, R.to_bytes(32, "big"))
    assert st.total_amount == 0


def test_shield_full_tree():
    st = _pool(1)
    _shield(st, 1)
    _shield(st, 2)
    before = st.copy()
    with pytest.raises(CapacityExceeded):
        _shield(st, 3)
    assert st == before


# ---------------------------
# Withdraw
# ---------------------------


def test_stale_root_rejected():
    st = _pool(3, history=2)
    r1 = _shield(st, NOTE.commitment).root
    _shield(st, 22)
    _shield(st, 33)
    with pytest.raises(UnknownRoot):
        _withdraw(st, root=r1)


def test_recent_root_still_accepted():
    st = _pool(3, history=3)
    r1 = _shield(st, NOTE.commitment).root
    _shield(st, 22)
    out = _withdraw(st, root=r1)
    assert out.amount == 40


def test_zero_root_rejected():
    st = _pool()
    _shield(st, NOTE.commitment)
    with pytest.raises(UnknownRoot):
        _withdraw(st, root=0)


def test_unknown_root_checked_before_nullifier_and_proof():
    st = _pool()
    _shield(st, NOTE.commitment)
    _withdraw(st)
    v = HashVerifier()
    with pytest.raises(UnknownRoot):
        _withdraw(st, v, root=12345, proof=b"junk")
    assert v.calls == 0


def test_nullifier_checked_before_proof():
    st = _pool()
    _shield(st, NOTE.commitment)
    _withdraw(st)
    v = HashVerifier()
    with pytest.raises(NullifierAlreadyUsed):
        _withdraw(st, v, proof=b"junk")
    assert v.calls == 0


def test_encoding_checked_first():
    st = _pool()
    _shield(st, NOTE.commitment)
    with pytest.raises(InvalidPublicInputEncoding):
        _withdraw(st, root=R, proof=b"junk")
    with pytest.raises(InvalidPublicInputEncoding):
        _withdraw(st, nullifier=R, proof=b"junk")
    with pytest.raises(InvalidPublicInputEncoding):
        _withdraw(st, output_commitment=R, proof=b"junk")
    with pytest.raises(InvalidPublicInputEncoding):
        _withdraw(st, recipient=b"\x01" * 31, proof=b"junk")


@pytest.mark.parametrize("amount", [0, MAX_AMOUNT + 1])
def test_withdraw_rejects_bad_amount(amount):
    st = _pool()
    _shield(st, NOTE.commitment)
    with pytest.raises(InvalidAmount):
        _withdraw(st, amount=amount, proof=b"junk")


def test_invalid_proof_does_not_burn_nullifier():
    st = _pool()
    _shield(st, NOTE.commitment)
    before = st.copy()
    with pytest.raises(InvalidProof):
        _withdraw(st, proof=b"\x00" * 256)
    assert st == before
    assert NOTE.nullifier_hash not in st.nullifiers
    _withdraw(st)
    assert NOTE.nullifier_hash in st.nullifiers


def test_proof_bound_to_recipient_and_amount():
    st = _pool()
    _shield(st, NOTE.commitment)
    good = hash_proof(
        PublicInputs.for_withdraw(
            root=st.accumulator.current_root, nullifier=NOTE.nullifier_hash, amount=40, recipient=BOB
        )
    )
    with pytest.raises(InvalidProof):
        _withdraw(st, recipient=ALICE, proof=good)
    with pytest.raises(InvalidProof):
        _withdraw(st, amount=41, proof=good)
    assert _withdraw(st, proof=good).amount == 40


def test_proof_bound_to_root_and_nullifier():
    st = _pool()
    _shield(st, NOTE.commitment)
    first_root = st.accumulator.current_root
    _shield(st, Note(secret=5, nullifier=6).commitment)
    assert st.accumulator.is_known_root(first_root)
    good = hash_proof(
        PublicInputs.for_withdraw(
            root=first_root, nullifier=NOTE.nullifier_hash, amount=40, recipient=BOB
        )
    )
    before = st.copy()
    # Known root, but not the one the proof commits to.
    with pytest.raises(InvalidProof):
        _withdraw(st, proof=good)
    # Unspent nullifier, but not the one the proof commits to.
    with pytest.raises(InvalidProof):
        _withdraw(st, root=first_root, nullifier=NOTE.nullifier_hash + 1, proof=good)
    assert st == before
    assert _withdraw(st, root=first_root, proof=good).amount == 40


def test_insufficient_pool_funds():
    st = _pool()
    _shield(st, NOTE.commitment, amount=100)
    before = st.copy()
    with pytest.raises(InsufficientFunds):
        _withdraw(st, amount=150)
    assert st == before


def test_withdraw_with_change_note():
    st = _pool()
    _shield(st, NOTE.commitment)
    change = Note(secret=3, nullifier=4)
    out = _withdraw(st, output_commitment=change.commitment)
    assert out.change_index == 1
    assert out.root == compute_root([NOTE.commitment, change.commitment], 3)
    assert st.accumulator.is_known_root(out.root)
    # The change note is spendable under the new root.
    again = _withdraw(st, nullifier=change.nullifier_hash, amount=60)
    assert again.amount == 60
    assert st.total_amount == 0


def test_change_into_full_tree_rejected_before_funds():
    st = _pool(1)
    _shield(st, NOTE.commitment)
    _shield(st, 5)
    before = st.copy()
    with pytest.raises(CapacityExceeded):
        _withdraw(st, output_commitment=7, amount=10_000)
    assert st == before
    # Without a change note the full tree is irrelevant.
    assert _withdraw(st).change_index is None


# ---------------------------
# Dispatch
# ---------------------------


def test_process_dispatch():
    st = PoolState()
    process(st, Initialize(3))
    rec = process(st, Shield(100, NOTE.commitment.to_bytes(32, "big")), signer=ALICE, pool_address=POOL)
    root = rec.root.to_bytes(32, "big")
    proof = hash_proof(
        PublicInputs.for_withdraw(root=rec.root, nullifier=NOTE.nullifier_hash, amount=40, recipient=BOB)
    )
    ix = Withdraw(
        amount=40,
        root=root,
        nullifier_hash=NOTE.nullifier_hash.to_bytes(32, "big"),
        recipient=BOB,
        output_commitment=b"\x00" * 32,
        proof=proof,
    )
    with pytest.raises(InvalidProof):
        process(st, ix)
    out = process(st, ix, verifier=HashVerifier(), pool_address=POOL)
    assert out.transfer.destination == BOB
    assert st.total_amount == 60


def test_process_shield_requires_signer():
    st = _pool()
    with pytest.raises(InvalidPublicInputEncoding):
        process(st, Shield(1, b"\x00" * 32))


def test_process_logs_rejections(caplog):
    st = _pool()
    with caplog.at_level("WARNING", logger="zkcash"):
        with pytest.raises(AlreadyInitialized):
            process(st, Initialize(3))
    assert any(r.getMessage() == "instruction rejected" for r in caplog.records)
