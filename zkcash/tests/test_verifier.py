from __future__ import annotations

import json
from dataclasses import replace
from types import SimpleNamespace

import pytest

from zkcash.crypto.field import R
from zkcash.crypto import groth16_bn254 as g16
from zkcash.crypto.groth16_bn254 import verify_groth16
from zkcash.crypto.pairing_bn254 import g1_generator, g2_generator, normalize_g1, normalize_g2
from zkcash.errors import InvalidConfig, InvalidPublicInputEncoding
from zkcash.verifier import (
    MAX_AMOUNT,
    PROOF_SIZE,
    Groth16Verifier,
    ProofVerifier,
    PublicInputs,
    decode_proof,
    encode_proof,
    proof_from_snarkjs,
    recipient_binding,
)
from zkcash.tests import ALICE, BOB, POSEIDON_1_2, HashVerifier, groth16_fixture


def _public(**kw) -> PublicInputs:
    args = dict(root=POSEIDON_1_2, nullifier=12345, amount=40, recipient=ALICE, output_commitment=0)
    args.update(kw)
    return PublicInputs.for_withdraw(**args)


# ---------------------------
# Public inputs
# ---------------------------


def test_recipient_binding_fits_below_r():
    for who in (ALICE, BOB, b"\xff" * 32):
        rb = recipient_binding(who)
        assert rb < 1 << 248
        assert rb < R
    assert recipient_binding(ALICE) != recipient_binding(BOB)


def test_public_input_order_and_encoding():
    pub = _public(output_commitment=9)
    assert pub.to_field_list() == [POSEIDON_1_2, 12345, 9, 40, recipient_binding(ALICE)]
    enc = pub.encode()
    assert len(enc) == 5 * 32
    assert enc[64:96] == (9).to_bytes(32, "big")


@pytest.mark.parametrize(
    "field,value",
    [("root", R), ("nullifier", -1), ("output_commitment", R + 7), ("amount", MAX_AMOUNT + 1)],
)
def test_validate_rejects(field, value):
    pub = replace(_public(), **{field: value})
    with pytest.raises(InvalidPublicInputEncoding):
        pub.validate()


def test_hash_verifier_satisfies_protocol():
    assert isinstance(HashVerifier(), ProofVerifier)


# ---------------------------
# Proof bytes
# ---------------------------


def test_zero_proof_decodes_to_infinity():
    zeros = b"\x00" * PROOF_SIZE
    assert encode_proof(decode_proof(zeros)) == zeros


@pytest.mark.parametrize(
    "data",
    [
        b"\x00" * (PROOF_SIZE - 1),
        b"\x00" * (PROOF_SIZE + 1),
        b"\xff" * 32 + b"\x00" * (PROOF_SIZE - 32),
        (1).to_bytes(32, "big") * 2 + b"\x00" * (PROOF_SIZE - 64),
    ],
)
def test_decode_rejects(data):
    with pytest.raises(ValueError):
        decode_proof(data)


def test_verify_skips_revalidating_loaded_points(monkeypatch):
    seen = {}

    def fake_check(pairs, *, validate=True):
        seen["validate"] = validate
        seen["pairs"] = len(pairs)
        return True

    monkeypatch.setattr(g16, "check_pairing_product", fake_check)
    g1, g2 = g1_generator(), g2_generator()
    vk = g16.VerifyingKey(alpha1=g1, beta2=g2, gamma2=g2, delta2=g2, IC=[g1, g1])
    assert g16.verify(vk, g16.Proof(A=g1, B=g2, C=g1), [7])
    assert seen == {"validate": False, "pairs": 4}


def test_from_config_requires_vk_path():
    with pytest.raises(InvalidConfig):
        Groth16Verifier.from_config(SimpleNamespace(vk_path=None))


def test_from_file_missing(tmp_path):
    with pytest.raises(InvalidConfig):
        Groth16Verifier.from_file(tmp_path / "nope.json")


def test_from_json_malformed():
    with pytest.raises(InvalidConfig):
        Groth16Verifier.from_json({"vk_alpha_1": ["1", "1"]})


# ---------------------------
# Real pairing checks
# ---------------------------


@pytest.fixture(scope="module")
def fixture_vk():
    pub = _public()
    vk_json, proof = groth16_fixture(pub.to_field_list())
    return pub, vk_json, proof, Groth16Verifier.from_json(vk_json)


@pytest.mark.slow
def test_valid_proof_verifies(fixture_vk):
    pub, _, proof, verifier = fixture_vk
    assert verifier.verify(proof, pub)


@pytest.mark.slow
@pytest.mark.parametrize(
    "change",
    [
        {"root": POSEIDON_1_2 + 1},
        {"nullifier": 12346},
        {"amount": 41},
        {"recipient": BOB},
        {"output_commitment": 1},
    ],
)
def test_perturbed_public_input_fails(fixture_vk, change):
    _, _, proof, verifier = fixture_vk
    assert not verifier.verify(proof, _public(**change))


@pytest.mark.slow
def test_tampered_or_truncated_proof_fails(fixture_vk):
    pub, _, proof, verifier = fixture_vk
    tampered = proof[:-1] + bytes([proof[-1] ^ 1])
    assert not verifier.verify(tampered, pub)
    assert not verifier.verify(proof[:-1], pub)
    # A and C swapped: still valid points, wrong equation.
    swapped = proof[192:] + proof[64:192] + proof[:64]
    assert not verifier.verify(swapped, pub)


@pytest.mark.slow
def test_from_file_roundtrip(tmp_path, fixture_vk):
    pub, vk_json, proof, _ = fixture_vk
    path = tmp_path / "verification_key.json"
    path.write_text(json.dumps(vk_json))
    verifier = Groth16Verifier.from_config(SimpleNamespace(vk_path=path))
    assert verifier.verify(proof, pub)


@pytest.mark.slow
def test_snarkjs_json_interface(fixture_vk):
    pub, vk_json, proof, _ = fixture_vk
    p = decode_proof(proof)
    (ax, ay), (cx, cy) = normalize_g1(p.A), normalize_g1(p.C)
    (bx0, bx1), (by0, by1) = normalize_g2(p.B)
    proof_json = {
        "pi_a": [str(ax), str(ay), "1"],
        "pi_b": [[str(bx0), str(bx1)], [str(by0), str(by1)], ["1", "0"]],
        "pi_c": [str(cx), str(cy), "1"],
    }
    assert verify_groth16(vk_json, proof_json, [str(v) for v in pub.to_field_list()])
    assert proof_from_snarkjs(proof_json) == proof


@pytest.mark.slow
def test_wrong_public_input_count_is_config_error():
    vk_json, _ = groth16_fixture([1, 2])
    with pytest.raises(InvalidConfig):
        Groth16Verifier.from_json(vk_json)
