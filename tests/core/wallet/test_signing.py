import hashlib

import base58
import pytest
from py_ecc.bls.g2_primitives import pubkey_to_G1, signature_to_G2
from py_ecc.bls.hash_to_curve import hash_to_G2
from py_ecc.optimized_bls12_381 import G1, pairing

from amabot.core.wallet import (
    TX_DST,
    SigningError,
    generate_keypair,
    public_key_for,
    sign_transaction,
)

PAYLOAD = "0x" + "5a" * 32


@pytest.fixture(scope="module")
def keypair():
    return generate_keypair()


def test_keypair_encoding(keypair):
    assert len(base58.b58decode(keypair.private_key)) == 64
    assert len(base58.b58decode(keypair.public_key)) == 48
    assert public_key_for(keypair.private_key) == keypair.public_key
    assert keypair.private_key not in repr(keypair)


def test_signature_is_deterministic_compressed_g2(keypair):
    first = sign_transaction(PAYLOAD, keypair.private_key)
    second = sign_transaction(PAYLOAD[2:], keypair.private_key)

    assert first == second
    assert len(base58.b58decode(first)) == 96


def test_signature_verifies_against_public_key(keypair):
    signature = sign_transaction(PAYLOAD, keypair.private_key)

    message_point = hash_to_G2(bytes.fromhex(PAYLOAD[2:]), TX_DST, hashlib.sha256)
    lhs = pairing(signature_to_G2(base58.b58decode(signature)), G1)
    rhs = pairing(message_point, pubkey_to_G1(base58.b58decode(keypair.public_key)))

    assert lhs == rhs


def test_different_payloads_give_different_signatures(keypair):
    assert sign_transaction("01", keypair.private_key) != sign_transaction("02", keypair.private_key)


@pytest.mark.parametrize("payload", ["", "0x", "zz", "abc"])
def test_rejects_bad_payload(keypair, payload):
    with pytest.raises(SigningError):
        sign_transaction(payload, keypair.private_key)


def test_rejects_short_seed():
    short_seed = base58.b58encode(b"\x01" * 32).decode("ascii")
    with pytest.raises(SigningError):
        sign_transaction(PAYLOAD, short_seed)
