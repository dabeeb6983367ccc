"""
BLS12-381 signing for Amadeus transactions.

Keys are 64-byte seeds encoded in Base58. The secret scalar is the seed read
big-endian and reduced modulo the curve order; public keys live in G1
(48-byte compressed), signatures in G2 (96-byte compressed). Messages are
hashed to G2 with the transaction domain separation tag below.
"""

import hashlib
import secrets
from dataclasses import dataclass

import base58
from py_ecc.bls.g2_primitives import G1_to_pubkey, G2_to_signature
from py_ecc.bls.hash_to_curve import hash_to_G2
from py_ecc.optimized_bls12_381 import G1, curve_order, multiply

TX_DST = b"AMADEUS_SIG_BLS12381G2_XMD:SHA-256_SSWU_RO_TX_"
SEED_LENGTH = 64


class SigningError(Exception):
    """Raised when a payload or key cannot be used for signing."""
    pass


@dataclass(frozen=True)
class Keypair:
    public_key: str   # Base58 compressed G1 point
    private_key: str  # Base58 64-byte seed

    def __repr__(self) -> str:
        return f"Keypair(public_key={self.public_key!r})"


def _secret_scalar(private_key_b58: str) -> int:
    try:
        seed = base58.b58decode(private_key_b58)
    except ValueError as e:
        raise SigningError(f"Private key is not valid Base58: {e}") from e
    if len(seed) != SEED_LENGTH:
        raise SigningError(f"Private key seed must be {SEED_LENGTH} bytes, got {len(seed)}")

    scalar = int.from_bytes(seed, "big") % curve_order
    if scalar == 0:
        raise SigningError("Private key reduces to the zero scalar")
    return scalar


def public_key_for(private_key_b58: str) -> str:
    """Derive the Base58 wallet address for a Base58 seed."""
    point = multiply(G1, _secret_scalar(private_key_b58))
    return base58.b58encode(G1_to_pubkey(point)).decode("ascii")


def generate_keypair() -> Keypair:
    """Create a fresh wallet keypair from a random seed."""
    while True:
        seed = secrets.token_bytes(SEED_LENGTH)
        private_key = base58.b58encode(seed).decode("ascii")
        if int.from_bytes(seed, "big") % curve_order:
            return Keypair(public_key=public_key_for(private_key), private_key=private_key)


def sign_transaction(signing_payload: str, private_key_b58: str) -> str:
    """Sign a hex signing payload returned by ``create_transaction``.

    Returns the compressed G2 signature encoded in Base58.
    """
    payload = signing_payload[2:] if signing_payload.startswith("0x") else signing_payload
    try:
        message = bytes.fromhex(payload)
    except ValueError as e:
        raise SigningError(f"Signing payload is not valid hex: {e}") from e
    if not message:
        raise SigningError("Signing payload is empty")

    message_point = hash_to_G2(message, TX_DST, hashlib.sha256)
    signature_point = multiply(message_point, _secret_scalar(private_key_b58))
    return base58.b58encode(G2_to_signature(signature_point)).decode("ascii")
