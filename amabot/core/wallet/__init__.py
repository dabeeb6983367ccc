"""
Custodial wallet primitives.

- signing: BLS12-381 keypairs and transaction signatures
- encryption: AES-256-GCM sealing of wallet secrets at rest

Usage:
    from amabot.core.wallet import SecretCipher, generate_keypair, sign_transaction

    cipher = SecretCipher(settings.encryption_key)
    keypair = generate_keypair()
    sealed = cipher.encrypt(keypair.private_key)

    signature = sign_transaction(signing_payload, cipher.decrypt(sealed))
"""

from .encryption import DecryptionError, EncryptionError, SecretCipher
from .signing import (
    TX_DST,
    Keypair,
    SigningError,
    generate_keypair,
    public_key_for,
    sign_transaction,
)

__all__ = [
    "DecryptionError",
    "EncryptionError",
    "SecretCipher",
    "TX_DST",
    "Keypair",
    "SigningError",
    "generate_keypair",
    "public_key_for",
    "sign_transaction",
]
