"""
Envelope Crypto — Key derivation and AES-256-CBC response envelopes.

Wire format (shared with the callback platform):
    base64( IV 16B | AES-256-CBC(PKCS7(plaintext)) )
    key = SHA-256(passphrase)

No length prefix and no authentication tag; a peer strips the first 16
bytes as IV, decrypts and removes the PKCS7 padding.

Security Note:
    Never log plaintext, passphrase or ciphertext values.
    A fresh random IV is drawn on every call; two envelopes of the same
    plaintext under the same passphrase always differ.
"""
import os
import base64
import logging

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..exceptions import EncryptionFailure, ValidationFailure

logger = logging.getLogger("lark_options.envelope")

IV_SIZE = 16  # AES block / CBC IV
KEY_LENGTH = 32  # AES-256
BLOCK_BITS = algorithms.AES.block_size  # 128


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(passphrase: str) -> bytes:
    """Derive the 32-byte AES key as SHA-256 of the passphrase.

    Args:
        passphrase: Shared secret configured on both sides.

    Returns:
        32-byte derived key.

    Raises:
        ValidationFailure: If passphrase is empty.
    """
    if not passphrase:
        raise ValidationFailure("Envelope passphrase cannot be empty")
    digest = hashes.Hash(hashes.SHA256())
    digest.update(passphrase.encode("utf-8"))
    return digest.finalize()


# ---------------------------------------------------------------------------
# Envelope encoding
# ---------------------------------------------------------------------------

def encrypt(plaintext: bytes, passphrase: str) -> str:
    """Encrypt plaintext into a base64 envelope.

    Args:
        plaintext: Data to encrypt (may be empty).
        passphrase: Shared secret used for key derivation.

    Returns:
        base64 string of ``IV | ciphertext``.

    Raises:
        ValidationFailure: If passphrase is empty.
        EncryptionFailure: On any cipher or encoding fault.
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    key = derive_key(passphrase)
    try:
        iv = os.urandom(IV_SIZE)
        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ct = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(iv + ct).decode("ascii")
    except (TypeError, ValueError) as err:
        logger.error("Envelope encryption failed: %s", type(err).__name__)
        raise EncryptionFailure(f"Unable to encrypt envelope: {err}") from err


def decrypt(envelope: str, passphrase: str) -> bytes:
    """Reverse :func:`encrypt` the way the callback platform does.

    Args:
        envelope: base64 string of ``IV | ciphertext``.
        passphrase: Shared secret used for key derivation.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        ValueError: If the envelope is malformed or padding is invalid.
    """
    raw = base64.b64decode(envelope, validate=True)
    _min = IV_SIZE + IV_SIZE  # IV + one padded block
    if len(raw) < _min or (len(raw) - IV_SIZE) % IV_SIZE:
        raise ValueError(
            f"envelope has invalid length: {len(raw)} bytes "
            f"(minimum {_min}, multiple of {IV_SIZE})"
        )
    key = derive_key(passphrase)
    iv, ct = raw[:IV_SIZE], raw[IV_SIZE:]
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ct) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
    return unpadder.update(padded) + unpadder.finalize()
