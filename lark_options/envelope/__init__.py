"""Envelope — encrypted response bodies for option-list callbacks.

Security Note (Threat Model):
    The envelope is AES-256-CBC without an authentication tag, as required by
    the callback platform. It provides confidentiality only; integrity of the
    callback channel relies on TLS.
"""

from .crypto import derive_key, encrypt, decrypt, IV_SIZE

__all__ = [
    "derive_key",
    "encrypt",
    "decrypt",
    "IV_SIZE",
]
