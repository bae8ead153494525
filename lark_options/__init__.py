"""Lark Options.

Dynamic option-list callbacks backed by a Bitable table, with optional
AES-256-CBC response envelopes.
"""
from .version import __version__
from .exceptions import (
    OptionsError,
    EncryptionFailure,
    AuthFailure,
    UpstreamFailure,
    ValidationFailure,
)
from .conf import LarkConfig, EnvelopeConfig
from .envelope import encrypt, derive_key
from .bitable import Credential, CredentialCache, RecordGateway, RecordSet
from .options import OptionService

__all__ = [
    "__version__",
    "OptionsError",
    "EncryptionFailure",
    "AuthFailure",
    "UpstreamFailure",
    "ValidationFailure",
    "LarkConfig",
    "EnvelopeConfig",
    "encrypt",
    "derive_key",
    "Credential",
    "CredentialCache",
    "RecordGateway",
    "RecordSet",
    "OptionService",
]
