"""Bitable — token-cached access to Lark Base tables."""

from .credentials import Credential, CredentialCache
from .gateway import RecordGateway, RecordSet
from . import filters

__all__ = [
    "Credential",
    "CredentialCache",
    "RecordGateway",
    "RecordSet",
    "filters",
]
