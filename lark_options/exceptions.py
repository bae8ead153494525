"""Failure taxonomy shared by the envelope, credential and record layers."""


class OptionsError(Exception):
    """Base class for every lark_options failure."""

    def __init__(self, message: str = None, *, status: int = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message
        self.status = status


class EncryptionFailure(OptionsError):
    """The envelope could not be produced (key derivation or cipher fault)."""


class AuthFailure(OptionsError):
    """An app access token could not be obtained from the auth endpoint."""


class UpstreamFailure(OptionsError):
    """The Bitable record query failed, timed out or returned non-2xx."""


class ValidationFailure(OptionsError, ValueError):
    """Caller supplied missing or malformed input."""
