"""
Error types raised by the token launch pipeline
"""

from typing import Optional


class LaunchError(Exception):
    """Token launch failed."""
    def __init__(self, message: str, step: Optional[str] = None):
        self.message = message
        self.step = step
        super().__init__(message)


class ValidationError(LaunchError):
    """Launch request or signed payload is malformed. Nothing has touched the network."""
    def __init__(self, message: str, step: Optional[str] = "validate"):
        super().__init__(message, step)


class CredentialDecodeError(LaunchError):
    """Master wallet secret could not be turned into a keypair."""


class MetadataPublishError(LaunchError):
    """Pinning call failed. Caught inside the publisher, which falls back to an inline URI."""
    def __init__(self, message: str, step: Optional[str] = "publish_metadata"):
        super().__init__(message, step)


class LedgerError(LaunchError):
    """Transaction submission, confirmation or account read failed."""


class SessionNotFoundError(LaunchError):
    """No live prepare session for the given id."""
    def __init__(self, message: str, step: Optional[str] = "load_session"):
        super().__init__(message, step)


class SessionMismatchError(LaunchError):
    """Signed transaction does not match the prepared one."""
    def __init__(self, message: str, step: Optional[str] = "verify_signed_transaction"):
        super().__init__(message, step)


class SessionCapacityError(LaunchError):
    """Too many pending prepare sessions."""


class TokenNotFoundError(LaunchError):
    """Mint account does not exist on the ledger."""
