"""
Exception classes for the IP detector.

All exceptions inherit from IPDetectorError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class IPDetectorError(Exception):
    """Base exception for all IP detector errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class VaultError(IPDetectorError):
    """Raised when the credential vault cannot encrypt or decrypt."""

    pass


class IdentityUnavailable(VaultError):
    """Raised when the host's user identity cannot be determined."""

    pass


class DecryptionFailed(VaultError):
    """
    Raised when a vault blob cannot be opened.

    Malformed base64, a truncated blob and a failed authentication tag
    all surface as this one error.
    """

    pass


class PersistenceError(IPDetectorError):
    """Raised when persistence operations fail."""

    pass


class NotFound(PersistenceError):
    """Raised when the persisted state file does not exist."""

    pass


class CorruptState(PersistenceError):
    """Raised when the persisted state file cannot be parsed."""

    pass


class CorruptHistory(PersistenceError):
    """Raised when the history file exists but cannot be parsed."""

    pass


class PersistError(PersistenceError):
    """Raised when writing state or history to disk fails."""

    pass


class NetworkError(IPDetectorError):
    """Raised when network operations fail."""

    pass


class AllServicesFailed(NetworkError):
    """Raised when every lookup service failed for the IPv4 family."""

    pass


class NotificationError(IPDetectorError):
    """Raised when notification delivery fails."""

    pass


class DispatchFailed(NotificationError):
    """Raised when the messaging endpoint rejects or cannot receive a message."""

    pass
