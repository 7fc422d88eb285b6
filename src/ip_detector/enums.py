"""
Enumeration types for the IP detector.

These enums provide type-safe constants for address families, lookup
error codes, cycle phases and logging levels.
"""

from enum import Enum


class AddressFamily(Enum):
    """IP address family tracked independently by the detector."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"


class LookupErrorCode(Enum):
    """Error codes for a single lookup attempt."""

    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    HTTP_STATUS = "http_status"
    EMPTY_BODY = "empty_body"


class CyclePhase(Enum):
    """Phases of a detection cycle as driven by the scheduler."""

    IDLE = "idle"
    RESOLVING = "resolving"
    EVALUATING = "evaluating"
    PERSISTING = "persisting"
    NOTIFYING = "notifying"
    STOPPED = "stopped"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
