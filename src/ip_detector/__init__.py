"""
IP Detector - public IP change detection with Telegram notifications.

This package resolves a host's public IPv4 and IPv6 addresses through a
list of lookup services with fallback, records changes in an owner-only
state file and history log, and reports each change set once via Telegram
using credentials sealed to the local machine.
"""

__version__ = "0.1.0"
__author__ = "IP Detector Team"

from ip_detector.exceptions import (
    IPDetectorError,
    VaultError,
    IdentityUnavailable,
    DecryptionFailed,
    PersistenceError,
    NotFound,
    CorruptState,
    CorruptHistory,
    PersistError,
    NetworkError,
    AllServicesFailed,
    NotificationError,
    DispatchFailed,
)
from ip_detector.enums import (
    AddressFamily,
    CyclePhase,
    LogLevel,
    LookupErrorCode,
)
from ip_detector.config import (
    DetectionService,
    ResolverConfig,
    TelegramConfig,
    PersistenceConfig,
    LoggingConfig,
    SchedulerConfig,
    SystemConfig,
    load_config_from_env,
)
from ip_detector.models import (
    PersistedState,
    HistoryEntry,
    Credentials,
)
from ip_detector.vault import (
    Vault,
    MachineIdentity,
    derive_key,
)
from ip_detector.state_store import (
    StateStore,
    upgrade_record,
)
from ip_detector.history_log import HistoryLog
from ip_detector.registry import (
    ServiceRegistry,
    DEFAULT_SERVICES,
    DEFAULT_SERVICE_NAME,
)
from ip_detector.resolver import (
    Resolver,
    LookupFailure,
    LookupResponse,
    ResolvedAddress,
    ResolutionResult,
)
from ip_detector.change_detector import (
    ChangeDetector,
    ChangeVerdict,
    FamilyStatus,
)
from ip_detector.audit_logger import (
    AuditLogger,
    LogEntry,
)
from ip_detector.notifications import (
    NotificationDispatcher,
    TelegramChannel,
    format_change_message,
    format_test_message,
)
from ip_detector.i18n import (
    get_message,
    get_missing_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from ip_detector.orchestrator import (
    DetectionCycle,
    CycleResult,
)
from ip_detector.scheduler import Scheduler
from ip_detector.self_test import (
    SelfTest,
    SelfTestResult,
    EndpointTestResult,
    ConfigValidationResult,
)
from ip_detector.cli import main as cli_main, create_parser

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "IPDetectorError",
    "VaultError",
    "IdentityUnavailable",
    "DecryptionFailed",
    "PersistenceError",
    "NotFound",
    "CorruptState",
    "CorruptHistory",
    "PersistError",
    "NetworkError",
    "AllServicesFailed",
    "NotificationError",
    "DispatchFailed",
    # Enums
    "AddressFamily",
    "CyclePhase",
    "LogLevel",
    "LookupErrorCode",
    # Config
    "DetectionService",
    "ResolverConfig",
    "TelegramConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "SchedulerConfig",
    "SystemConfig",
    "load_config_from_env",
    # Models
    "PersistedState",
    "HistoryEntry",
    "Credentials",
    # Vault
    "Vault",
    "MachineIdentity",
    "derive_key",
    # State Store
    "StateStore",
    "upgrade_record",
    # History Log
    "HistoryLog",
    # Registry
    "ServiceRegistry",
    "DEFAULT_SERVICES",
    "DEFAULT_SERVICE_NAME",
    # Resolver
    "Resolver",
    "LookupFailure",
    "LookupResponse",
    "ResolvedAddress",
    "ResolutionResult",
    # Change Detector
    "ChangeDetector",
    "ChangeVerdict",
    "FamilyStatus",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Notifications
    "NotificationDispatcher",
    "TelegramChannel",
    "format_change_message",
    "format_test_message",
    # I18n
    "get_message",
    "get_missing_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # Orchestrator
    "DetectionCycle",
    "CycleResult",
    # Scheduler
    "Scheduler",
    # CLI
    "cli_main",
    "create_parser",
    # Self-Test
    "SelfTest",
    "SelfTestResult",
    "EndpointTestResult",
    "ConfigValidationResult",
]
