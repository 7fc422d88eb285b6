"""
Command-line interface for the IP detector.

This module provides the main CLI entry point with commands for:
- detect: Print the current public addresses without saving anything
- run: One detection cycle with persistence and notification
- daemon: Repeating detection cycles until SIGINT/SIGTERM
- setup: Store the preferred service and encrypted Telegram credentials
- test-notify: Send a test message with the stored credentials
- history: Show recorded address changes
- services: List the lookup services in fallback order
- self-test: Validate configuration and probe every lookup endpoint
"""

import argparse
import asyncio
import signal
import socket
import sys
from pathlib import Path
from typing import Optional

import httpx

from . import __version__
from .audit_logger import AuditLogger
from .config import SystemConfig, load_config_from_env
from .enums import AddressFamily
from .exceptions import (
    AllServicesFailed,
    CorruptHistory,
    DispatchFailed,
    IPDetectorError,
    NotFound,
    PersistenceError,
    PersistError,
    VaultError,
)
from .history_log import HistoryLog
from .i18n import SUPPORTED_LANGUAGES, get_message
from .notifications import NotificationDispatcher
from .orchestrator import CycleResult, DetectionCycle
from .registry import DEFAULT_SERVICE_NAME, ServiceRegistry
from .resolver import Resolver
from .scheduler import Scheduler
from .self_test import SelfTest
from .state_store import StateStore
from .vault import Vault


FAMILY_LABELS = {
    AddressFamily.IPV4: "IPv4",
    AddressFamily.IPV6: "IPv6",
}


def get_hostname() -> str:
    """Return the host name shown in notifications."""
    try:
        return socket.gethostname() or "unknown"
    except OSError:
        return "unknown"


def build_config(args: argparse.Namespace) -> SystemConfig:
    """
    Build the system configuration from the environment and CLI flags.

    Command line flags override environment values.
    """
    config = load_config_from_env()

    if args.home:
        config.persistence.base_dir = Path(args.home).expanduser()
    if args.language:
        config.language = args.language
    if args.log_level:
        config.logging.level = args.log_level
    if args.log_format:
        config.logging.output_format = args.log_format
    if getattr(args, "interval", None):
        config.scheduler.interval_seconds = args.interval

    return config


def create_logger(config: SystemConfig) -> AuditLogger:
    """Create the audit logger described by the logging configuration."""
    return AuditLogger.from_config(config.logging.level, config.logging.output_format)


def create_state_store(config: SystemConfig, logger: Optional[AuditLogger] = None) -> StateStore:
    return StateStore(config.persistence.state_file_path, logger=logger)


def create_history_log(config: SystemConfig) -> HistoryLog:
    return HistoryLog(
        config.persistence.history_file_path,
        max_entries=config.persistence.max_history,
    )


def create_dispatcher(
    config: SystemConfig,
    logger: Optional[AuditLogger] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        vault=Vault(),
        config=config.telegram,
        logger=logger,
        language=config.language,
        transport=transport,
    )


def _failed_stage(error: IPDetectorError, result: CycleResult) -> str:
    if isinstance(error, (DispatchFailed, VaultError)):
        return "Notification"
    if isinstance(error, CorruptHistory) or (isinstance(error, PersistError) and result.state_saved):
        return "History"
    if isinstance(error, PersistError):
        return "State save"
    return type(error).__name__


def print_cycle_result(result: CycleResult, language: str) -> None:
    """
    Print a human-readable summary of one detection cycle.

    Stage failures other than the IPv4 lookup go to stderr, one line each.
    """
    resolution = result.resolution
    verdict = result.verdict
    if resolution is None or verdict is None:
        return

    if resolution.ipv4 is not None:
        print(get_message(
            "cli.address_via", language,
            family="IPv4", address=resolution.ipv4.address, service=resolution.ipv4.service,
        ))
    else:
        error = result.ipv4_error.message if result.ipv4_error else ""
        print(get_message("cli.ipv4_failed", language, error=error))

    if resolution.ipv6 is not None:
        print(get_message(
            "cli.address_via", language,
            family="IPv6", address=resolution.ipv6.address, service=resolution.ipv6.service,
        ))
    elif verdict.ipv6.previous:
        print(get_message("cli.ipv6_unavailable_was", language, previous=verdict.ipv6.previous))
    else:
        print(get_message("cli.ipv6_unavailable", language))

    if not verdict.any_changed:
        print(get_message("cli.no_changes", language))
    elif result.state_saved:
        for family in verdict.changed_families():
            status = verdict.for_family(family)
            if status.is_first_record:
                print(get_message(
                    "cli.initial_recorded", language,
                    family=FAMILY_LABELS[family], current=status.current,
                ))
            else:
                print(get_message(
                    "cli.changed", language,
                    family=FAMILY_LABELS[family], previous=status.previous, current=status.current,
                ))
        if result.notification_sent:
            print(get_message("cli.notification_sent", language))

    for error in result.errors:
        if error is result.ipv4_error:
            continue
        print(
            get_message("cli.stage_failed", language, stage=_failed_stage(error, result), error=error.message),
            file=sys.stderr,
        )


async def detect_addresses(config: SystemConfig, hostname: str) -> int:
    """
    Resolve and print both address families without touching any state.

    Works without a saved configuration; the preferred service then
    defaults to the first built-in one.

    Returns:
        Exit code (0 if IPv4 was detected, 1 otherwise)
    """
    language = config.language
    service = DEFAULT_SERVICE_NAME

    state_store = create_state_store(config)
    if state_store.exists():
        try:
            service = state_store.load().selected_service or DEFAULT_SERVICE_NAME
        except PersistenceError:
            pass

    print(get_message("cli.detecting", language))
    print(get_message("cli.hostname", language, hostname=hostname))
    print()

    async with Resolver(ServiceRegistry(), config.resolver) as resolver:
        resolution = await resolver.resolve_all(service)

    if resolution.ipv4 is not None:
        print(get_message(
            "cli.address_via", language,
            family="IPv4", address=resolution.ipv4.address, service=resolution.ipv4.service,
        ))
    else:
        error = resolution.ipv4_error.message if resolution.ipv4_error else ""
        print(get_message("cli.ipv4_failed", language, error=error))

    if resolution.ipv6 is not None:
        print(get_message(
            "cli.address_via", language,
            family="IPv6", address=resolution.ipv6.address, service=resolution.ipv6.service,
        ))
    else:
        print(get_message("cli.ipv6_unavailable", language))

    return 0 if resolution.ipv4 is not None else 1


async def run_detection(
    config: SystemConfig,
    hostname: str,
    logger: AuditLogger,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """
    Run one detection cycle with persistence and notification.

    The optional transport serves both the lookups and the Telegram call.

    Returns:
        Exit code (1 if IPv4 failed on every service or setup is missing)
    """
    language = config.language
    state_store = create_state_store(config, logger)

    async with Resolver(
        ServiceRegistry(), config.resolver, logger=logger, transport=transport
    ) as resolver:
        cycle = DetectionCycle(
            state_store=state_store,
            history_log=create_history_log(config),
            resolver=resolver,
            dispatcher=create_dispatcher(config, logger, transport),
            logger=logger,
        )
        scheduler = Scheduler(cycle, config.scheduler.interval_seconds, logger=logger)
        try:
            result = await scheduler.run_once(hostname)
        except NotFound:
            print(get_message("cli.not_configured", language, path=state_store.file_path), file=sys.stderr)
            return 1
        except IPDetectorError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

    print_cycle_result(result, language)
    return 1 if isinstance(result.ipv4_error, AllServicesFailed) else 0


async def run_daemon(config: SystemConfig, hostname: str, logger: AuditLogger) -> int:
    """
    Run detection cycles until SIGINT or SIGTERM.

    Returns:
        Exit code (1 only if no configuration exists at start)
    """
    language = config.language
    state_store = create_state_store(config, logger)
    if not state_store.exists():
        print(get_message("cli.not_configured", language, path=state_store.file_path), file=sys.stderr)
        return 1

    print(get_message("cli.daemon_start", language, interval=f"{config.scheduler.interval_seconds:g}"))
    print(get_message("cli.hostname", language, hostname=hostname))
    print(get_message("cli.daemon_stop_hint", language))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Platforms without loop signal support fall back to KeyboardInterrupt
            pass

    def on_result(result: CycleResult) -> None:
        print_cycle_result(result, language)

    async with Resolver(ServiceRegistry(), config.resolver, logger=logger) as resolver:
        cycle = DetectionCycle(
            state_store=state_store,
            history_log=create_history_log(config),
            resolver=resolver,
            dispatcher=create_dispatcher(config, logger),
            logger=logger,
        )
        scheduler = Scheduler(
            cycle,
            config.scheduler.interval_seconds,
            logger=logger,
            on_result=on_result,
        )
        await scheduler.run(hostname, stop_event)

    print(get_message("cli.daemon_stopped", language))
    return 0


async def send_test_notification(
    config: SystemConfig,
    hostname: str,
    logger: AuditLogger,
) -> int:
    """Send a test message with the stored credentials."""
    language = config.language
    state_store = create_state_store(config, logger)

    try:
        state = state_store.load()
    except NotFound:
        print(get_message("cli.not_configured", language, path=state_store.file_path), file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    try:
        await create_dispatcher(config, logger).send_test(hostname, state)
    except (VaultError, DispatchFailed) as e:
        print(f"Failed to send test notification: {e.message}", file=sys.stderr)
        return 1

    print(get_message("cli.test_sent", language))
    return 0


def cmd_detect(args: argparse.Namespace) -> int:
    """Handle the 'detect' command."""
    config = build_config(args)
    return asyncio.run(detect_addresses(config, get_hostname()))


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the 'run' command."""
    config = build_config(args)
    logger = create_logger(config)
    return asyncio.run(run_detection(config, get_hostname(), logger))


def cmd_daemon(args: argparse.Namespace) -> int:
    """Handle the 'daemon' command."""
    config = build_config(args)
    if config.scheduler.interval_seconds <= 0:
        print("Error: interval must be positive", file=sys.stderr)
        return 1
    logger = create_logger(config)
    try:
        return asyncio.run(run_daemon(config, get_hostname(), logger))
    except KeyboardInterrupt:
        print(get_message("cli.daemon_stopped", config.language))
        return 0


def cmd_setup(args: argparse.Namespace) -> int:
    """Handle the 'setup' command."""
    config = build_config(args)
    logger = create_logger(config)
    registry = ServiceRegistry()

    if args.service not in registry:
        print(
            f"Error: unknown service '{args.service}' (choose from: {', '.join(registry.names())})",
            file=sys.stderr,
        )
        return 1

    bot_token = args.bot_token.strip()
    chat_id = args.chat_id.strip()
    if not bot_token:
        print("Error: bot token cannot be empty", file=sys.stderr)
        return 1
    if not chat_id:
        print("Error: chat ID cannot be empty", file=sys.stderr)
        return 1

    state_store = create_state_store(config, logger)
    try:
        state_store.create(args.service, bot_token, chat_id, Vault())
    except IPDetectorError as e:
        print(f"Setup failed: {e.message}", file=sys.stderr)
        return 1

    print(get_message("cli.setup_saved", config.language))

    if args.no_test:
        return 0

    if asyncio.run(send_test_notification(config, get_hostname(), logger)) != 0:
        print("⚠️  Warning: configuration was saved but the test notification failed.")
    return 0


def cmd_test_notify(args: argparse.Namespace) -> int:
    """Handle the 'test-notify' command."""
    config = build_config(args)
    logger = create_logger(config)
    return asyncio.run(send_test_notification(config, get_hostname(), logger))


def cmd_history(args: argparse.Namespace) -> int:
    """Handle the 'history' command."""
    config = build_config(args)
    history_log = create_history_log(config)

    try:
        entries = history_log.load()
    except CorruptHistory as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if not entries:
        print(get_message("cli.history_empty", config.language))
        return 0

    if args.limit is not None:
        entries = entries[: max(args.limit, 0)]

    for entry in entries:
        old_ip = entry.old_ip or "-"
        print(f"{entry.timestamp}  {entry.family:<4}  {old_ip} -> {entry.new_ip}")
    return 0


def cmd_services(args: argparse.Namespace) -> int:
    """Handle the 'services' command."""
    config = build_config(args)
    selected = None

    state_store = create_state_store(config)
    if state_store.exists():
        try:
            selected = state_store.load().selected_service
        except PersistenceError:
            pass

    for index, service in enumerate(ServiceRegistry(), start=1):
        marker = "*" if service.name == selected else " "
        print(f"{marker} {index}. {service.name}")
        print(f"     IPv4: {service.ipv4_endpoint}")
        print(f"     IPv6: {service.ipv6_endpoint}")
    return 0


def cmd_self_test(args: argparse.Namespace) -> int:
    """Handle the 'self-test' command."""
    config = build_config(args)
    self_test = SelfTest(config)
    result = asyncio.run(self_test.run())
    self_test.print_results(result, config.language)
    return 0 if result.success else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="ip-detector",
        description="Public IP change detector with Telegram notifications",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--home",
        help="Directory holding the state and history files (default: ~/.ip_detector)",
    )
    parser.add_argument(
        "--language", "-l",
        choices=sorted(SUPPORTED_LANGUAGES),
        help="Output language (default: en)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        help="Minimum log level (default: info)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "text", "both"],
        help="Log output format (default: text)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    detect_parser = subparsers.add_parser(
        "detect",
        help="Show the current public addresses without saving or notifying",
    )
    detect_parser.set_defaults(func=cmd_detect)

    run_parser = subparsers.add_parser(
        "run",
        help="Run one detection cycle with persistence and notification",
    )
    run_parser.set_defaults(func=cmd_run)

    daemon_parser = subparsers.add_parser(
        "daemon",
        help="Check periodically until interrupted",
    )
    daemon_parser.add_argument(
        "--interval", "-i",
        type=float,
        help="Check interval in seconds (default: 300)",
    )
    daemon_parser.set_defaults(func=cmd_daemon)

    setup_parser = subparsers.add_parser(
        "setup",
        help="Save the lookup service and Telegram credentials",
    )
    setup_parser.add_argument(
        "--service", "-s",
        default=DEFAULT_SERVICE_NAME,
        help=f"Preferred lookup service (default: {DEFAULT_SERVICE_NAME})",
    )
    setup_parser.add_argument(
        "--bot-token",
        required=True,
        help="Telegram bot token",
    )
    setup_parser.add_argument(
        "--chat-id",
        required=True,
        help="Telegram chat id",
    )
    setup_parser.add_argument(
        "--no-test",
        action="store_true",
        help="Skip the test notification",
    )
    setup_parser.set_defaults(func=cmd_setup)

    test_notify_parser = subparsers.add_parser(
        "test-notify",
        help="Send a test notification",
    )
    test_notify_parser.set_defaults(func=cmd_test_notify)

    history_parser = subparsers.add_parser(
        "history",
        help="Show recorded address changes, newest first",
    )
    history_parser.add_argument(
        "--limit", "-n",
        type=int,
        help="Show at most N entries",
    )
    history_parser.set_defaults(func=cmd_history)

    services_parser = subparsers.add_parser(
        "services",
        help="List lookup services in fallback order",
    )
    services_parser.set_defaults(func=cmd_services)

    self_test_parser = subparsers.add_parser(
        "self-test",
        help="Validate configuration and probe every lookup service",
    )
    self_test_parser.set_defaults(func=cmd_self_test)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
