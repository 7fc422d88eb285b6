"""
Configuration dataclasses for the IP detector.

This module defines the configuration structures used throughout the system,
including lookup service descriptors, resolver and Telegram settings,
persistence locations, scheduling and logging configuration.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__


DEFAULT_BASE_DIR = Path.home() / ".ip_detector"


@dataclass(frozen=True)
class DetectionService:
    """A public IP lookup service with one endpoint per address family."""

    name: str
    ipv4_endpoint: str
    ipv6_endpoint: str


@dataclass
class ResolverConfig:
    """Lookup request behaviour."""

    timeout_seconds: float = 10.0
    user_agent: str = f"ip_detector/{__version__}"


@dataclass
class TelegramConfig:
    """Telegram Bot API settings. Credentials live encrypted in the state file."""

    api_base: str = "https://api.telegram.org"
    timeout_seconds: float = 10.0
    parse_mode: str = "Markdown"


@dataclass
class PersistenceConfig:
    """Locations of the state and history files."""

    base_dir: Path = DEFAULT_BASE_DIR
    state_file_name: str = "config.json"
    history_file_name: str = "ip_history.json"
    max_history: int = 500

    @property
    def state_file_path(self) -> Path:
        return self.base_dir / self.state_file_name

    @property
    def history_file_path(self) -> Path:
        return self.base_dir / self.history_file_name


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SchedulerConfig:
    """Daemon scheduling configuration."""

    interval_seconds: float = 300.0


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    language: str = "en"  # 'en' or 'de'


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def load_config_from_env(env_file: Optional[Path] = None) -> SystemConfig:
    """
    Build a SystemConfig from environment variables.

    A ``.env`` file is loaded first (without overriding variables that are
    already set). Invalid numeric values fall back to the defaults.

    Args:
        env_file: Optional explicit path to a .env file

    Returns:
        SystemConfig populated from the environment
    """
    load_dotenv(dotenv_path=env_file)

    config = SystemConfig()

    home = os.getenv("IP_DETECTOR_HOME", "").strip()
    if home:
        config.persistence.base_dir = Path(home).expanduser()

    interval = _float_env("IP_DETECTOR_INTERVAL", config.scheduler.interval_seconds)
    if interval > 0:
        config.scheduler.interval_seconds = interval

    timeout = _float_env("IP_DETECTOR_TIMEOUT", config.resolver.timeout_seconds)
    if timeout > 0:
        config.resolver.timeout_seconds = timeout

    language = (os.getenv("IP_DETECTOR_LANG", config.language) or config.language).lower()
    config.language = language if language in ("en", "de") else "en"

    level = (os.getenv("IP_DETECTOR_LOG_LEVEL", "") or "").strip().lower()
    if level in ("debug", "info", "warn", "error"):
        config.logging.level = level

    output_format = (os.getenv("IP_DETECTOR_LOG_FORMAT", "") or "").strip().lower()
    if output_format in ("json", "text", "both"):
        config.logging.output_format = output_format

    return config
