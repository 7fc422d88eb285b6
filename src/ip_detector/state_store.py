"""
State Store module for the persisted application record.

Loads and saves the single PersistedState of an installation as a JSON
object in an owner-only file, upgrading older record shapes on load.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from .audit_logger import AuditLogger
from .enums import LogLevel
from .exceptions import CorruptState, NotFound, PersistError
from .models import PersistedState
from .vault import Vault


SCHEMA_VERSION = 2

DIR_MODE = 0o700
FILE_MODE = 0o600


def write_private_json(file_path: Path, data: Any) -> None:
    """
    Atomically write JSON data readable by the owner only.

    The containing directory is created with owner-only permissions. The
    data goes to a temporary file in the same directory which then
    replaces the target.

    Args:
        file_path: Destination file
        data: JSON-serializable data

    Raises:
        PersistError: If any filesystem operation fails
    """
    tmp_path: Optional[str] = None
    try:
        file_path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=file_path.parent,
            prefix=f".{file_path.name}.",
            suffix=".tmp",
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.chmod(tmp_path, FILE_MODE)
        os.replace(tmp_path, file_path)
        tmp_path = None
    except (OSError, TypeError, ValueError) as e:
        raise PersistError(
            code="io_error",
            message=f"Failed to write {file_path.name}: {e}",
            details={"file_path": str(file_path)},
        ) from e
    finally:
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass


def upgrade_record(raw: dict) -> tuple[dict, bool]:
    """
    Bring a raw state record to the current schema.

    Records may carry the single-address ``last_known_ip`` field from
    before IPv6 tracking, whatever their ``version``. Its value moves to
    ``last_known_ipv4`` unless that is already populated; the legacy field
    is dropped either way. Version 1 records (no ``version`` key) are
    stamped with the current schema version.

    Args:
        raw: Record as read from disk

    Returns:
        Tuple of (canonical record, whether it differs from the input)
    """
    record = dict(raw)
    changed = False

    version = record.get("version")
    if not isinstance(version, int):
        version = 1
    legacy = record.pop("last_known_ip", None)
    if legacy is not None:
        changed = True
    if legacy and not record.get("last_known_ipv4"):
        record["last_known_ipv4"] = legacy

    if version < SCHEMA_VERSION:
        record["version"] = SCHEMA_VERSION
        changed = True

    return record, changed


class StateStore:
    """
    Persistent storage of the application state record.

    The store keeps no state in memory: every load() reads the file, so
    edits made between daemon cycles are picked up. There is no locking
    against concurrent external writers.
    """

    def __init__(
        self,
        file_path: Path,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the state store.

        Args:
            file_path: Path to the state file (JSON format)
            logger: Optional audit logger
        """
        self._file_path = file_path
        self._logger = logger

    @property
    def file_path(self) -> Path:
        """Get the state file path."""
        return self._file_path

    def exists(self) -> bool:
        """Return True if the state file is present and readable."""
        return self._file_path.is_file() and os.access(self._file_path, os.R_OK)

    def load(self) -> PersistedState:
        """
        Load the persisted state, migrating older record shapes.

        Returns:
            The canonical PersistedState

        Raises:
            NotFound: If the state file does not exist
            CorruptState: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            raise NotFound(
                code="not_found",
                message=f"No saved configuration at {self._file_path}",
                details={"file_path": str(self._file_path)},
            )

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptState(
                code="parse_error",
                message=f"Failed to parse state file: {e}",
                details={"file_path": str(self._file_path)},
            ) from e
        except OSError as e:
            raise CorruptState(
                code="io_error",
                message=f"Failed to read state file: {e}",
                details={"file_path": str(self._file_path)},
            ) from e

        if not isinstance(raw, dict):
            raise CorruptState(
                code="parse_error",
                message="State file does not contain a JSON object",
                details={"file_path": str(self._file_path)},
            )

        record, migrated = upgrade_record(raw)
        state = self._from_record(record)

        if migrated:
            try:
                self.save(state)
                self._log(LogLevel.INFO, "Migrated state file to current schema", {
                    "version": SCHEMA_VERSION,
                })
            except PersistError as e:
                self._log(LogLevel.WARN, f"Could not write migrated state: {e.message}", {
                    "file_path": str(self._file_path),
                })

        return state

    def save(self, state: PersistedState) -> None:
        """
        Save the state record with owner-only permissions.

        The legacy single-address field is cleared before writing.

        Raises:
            PersistError: If the file cannot be written
        """
        state.last_known_ip = ""
        write_private_json(self._file_path, self._to_record(state))

    def create(
        self,
        selected_service: str,
        bot_token: str,
        chat_id: str,
        vault: Vault,
    ) -> PersistedState:
        """
        Create and save a fresh state with encrypted credentials.

        Args:
            selected_service: Preferred lookup service name
            bot_token: Telegram bot token (plaintext, encrypted before storing)
            chat_id: Telegram chat id (plaintext, encrypted before storing)
            vault: Vault used for encryption

        Returns:
            The saved PersistedState
        """
        state = PersistedState(selected_service=selected_service)
        vault.seal_credentials(state, bot_token, chat_id)
        self.save(state)
        return state

    def _from_record(self, record: dict) -> PersistedState:
        try:
            return PersistedState(
                selected_service=str(record.get("selected_service") or ""),
                encrypted_bot_token=str(record.get("encrypted_bot_token") or ""),
                encrypted_chat_id=str(record.get("encrypted_chat_id") or ""),
                last_known_ipv4=str(record.get("last_known_ipv4") or ""),
                last_known_ipv6=str(record.get("last_known_ipv6") or ""),
                last_checked=record.get("last_checked") or None,
            )
        except (TypeError, ValueError) as e:
            raise CorruptState(
                code="parse_error",
                message=f"Invalid state record: {e}",
                details={"file_path": str(self._file_path)},
            ) from e

    @staticmethod
    def _to_record(state: PersistedState) -> dict:
        return {
            "version": SCHEMA_VERSION,
            "selected_service": state.selected_service,
            "encrypted_bot_token": state.encrypted_bot_token,
            "encrypted_chat_id": state.encrypted_chat_id,
            "last_known_ipv4": state.last_known_ipv4,
            "last_known_ipv6": state.last_known_ipv6,
            "last_checked": state.last_checked,
        }

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "StateStore", message, data)
