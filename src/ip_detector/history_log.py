"""
History Log module for address change records.

Keeps a bounded, newest-first JSON array of HistoryEntry objects in its
own owner-only file, separate from the state record.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from .enums import AddressFamily
from .exceptions import CorruptHistory
from .models import HistoryEntry
from .state_store import write_private_json


MAX_HISTORY_ENTRIES = 500

FAMILY_VALUES = frozenset(family.value for family in AddressFamily)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HistoryLog:
    """
    Bounded append log of address changes.

    Entries are stored newest first. Appending prepends one entry and
    drops the oldest ones beyond the cap.
    """

    def __init__(
        self,
        file_path: Path,
        max_entries: int = MAX_HISTORY_ENTRIES,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the history log.

        Args:
            file_path: Path to the history file (JSON array)
            max_entries: Maximum number of retained entries
            clock: Optional time source (defaults to UTC now)
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._file_path = file_path
        self._max_entries = max_entries
        self._clock = clock or utc_now

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def load(self) -> list[HistoryEntry]:
        """
        Load all history entries, newest first.

        Returns:
            List of entries; empty if no history file exists yet

        Raises:
            CorruptHistory: If the file exists but cannot be parsed
        """
        if not self._file_path.exists():
            return []

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            raise CorruptHistory(
                code="parse_error",
                message=f"Failed to parse history file: {e}",
                details={"file_path": str(self._file_path)},
            ) from e

        if raw is None:
            return []
        if not isinstance(raw, list):
            raise CorruptHistory(
                code="parse_error",
                message="History file does not contain a JSON array",
                details={"file_path": str(self._file_path)},
            )

        return [self._entry_from_item(index, item) for index, item in enumerate(raw)]

    def _entry_from_item(self, index: int, item: Any) -> HistoryEntry:
        """Validate one raw array item; every field must be a string."""
        problem = None
        if not isinstance(item, dict):
            problem = "entry is not an object"
        elif not isinstance(item.get("type"), str) or item["type"] not in FAMILY_VALUES:
            problem = f"unknown type {item.get('type')!r}"
        else:
            for key in ("timestamp", "new_ip"):
                if not isinstance(item.get(key), str):
                    problem = f"{key} is not a string"
                    break
            old_ip = item.get("old_ip")
            if problem is None and old_ip is not None and not isinstance(old_ip, str):
                problem = "old_ip is not a string"

        if problem is not None:
            raise CorruptHistory(
                code="parse_error",
                message=f"Invalid history entry {index}: {problem}",
                details={"file_path": str(self._file_path), "index": index},
            )

        return HistoryEntry(
            timestamp=item["timestamp"],
            family=item["type"],
            old_ip=item.get("old_ip") or "",
            new_ip=item["new_ip"],
        )

    def save(self, entries: list[HistoryEntry]) -> None:
        """
        Write the given entries, truncated to the cap.

        Raises:
            PersistError: If the file cannot be written
        """
        data = [
            {
                "timestamp": entry.timestamp,
                "type": entry.family,
                "old_ip": entry.old_ip,
                "new_ip": entry.new_ip,
            }
            for entry in entries[: self._max_entries]
        ]
        write_private_json(self._file_path, data)

    def append(self, family: AddressFamily, old_ip: str, new_ip: str) -> HistoryEntry:
        """
        Record an address change.

        Args:
            family: Address family that changed
            old_ip: Previously recorded address (may be empty)
            new_ip: Newly detected address

        Returns:
            The created HistoryEntry

        Raises:
            CorruptHistory: If the existing file cannot be parsed
            PersistError: If the updated history cannot be written
        """
        entry = HistoryEntry(
            timestamp=self._clock().isoformat(),
            family=family.value,
            old_ip=old_ip,
            new_ip=new_ip,
        )
        entries = self.load()
        entries.insert(0, entry)
        self.save(entries[: self._max_entries])
        return entry
