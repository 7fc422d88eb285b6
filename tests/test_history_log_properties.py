"""
Property-based tests for the History Log module.

Verifies newest-first ordering, the retention cap and error handling of
the address change history.
"""

import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ip_detector.enums import AddressFamily
from ip_detector.exceptions import CorruptHistory, PersistError
from ip_detector.history_log import MAX_HISTORY_ENTRIES, HistoryLog
from ip_detector.models import HistoryEntry


class StepClock:
    """Clock advancing one second per call."""

    def __init__(self) -> None:
        self._now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


@st.composite
def change_strategy(draw) -> tuple[AddressFamily, str, str]:
    """Generate (family, old_ip, new_ip) triples."""
    family = draw(st.sampled_from(list(AddressFamily)))
    if family == AddressFamily.IPV4:
        addr = st.builds(
            lambda a, b: f"10.0.{a}.{b}",
            st.integers(min_value=0, max_value=255),
            st.integers(min_value=0, max_value=255),
        )
    else:
        addr = st.builds(lambda a: f"2001:db8::{a:x}", st.integers(min_value=0, max_value=0xFFFF))
    return family, draw(st.one_of(st.just(""), addr)), draw(addr)


class TestNewestFirstProperty:
    """Appended entries appear at the front, existing entries keep their order."""

    @given(changes=st.lists(change_strategy(), min_size=1, max_size=20))
    @settings(max_examples=50)
    def test_append_prepends(self, changes: list) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            log = HistoryLog(Path(tmpdir) / "ip_history.json", clock=StepClock())

            for family, old_ip, new_ip in changes:
                before = log.load()
                entry = log.append(family, old_ip, new_ip)
                after = log.load()

                assert after[0] == entry
                assert after[1:] == before

            entries = log.load()
            assert [(e.family, e.old_ip, e.new_ip) for e in entries] == [
                (family.value, old_ip, new_ip) for family, old_ip, new_ip in reversed(changes)
            ]
            timestamps = [e.timestamp for e in entries]
            assert timestamps == sorted(timestamps, reverse=True)


class TestRetentionCapProperty:
    """The history never exceeds its cap and evicts the oldest entries."""

    def test_501st_append_evicts_oldest(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ip_history.json"
            log = HistoryLog(path, clock=StepClock())
            seeded = [
                HistoryEntry(
                    timestamp=f"2024-01-01T00:00:{i % 60:02d}+00:00",
                    family="ipv4",
                    old_ip=f"10.0.{i // 256}.{i % 256}",
                    new_ip=f"10.1.{i // 256}.{i % 256}",
                )
                for i in range(MAX_HISTORY_ENTRIES)
            ]
            log.save(seeded)

            entry = log.append(AddressFamily.IPV4, "1.1.1.1", "2.2.2.2")

            entries = log.load()
            assert len(entries) == MAX_HISTORY_ENTRIES
            assert entries[0] == entry
            assert entries[1:] == seeded[:-1]
            assert seeded[-1] not in entries

    @given(
        cap=st.integers(min_value=1, max_value=10),
        count=st.integers(min_value=0, max_value=25),
    )
    @settings(max_examples=30)
    def test_length_never_exceeds_cap(self, cap: int, count: int) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            log = HistoryLog(Path(tmpdir) / "ip_history.json", max_entries=cap, clock=StepClock())

            for i in range(count):
                log.append(AddressFamily.IPV6, "", f"2001:db8::{i:x}")
                assert len(log.load()) <= cap

            assert len(log.load()) == min(cap, count)

    def test_invalid_cap_rejected(self) -> None:
        with pytest.raises(ValueError):
            HistoryLog(Path("unused.json"), max_entries=0)


class TestFileFormat:
    def test_entries_use_type_key(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ip_history.json"
            log = HistoryLog(path, clock=lambda: datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))

            log.append(AddressFamily.IPV6, "", "2001:db8::1")

            data = json.loads(path.read_text(encoding="utf-8"))
            assert data == [{
                "timestamp": "2025-03-01T12:00:00+00:00",
                "type": "ipv6",
                "old_ip": "",
                "new_ip": "2001:db8::1",
            }]

    def test_missing_file_is_empty_history(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            assert HistoryLog(Path(tmpdir) / "ip_history.json").load() == []

    def test_null_file_is_empty_history(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ip_history.json"
            path.write_text("null", encoding="utf-8")

            assert HistoryLog(path).load() == []

    @pytest.mark.parametrize("content", [
        "{broken",
        "{\"timestamp\": \"x\"}",
        "[{\"timestamp\": \"x\"}]",
        "[1, 2]",
        "[{\"timestamp\": \"t\", \"type\": null, \"old_ip\": \"\", \"new_ip\": \"1.1.1.1\"}]",
        "[{\"timestamp\": \"t\", \"type\": \"ipv5\", \"old_ip\": \"\", \"new_ip\": \"1.1.1.1\"}]",
        "[{\"timestamp\": 5, \"type\": \"ipv4\", \"old_ip\": \"\", \"new_ip\": \"1.1.1.1\"}]",
        "[{\"timestamp\": \"t\", \"type\": \"ipv4\", \"old_ip\": [], \"new_ip\": \"1.1.1.1\"}]",
    ])
    def test_unparsable_file_raises_corrupt_history(self, content: str) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ip_history.json"
            path.write_text(content, encoding="utf-8")

            with pytest.raises(CorruptHistory):
                HistoryLog(path).load()

    @given(
        field=st.sampled_from(["timestamp", "type", "old_ip", "new_ip"]),
        value=st.one_of(
            st.integers(),
            st.booleans(),
            st.lists(st.text(max_size=3), max_size=2),
            st.dictionaries(st.text(max_size=3), st.integers(), max_size=2),
        ),
    )
    @settings(max_examples=100)
    def test_non_string_field_raises_corrupt_history(self, field: str, value) -> None:
        item = {"timestamp": "t", "type": "ipv4", "old_ip": "", "new_ip": "1.1.1.1"}
        item[field] = value
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ip_history.json"
            path.write_text(json.dumps([item]), encoding="utf-8")

            with pytest.raises(CorruptHistory):
                HistoryLog(path).load()

    def test_missing_or_null_old_ip_reads_as_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ip_history.json"
            path.write_text(json.dumps([
                {"timestamp": "t2", "type": "ipv6", "old_ip": None, "new_ip": "2001:db8::1"},
                {"timestamp": "t1", "type": "ipv4", "new_ip": "1.1.1.1"},
            ]), encoding="utf-8")

            entries = HistoryLog(path).load()

            assert [e.old_ip for e in entries] == ["", ""]
            assert [e.family for e in entries] == ["ipv6", "ipv4"]

    def test_write_failure_raises_persist_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            blocker = Path(tmpdir) / "blocker"
            blocker.write_text("", encoding="utf-8")
            log = HistoryLog(blocker / "ip_history.json")

            with pytest.raises(PersistError):
                log.append(AddressFamily.IPV4, "", "1.2.3.4")
