"""
Property-based tests for Audit Logger module.

Covers output formats, level filtering, error context and masking of
credentials in log data.
"""

import json
from io import StringIO

import pytest
from hypothesis import given, settings, assume
from hypothesis import strategies as st

from ip_detector.enums import LogLevel
from ip_detector.audit_logger import AuditLogger
from ip_detector.exceptions import DispatchFailed


SENSITIVE_PATTERNS = [
    'token', 'secret', 'password', 'api_key', 'bot_token', 'chat_id',
    'auth', 'authorization', 'credential', 'credentials', 'private_key',
    'encrypted',
]


# Strategies for generating valid test data

@st.composite
def log_level_strategy(draw) -> LogLevel:
    """Generate valid LogLevel values."""
    return draw(st.sampled_from(list(LogLevel)))


@st.composite
def component_name_strategy(draw) -> str:
    """Generate valid component names."""
    return draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"),
        min_size=1,
        max_size=50,
    ))


@st.composite
def message_strategy(draw) -> str:
    """Generate valid log messages."""
    return draw(st.text(
        alphabet=st.characters(
            whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
            blacklist_characters='\x00\n\r',
        ),
        min_size=1,
        max_size=200,
    ))


@st.composite
def non_sensitive_key_strategy(draw) -> str:
    """Generate keys that are NOT sensitive."""
    key = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
        min_size=1,
        max_size=20,
    ))
    for pattern in SENSITIVE_PATTERNS:
        assume(pattern not in key)
    return key


@st.composite
def sensitive_key_strategy(draw) -> str:
    """Generate keys that ARE sensitive."""
    base = draw(st.sampled_from(SENSITIVE_PATTERNS))
    prefix = draw(st.sampled_from(['', 'my_', 'telegram_', 'app_']))
    suffix = draw(st.sampled_from(['', '_value', '_data', '_1']))
    return f"{prefix}{base}{suffix}"


class TestOutputFormatProperty:
    """Each configured format writes the matching lines to the stream."""

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_dual_format_produces_both_outputs(
        self, level: LogLevel, component: str, message: str
    ) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output, min_level=LogLevel.DEBUG)

        logger.log(level, component, message, {"address": "1.2.3.4"})

        lines = output.getvalue().strip("\n").split("\n")
        assert len(lines) == 2
        parsed = json.loads(lines[0])
        assert parsed["level"] == level.value
        assert parsed["component"] == component
        assert parsed["message"] == message
        assert parsed["data"] == {"address": "1.2.3.4"}
        assert lines[1].split(" ")[1] == level.value.upper()
        assert f"[{component}]" in lines[1]

    def test_text_format_layout(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="text", output_stream=output)

        entry = logger.log(LogLevel.WARN, "StateStore", "Could not write", {"file": "x"})

        assert output.getvalue() == (
            f"[{entry.timestamp}] WARN [StateStore] Could not write {{\"file\": \"x\"}}\n"
        )

    def test_invalid_format_rejected(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger(output_format="xml")


class TestLevelFilterProperty:
    """Entries below the minimum level are dropped."""

    @given(level=log_level_strategy(), min_level=log_level_strategy())
    @settings(max_examples=50)
    def test_filter(self, level: LogLevel, min_level: LogLevel) -> None:
        order = list(LogLevel)
        output = StringIO()
        logger = AuditLogger(output_stream=output, min_level=min_level)

        entry = logger.log(level, "C", "m")

        if order.index(level) >= order.index(min_level):
            assert entry is not None
            assert output.getvalue()
            assert logger.entries == [entry]
        else:
            assert entry is None
            assert output.getvalue() == ""
            assert logger.entries == []

    @pytest.mark.parametrize("level,expected", [
        ("debug", LogLevel.DEBUG),
        ("WARN", LogLevel.WARN),
        ("bogus", LogLevel.INFO),
    ])
    def test_from_config(self, level: str, expected: LogLevel) -> None:
        assert AuditLogger.from_config(level, "json").min_level == expected

    def test_kept_entries_are_bounded(self) -> None:
        logger = AuditLogger(output_stream=StringIO())
        for i in range(AuditLogger.MAX_KEPT_ENTRIES + 10):
            logger.log(LogLevel.INFO, "C", f"m{i}")

        entries = logger.entries
        assert len(entries) == AuditLogger.MAX_KEPT_ENTRIES
        assert entries[-1].message == f"m{AuditLogger.MAX_KEPT_ENTRIES + 9}"


class TestSensitiveDataMaskingProperty:
    """Credential values never reach the log output."""

    @given(
        sensitive_key=sensitive_key_strategy(),
        sensitive_value=st.text(
            alphabet=st.sampled_from("QWXYZ"),
            min_size=5,
            max_size=20,
        ),
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_sensitive_data_masked(
        self,
        sensitive_key: str,
        sensitive_value: str,
        level: LogLevel,
        component: str,
        message: str,
    ) -> None:
        assume(sensitive_value not in message and sensitive_value not in component)
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output, min_level=LogLevel.DEBUG)

        entry = logger.log(level, component, message, {sensitive_key: sensitive_value})

        assert entry.data[sensitive_key] == AuditLogger.MASK_VALUE
        parsed = json.loads(output.getvalue().strip())
        assert parsed["data"][sensitive_key] == AuditLogger.MASK_VALUE
        assert sensitive_value not in output.getvalue()

    @given(
        non_sensitive_key=non_sensitive_key_strategy(),
        value=st.text(min_size=1, max_size=50),
    )
    @settings(max_examples=100)
    def test_non_sensitive_data_not_masked(self, non_sensitive_key: str, value: str) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log(LogLevel.INFO, "C", "m", {non_sensitive_key: value})

        assert entry.data[non_sensitive_key] == value

    @given(sensitive_key=sensitive_key_strategy(), sensitive_value=st.text(min_size=1, max_size=50))
    @settings(max_examples=100)
    def test_nested_sensitive_data_masked(self, sensitive_key: str, sensitive_value: str) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log(LogLevel.INFO, "C", "m", {
            "telegram": {sensitive_key: sensitive_value, "other": "visible"},
            "items": [{sensitive_key: sensitive_value}],
        })

        assert entry.data["telegram"][sensitive_key] == AuditLogger.MASK_VALUE
        assert entry.data["telegram"]["other"] == "visible"
        assert entry.data["items"][0][sensitive_key] == AuditLogger.MASK_VALUE


class TestErrorContextProperty:
    """Error entries carry the error type, message and code."""

    @given(message=message_strategy())
    @settings(max_examples=50)
    def test_detector_error_context(self, message: str) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        error = DispatchFailed(code="api_error", message=message)

        entry = logger.log_error(
            "NotificationDispatcher",
            "Failed to send notification",
            error=error,
            response_status_code=500,
            additional_data={"attempt": 1},
        )

        assert entry.level == LogLevel.ERROR
        assert entry.data["error_type"] == "DispatchFailed"
        assert entry.data["error_message"] == message
        assert entry.data["error_code"] == "api_error"
        assert entry.data["response_status_code"] == 500
        assert entry.data["attempt"] == 1

    def test_plain_exception_has_no_code(self) -> None:
        logger = AuditLogger(output_stream=StringIO())

        entry = logger.log_error("C", "boom", error=RuntimeError("x"), request_url="https://a.test/")

        assert entry.data["error_type"] == "RuntimeError"
        assert entry.data["request_url"] == "https://a.test/"
        assert "error_code" not in entry.data

    def test_minimal_context(self) -> None:
        logger = AuditLogger(output_stream=StringIO())

        entry = logger.log_error("C", "something failed")

        assert entry.data == {}
