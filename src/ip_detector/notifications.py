"""
Notification module for the IP detector.

Provides the Telegram channel and a dispatcher that turns a change verdict
into one combined message per detection cycle.
"""

from datetime import datetime
from typing import Optional

import httpx

from .audit_logger import AuditLogger
from .change_detector import ChangeVerdict, FamilyStatus
from .config import TelegramConfig
from .enums import AddressFamily, LogLevel
from .exceptions import DispatchFailed
from .i18n import get_message
from .models import Credentials, PersistedState
from .vault import Vault


FAMILY_LABELS = {
    AddressFamily.IPV4: "IPv4",
    AddressFamily.IPV6: "IPv6",
}


def format_timestamp(timestamp: datetime) -> str:
    """Format a timestamp in local time as 'YYYY-MM-DD HH:MM:SS ZONE'."""
    return timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z").rstrip()


def format_family_line(
    family: AddressFamily,
    status: FamilyStatus,
    language: str = "en",
) -> str:
    """
    Render the message line for one address family.

    Args:
        family: Address family of the line
        status: Comparison outcome for that family
        language: Message language

    Returns:
        Markdown line such as "📍 IPv4: `1.2.3.4` ← `5.6.7.8`"
    """
    label = FAMILY_LABELS[family]

    if not status.current:
        return get_message("notification.address_unavailable", language, family=label)

    if not status.changed:
        return get_message(
            "notification.address_unchanged", language,
            family=label, current=status.current,
        )

    if not status.previous:
        return get_message(
            "notification.address_new", language,
            family=label, current=status.current,
        )

    return get_message(
        "notification.address_changed", language,
        family=label, current=status.current, previous=status.previous,
    )


def format_change_message(
    hostname: str,
    verdict: ChangeVerdict,
    timestamp: datetime,
    language: str = "en",
) -> str:
    """
    Build the combined change notification for both families.

    The header reads "initialized" when any changed family had no recorded
    address before, and "changed" otherwise.
    """
    title_key = (
        "notification.title_initialized"
        if verdict.is_initialization
        else "notification.title_changed"
    )

    lines = [
        get_message(title_key, language),
        "",
        get_message("notification.host_line", language, hostname=hostname),
        format_family_line(AddressFamily.IPV4, verdict.ipv4, language),
        format_family_line(AddressFamily.IPV6, verdict.ipv6, language),
        get_message("notification.time_line", language, time=format_timestamp(timestamp)),
    ]
    return "\n".join(lines)


def format_test_message(hostname: str, language: str = "en") -> str:
    """Build the test notification sent after setup."""
    return "\n".join([
        get_message("notification.title_test", language),
        "",
        get_message("notification.host_line", language, hostname=hostname),
        get_message("notification.test_body", language),
    ])


class TelegramChannel:
    """Telegram notification channel using the Bot API."""

    def __init__(
        self,
        credentials: Credentials,
        config: Optional[TelegramConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize Telegram channel.

        Args:
            credentials: Decrypted bot token and chat id
            config: Telegram API settings
            transport: Optional httpx transport (used by tests)
        """
        self._config = config or TelegramConfig()
        self._bot_token = credentials.bot_token
        self._chat_id = credentials.chat_id
        self._base_url = f"{self._config.api_base.rstrip('/')}/bot{self._bot_token}"
        self._transport = transport

    def get_name(self) -> str:
        """Return channel name."""
        return "telegram"

    async def send_message(self, text: str) -> None:
        """
        Send a message via the Telegram Bot API.

        Args:
            text: Markdown message text

        Raises:
            DispatchFailed: If the request fails or the API does not answer 200
        """
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(
                    f"{self._base_url}/sendMessage",
                    data={
                        "chat_id": self._chat_id,
                        "text": text,
                        "parse_mode": self._config.parse_mode,
                    },
                )
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                # The request URL carries the bot token, keep it out of the message
                raise DispatchFailed(
                    code="transport_error",
                    message=f"Failed to send telegram message: {type(e).__name__}",
                ) from e

        if response.status_code != 200:
            raise DispatchFailed(
                code="api_error",
                message=f"Telegram API error (status {response.status_code}): {response.text}",
                details={"status_code": response.status_code},
            )


class NotificationDispatcher:
    """
    Sends at most one combined notification per detection cycle.

    Credentials are decrypted from the state snapshot on every send, so
    re-running setup between daemon cycles takes effect immediately.
    There is no retry: a failed send is reported to the caller once.
    """

    def __init__(
        self,
        vault: Vault,
        config: Optional[TelegramConfig] = None,
        logger: Optional[AuditLogger] = None,
        language: str = "en",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            vault: Vault used to open the stored credentials
            config: Telegram API settings
            logger: Optional audit logger
            language: Message language
            transport: Optional httpx transport (used by tests)
        """
        self._vault = vault
        self._config = config or TelegramConfig()
        self._logger = logger
        self._language = language
        self._transport = transport

    def _channel_for(self, state: PersistedState) -> TelegramChannel:
        credentials = self._vault.open_credentials(state)
        return TelegramChannel(credentials, self._config, self._transport)

    async def send(
        self,
        hostname: str,
        verdict: ChangeVerdict,
        timestamp: datetime,
        state: PersistedState,
    ) -> bool:
        """
        Notify about the changes in a verdict.

        Args:
            hostname: Host name shown in the message
            verdict: Comparison outcome of the cycle
            timestamp: Time of the cycle
            state: State snapshot holding the encrypted credentials

        Returns:
            True if a message was sent, False if nothing changed

        Raises:
            DecryptionFailed: If the credentials cannot be opened
            DispatchFailed: If the message could not be delivered
        """
        if not verdict.any_changed:
            return False

        channel = self._channel_for(state)
        text = format_change_message(hostname, verdict, timestamp, self._language)
        await channel.send_message(text)

        self._log(LogLevel.INFO, "Change notification sent", {
            "channel": channel.get_name(),
            "families": [family.value for family in verdict.changed_families()],
            "initialization": verdict.is_initialization,
        })
        return True

    async def send_test(self, hostname: str, state: PersistedState) -> None:
        """
        Send a test message to verify the stored credentials.

        Raises:
            DecryptionFailed: If the credentials cannot be opened
            DispatchFailed: If the message could not be delivered
        """
        channel = self._channel_for(state)
        await channel.send_message(format_test_message(hostname, self._language))
        self._log(LogLevel.INFO, "Test notification sent", {"channel": channel.get_name()})

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "NotificationDispatcher", message, data)
