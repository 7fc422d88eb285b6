"""
Data models for the IP detector.

This module defines the persisted application state, the address change
history entries, and the credential pair handed to the notifier.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class PersistedState:
    """
    Durable application configuration and last-seen addresses.

    Credentials are stored as vault blobs only, never in plaintext.
    """

    selected_service: str
    encrypted_bot_token: str = ""
    encrypted_chat_id: str = ""
    last_known_ipv4: str = ""
    last_known_ipv6: str = ""
    last_checked: Optional[str] = None
    # Pre-IPv6 single address field, folded into last_known_ipv4 on load
    last_known_ip: str = ""


@dataclass(frozen=True)
class HistoryEntry:
    """A single recorded address change."""

    timestamp: str
    family: str  # 'ipv4' or 'ipv6'
    old_ip: str
    new_ip: str


@dataclass(frozen=True)
class Credentials:
    """Decrypted Telegram credentials."""

    bot_token: str
    chat_id: str
