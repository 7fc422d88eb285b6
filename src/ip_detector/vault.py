"""
Credential vault for the IP detector.

Secrets are sealed with AES-256-GCM under a key derived from the machine
identity (hostname + user id + application salt). The key is never stored;
it is recomputed for every operation, so a state file copied to another
machine or user account cannot be decrypted there.

Blob format: base64(nonce (12 bytes) || ciphertext || tag (16 bytes))
"""

import base64
import binascii
import getpass
import hashlib
import os
import secrets
import socket
from dataclasses import dataclass
from typing import Callable, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import DecryptionFailed, IdentityUnavailable
from .models import Credentials, PersistedState


APP_SALT = "ip_detector_secret_salt_v1"
KEY_LENGTH = 32  # 256 bits
NONCE_LENGTH = 12  # 96 bits for AES-GCM


def derive_key(hostname: str, user_id: str, salt: str = APP_SALT) -> bytes:
    """
    Derive the vault key from a machine identity.

    Args:
        hostname: Host name of the machine
        user_id: Identifier of the local user account
        salt: Fixed application salt

    Returns:
        32-byte SHA-256 digest used as the AES-256 key
    """
    combined = f"{hostname}:{user_id}:{salt}"
    return hashlib.sha256(combined.encode("utf-8")).digest()


def current_hostname() -> str:
    """Return the host name, or a fixed placeholder if it cannot be read."""
    try:
        hostname = socket.gethostname()
    except OSError:
        return "default-host"
    return hostname or "default-host"


def current_user_id() -> str:
    """
    Return the identifier of the current user account.

    Uses the numeric uid where the platform has one and the login name
    elsewhere.

    Raises:
        IdentityUnavailable: If no user identity can be determined
    """
    getuid = getattr(os, "getuid", None)
    if getuid is not None:
        return str(getuid())
    try:
        return getpass.getuser()
    except (OSError, KeyError, ImportError) as e:
        raise IdentityUnavailable(
            code="user_lookup_failed",
            message=f"Failed to get current user: {e}",
        ) from e


@dataclass(frozen=True)
class MachineIdentity:
    """Host and user identity the vault key is bound to."""

    hostname: str
    user_id: str

    @classmethod
    def current(cls) -> "MachineIdentity":
        return cls(hostname=current_hostname(), user_id=current_user_id())


class Vault:
    """
    Machine-bound authenticated encryption of short secrets.

    The vault keeps no mutable state. The identity provider is called on
    every encrypt/decrypt, so tests can swap identities freely.
    """

    def __init__(
        self,
        identity_provider: Optional[Callable[[], MachineIdentity]] = None,
        salt: str = APP_SALT,
    ) -> None:
        """
        Initialize the vault.

        Args:
            identity_provider: Callable returning the identity to bind to
                (defaults to MachineIdentity.current)
            salt: Application salt mixed into the key
        """
        self._identity_provider = identity_provider or MachineIdentity.current
        self._salt = salt

    def derive_key(self) -> bytes:
        """
        Derive the key for the current identity.

        Raises:
            IdentityUnavailable: If the user identity lookup fails
        """
        identity = self._identity_provider()
        return derive_key(identity.hostname, identity.user_id, self._salt)

    def encrypt(self, plaintext: str) -> str:
        """
        Seal a secret.

        A fresh random nonce is used for every call, so encrypting the
        same plaintext twice yields different blobs.

        Args:
            plaintext: Secret to protect

        Returns:
            Base64 text blob (nonce prepended to the sealed data)
        """
        key = self.derive_key()
        nonce = secrets.token_bytes(NONCE_LENGTH)
        sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """
        Open a blob produced by encrypt().

        Args:
            blob: Base64 text blob

        Returns:
            The original plaintext

        Raises:
            DecryptionFailed: If the blob is not valid base64, is shorter
                than the nonce, or fails authentication
            IdentityUnavailable: If the user identity lookup fails
        """
        key = self.derive_key()

        try:
            data = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionFailed(
                code="decryption_failed",
                message="Failed to decrypt vault blob",
            ) from e

        if len(data) < NONCE_LENGTH:
            raise DecryptionFailed(
                code="decryption_failed",
                message="Failed to decrypt vault blob",
            )

        nonce, sealed = data[:NONCE_LENGTH], data[NONCE_LENGTH:]
        try:
            plaintext = AESGCM(key).decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise DecryptionFailed(
                code="decryption_failed",
                message="Failed to decrypt vault blob",
            ) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed(
                code="decryption_failed",
                message="Failed to decrypt vault blob",
            ) from e

    def seal_credentials(self, state: PersistedState, bot_token: str, chat_id: str) -> None:
        """Encrypt a credential pair into the given state."""
        state.encrypted_bot_token = self.encrypt(bot_token)
        state.encrypted_chat_id = self.encrypt(chat_id)

    def open_credentials(self, state: PersistedState) -> Credentials:
        """Decrypt the credential pair stored in the given state."""
        return Credentials(
            bot_token=self.decrypt(state.encrypted_bot_token),
            chat_id=self.decrypt(state.encrypted_chat_id),
        )
