"""AES-256-GCM encryption for screenshot blobs.

One key per installation. The key is exported as a JWK and persisted in the
settings store under ``encryptionKey``; every process start re-imports it.
Wire format of a payload: a 12-byte nonce plus ``ciphertext || 16-byte tag``.
No associated data is bound.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import os
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import DecryptionError, InitializationError, NotInitializedError, SettingsError
from .logging_utils import get_logger
from .settings_store import ENCRYPTION_KEY, SettingsStore

NONCE_SIZE = 12
KEY_BITS = 256


@dataclass(frozen=True)
class EncryptedPayload:
    nonce: bytes
    ciphertext: bytes


def export_jwk(key: bytes) -> dict[str, Any]:
    return {
        "kty": "oct",
        "k": _b64url_encode(key),
        "alg": "A256GCM",
        "ext": True,
        "key_ops": ["encrypt", "decrypt"],
    }


def import_jwk(jwk: Any) -> bytes:
    if not isinstance(jwk, dict) or jwk.get("kty") != "oct" or "k" not in jwk:
        raise InitializationError("Stored encryption key is not an octet JWK")
    try:
        key = _b64url_decode(str(jwk["k"]))
    except (binascii.Error, ValueError) as exc:
        raise InitializationError("Stored encryption key is not valid base64url") from exc
    if len(key) * 8 != KEY_BITS:
        raise InitializationError(f"Stored encryption key has {len(key) * 8} bits, expected 256")
    return key


class EncryptionManager:
    """Own the installation key and encrypt/decrypt opaque byte payloads."""

    def __init__(self, settings: SettingsStore) -> None:
        self._settings = settings
        self._log = get_logger("encryption")
        self._aesgcm: AESGCM | None = None
        self._jwk: dict[str, Any] | None = None

    @property
    def ready(self) -> bool:
        return self._aesgcm is not None

    @property
    def exported_key(self) -> dict[str, Any] | None:
        return dict(self._jwk) if self._jwk else None

    async def init_key(self) -> None:
        """Import the persisted key, or generate and persist a fresh one.

        A fresh key is minted only when no key was ever stored. An unreadable
        settings file raises ``InitializationError`` and leaves the file alone.
        """

        try:
            stored = await self._settings.get([ENCRYPTION_KEY])
        except SettingsError as exc:
            raise InitializationError(f"Failed to read key material: {exc}") from exc
        jwk = stored.get(ENCRYPTION_KEY)
        if jwk is not None:
            key = import_jwk(jwk)
            self._activate(key)
            return

        key = AESGCM.generate_key(bit_length=KEY_BITS)
        exported = export_jwk(key)
        try:
            await self._settings.set({ENCRYPTION_KEY: exported})
        except (SettingsError, OSError) as exc:
            raise InitializationError(f"Failed to persist key material: {exc}") from exc
        self._activate(key)
        self._log.info("Generated new installation encryption key")

    def forget_key(self) -> None:
        self._aesgcm = None
        self._jwk = None

    async def encrypt(self, plaintext: bytes) -> EncryptedPayload:
        aesgcm = self._require_key()
        data = bytes(plaintext)
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = await asyncio.to_thread(aesgcm.encrypt, nonce, data, None)
        return EncryptedPayload(nonce=nonce, ciphertext=ciphertext)

    async def decrypt(self, payload: EncryptedPayload) -> bytes:
        aesgcm = self._require_key()
        if len(payload.nonce) != NONCE_SIZE:
            raise DecryptionError("Encrypted payload has an invalid nonce")
        try:
            return await asyncio.to_thread(aesgcm.decrypt, payload.nonce, payload.ciphertext, None)
        except InvalidTag as exc:
            raise DecryptionError("Authentication tag did not verify") from exc

    def _activate(self, key: bytes) -> None:
        self._aesgcm = AESGCM(key)
        self._jwk = export_jwk(key)

    def _require_key(self) -> AESGCM:
        if self._aesgcm is None:
            raise NotInitializedError("Encryption key not initialized; call init_key() first")
        return self._aesgcm


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)
