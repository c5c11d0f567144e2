from __future__ import annotations

import os
from pathlib import Path

import pytest

from visual_history.encryption import EncryptedPayload, EncryptionManager, export_jwk
from visual_history.errors import DecryptionError, InitializationError, NotInitializedError
from visual_history.settings_store import ENCRYPTION_KEY, SettingsStore


def _flip_bit(data: bytes, index: int) -> bytes:
    mutable = bytearray(data)
    mutable[index] ^= 0x01
    return bytes(mutable)


@pytest.mark.anyio
@pytest.mark.parametrize("plaintext", [b"", b"secret", os.urandom(4096)])
async def test_encrypt_decrypt_roundtrip(settings_store: SettingsStore, plaintext: bytes) -> None:
    manager = EncryptionManager(settings_store)
    await manager.init_key()

    payload = await manager.encrypt(plaintext)

    assert len(payload.nonce) == 12
    assert len(payload.ciphertext) == len(plaintext) + 16
    assert await manager.decrypt(payload) == plaintext


@pytest.mark.anyio
async def test_fresh_nonce_per_call(settings_store: SettingsStore) -> None:
    manager = EncryptionManager(settings_store)
    await manager.init_key()

    first = await manager.encrypt(b"same")
    second = await manager.encrypt(b"same")

    assert first.nonce != second.nonce
    assert first.ciphertext != second.ciphertext


@pytest.mark.anyio
async def test_tampered_ciphertext_and_tag_fail(settings_store: SettingsStore) -> None:
    manager = EncryptionManager(settings_store)
    await manager.init_key()
    payload = await manager.encrypt(b"screenshot bytes")

    body_tampered = EncryptedPayload(payload.nonce, _flip_bit(payload.ciphertext, 0))
    tag_tampered = EncryptedPayload(payload.nonce, _flip_bit(payload.ciphertext, -1))
    nonce_tampered = EncryptedPayload(_flip_bit(payload.nonce, 3), payload.ciphertext)

    for tampered in (body_tampered, tag_tampered, nonce_tampered):
        with pytest.raises(DecryptionError):
            await manager.decrypt(tampered)


@pytest.mark.anyio
async def test_wrong_key_fails(tmp_path: Path) -> None:
    first = EncryptionManager(SettingsStore(tmp_path / "a.json"))
    second = EncryptionManager(SettingsStore(tmp_path / "b.json"))
    await first.init_key()
    await second.init_key()

    payload = await first.encrypt(b"private")

    with pytest.raises(DecryptionError):
        await second.decrypt(payload)


@pytest.mark.anyio
async def test_use_before_init_raises(settings_store: SettingsStore) -> None:
    manager = EncryptionManager(settings_store)

    with pytest.raises(NotInitializedError):
        await manager.encrypt(b"x")
    with pytest.raises(NotInitializedError):
        await manager.decrypt(EncryptedPayload(b"\x00" * 12, b"\x00" * 16))


@pytest.mark.anyio
async def test_key_persisted_and_reimported(settings_store: SettingsStore) -> None:
    manager = EncryptionManager(settings_store)
    await manager.init_key()
    payload = await manager.encrypt(b"survives restart")

    stored = await settings_store.get([ENCRYPTION_KEY])
    assert stored[ENCRYPTION_KEY]["kty"] == "oct"
    assert stored[ENCRYPTION_KEY]["alg"] == "A256GCM"

    restarted = EncryptionManager(settings_store)
    await restarted.init_key()
    assert restarted.exported_key == manager.exported_key
    assert await restarted.decrypt(payload) == b"survives restart"


@pytest.mark.anyio
async def test_init_key_is_idempotent(settings_store: SettingsStore) -> None:
    manager = EncryptionManager(settings_store)
    await manager.init_key()
    exported = manager.exported_key
    await manager.init_key()

    assert manager.exported_key == exported


@pytest.mark.anyio
@pytest.mark.parametrize(
    "jwk",
    [
        "not-a-jwk",
        {"kty": "RSA", "k": "abc"},
        export_jwk(os.urandom(16)),
    ],
)
async def test_malformed_key_material_rejected(settings_store: SettingsStore, jwk) -> None:
    await settings_store.set({ENCRYPTION_KEY: jwk})
    manager = EncryptionManager(settings_store)

    with pytest.raises(InitializationError):
        await manager.init_key()


@pytest.mark.anyio
async def test_unreadable_settings_never_mint_a_new_key(settings_store: SettingsStore) -> None:
    settings_store.path.write_text('{"encryptionKey": {"kty": "oct", "k": ', encoding="utf-8")
    manager = EncryptionManager(settings_store)

    with pytest.raises(InitializationError):
        await manager.init_key()

    assert not manager.ready
    assert settings_store.path.read_text(encoding="utf-8") == (
        '{"encryptionKey": {"kty": "oct", "k": '
    )
