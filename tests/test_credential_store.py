import json
import stat

import pytest

from auth.credential_store import CredentialStore
from auth.errors import ConfigMalformed, ConfigMissing, StorageCorrupt, StorageWriteError
from auth.models import Credential


@pytest.mark.asyncio
async def test_load_client_identity(client_file, token_file) -> None:
    store = CredentialStore(client_file, token_file)

    identity = await store.load_client_identity()

    assert identity.id == "client-123"
    assert identity.secret == "secret-456"


@pytest.mark.asyncio
async def test_load_client_identity_missing_file(tmp_path, token_file) -> None:
    path = tmp_path / "absent.json"
    store = CredentialStore(path, token_file)

    with pytest.raises(ConfigMissing, match="absent.json"):
        await store.load_client_identity()


@pytest.mark.asyncio
async def test_load_client_identity_invalid_json(tmp_path, token_file) -> None:
    path = tmp_path / "client.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigMalformed, match="not valid JSON"):
        await CredentialStore(path, token_file).load_client_identity()


@pytest.mark.asyncio
async def test_load_client_identity_wrong_shape(tmp_path, token_file) -> None:
    path = tmp_path / "client.json"
    path.write_text(json.dumps({"id": "client-123"}), encoding="utf-8")

    with pytest.raises(ConfigMalformed, match="secret"):
        await CredentialStore(path, token_file).load_client_identity()


@pytest.mark.asyncio
async def test_load_credential_missing_file(client_file, token_file) -> None:
    store = CredentialStore(client_file, token_file)

    assert await store.load_credential() is None


@pytest.mark.asyncio
async def test_save_then_load_round_trip(client_file, token_file, cached_credential) -> None:
    store = CredentialStore(client_file, token_file)

    await store.save_credential(cached_credential)

    assert await CredentialStore(client_file, token_file).load_credential() == cached_credential


@pytest.mark.asyncio
async def test_round_trip_without_expiry(client_file, token_file) -> None:
    store = CredentialStore(client_file, token_file)
    credential = Credential(access_token="a", refresh_token="r")

    await store.save_credential(credential)

    assert await store.load_credential() == credential


@pytest.mark.asyncio
async def test_saved_file_is_owner_only(client_file, token_file, cached_credential) -> None:
    store = CredentialStore(client_file, token_file)

    await store.save_credential(cached_credential)

    assert stat.S_IMODE(token_file.stat().st_mode) == 0o600
    assert [p.name for p in token_file.parent.iterdir() if p.suffix == ".tmp"] == []


@pytest.mark.asyncio
async def test_save_replaces_existing_file(client_file, token_file, cached_credential) -> None:
    token_file.write_text("stale", encoding="utf-8")
    token_file.chmod(0o644)
    store = CredentialStore(client_file, token_file)

    await store.save_credential(cached_credential)

    payload = json.loads(token_file.read_text(encoding="utf-8"))
    assert payload["access_token"] == "cached-access"
    assert stat.S_IMODE(token_file.stat().st_mode) == 0o600


@pytest.mark.asyncio
async def test_load_credential_corrupt_json(client_file, token_file) -> None:
    token_file.write_text("{", encoding="utf-8")

    with pytest.raises(StorageCorrupt):
        await CredentialStore(client_file, token_file).load_credential()


@pytest.mark.asyncio
async def test_load_credential_unexpected_shape(client_file, token_file) -> None:
    token_file.write_text(json.dumps({"access_token": "a"}), encoding="utf-8")

    with pytest.raises(StorageCorrupt, match="refresh_token"):
        await CredentialStore(client_file, token_file).load_credential()


@pytest.mark.asyncio
async def test_load_credential_bad_expiry(client_file, token_file) -> None:
    token_file.write_text(
        json.dumps({"access_token": "a", "refresh_token": "r", "expiry": "yesterday"}),
        encoding="utf-8",
    )

    with pytest.raises(StorageCorrupt):
        await CredentialStore(client_file, token_file).load_credential()


@pytest.mark.asyncio
async def test_load_credential_zero_expiry_means_unset(client_file, token_file) -> None:
    token_file.write_text(
        json.dumps(
            {
                "access_token": "a",
                "refresh_token": "r",
                "token_type": "bearer",
                "expiry": "0001-01-01T00:00:00Z",
            }
        ),
        encoding="utf-8",
    )

    credential = await CredentialStore(client_file, token_file).load_credential()

    assert credential.expiry is None


@pytest.mark.asyncio
async def test_save_credential_write_error(client_file, tmp_path, cached_credential) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    store = CredentialStore(client_file, blocker / "token.json")

    with pytest.raises(StorageWriteError):
        await store.save_credential(cached_credential)
