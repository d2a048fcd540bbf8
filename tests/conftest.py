import json
from datetime import datetime, timezone

import pytest

from auth.models import ClientIdentity, Credential


@pytest.fixture
def identity() -> ClientIdentity:
    return ClientIdentity(id="client-123", secret="secret-456")


@pytest.fixture
def cached_credential() -> Credential:
    return Credential(
        access_token="cached-access",
        refresh_token="cached-refresh",
        token_type="bearer",
        expiry=datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def client_file(tmp_path):
    path = tmp_path / "client.json"
    path.write_text(json.dumps({"id": "client-123", "secret": "secret-456"}), encoding="utf-8")
    return path


@pytest.fixture
def token_file(tmp_path):
    return tmp_path / "token.json"
