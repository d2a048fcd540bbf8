from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from auth.errors import ConfigMalformed, ConfigMissing, StorageCorrupt, StorageWriteError
from auth.models import ClientIdentity, Credential

LOGGER = logging.getLogger("twitch_search.auth")

TOKEN_FILE_MODE = 0o600


class CredentialStore:
    def __init__(self, client_path: str | Path, token_path: str | Path) -> None:
        self._client_path = Path(client_path).expanduser()
        self._token_path = Path(token_path).expanduser()

    @property
    def client_path(self) -> Path:
        return self._client_path

    @property
    def token_path(self) -> Path:
        return self._token_path

    async def load_client_identity(self) -> ClientIdentity:
        try:
            raw = self._client_path.read_text(encoding="utf-8")
        except FileNotFoundError as error:
            raise ConfigMissing(self._client_path) from error
        except OSError as error:
            raise ConfigMalformed(
                f"Could not read client credentials from {str(self._client_path)!r}: {error}"
            ) from error

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as error:
            raise ConfigMalformed(
                f"Client credentials in {str(self._client_path)!r} are not valid JSON: {error}"
            ) from error

        if not isinstance(payload, dict):
            raise ConfigMalformed(
                f"Client credentials in {str(self._client_path)!r} must be a JSON object."
            )
        client_id = payload.get("id")
        secret = payload.get("secret")
        if not isinstance(client_id, str) or not client_id:
            raise ConfigMalformed(
                f"Client credentials in {str(self._client_path)!r} are missing 'id'."
            )
        if not isinstance(secret, str) or not secret:
            raise ConfigMalformed(
                f"Client credentials in {str(self._client_path)!r} are missing 'secret'."
            )

        return ClientIdentity(id=client_id, secret=secret)

    async def load_credential(self) -> Credential | None:
        try:
            raw = self._token_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            LOGGER.info("No cached token at %s", self._token_path)
            return None
        except OSError as error:
            raise StorageCorrupt(
                f"Could not read token file {str(self._token_path)!r}: {error}"
            ) from error

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as error:
            raise StorageCorrupt(
                f"Token file {str(self._token_path)!r} is not valid JSON: {error}"
            ) from error
        if not isinstance(payload, dict):
            raise StorageCorrupt(
                f"Token file {str(self._token_path)!r} is invalid; expected a JSON object."
            )

        try:
            credential = Credential.from_dict(payload)
        except ValueError as error:
            raise StorageCorrupt(
                f"Token file {str(self._token_path)!r} is invalid: {error}"
            ) from error

        LOGGER.info("Loaded cached token from %s", self._token_path)
        return credential

    async def save_credential(self, credential: Credential) -> None:
        try:
            self._write(credential.to_dict())
        except OSError as error:
            raise StorageWriteError(
                f"Could not write token file {str(self._token_path)!r}: {error}"
            ) from error
        LOGGER.info("Stored token in %s", self._token_path)

    def _write(self, payload: dict) -> None:
        self._token_path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._token_path.name}.",
            suffix=".tmp",
            dir=self._token_path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                os.fchmod(handle.fileno(), TOKEN_FILE_MODE)
                json.dump(payload, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._token_path)
            os.chmod(self._token_path, TOKEN_FILE_MODE)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
