from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from auth.callback import CallbackHandle


@dataclass(frozen=True)
class ClientIdentity:
    id: str
    secret: str = field(repr=False)


@dataclass
class Credential:
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    token_type: str = "bearer"
    expiry: datetime | None = None

    def is_expired(self, *, leeway_seconds: int = 10) -> bool:
        if self.expiry is None:
            return False
        now = datetime.now(timezone.utc)
        return now >= self.expiry - timedelta(seconds=leeway_seconds)

    def to_dict(self) -> dict:
        payload = {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
        }
        if self.expiry is not None:
            payload["expiry"] = self.expiry.isoformat()
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> "Credential":
        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        token_type = data.get("token_type") or "bearer"
        raw_expiry = data.get("expiry")

        if not isinstance(access_token, str) or not access_token:
            raise ValueError("missing access_token")
        if not isinstance(refresh_token, str) or not refresh_token:
            raise ValueError("missing refresh_token")
        if not isinstance(token_type, str):
            raise ValueError("token_type must be a string")

        expiry = None
        if raw_expiry is not None:
            if not isinstance(raw_expiry, str):
                raise ValueError("expiry must be an ISO 8601 string")
            expiry = datetime.fromisoformat(raw_expiry)
            if expiry.tzinfo is None:
                expiry = expiry.replace(tzinfo=timezone.utc)
            # Zero time written by tools that leave expiry unset.
            if expiry.year == 1:
                expiry = None

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type=token_type,
            expiry=expiry,
        )


@dataclass
class CallbackOutcome:
    code: str | None = None
    error: str | None = None
    error_description: str | None = None


@dataclass
class PendingAuthorization:
    authorization_url: str
    state: str
    callback: "CallbackHandle" = field(repr=False)
    created_at: float = field(default_factory=time.time)
