from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import httpx

from .http import HelixRequestError


@dataclass
class Video:
    id: str
    user_login: str
    title: str
    url: str
    created_at: datetime | None

    @classmethod
    def from_payload(cls, payload: dict) -> "Video":
        return cls(
            id=str(payload.get("id", "")),
            user_login=payload.get("user_login") or "",
            title=payload.get("title") or "",
            url=payload.get("url") or "",
            created_at=_parse_timestamp(payload.get("created_at")),
        )


@dataclass
class Stream:
    id: str
    user_login: str
    user_name: str
    title: str

    @classmethod
    def from_payload(cls, payload: dict) -> "Stream":
        return cls(
            id=str(payload.get("id", "")),
            user_login=payload.get("user_login") or "",
            user_name=payload.get("user_name") or "",
            title=payload.get("title") or "",
        )


def _parse_timestamp(value) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    return datetime.fromisoformat(value)


def one_line(text: str) -> str:
    return text.replace("\n", " ")


async def _get_data(client: httpx.AsyncClient, path: str, params: dict) -> list[dict]:
    try:
        response = await client.get(path, params=params)
    except httpx.TransportError as error:
        raise HelixRequestError(f"Request to {path} failed: {error}") from error

    try:
        payload = response.json()
    except ValueError as error:
        raise HelixRequestError(
            f"Twitch API returned invalid JSON for {path}: {error}",
            status_code=response.status_code,
        ) from error

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        raise HelixRequestError(
            f"Twitch API response for {path} is missing 'data'.",
            status_code=response.status_code,
            payload=payload,
        )
    return [item for item in data if isinstance(item, dict)]


async def search_channel(client: httpx.AsyncClient, channel: str) -> str | None:
    channel = channel.lower()
    results = await _get_data(client, "/search/channels", {"first": 100, "query": channel})
    for result in results:
        login = str(result.get("broadcaster_login") or "").lower()
        name = str(result.get("display_name") or "").lower()
        if channel in (login, name):
            return str(result.get("id"))
    return None


async def logged_user_id(client: httpx.AsyncClient) -> str:
    users = await _get_data(client, "/users", {})
    if not users:
        raise HelixRequestError("Twitch API returned no user for this token.")
    return str(users[0].get("id"))


async def list_videos(
    client: httpx.AsyncClient,
    user_id: str,
    video_type: str = "archive",
) -> list[Video]:
    results = await _get_data(
        client,
        "/videos",
        {"first": 100, "type": video_type, "user_id": user_id},
    )
    return [Video.from_payload(item) for item in results]


async def followed_streams(client: httpx.AsyncClient, user_id: str) -> list[Stream]:
    results = await _get_data(client, "/streams/followed", {"user_id": user_id})
    return [Stream.from_payload(item) for item in results]
