from __future__ import annotations

import argparse
import asyncio
import sys

from auth.callback import CallbackReceiver
from auth.credential_store import CredentialStore
from auth.errors import AuthFlowError
from auth.orchestrator import AuthOrchestrator
from twitch_search.constants import LOGGER, VIDEO_TYPES
from twitch_search.env import Settings, load_env, load_settings, setup_logging
from twitch_search.helix import followed_streams, list_videos, logged_user_id, one_line, search_channel
from twitch_search.http import HelixRequestError, build_authenticated_client


class UsageError(RuntimeError):
    step = "parsing arguments"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twitch-search",
        description="List Twitch VoDs of a channel or the live channels you follow.",
    )
    parser.add_argument(
        "--type",
        default="archive",
        choices=VIDEO_TYPES,
        help="type of VoDs to show (all, upload, archive, highlight)",
    )
    parser.add_argument("--vod", default="", help="show VoDs from specific channel")
    parser.add_argument("--live", action="store_true", help="show live followed channels")
    return parser


async def authenticate(settings: Settings):
    store = CredentialStore(settings.client_file, settings.token_file)
    identity = await store.load_client_identity()
    orchestrator = AuthOrchestrator(
        identity=identity,
        store=store,
        receiver=CallbackReceiver(settings.callback_port, settings.callback_path),
        consent_timeout=settings.consent_timeout,
    )
    credential = await orchestrator.run()
    return identity, credential


async def run_query(args: argparse.Namespace, settings: Settings) -> list[str]:
    identity, credential = await authenticate(settings)
    lines: list[str] = []

    async with build_authenticated_client(
        identity,
        credential,
        base_url=settings.api_base_url,
        timeout=settings.api_timeout,
        max_retries=settings.api_max_retries,
        debug=settings.debug,
    ) as client:
        if args.live:
            user_id = await logged_user_id(client)
            for stream in await followed_streams(client, user_id):
                lines.append(f"{stream.user_login} {one_line(stream.title)}")
            return lines

        channel_id = await search_channel(client, args.vod)
        if channel_id is None:
            raise UsageError(f"Channel {args.vod!r} not found.")
        for video in await list_videos(client, channel_id, args.type):
            created = video.created_at.strftime("%Y-%m-%d") if video.created_at else "-"
            lines.append(f"{video.url} {created} {one_line(video.title)}")

    return lines


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if not args.live:
            if not args.vod.strip():
                raise UsageError("Channel to query is empty.")
            args.vod = args.vod.strip().lower()

        load_env()
        settings = load_settings()
        setup_logging(settings.debug)
        lines = asyncio.run(run_query(args, settings))
    except (AuthFlowError, HelixRequestError, UsageError) as error:
        LOGGER.debug("Fatal error", exc_info=True)
        print(f"Error {error.step}: {error}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130

    for line in lines:
        print(line)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
