from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger("twitch_search")
APP_VERSION = "0.1.0"

DEFAULT_API_BASE_URL = "https://api.twitch.tv/helix"
DEFAULT_CLIENT_FILE = Path.home() / ".twitch-search-client.json"
DEFAULT_TOKEN_FILE = Path.home() / ".twitch-search.json"

VIDEO_TYPES = ("all", "upload", "archive", "highlight")
