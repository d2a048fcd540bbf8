from __future__ import annotations

import urllib.parse

DEFAULT_CALLBACK_PATH = "/callback"


def normalize_callback_path(path: str) -> str:
    path = path.strip()
    if not path:
        return DEFAULT_CALLBACK_PATH
    if not path.startswith("/"):
        path = f"/{path}"
    return path


def build_redirect_uri(port: int, path: str = DEFAULT_CALLBACK_PATH) -> str:
    return f"http://localhost:{port}{normalize_callback_path(path)}"


def query_params(url: str) -> dict[str, str]:
    parsed = urllib.parse.urlparse(url)
    return {key: values[0] for key, values in urllib.parse.parse_qs(parsed.query).items()}
