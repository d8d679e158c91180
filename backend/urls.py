from __future__ import annotations

import urllib.parse


def normalize_base_url(url: str) -> str:
    cleaned = url.strip().strip("\"'").rstrip("/")
    parsed = urllib.parse.urlparse(cleaned)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise RuntimeError(f"Invalid backend URL format: {url}")
    return cleaned


def append_query_params(url: str, params: dict[str, str]) -> str:
    parsed = urllib.parse.urlparse(url)
    existing = urllib.parse.parse_qs(parsed.query, keep_blank_values=True)
    for key, value in params.items():
        existing[key] = [value]

    new_query = urllib.parse.urlencode(existing, doseq=True)
    return urllib.parse.urlunparse(parsed._replace(query=new_query))
