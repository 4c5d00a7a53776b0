from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_SECRET_PATTERNS = [
    re.compile(r"(api[_-]?key\s*[=:]\s*)([^\s&]+)", re.IGNORECASE),
    re.compile(r"((?:access_|refresh_)?token\s*[=:]\s*)([^\s&]+)", re.IGNORECASE),
    re.compile(r"(password\s*[=:]\s*)([^\s&]+)", re.IGNORECASE),
    re.compile(r"(authorization\s*:\s*(?:bearer|basic)\s+)([^\s]+)", re.IGNORECASE),
]

_SECRET_QUERY_KEYS = {"api_key", "apikey", "token", "access_token", "password", "signature"}


def redact_secrets(text: str) -> str:
    redacted = text
    for pattern in _SECRET_PATTERNS:
        redacted = pattern.sub(r"\1***REDACTED***", redacted)
    return redacted


def redact_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query and not parts.password:
        return url
    netloc = parts.netloc
    if parts.password:
        netloc = netloc.replace(f":{parts.password}@", ":***REDACTED***@")
    query = urlencode(
        [
            (key, "***REDACTED***" if key.lower() in _SECRET_QUERY_KEYS else value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
        ],
        safe="*",
    )
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))
