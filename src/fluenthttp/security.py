"""Header redaction and proxy URL validation helpers."""

from __future__ import annotations

from typing import Mapping

import httpx

from .exceptions import ConfigurationError


SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "proxy-authorization",
    "set-cookie",
    "x-api-key",
}

SUPPORTED_PROXY_SCHEMES = {"http"}


def sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def normalize_proxy_url(target: str, *, option: str = "proxy") -> str:
    """Turn a proxy target such as ``host:port`` into an ``http://`` URL.

    Targets that already carry a scheme must use ``http``.
    """
    if "\x00" in target:
        raise ConfigurationError(f"invalid proxy target {target!r}", option=option)
    url = target if "://" in target else f"http://{target}"
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ConfigurationError(f"invalid proxy target {target!r}: {exc}", option=option, cause=exc) from exc
    if parsed.scheme not in SUPPORTED_PROXY_SCHEMES:
        raise ConfigurationError(
            f"unsupported proxy scheme {parsed.scheme!r}, only http is currently supported",
            option=option,
        )
    if not parsed.host:
        raise ConfigurationError(f"proxy target {target!r} has no host", option=option)
    return url
