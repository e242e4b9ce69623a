"""Module-level functions backed by a process-wide :class:`Client`."""

from __future__ import annotations

import threading
from typing import Any, Mapping

from .client import Body, Client, RequestBuilder
from .jar import Cookie
from .options import Options
from .params import Params
from .response import Response

_client: Client | None = None
_client_lock = threading.Lock()


def default_client() -> Client:
    """Return the shared client, creating it on first use."""
    global _client
    with _client_lock:
        if _client is None:
            _client = Client()
        return _client


def defaults(options: Options | Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None) -> Client:
    return default_client().defaults(options, headers)


def begin() -> Client:
    return default_client().begin()


def with_option(name: str, value: Any) -> Client:
    return default_client().with_option(name, value)


def with_options(options: Options | Mapping[str, Any] | None = None, **extra: Any) -> Client:
    return default_client().with_options(options, **extra)


def with_header(name: str, value: str) -> Client:
    return default_client().with_header(name, value)


def with_headers(headers: Mapping[str, str]) -> Client:
    return default_client().with_headers(headers)


def with_cookie(*cookies: Cookie) -> Client:
    return default_client().with_cookie(*cookies)


def new_request() -> RequestBuilder:
    return default_client().new_request()


def do(method: str, url: str, headers: Mapping[str, str] | None = None, body: Body = None) -> Response:
    return default_client().do(method, url, headers, body)


def get(url: str, params: Params | None = None) -> Response:
    return default_client().get(url, params)


def post(url: str, params: Params | None = None) -> Response:
    return default_client().post(url, params)


def post_multipart(url: str, params: Params | None = None) -> Response:
    return default_client().post_multipart(url, params)


def cookies(url: str) -> list[Cookie]:
    return default_client().cookies(url)


def cookie_values(url: str) -> dict[str, str]:
    return default_client().cookie_values(url)


def cookie_value(url: str, name: str) -> str:
    return default_client().cookie_value(url, name)
