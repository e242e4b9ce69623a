"""Configurable HTTP client built on httpx."""

from ._version import __version__
from .client import Client, RequestBuilder
from .jar import Cookie
from .facade import (
    begin,
    cookie_value,
    cookie_values,
    cookies,
    default_client,
    defaults,
    do,
    get,
    new_request,
    post,
    post_multipart,
    with_cookie,
    with_header,
    with_headers,
    with_option,
    with_options,
)
from .exceptions import (
    ConfigurationError,
    FluentHTTPError,
    RedirectPolicyError,
    RequestBuilderConsumedError,
)
from .options import DEFAULT_OPTIONS, Options, ProxyType
from .response import Response

__all__ = [
    "__version__",
    "Client",
    "ConfigurationError",
    "Cookie",
    "DEFAULT_OPTIONS",
    "FluentHTTPError",
    "Options",
    "ProxyType",
    "RedirectPolicyError",
    "RequestBuilder",
    "RequestBuilderConsumedError",
    "Response",
    "begin",
    "cookie_value",
    "cookie_values",
    "cookies",
    "default_client",
    "defaults",
    "do",
    "get",
    "new_request",
    "post",
    "post_multipart",
    "with_cookie",
    "with_header",
    "with_headers",
    "with_option",
    "with_options",
]
