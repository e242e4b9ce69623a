"""Typed request options and the layered merge used to resolve them."""

from __future__ import annotations

import enum
from http.cookiejar import CookieJar
from typing import Any, Callable, Mapping

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ._version import __version__
from .exceptions import ConfigurationError


class ProxyType(enum.Enum):
    HTTP = "http"
    SOCKS4 = "socks4"
    SOCKS5 = "socks5"
    SOCKS4A = "socks4a"


ProxyFunc = Callable[[httpx.Request], tuple[ProxyType, str]]
RedirectPolicy = Callable[[httpx.Request, list[httpx.Request]], None]


class Options(BaseModel):
    """Request options.

    Every field defaults to ``None``, meaning "not set in this layer". Only
    fields that were explicitly given take part in :func:`merge_options`, so
    passing ``None`` on purpose clears a value set by a lower layer.
    """

    model_config = ConfigDict(
        strict=True,
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    auto_referer: bool | None = None
    follow_location: bool | None = None
    max_redirects: int | None = None
    connect_timeout: int | None = Field(default=None, ge=0)
    connect_timeout_ms: int | None = Field(default=None, ge=0)
    timeout: int | None = Field(default=None, ge=0)
    timeout_ms: int | None = Field(default=None, ge=0)
    proxy_type: ProxyType | None = None
    proxy: str | None = None
    proxy_func: ProxyFunc | None = None
    interface: str | None = None
    cookie_jar: bool | CookieJar | httpx.Cookies | None = None
    referer: str | None = None
    user_agent: str | None = None
    redirect_policy: RedirectPolicy | None = None

    @classmethod
    def parse(cls, values: Options | Mapping[str, Any] | None = None) -> Options:
        """Validate a plain mapping of option values.

        Raises :class:`ConfigurationError` naming the first offending option.
        """
        if values is None:
            return cls()
        if isinstance(values, Options):
            return values
        try:
            return cls(**{str(name): value for name, value in values.items()})
        except ValidationError as exc:
            error = exc.errors()[0]
            option = str(error["loc"][0]) if error["loc"] else None
            raise ConfigurationError(
                f"invalid value for option {option!r}: {error['msg']}",
                option=option,
                cause=exc,
            ) from exc

    def set_names(self) -> frozenset[str]:
        return frozenset(self.model_fields_set)


DEFAULT_OPTIONS = Options(
    follow_location=True,
    max_redirects=10,
    auto_referer=True,
    user_agent=f"fluenthttp/{__version__}",
    cookie_jar=True,
)

# Changing any of these for a single request means the cached transport
# cannot serve it.
TRANSPORT_OPTIONS = frozenset(
    {
        "connect_timeout",
        "connect_timeout_ms",
        "proxy_type",
        "timeout",
        "timeout_ms",
        "interface",
        "proxy",
        "proxy_func",
    }
)

JAR_OPTIONS = frozenset({"cookie_jar"})


def is_transport_option(name: str) -> bool:
    return name in TRANSPORT_OPTIONS


def is_jar_option(name: str) -> bool:
    return name in JAR_OPTIONS


def merge_options(*layers: Options | None) -> Options:
    """Overlay option layers, later layers winning for every field they set."""
    values: dict[str, Any] = {}
    for layer in layers:
        if layer is None:
            continue
        for name in layer.model_fields_set:
            values[name] = getattr(layer, name)
    return Options.model_construct(_fields_set=set(values), **values)


def merge_headers(*layers: Mapping[str, str] | None) -> dict[str, str]:
    """Merge header layers, later layers winning."""
    merged: dict[str, str] = {}
    for layer in layers:
        if not layer:
            continue
        for name, value in layer.items():
            merged[str(name)] = str(value)
    return merged
