"""Transport construction: timeouts, proxies and local address binding."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterator

import httpx

from .exceptions import ConfigurationError
from .options import Options, ProxyFunc, ProxyType
from .security import normalize_proxy_url

logger = logging.getLogger(__name__)

TransportFactory = Callable[..., httpx.BaseTransport]


def _millis(ms_value: int | None, seconds_value: int | None) -> int:
    if ms_value is not None:
        return ms_value
    if seconds_value is not None:
        return seconds_value * 1000
    return 0


def resolve_timeouts(options: Options) -> tuple[int, int]:
    """Return ``(connect_ms, timeout_ms)`` with 0 meaning "no limit".

    The connect timeout never exceeds the overall timeout: when an overall
    timeout is set and the connect timeout is missing or larger, the connect
    timeout is clamped down to it.
    """
    connect_ms = _millis(options.connect_timeout_ms, options.connect_timeout)
    timeout_ms = _millis(options.timeout_ms, options.timeout)
    if timeout_ms > 0 and (connect_ms == 0 or connect_ms > timeout_ms):
        connect_ms = timeout_ms
    return connect_ms, timeout_ms


class _DeadlineStream(httpx.SyncByteStream):
    """Response body that fails once the overall deadline has passed."""

    def __init__(self, stream: httpx.SyncByteStream, deadline: float, request: httpx.Request) -> None:
        self._stream = stream
        self._deadline = deadline
        self._request = request

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._stream:
            if time.monotonic() > self._deadline:
                raise httpx.ReadTimeout("overall timeout exceeded", request=self._request)
            yield chunk

    def close(self) -> None:
        self._stream.close()


class ConfiguredTransport(httpx.BaseTransport):
    """An httpx transport carrying the resolved timeout and proxy settings.

    Requests are dispatched to inner transports created by ``transport_factory``,
    one per proxy URL (``None`` for direct connections).
    """

    def __init__(
        self,
        *,
        connect_timeout_ms: int = 0,
        timeout_ms: int = 0,
        proxy: str | None = None,
        proxy_func: ProxyFunc | None = None,
        local_address: str | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.connect_timeout_ms = connect_timeout_ms
        self.timeout_ms = timeout_ms
        self.proxy = proxy
        self.proxy_func = proxy_func
        self.local_address = local_address
        self._transport_factory = transport_factory or httpx.HTTPTransport
        self._transports: dict[str | None, httpx.BaseTransport] = {}
        self._lock = threading.Lock()

    @property
    def timeout(self) -> httpx.Timeout:
        overall = self.timeout_ms / 1000 if self.timeout_ms > 0 else None
        connect = self.connect_timeout_ms / 1000 if self.connect_timeout_ms > 0 else None
        return httpx.Timeout(overall, connect=connect)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Send ``request`` through the inner transport for its proxy.

        With an overall timeout set, the whole exchange (connect, headers and
        body) must finish within it; httpx's own timeouts only bound each
        single network operation.
        """
        started = time.monotonic()
        request.extensions = {**request.extensions, "timeout": self.timeout.as_dict()}
        proxy_url = self._proxy_for(request)
        response = self._transport_for(proxy_url).handle_request(request)
        if self.timeout_ms <= 0:
            return response

        deadline = started + self.timeout_ms / 1000
        if time.monotonic() > deadline:
            response.close()
            raise httpx.ReadTimeout("overall timeout exceeded", request=request)
        response.stream = _DeadlineStream(response.stream, deadline, request)
        return response

    def close(self) -> None:
        with self._lock:
            transports = list(self._transports.values())
            self._transports.clear()
        for transport in transports:
            transport.close()

    def _proxy_for(self, request: httpx.Request) -> str | None:
        if self.proxy_func is None:
            return self.proxy
        proxy_type, target = self.proxy_func(request)
        if proxy_type is not ProxyType.HTTP:
            raise ConfigurationError(
                f"proxy_func returned {proxy_type!r}, only ProxyType.HTTP is currently supported",
                option="proxy_func",
            )
        if not target:
            return None
        proxy_url = normalize_proxy_url(target, option="proxy_func")
        logger.debug("Resolved proxy %s for %s", proxy_url, request.url)
        return proxy_url

    def _transport_for(self, proxy_url: str | None) -> httpx.BaseTransport:
        with self._lock:
            transport = self._transports.get(proxy_url)
            if transport is None:
                kwargs: dict[str, Any] = {}
                if proxy_url is not None:
                    kwargs["proxy"] = proxy_url
                if self.local_address:
                    kwargs["local_address"] = self.local_address
                transport = self._transport_factory(**kwargs)
                self._transports[proxy_url] = transport
            return transport


def build_transport(options: Options, transport_factory: TransportFactory | None = None) -> ConfiguredTransport:
    """Build a transport from resolved options.

    A ``proxy_func`` takes precedence over the static ``proxy_type``/``proxy``
    pair. Raises :class:`ConfigurationError` for unsupported proxy types and
    malformed proxy targets.
    """
    connect_ms, timeout_ms = resolve_timeouts(options)

    proxy: str | None = None
    if options.proxy_func is None:
        if options.proxy_type is not None and options.proxy_type is not ProxyType.HTTP:
            raise ConfigurationError(
                f"proxy_type {options.proxy_type!r} is not supported, only ProxyType.HTTP is currently supported",
                option="proxy_type",
            )
        if options.proxy:
            proxy = normalize_proxy_url(options.proxy)

    logger.debug(
        "Building transport connect_timeout=%dms timeout=%dms proxy=%s dynamic_proxy=%s interface=%s",
        connect_ms,
        timeout_ms,
        proxy,
        options.proxy_func is not None,
        options.interface,
    )
    return ConfiguredTransport(
        connect_timeout_ms=connect_ms,
        timeout_ms=timeout_ms,
        proxy=proxy,
        proxy_func=options.proxy_func,
        local_address=options.interface,
        transport_factory=transport_factory,
    )
