"""Client with layered options, per-request overrides and resource reuse."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from http.cookiejar import CookieJar
from typing import Any, Iterable, Mapping, Union

import httpx

from .jar import Cookie, build_jar, cookies_for_url, discarding_jar, set_cookies
from .exceptions import FluentHTTPError, RedirectPolicyError, RequestBuilderConsumedError
from .options import (
    DEFAULT_OPTIONS,
    Options,
    RedirectPolicy,
    is_jar_option,
    is_transport_option,
    merge_headers,
    merge_options,
)
from .params import Params, add_query, build_multipart, encode_form, has_file_param
from .redirects import build_redirect_policy, referer_for
from .response import Response
from .security import sanitize_headers
from .transport import ConfiguredTransport, TransportFactory, build_transport

logger = logging.getLogger(__name__)

Body = Union[str, bytes, Iterable[bytes], None]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _option_layer(options: Options | Mapping[str, Any] | None, extra: Mapping[str, Any]) -> Options:
    layer = Options.parse(options)
    if extra:
        layer = merge_options(layer, Options.parse(extra))
    return layer


def prepare_request(
    http: httpx.Client,
    method: str,
    url: str,
    headers: Mapping[str, str],
    body: Body,
    options: Options,
) -> httpx.Request:
    """Build the outgoing request.

    ``referer`` and ``user_agent`` options are applied first so explicit
    headers win over them. An empty user agent removes the header.
    """
    request_headers: dict[str, str] = {}
    if options.referer is not None:
        request_headers["Referer"] = options.referer
    if options.user_agent is not None:
        request_headers["User-Agent"] = options.user_agent
    request_headers.update(headers)

    request = http.build_request(method.upper(), url, headers=request_headers, content=body)
    if request.headers.get("User-Agent") == "":
        del request.headers["User-Agent"]
    return request


def _attach_cookies(request: httpx.Request, cookies: Iterable[Cookie]) -> None:
    values = [cookie.header_value() for cookie in cookies]
    existing = request.headers.get("Cookie")
    if existing:
        values.insert(0, existing)
    request.headers["Cookie"] = "; ".join(values)


@dataclass
class _PreparedCall:
    options: Options
    headers: dict[str, str]
    cookies: list[Cookie]
    transport: ConfiguredTransport
    owns_transport: bool
    jar: CookieJar | None


class _RequestMethods:
    """GET/POST helpers shared by :class:`Client` and :class:`RequestBuilder`."""

    def do(self, method: str, url: str, headers: Mapping[str, str] | None = None, body: Body = None) -> Response:
        raise NotImplementedError

    def _abort(self) -> None:
        """Drop request state when a request fails before :meth:`do` runs."""

    def get(self, url: str, params: Params | None = None) -> Response:
        return self.do("GET", add_query(url, params))

    def post(self, url: str, params: Params | None = None) -> Response:
        """POST a url-encoded form.

        If any param name starts with ``@`` the request is sent as
        ``multipart/form-data`` instead, see :meth:`post_multipart`.
        """
        if has_file_param(params):
            return self.post_multipart(url, params)
        return self.do("POST", url, {"Content-Type": FORM_CONTENT_TYPE}, encode_form(params))

    def post_multipart(self, url: str, params: Params | None = None) -> Response:
        """POST params as ``multipart/form-data``.

        ``{"@photo": "/tmp/a.png"}`` uploads the file as the ``photo`` part.
        """
        try:
            content_type, body = build_multipart(params)
        except OSError:
            self._abort()
            raise
        return self.do("POST", url, {"Content-Type": content_type}, body)


class Client(_RequestMethods):
    """HTTP client with default, per-client and one-time options.

    One-time options, headers and cookies set with the ``with_*`` methods
    apply to the next :meth:`do` (or ``get``/``post``) only. When a client is
    shared between threads, call :meth:`begin` before configuring a request;
    it holds the client lock until that request's :meth:`do` has consumed
    the one-time state.
    """

    def __init__(
        self,
        options: Options | Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.options = Options.parse(options)
        self.headers = merge_headers(headers)
        self._transport_factory = transport_factory

        self._one_time_options: Options | None = None
        self._one_time_headers: dict[str, str] | None = None
        self._one_time_cookies: list[Cookie] = []
        self._reuse_transport = True
        self._reuse_jar = True

        self._transport: ConfiguredTransport | None = None
        self._retired: list[ConfiguredTransport] = []
        self._jar: CookieJar | None = None
        self._cache_lock = threading.Lock()

        self._lock = threading.Lock()
        self._locked = False

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the cached transport and any replaced by :meth:`defaults`."""
        with self._cache_lock:
            transports, self._retired = self._retired, []
            if self._transport is not None:
                transports.append(self._transport)
                self._transport = None
        for transport in transports:
            transport.close()

    def defaults(
        self,
        options: Options | Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> "Client":
        """Merge options and headers into this client's defaults.

        Changing a transport or jar option drops the cached instance so the
        next request builds a new one. A dropped transport may still be in use
        by a request in flight; it is closed by :meth:`close`.
        """
        layer = Options.parse(options)
        self.options = merge_options(self.options, layer)
        self.headers = merge_headers(self.headers, headers)
        with self._cache_lock:
            if any(is_transport_option(name) for name in layer.set_names()) and self._transport is not None:
                self._retired.append(self._transport)
                self._transport = None
            if any(is_jar_option(name) for name in layer.set_names()):
                self._jar = None
        return self

    def begin(self) -> "Client":
        """Acquire the client lock; the next :meth:`do` releases it."""
        self._lock.acquire()
        self._locked = True
        return self

    def with_option(self, name: str, value: Any) -> "Client":
        self._add_one_time_options(Options.parse({name: value}))
        return self

    def with_options(self, options: Options | Mapping[str, Any] | None = None, **extra: Any) -> "Client":
        self._add_one_time_options(_option_layer(options, extra))
        return self

    def with_header(self, name: str, value: str) -> "Client":
        self._one_time_headers = merge_headers(self._one_time_headers, {name: value})
        return self

    def with_headers(self, headers: Mapping[str, str]) -> "Client":
        self._one_time_headers = merge_headers(self._one_time_headers, headers)
        return self

    def with_cookie(self, *cookies: Cookie) -> "Client":
        self._one_time_cookies.extend(cookies)
        return self

    def new_request(self) -> "RequestBuilder":
        """Start an immutable request builder from the current defaults."""
        return RequestBuilder(self, defaults=self.options, default_headers=self.headers)

    def do(self, method: str, url: str, headers: Mapping[str, str] | None = None, body: Body = None) -> Response:
        """Send a request.

        One-time state is cleared and the :meth:`begin` lock released before
        any network I/O, whether or not preparing the request succeeded.
        """
        try:
            call = self._prepare_call(
                self.options,
                self._one_time_options,
                merge_headers(self.headers, self._one_time_headers, headers),
                list(self._one_time_cookies),
                reuse_transport=self._reuse_transport,
                reuse_jar=self._reuse_jar,
            )
        finally:
            self._reset()
        return self._send(call, method, url, body)

    def cookies(self, url: str) -> list[Cookie]:
        """Cookies in the client jar that would be sent to ``url``."""
        return cookies_for_url(self._jar, url)

    def cookie_values(self, url: str) -> dict[str, str]:
        return {cookie.name: cookie.value for cookie in self.cookies(url)}

    def cookie_value(self, url: str, name: str) -> str:
        for cookie in self.cookies(url):
            if cookie.name == name:
                return cookie.value
        return ""

    def _abort(self) -> None:
        self._reset()

    def _add_one_time_options(self, layer: Options) -> None:
        self._one_time_options = merge_options(self._one_time_options, layer)
        for name in layer.set_names():
            if is_transport_option(name):
                self._reuse_transport = False
            if is_jar_option(name):
                self._reuse_jar = False

    def _reset(self) -> None:
        self._one_time_options = None
        self._one_time_headers = None
        self._one_time_cookies = []
        self._reuse_transport = True
        self._reuse_jar = True

        # Only release what begin() acquired; without begin() requests are
        # assumed not to be concurrent.
        if self._locked:
            self._locked = False
            self._lock.release()

    def _prepare_call(
        self,
        defaults: Options,
        one_time: Options | None,
        headers: dict[str, str],
        cookies: list[Cookie],
        *,
        reuse_transport: bool,
        reuse_jar: bool,
    ) -> _PreparedCall:
        options = merge_options(DEFAULT_OPTIONS, defaults, one_time)
        transport, owns_transport = self._resolve_transport(options, reuse_transport)
        try:
            jar = self._resolve_jar(options, reuse_jar)
        except FluentHTTPError:
            if owns_transport:
                transport.close()
            raise
        return _PreparedCall(
            options=options,
            headers=headers,
            cookies=cookies,
            transport=transport,
            owns_transport=owns_transport,
            jar=jar,
        )

    def _resolve_transport(self, options: Options, reuse: bool) -> tuple[ConfiguredTransport, bool]:
        with self._cache_lock:
            if reuse and self._transport is not None:
                logger.debug("Reusing cached transport")
                return self._transport, False
            transport = build_transport(options, self._transport_factory)
            if reuse:
                self._transport = transport
                return transport, False
        return transport, True

    def _resolve_jar(self, options: Options, reuse: bool) -> CookieJar | None:
        with self._cache_lock:
            if reuse and self._jar is not None:
                return self._jar
            jar = build_jar(options)
            if reuse:
                self._jar = jar
        logger.debug("Built cookie jar %r (cached=%s)", jar, reuse)
        return jar

    def _send(self, call: _PreparedCall, method: str, url: str, body: Body) -> Response:
        try:
            redirect = build_redirect_policy(call.options)
            http = httpx.Client(
                transport=call.transport,
                cookies=call.jar if call.jar is not None else discarding_jar(),
                follow_redirects=False,
                trust_env=False,
            )
            if call.cookies and call.jar is not None:
                set_cookies(call.jar, url, call.cookies)
            request = prepare_request(http, method, url, call.headers, body, call.options)
            if call.cookies and call.jar is None:
                _attach_cookies(request, call.cookies)

            logger.debug("%s %s headers=%s", request.method, request.url, sanitize_headers(request.headers))
            response = self._follow(http, request, redirect, auto_referer=bool(call.options.auto_referer))
            logger.debug("%s %s -> %d", request.method, request.url, response.status_code)
            return Response(response)
        finally:
            if call.owns_transport:
                call.transport.close()

    @staticmethod
    def _follow(http: httpx.Client, request: httpx.Request, redirect: RedirectPolicy, *, auto_referer: bool) -> httpx.Response:
        via: list[httpx.Request] = []
        history: list[httpx.Response] = []
        while True:
            response = http.send(request, follow_redirects=False)
            next_request = response.next_request
            if next_request is None:
                response.history = history
                return response

            via.append(request)
            if auto_referer:
                referer = referer_for(request.url, next_request.url)
                if referer:
                    next_request.headers["Referer"] = referer
            try:
                redirect(next_request, via)
            except RedirectPolicyError as exc:
                if exc.response is None:
                    exc.response = response
                logger.debug("Redirect from %s denied: %s", request.url, exc)
                raise
            except Exception as exc:
                raise RedirectPolicyError(str(exc), response=response, cause=exc) from exc

            history.append(response)
            request = next_request


class RequestBuilder(_RequestMethods):
    """Immutable per-request configuration bound to a :class:`Client`.

    Every ``with_*`` call returns a new builder; a builder can send exactly
    one request. Builders do not use the :meth:`Client.begin` lock.
    """

    def __init__(
        self,
        client: Client,
        *,
        defaults: Options,
        default_headers: Mapping[str, str],
        options: Options | None = None,
        headers: Mapping[str, str] | None = None,
        cookies: Iterable[Cookie] = (),
    ) -> None:
        self._client = client
        self._defaults = defaults
        self._default_headers = dict(default_headers)
        self._options = options
        self._headers = dict(headers or {})
        self._cookies = tuple(cookies)
        self._consumed = False

    @property
    def options(self) -> Options:
        """The options this builder would send with, library defaults included."""
        return merge_options(DEFAULT_OPTIONS, self._defaults, self._options)

    def _derive(self, **changes: Any) -> "RequestBuilder":
        state = {
            "defaults": self._defaults,
            "default_headers": self._default_headers,
            "options": self._options,
            "headers": self._headers,
            "cookies": self._cookies,
        }
        state.update(changes)
        return RequestBuilder(self._client, **state)

    def with_option(self, name: str, value: Any) -> "RequestBuilder":
        return self._derive(options=merge_options(self._options, Options.parse({name: value})))

    def with_options(self, options: Options | Mapping[str, Any] | None = None, **extra: Any) -> "RequestBuilder":
        return self._derive(options=merge_options(self._options, _option_layer(options, extra)))

    def with_header(self, name: str, value: str) -> "RequestBuilder":
        return self._derive(headers=merge_headers(self._headers, {name: value}))

    def with_headers(self, headers: Mapping[str, str]) -> "RequestBuilder":
        return self._derive(headers=merge_headers(self._headers, headers))

    def with_cookie(self, *cookies: Cookie) -> "RequestBuilder":
        return self._derive(cookies=self._cookies + cookies)

    def do(self, method: str, url: str, headers: Mapping[str, str] | None = None, body: Body = None) -> Response:
        self._consume()
        names = self._options.set_names() if self._options is not None else frozenset()
        call = self._client._prepare_call(
            self._defaults,
            self._options,
            merge_headers(self._default_headers, self._headers, headers),
            list(self._cookies),
            reuse_transport=not any(is_transport_option(name) for name in names),
            reuse_jar=not any(is_jar_option(name) for name in names),
        )
        return self._client._send(call, method, url, body)

    def _abort(self) -> None:
        self._consumed = True

    def _consume(self) -> None:
        if self._consumed:
            raise RequestBuilderConsumedError("request builder has already been used")
        self._consumed = True
