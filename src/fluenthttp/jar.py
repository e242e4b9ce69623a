"""Cookie model, cookie jar construction and jar lookups."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from http.cookiejar import Cookie as JarCookie
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Iterable

import httpx
from pydantic import BaseModel, ConfigDict

from .exceptions import ConfigurationError
from .options import Options

logger = logging.getLogger(__name__)


class Cookie(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    value: str = ""
    domain: str | None = None
    path: str | None = None
    expires: datetime | None = None
    secure: bool = False
    http_only: bool = False

    def header_value(self) -> str:
        return f"{self.name}={self.value}"

    def to_jar_cookie(self, url: httpx.URL) -> JarCookie:
        """Convert to a stdlib cookie scoped to ``url`` when domain/path are unset."""
        domain_specified = bool(self.domain)
        if self.domain:
            domain = self.domain.lower()
            if not domain.startswith("."):
                domain = "." + domain
        else:
            domain = effective_host(url.host)
        path_specified = bool(self.path) and self.path.startswith("/")
        path = self.path if path_specified else default_path(url.path)
        expires = None
        if self.expires is not None:
            expires = int(self.expires.timestamp())
        return JarCookie(
            version=0,
            name=self.name,
            value=self.value,
            port=None,
            port_specified=False,
            domain=domain,
            domain_specified=domain_specified,
            domain_initial_dot=bool(self.domain) and self.domain.startswith("."),
            path=path,
            path_specified=path_specified,
            secure=self.secure,
            expires=expires,
            discard=expires is None,
            comment=None,
            comment_url=None,
            rest={"HttpOnly": None} if self.http_only else {},
        )

    @classmethod
    def from_jar_cookie(cls, cookie: JarCookie) -> Cookie:
        expires = None
        if cookie.expires is not None:
            expires = datetime.fromtimestamp(cookie.expires, tz=timezone.utc)
        return cls(
            name=cookie.name,
            value=cookie.value or "",
            domain=cookie.domain.lstrip("."),
            path=cookie.path,
            expires=expires,
            secure=cookie.secure,
            http_only=cookie.has_nonstandard_attr("HttpOnly"),
        )


def effective_host(host: str) -> str:
    # Matches how http.cookiejar names dotless hosts.
    host = host.lower()
    if "." not in host:
        return host + ".local"
    return host


def default_path(path: str) -> str:
    if not path or not path.startswith("/"):
        return "/"
    index = path.rfind("/")
    if index == 0:
        return "/"
    return path[:index]


def _domain_matches(host: str, domain: str) -> bool:
    domain = domain.lower()
    if domain.startswith("."):
        return host == domain[1:] or host.endswith(domain)
    return host == domain


def _path_matches(request_path: str, cookie_path: str) -> bool:
    if request_path == cookie_path:
        return True
    if not request_path.startswith(cookie_path):
        return False
    return cookie_path.endswith("/") or request_path[len(cookie_path)] == "/"


def build_jar(options: Options) -> CookieJar | None:
    """Return the cookie jar selected by the ``cookie_jar`` option.

    ``True`` creates an in-memory jar with the stdlib default policy, ``False``
    or an unset option means no jar, and a jar instance is used as given.
    """
    value = options.cookie_jar
    if value is None or value is False:
        return None
    if value is True:
        return CookieJar()
    if isinstance(value, httpx.Cookies):
        return value.jar
    if isinstance(value, CookieJar):
        return value
    raise ConfigurationError(f"invalid cookie jar {value!r}", option="cookie_jar")


def discarding_jar() -> CookieJar:
    """A jar whose policy refuses every cookie, for requests made without a jar."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def set_cookies(jar: CookieJar, url: httpx.URL | str, cookies: Iterable[Cookie]) -> None:
    """Store cookies in ``jar`` as if they were received from ``url``."""
    url = httpx.URL(url)
    host = effective_host(url.host)
    for cookie in cookies:
        jar_cookie = cookie.to_jar_cookie(url)
        if not _domain_matches(host, jar_cookie.domain):
            logger.debug("Ignoring cookie %s for domain %s on %s", cookie.name, jar_cookie.domain, url.host)
            continue
        jar.set_cookie(jar_cookie)


def cookies_for_url(jar: CookieJar | None, url: httpx.URL | str) -> list[Cookie]:
    """Unexpired cookies in ``jar`` that would be sent to ``url``."""
    if jar is None:
        return []
    url = httpx.URL(url)
    host = effective_host(url.host)
    path = url.path or "/"
    now = time.time()
    matched: list[Cookie] = []
    for jar_cookie in jar:
        if jar_cookie.is_expired(now):
            continue
        if jar_cookie.secure and url.scheme != "https":
            continue
        if not _domain_matches(host, jar_cookie.domain):
            continue
        if not _path_matches(path, jar_cookie.path):
            continue
        matched.append(Cookie.from_jar_cookie(jar_cookie))
    return matched
