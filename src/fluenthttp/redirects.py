"""Redirect policies."""

from __future__ import annotations

import logging

import httpx

from .exceptions import RedirectPolicyError
from .options import Options, RedirectPolicy

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 10


def build_redirect_policy(options: Options) -> RedirectPolicy:
    """Return the callable deciding whether a redirect is followed.

    The policy is called with the pending request and every request already
    made in the chain. It returns ``None`` to follow the redirect and raises
    to stop; a caller-supplied ``redirect_policy`` option is returned as-is.
    """
    if options.redirect_policy is not None:
        return options.redirect_policy

    follow_location = True if options.follow_location is None else options.follow_location
    max_redirects = DEFAULT_MAX_REDIRECTS if options.max_redirects is None else options.max_redirects

    def policy(request: httpx.Request, via: list[httpx.Request]) -> None:
        if not follow_location or max_redirects <= 0:
            raise RedirectPolicyError("redirect not allowed")

        if len(via) >= max_redirects:
            raise RedirectPolicyError(f"stopped after {len(via)} redirects")

        # Only the User-Agent is carried over explicitly.
        user_agent = via[-1].headers.get("User-Agent")
        if user_agent:
            request.headers["User-Agent"] = user_agent
        logger.debug("Following redirect %d to %s", len(via), request.url)

    return policy


def referer_for(previous: httpx.URL, target: httpx.URL) -> str:
    """Referer value to send when redirecting from ``previous`` to ``target``."""
    if previous.scheme == "https" and target.scheme != "https":
        return ""
    if previous.userinfo or previous.fragment:
        previous = httpx.URL(
            scheme=previous.scheme,
            host=previous.host,
            port=previous.port,
            raw_path=previous.raw_path,
        )
    return str(previous)
