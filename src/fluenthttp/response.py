"""Response wrapper."""

from __future__ import annotations

from typing import Any

import httpx


class Response:
    """Thin wrapper of :class:`httpx.Response`.

    Attributes that are not defined here (``status_code``, ``headers``,
    ``history``, ...) are looked up on the wrapped response.
    """

    def __init__(self, response: httpx.Response) -> None:
        self.response = response

    def __getattr__(self, name: str) -> Any:
        return getattr(self.response, name)

    def __repr__(self) -> str:
        return f"<Response [{self.response.status_code} {self.response.reason_phrase}]>"

    def read_all(self) -> bytes:
        """Read the body, decompressed when it was sent gzip encoded."""
        return self.response.read()

    def to_string(self) -> str:
        return self.read_all().decode(self.response.encoding or "utf-8", errors="replace")
