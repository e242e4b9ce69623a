from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest


Handler = Callable[[httpx.Request], httpx.Response]


def ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="ok", request=request)


class RecordingFactory:
    """Transport factory handing out MockTransports and recording what it saw."""

    def __init__(self, handler: Handler = ok_handler) -> None:
        self.handler = handler
        self.calls: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []
        self.closed = 0

    def __call__(self, **kwargs: Any) -> httpx.BaseTransport:
        self.calls.append(kwargs)
        factory = self

        def handle(request: httpx.Request) -> httpx.Response:
            factory.requests.append(request)
            return factory.handler(request)

        class _Transport(httpx.MockTransport):
            def close(self) -> None:
                factory.closed += 1

        return _Transport(handle)


@pytest.fixture
def make_factory() -> Callable[..., RecordingFactory]:
    return RecordingFactory
