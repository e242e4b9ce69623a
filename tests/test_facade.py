from __future__ import annotations

import pytest

import fluenthttp
from fluenthttp import facade
from fluenthttp.client import Client
from fluenthttp.jar import Cookie


@pytest.fixture
def shared(monkeypatch, make_factory):
    factory = make_factory()
    client = Client(transport_factory=factory)
    monkeypatch.setattr(facade, "_client", client)
    return client, factory


def test_default_client_is_created_once(monkeypatch) -> None:
    monkeypatch.setattr(facade, "_client", None)
    first = fluenthttp.default_client()
    assert isinstance(first, Client)
    assert fluenthttp.default_client() is first


def test_module_functions_use_the_shared_client(shared) -> None:
    client, factory = shared

    assert fluenthttp.defaults(headers={"X-App": "demo"}) is client
    fluenthttp.with_header("X-Once", "1").get("http://example.com/a", {"q": "x"})
    fluenthttp.get("http://example.com/b")
    fluenthttp.post("http://example.com/c", {"name": "alice"})

    first, second, third = factory.requests
    assert str(first.url) == "http://example.com/a?q=x"
    assert first.headers["X-Once"] == "1"
    assert "X-Once" not in second.headers
    assert all(request.headers["X-App"] == "demo" for request in factory.requests)
    assert third.content == b"name=alice"


def test_begin_and_options(shared) -> None:
    client, factory = shared

    chained = fluenthttp.begin().with_options(user_agent="facade/1")
    assert chained is client
    assert client._lock.locked()
    fluenthttp.do("GET", "http://example.com/")

    assert not client._lock.locked()
    assert factory.requests[0].headers["User-Agent"] == "facade/1"


def test_cookie_helpers(shared) -> None:
    fluenthttp.with_cookie(Cookie(name="sid", value="s1")).get("http://example.com/")

    assert fluenthttp.cookie_value("http://example.com/", "sid") == "s1"
    assert fluenthttp.cookie_values("http://example.com/") == {"sid": "s1"}
    assert [cookie.name for cookie in fluenthttp.cookies("http://example.com/")] == ["sid"]


def test_new_request_and_multipart(shared, tmp_path) -> None:
    _, factory = shared
    upload = tmp_path / "a.txt"
    upload.write_text("data")

    fluenthttp.new_request().with_option("referer", "http://example.com/").get("http://example.com/x")
    fluenthttp.post_multipart("http://example.com/upload", {"@file": str(upload)})

    assert factory.requests[0].headers["Referer"] == "http://example.com/"
    assert factory.requests[1].headers["Content-Type"].startswith("multipart/form-data")
