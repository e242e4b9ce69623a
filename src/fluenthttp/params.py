"""Query string, form and multipart helpers."""

from __future__ import annotations

import os
from contextlib import ExitStack
from typing import Mapping, Sequence, Union

import httpx
from httpx._multipart import MultipartStream

FILE_MARKER = "@"

ParamValue = Union[str, int, float, Sequence[Union[str, int, float]], None]
Params = Union[Mapping[str, ParamValue], Sequence[tuple[str, ParamValue]]]


def param_items(params: Params | None) -> list[tuple[str, str]]:
    """Flatten params into ``(name, value)`` pairs, expanding list values.

    ``None`` values are dropped.
    """
    if not params:
        return []
    items = params.items() if isinstance(params, Mapping) else params
    pairs: list[tuple[str, str]] = []
    for name, value in items:
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((str(name), str(item)) for item in value if item is not None)
            continue
        pairs.append((str(name), str(value)))
    return pairs


def encode_query(params: Params | None) -> str:
    return str(httpx.QueryParams(param_items(params)))


def add_query(url: str, params: Params | None) -> str:
    """Append params to ``url`` without reparsing it."""
    query = encode_query(params)
    if not query:
        return url
    if "?" not in url:
        url += "?"
    if not url.endswith(("?", "&")):
        url += "&"
    return url + query


def has_file_param(params: Params | None) -> bool:
    return any(name.startswith(FILE_MARKER) for name, _ in param_items(params))


def encode_form(params: Params | None) -> bytes:
    return encode_query(params).encode("ascii")


def build_multipart(params: Params | None) -> tuple[str, bytes]:
    """Encode params as ``multipart/form-data``.

    ``@field`` params name a file path whose contents are sent as the file
    part ``field``; only the first path given for a field is used. Every
    other param becomes a form field, so the body is multipart even without
    files. Returns the content type (with boundary) and the encoded body. An
    unreadable file raises the ``OSError`` from opening it.
    """
    fields: dict[str, list[str]] = {}
    with ExitStack() as stack:
        files = []
        seen: set[str] = set()
        for name, value in param_items(params):
            if not name.startswith(FILE_MARKER):
                fields.setdefault(name, []).append(value)
                continue
            if name in seen:
                continue
            seen.add(name)
            handle = stack.enter_context(open(value, "rb"))
            files.append((name[len(FILE_MARKER) :], (os.path.basename(value), handle)))

        stream = MultipartStream(data=fields, files=files)
        body = b"".join(stream)
    return stream.content_type, body
