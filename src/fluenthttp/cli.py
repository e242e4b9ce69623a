"""Small curl-like command line front end."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Sequence

import httpx

from .client import FORM_CONTENT_TYPE, Client
from .exceptions import FluentHTTPError, RedirectPolicyError
from .params import encode_form
from .response import Response


def _parse_pairs(parser: argparse.ArgumentParser, values: Sequence[str], flag: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for value in values:
        name, sep, field_value = value.partition("=")
        if not sep or not name:
            parser.error(f"{flag} expects name=value, got {value!r}")
        pairs.append((name, field_value))
    return pairs


def _parse_headers(parser: argparse.ArgumentParser, values: Sequence[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, header_value = value.partition(":")
        if not sep or not name.strip():
            parser.error(f"-H expects 'Name: value', got {value!r}")
        headers[name.strip()] = header_value.strip()
    return headers


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fluenthttp", description="Send an HTTP request and print the response body.")
    parser.add_argument("url")
    parser.add_argument("-X", "--request", dest="method", default=None, help="request method")
    parser.add_argument("-d", "--data", action="append", default=[], help="url-encoded form field name=value")
    parser.add_argument("-F", "--form", action="append", default=[], help="multipart field name=value or @name=path")
    parser.add_argument("-H", "--header", action="append", default=[], help="extra header 'Name: value'")
    parser.add_argument("-A", "--user-agent")
    parser.add_argument("-e", "--referer")
    parser.add_argument("-x", "--proxy", help="HTTP proxy host:port")
    parser.add_argument("-m", "--max-time", type=int, help="overall timeout in seconds")
    parser.add_argument("--connect-timeout", type=int, help="connect timeout in seconds")
    parser.add_argument("--no-location", action="store_true", help="do not follow redirects")
    parser.add_argument("--max-redirs", type=int)
    parser.add_argument("-i", "--include", action="store_true", help="print status line and headers")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging on stderr")
    return parser


def _options(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if args.user_agent is not None:
        options["user_agent"] = args.user_agent
    if args.referer is not None:
        options["referer"] = args.referer
    if args.proxy:
        options["proxy"] = args.proxy
    if args.max_time is not None:
        options["timeout"] = args.max_time
    if args.connect_timeout is not None:
        options["connect_timeout"] = args.connect_timeout
    if args.no_location:
        options["follow_location"] = False
    if args.max_redirs is not None:
        options["max_redirects"] = args.max_redirs
    return options


def _print_response(response: Response, include: bool) -> None:
    if include:
        print(f"{response.http_version} {response.status_code} {response.reason_phrase}")
        for name, value in response.headers.items():
            print(f"{name}: {value}")
        print()
    sys.stdout.write(response.to_string())
    sys.stdout.flush()


def _main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    data = _parse_pairs(parser, args.data, "-d")
    form = _parse_pairs(parser, args.form, "-F")
    headers = _parse_headers(parser, args.header)
    method = (args.method or ("POST" if data or form else "GET")).upper()

    try:
        client = Client(options=_options(args), headers=headers)
        if form:
            response = client.post_multipart(args.url, form)
        elif method == "POST":
            response = client.post(args.url, data)
        elif data:
            response = client.do(method, args.url, {"Content-Type": FORM_CONTENT_TYPE}, encode_form(data))
        else:
            response = client.do(method, args.url)
    except RedirectPolicyError as exc:
        if exc.response is None:
            print(f"fluenthttp: {exc}", file=sys.stderr)
            return 1
        print(f"fluenthttp: {exc.args[0]}", file=sys.stderr)
        response = Response(exc.response)
    except (FluentHTTPError, httpx.HTTPError, OSError) as exc:
        print(f"fluenthttp: {exc}", file=sys.stderr)
        return 1

    _print_response(response, args.include)
    return 0


def main() -> None:
    raise SystemExit(_main())
