"""Entry point: python -m evsource URL"""

from __future__ import annotations

import argparse

from .auth import basic_auth
from .config import ClientConfig
from .logging_config import setup_logging


def parse_headers(values: list[str]) -> dict[str, str]:
    """Parse repeated 'Name: value' arguments into a header dict."""
    headers: dict[str, str] = {}
    for item in values:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Invalid header {item!r}, expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Server-Sent Events client")
    parser.add_argument("url", help="Event stream URL")
    parser.add_argument("-H", "--header", action="append", default=[], help="Extra request header 'Name: value'")
    parser.add_argument("-e", "--event", action="append", default=[], help="Also print events of this type")
    parser.add_argument("--user", default=None, help="Basic auth username")
    parser.add_argument("--password", default="", help="Basic auth password")
    parser.add_argument("--transport", choices=["httpx", "aiohttp"], default=None, help="HTTP transport (default: httpx)")
    parser.add_argument("--store", default=None, help="SQLite file for durable last-event-ids")
    parser.add_argument("--retry-ms", type=int, default=None, help="Initial reconnect delay (default: 3000)")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    args = parser.parse_args(argv)

    config = ClientConfig()
    if args.transport:
        config.transport = args.transport
    if args.store:
        config.store_path = args.store
    if args.retry_ms is not None:
        config.retry_ms = args.retry_ms
    if args.log_level:
        config.log_level = args.log_level

    try:
        headers = parse_headers(args.header)
    except ValueError as exc:
        parser.error(str(exc))
    if args.user:
        headers["Authorization"] = basic_auth(args.user, args.password)

    setup_logging(config.log_dir, config.log_level)

    from .runner import run_client
    run_client(args.url, config, headers, args.event)


if __name__ == "__main__":
    main()
