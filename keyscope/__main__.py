#!/usr/bin/env python3
"""
Keyscope command-line browser.

Opens one session, prints server info and one page of keys (or a single
key's value), then closes the session.

Usage:
    python -m keyscope localhost:6379
    python -m keyscope "cache.internal:6380,password=secret,ssl=true" --pattern "user:*" --page 2
    python -m keyscope redis://localhost:6379/0 --key user:1 --json

    # Connection defaults and logging from the environment
    KEYSCOPE_LOG_LEVEL=DEBUG KEYSCOPE_REDIS_SOCKET_TIMEOUT_MS=2000 python -m keyscope localhost
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional, Sequence

from keyscope.core import constants as C
from keyscope.core.config import KeyscopeConfig
from keyscope.core.errors import KeyspaceError
from keyscope.core.types import Err
from keyscope.observability.logging import setup_logging
from keyscope.service import KeyscopeService
from keyscope.storage.backends import MEMORY_SCHEME


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keyscope",
        description="Browse a Redis keyspace",
    )
    parser.add_argument("descriptor", help="Connection string or redis:// URL")
    parser.add_argument("--pattern", default=C.DEFAULT_PATTERN, help="Glob pattern for keys")
    parser.add_argument("--page", type=int, default=0, help="Zero-based page index")
    parser.add_argument("--page-size", type=int, default=None, help="Keys per page")
    parser.add_argument("--key", default=None, help="Show one key's value instead of a page")
    parser.add_argument("--strict", action="store_true", help="Fail the page on any metadata error")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    return parser


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


async def run_browser(service: KeyscopeService, args: argparse.Namespace) -> int:
    opened = await service.open(args.descriptor)
    if opened.is_err():
        print(f"Connection failed: {opened.error.message}", file=sys.stderr)
        return 1
    session_id = opened.unwrap()

    try:
        info = (await service.server_info(session_id)).unwrap()

        if args.key is not None:
            fetched = await service.fetch(session_id, args.key)
            if fetched.is_ok() and fetched.unwrap() is None:
                fetched = Err(KeyspaceError.not_found(args.key))
            if fetched.is_err():
                print(f"Error: {fetched.error.message}", file=sys.stderr)
                return 2
            value = fetched.unwrap()
            if args.json:
                _print_json({"server": info.to_dict(), "key": value.to_dict()})
            else:
                print(f"{value.name}  [{value.kind.value}]  size={value.info.size}  "
                      f"ttl={value.ttl_seconds if value.ttl_seconds is not None else '-'}")
                _print_json(value.value.to_primitive())
            return 0

        paged = await service.page(
            session_id,
            args.pattern,
            args.page,
            args.page_size,
            lenient=not args.strict,
        )
        if paged.is_err():
            print(f"Error: {paged.error.message}", file=sys.stderr)
            return 2
        page = paged.unwrap()

        if args.json:
            _print_json({"server": info.to_dict(), "page": page.to_dict()})
            return 0

        print(f"Redis {info.version} | memory {info.used_memory} | "
              f"clients {info.connected_clients}")
        print(f"Pattern '{args.pattern}': {page.total_matches} keys, "
              f"page {page.page_index + 1}/{max(page.total_pages, 1)}")
        print("-" * 60)
        for item in page.items:
            days = item.expire_in_days
            print(f"{item.name:<32} {item.kind.value:<10} {item.size:>12} "
                  f"{f'{days}d' if days is not None else '-':>6}")
        return 0
    finally:
        await service.close(session_id)


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config_result = KeyscopeConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}", file=sys.stderr)
        return 1
    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        print(f"Validation error: {validation.error}", file=sys.stderr)
        return 1

    setup_logging(config.observability.log_level, json_output=config.observability.log_json)

    if args.descriptor.strip().startswith(MEMORY_SCHEME):
        service = KeyscopeService.in_memory(config=config)
    else:
        service = KeyscopeService.from_config(config)

    async with service:
        return await run_browser(service, args)


def run() -> None:
    """Synchronous entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
