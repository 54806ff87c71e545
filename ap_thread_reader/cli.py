from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Sequence

from .activitypub import ActivityPubPostRepository
from .collector import get_longest_thread
from .config import load_config
from .config_schema import AppConfig
from .errors import ConfigError
from .fixtures import fixture_transport
from .formatter import format_thread, format_thread_as_html
from .post_id import PostId, try_create_post_id
from .read_thread import read_thread
from .run_log import RunLogger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ap_thread_reader")

    subparsers = parser.add_subparsers(dest="command", required=True)

    read = subparsers.add_parser(
        "read",
        help="Print the longest self-reply thread starting at an ActivityPub post URL.",
    )
    read.add_argument("url", help="URL of the first post of the thread.")
    read.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (defaults are used when omitted).",
    )
    read.add_argument(
        "--language",
        default=None,
        help="Preferred content language, e.g. 'en' or 'ko'.",
    )
    read.add_argument(
        "-s",
        "--separator",
        default=None,
        help="Separator printed between posts in text output.",
    )
    read.add_argument(
        "--format",
        choices=("text", "html", "json"),
        default="text",
        help="Output format.",
    )
    read.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print thread metadata to stderr and include post metadata in text output.",
    )
    read.add_argument(
        "--log",
        default=None,
        help="Write a JSONL event log to this path.",
    )
    read.add_argument(
        "--fixtures",
        default=None,
        help="Serve ActivityPub documents from this directory instead of the network.",
    )
    read.set_defaults(_handler=_cmd_read)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


async def _read(
    args: argparse.Namespace,
    cfg: AppConfig,
    post_id: PostId,
    log: RunLogger | None,
) -> int:
    language = args.language or cfg.reader.language
    separator = args.separator if args.separator is not None else cfg.reader.separator
    include_metadata = bool(args.verbose) or cfg.reader.include_metadata
    transport = fixture_transport(Path(args.fixtures)) if args.fixtures else None

    async with ActivityPubPostRepository(config=cfg, transport=transport, logger=log) as repository:
        if args.format == "json":
            result = await read_thread(post_id.href, repository, language, logger=log)
            print(result.to_json(indent=2))
            return 0 if result.error is None else 1

        thread = await get_longest_thread(post_id, repository, language, logger=log)

    if thread is None:
        _eprint("No posts found in thread.")
        return 1

    if args.verbose:
        _eprint(f"Found {len(thread)} post(s) in thread")
        _eprint(f"Author: {thread.author.name if thread.author else thread.author_id}")
        _eprint(f"First post: {thread.root.published_at}")
        _eprint(f"Last post: {thread.last.published_at}")
        _eprint("---")

    if args.format == "html":
        print(format_thread_as_html(thread))
    else:
        print(format_thread(thread, separator=separator, include_metadata=include_metadata))
    return 0


def _cmd_read(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)

    post_id = try_create_post_id(args.url)
    if post_id is None:
        _eprint(f"Invalid URL: {args.url}")
        return 2

    log = RunLogger.open(args.log) if args.log else None
    try:
        if log is not None:
            log.info("read_command_started", url=post_id.href, format=args.format)
        code = asyncio.run(_read(args, cfg, post_id, log))
        if log is not None:
            log.info("read_command_completed", url=post_id.href, exit_code=code)
        return code
    except Exception as e:
        if log is not None:
            log.exception("read_command_failed", exc=e, url=post_id.href)
        raise
    finally:
        if log is not None:
            log.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Failed to fetch thread: {e}")
        return 1
