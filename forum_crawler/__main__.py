#!/usr/bin/env python3
"""
Command-line entry point
========================
Crawl a listing, fetch every recent item's discussion, publish records.

All configuration flows through ``RunConfig``: environment variables
(``CONNECTION_URL``, ``CRAWLER_*``, optionally from a ``.env`` file) are
read first, CLI flags override them.

Run with: python -m forum_crawler [options]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .errors import CrawlerError
from .run_config import RunConfig
from .runner import run

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forum_crawler",
        description="Crawl a forum listing and publish recent posts with their discussions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m forum_crawler                                     # defaults, records to stdout
  python -m forum_crawler --output posts.jsonl                # records to a file
  python -m forum_crawler --listing-url https://old.reddit.com/r/python/new/
  CONNECTION_URL=ws://browser:3000 python -m forum_crawler    # remote sessions, batched
        """
    )
    parser.add_argument('--listing-url', type=str, help='Listing page to start from')
    parser.add_argument('--cutoff-hours', type=int, help='Only keep posts newer than this (default: 24)')
    parser.add_argument('--max-listing-pages', type=int, help='Stop after this many listing pages')
    parser.add_argument('--dedupe', action='store_true', help='Drop repeated post ids across pages')
    parser.add_argument('--timeout', type=int, help='Navigation timeout in ms (default: 30000)')
    parser.add_argument('--headed', action='store_true', help='Show the local browser window')

    remote = parser.add_argument_group('Remote sessions')
    remote.add_argument('--connection-url', type=str, help='CDP endpoint; enables batched mode')
    remote.add_argument('--group-size', type=int, help='Posts per remote session (default: 5)')
    remote.add_argument('--max-sessions', type=int, help='Cap on simultaneously open sessions')

    sink = parser.add_argument_group('Output')
    sink.add_argument('--sink', choices=['jsonl', 'http', 'log'], help='Record destination (default: jsonl)')
    sink.add_argument('--output', type=str, help='JSONL file path (default: stdout)')
    sink.add_argument('--sink-url', type=str, help='Endpoint for the http sink')

    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def run_cli_with_args(argv=None) -> int:
    """Parse argv, build RunConfig, run. Returns the process exit code."""
    env_path = Path.cwd() / '.env'
    if env_path.exists():
        load_dotenv(env_path)

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S',
        stream=sys.stderr,
    )

    try:
        cfg = RunConfig.from_cli_args(args).validate()
    except CrawlerError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        report = asyncio.run(run(cfg))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception as e:
        logger.error(f"Crawl failed: {type(e).__name__}: {e}", exc_info=True)
        return 1

    logger.info(f"Done: {report.to_dict()}")
    return 0


if __name__ == '__main__':
    sys.exit(run_cli_with_args())
