"""
Forum Crawler Package
Collects recent posts from a forum listing, extracts each post's nested
discussion with Playwright, and publishes the records to a sink.

CLI Usage:
    python -m forum_crawler [options]

    Options:
        --listing-url       Listing page to start from
        --cutoff-hours      Keep posts newer than this (default: 24)
        --connection-url    Remote browser endpoint (enables batched mode)
        --group-size        Posts per remote session (default: 5)
        --max-sessions      Cap on simultaneous remote sessions
        --sink              jsonl | http | log
        --output            JSONL output path (default: stdout)
"""

from .models import ItemStub, ItemDetail, DiscussionNode, parse_score
from .comments import parse_comments
from .detail import fetch_item_detail
from .listing import ListingCrawl, crawl_listing
from .scheduler import FetchScheduler, partition
from .progress import RunProgress, RunMetrics
from .run_config import RunConfig
from .sinks import MessageSink, JsonlSink, HttpSink, LogSink, build_sink
from .runner import RunReport, run, main, handler
from .errors import (
    CrawlerError,
    NavigationFailure,
    ExtractionFailure,
    PublishFailure,
    ConfigurationAbsence,
    BatchFailure,
)

__all__ = [
    'ItemStub',
    'ItemDetail',
    'DiscussionNode',
    'parse_score',
    'parse_comments',
    'fetch_item_detail',
    'ListingCrawl',
    'crawl_listing',
    'FetchScheduler',
    'partition',
    'RunProgress',
    'RunMetrics',
    'RunConfig',
    # Sinks
    'MessageSink',
    'JsonlSink',
    'HttpSink',
    'LogSink',
    'build_sink',
    # Entry points
    'RunReport',
    'run',
    'main',
    'handler',
    # Errors
    'CrawlerError',
    'NavigationFailure',
    'ExtractionFailure',
    'PublishFailure',
    'ConfigurationAbsence',
    'BatchFailure',
]

__version__ = '1.0.0'
