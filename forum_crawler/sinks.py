"""
Message Sinks
=============
Destinations for finished item records.

Every sink offers two async operations:

- ``publish_one(record)``    — one record (batched-concurrent mode)
- ``publish_many(records)``  — an ordered list in one call (sequential mode)

Failures surface as ``PublishFailure``; nothing is acknowledged beyond
the call returning.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import requests

from .errors import PublishFailure
from .run_config import RunConfig

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class MessageSink:
    """Base class for sinks."""

    name = "sink"

    async def publish_one(self, record: Record) -> None:
        raise NotImplementedError

    async def publish_many(self, records: Sequence[Record]) -> None:
        for record in records:
            await self.publish_one(record)

    def close(self) -> None:
        """Release any held resources."""


class LogSink(MessageSink):
    """Logs each record's id instead of delivering it (dry runs)."""

    name = "log"

    def __init__(self):
        self.count = 0

    async def publish_one(self, record: Record) -> None:
        self.count += 1
        logger.info(f"[SINK] {record.get('id')} — {record.get('title', '')[:60]}")

    async def publish_many(self, records: Sequence[Record]) -> None:
        logger.info(f"[SINK] Publishing batch of {len(records)} records")
        for record in records:
            await self.publish_one(record)


class JsonlSink(MessageSink):
    """Appends one JSON document per line to a file (or stdout)."""

    name = "jsonl"

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._fh = None

    def _stream(self):
        if self.path is None:
            return sys.stdout
        if self._fh is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, 'a', encoding='utf-8')
        return self._fh

    def _write(self, records: Sequence[Record]) -> None:
        try:
            stream = self._stream()
            for record in records:
                stream.write(json.dumps(record, ensure_ascii=False) + "\n")
            stream.flush()
        except (OSError, TypeError, ValueError) as e:
            raise PublishFailure(f"Could not write to {self.path or 'stdout'}: {e}") from e

    async def publish_one(self, record: Record) -> None:
        self._write([record])

    async def publish_many(self, records: Sequence[Record]) -> None:
        self._write(records)
        logger.info(f"[SINK] Wrote {len(records)} records to {self.path or 'stdout'}")

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


class HttpSink(MessageSink):
    """POSTs records as JSON to an HTTP endpoint.

    ``publish_one`` sends a single object, ``publish_many`` a JSON array.
    The blocking ``requests`` call runs in the default executor.
    """

    name = "http"

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("Content-Type", "application/json")

    def _post(self, payload: Any) -> None:
        try:
            response = self._session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise PublishFailure(f"POST {self.url} failed: {e}") from e

    async def _send(self, payload: Any) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._post, payload)

    async def publish_one(self, record: Record) -> None:
        await self._send(record)

    async def publish_many(self, records: Sequence[Record]) -> None:
        await self._send(list(records))
        logger.info(f"[SINK] Posted {len(records)} records to {self.url}")

    def close(self) -> None:
        self._session.close()


def build_sink(config: RunConfig) -> MessageSink:
    """Create the sink selected by ``config.sink``."""
    if config.sink == "http":
        return HttpSink(config.sink_url)
    if config.sink == "log":
        return LogSink()
    return JsonlSink(config.output_path)
