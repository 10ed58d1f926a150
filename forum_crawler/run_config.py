"""
Unified Run Configuration
=========================
Single source of truth for crawler defaults and runtime limits.

The listing crawl, the scheduler, the browser factory and the sinks all
read from one ``RunConfig``.  It is populated from defaults, from the
environment (``CONNECTION_URL`` + ``CRAWLER_*`` variables) or from CLI
flags.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .errors import ConfigurationAbsence

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Defaults shared by from_env() and from_cli_args()
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "listing_url": "https://old.reddit.com/r/rust/new/",
    "cutoff_hours": 24,
    "group_size": 5,                 # items sharing one remote session
    "max_sessions": None,            # None = every group opens its session at once
    "max_listing_pages": None,       # None = stop only on cutoff/empty/no next page
    "navigation_timeout_ms": 30000,
    "headless": True,
    "sink": "jsonl",                 # "jsonl" | "http" | "log"
    "output_path": None,             # None = stdout for the jsonl sink
    "sink_url": None,
    "dedupe_stubs": False,
    "blocked_resource_types": ["image", "font", "stylesheet", "script", "media"],
    "user_agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
}

_SINK_KINDS = ("jsonl", "http", "log")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationAbsence(f"{name} must be an integer, got {raw!r}")


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass
class RunConfig:
    """
    Configuration consumed by every crawler subsystem.

    Populate via:
      - ``RunConfig()``                   → all defaults
      - ``RunConfig(group_size=3)``       → override one value
      - ``RunConfig.from_env()``          → from environment variables
      - ``RunConfig.from_cli_args(ns)``   → from argparse Namespace
    """

    # ---- Listing ----
    listing_url: str = _DEFAULTS["listing_url"]
    cutoff_hours: int = _DEFAULTS["cutoff_hours"]
    max_listing_pages: Optional[int] = _DEFAULTS["max_listing_pages"]
    dedupe_stubs: bool = _DEFAULTS["dedupe_stubs"]

    # ---- Sessions ----
    connection_url: Optional[str] = None     # set → remote sessions, batched mode
    group_size: int = _DEFAULTS["group_size"]
    max_sessions: Optional[int] = _DEFAULTS["max_sessions"]
    navigation_timeout_ms: int = _DEFAULTS["navigation_timeout_ms"]
    headless: bool = _DEFAULTS["headless"]
    user_agent: str = _DEFAULTS["user_agent"]
    blocked_resource_types: List[str] = field(
        default_factory=lambda: list(_DEFAULTS["blocked_resource_types"])
    )

    # ---- Sink ----
    sink: str = _DEFAULTS["sink"]
    output_path: Optional[str] = _DEFAULTS["output_path"]
    sink_url: Optional[str] = _DEFAULTS["sink_url"]

    @property
    def remote_sessions(self) -> bool:
        """True when a connection endpoint selects batched-concurrent mode."""
        return bool(self.connection_url)

    @property
    def cutoff_millis(self) -> int:
        return self.cutoff_hours * 60 * 60 * 1000

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "RunConfig":
        """Build config from environment variables."""
        env = os.environ if env is None else env
        blocked = env.get("CRAWLER_BLOCKED_RESOURCES")
        return cls(
            listing_url=env.get("CRAWLER_LISTING_URL") or _DEFAULTS["listing_url"],
            cutoff_hours=_env_int(env, "CRAWLER_CUTOFF_HOURS", _DEFAULTS["cutoff_hours"]),
            max_listing_pages=_env_int(env, "CRAWLER_MAX_LISTING_PAGES", None),
            dedupe_stubs=_env_bool(env, "CRAWLER_DEDUPE", False),
            connection_url=env.get("CONNECTION_URL") or None,
            group_size=_env_int(env, "CRAWLER_GROUP_SIZE", _DEFAULTS["group_size"]),
            max_sessions=_env_int(env, "CRAWLER_MAX_SESSIONS", None),
            navigation_timeout_ms=_env_int(
                env, "CRAWLER_TIMEOUT_MS", _DEFAULTS["navigation_timeout_ms"]
            ),
            headless=_env_bool(env, "CRAWLER_HEADLESS", True),
            blocked_resource_types=(
                [t.strip() for t in blocked.split(",") if t.strip()]
                if blocked is not None
                else list(_DEFAULTS["blocked_resource_types"])
            ),
            sink=env.get("CRAWLER_SINK") or _DEFAULTS["sink"],
            output_path=env.get("CRAWLER_OUTPUT") or None,
            sink_url=env.get("CRAWLER_SINK_URL") or None,
        )

    @classmethod
    def from_cli_args(cls, args, env: Optional[Mapping[str, str]] = None) -> "RunConfig":
        """Build config from an argparse Namespace, on top of the environment."""
        cfg = cls.from_env(env)
        overrides = {
            "listing_url": getattr(args, "listing_url", None),
            "cutoff_hours": getattr(args, "cutoff_hours", None),
            "group_size": getattr(args, "group_size", None),
            "max_sessions": getattr(args, "max_sessions", None),
            "max_listing_pages": getattr(args, "max_listing_pages", None),
            "navigation_timeout_ms": getattr(args, "timeout", None),
            "connection_url": getattr(args, "connection_url", None),
            "sink": getattr(args, "sink", None),
            "output_path": getattr(args, "output", None),
            "sink_url": getattr(args, "sink_url", None),
        }
        for name, value in overrides.items():
            if value is not None:
                setattr(cfg, name, value)
        if getattr(args, "dedupe", False):
            cfg.dedupe_stubs = True
        if getattr(args, "headed", False):
            cfg.headless = False
        return cfg

    # -----------------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------------
    def validate(self) -> "RunConfig":
        """Raise ``ConfigurationAbsence`` for unusable values; return self."""
        if not self.listing_url:
            raise ConfigurationAbsence("listing_url is required")
        if self.cutoff_hours <= 0:
            raise ConfigurationAbsence("cutoff_hours must be positive")
        if self.group_size < 1:
            raise ConfigurationAbsence("group_size must be at least 1")
        if self.max_sessions is not None and self.max_sessions < 1:
            raise ConfigurationAbsence("max_sessions must be at least 1 when set")
        if self.max_listing_pages is not None and self.max_listing_pages < 1:
            raise ConfigurationAbsence("max_listing_pages must be at least 1 when set")
        if self.sink not in _SINK_KINDS:
            raise ConfigurationAbsence(
                f"sink must be one of {', '.join(_SINK_KINDS)}, got {self.sink!r}"
            )
        if self.sink == "http" and not self.sink_url:
            raise ConfigurationAbsence("sink 'http' requires CRAWLER_SINK_URL / --sink-url")
        return self

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("CRAWL RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  Listing URL:      {self.listing_url}")
        logger.info(f"  Cutoff:           {self.cutoff_hours}h")
        if self.remote_sessions:
            bound = self.max_sessions if self.max_sessions else "unbounded"
            logger.info(f"  Mode:             batched (remote sessions, group={self.group_size}, sessions={bound})")
        else:
            logger.info(f"  Mode:             sequential (local session)")
        logger.info(f"  Timeout:          {self.navigation_timeout_ms}ms per navigation")
        if self.max_listing_pages:
            logger.info(f"  Max Pages:        {self.max_listing_pages}")
        if self.dedupe_stubs:
            logger.info(f"  Dedupe:           by item id")
        logger.info(f"  Blocked:          {','.join(self.blocked_resource_types) or 'none'}")
        logger.info(f"  Sink:             {self.sink}")
        logger.info("=" * 60)
