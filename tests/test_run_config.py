"""
Tests for RunConfig defaults, environment loading and validation.
"""

import argparse

import pytest

from forum_crawler.errors import ConfigurationAbsence
from forum_crawler.run_config import RunConfig


class TestDefaults:

    def test_defaults(self):
        cfg = RunConfig()
        assert cfg.listing_url == "https://old.reddit.com/r/rust/new/"
        assert cfg.cutoff_hours == 24
        assert cfg.cutoff_millis == 86_400_000
        assert cfg.group_size == 5
        assert cfg.max_sessions is None
        assert cfg.remote_sessions is False
        assert cfg.dedupe_stubs is False
        assert "image" in cfg.blocked_resource_types

    def test_blocked_types_not_shared(self):
        a, b = RunConfig(), RunConfig()
        a.blocked_resource_types.append("xhr")
        assert "xhr" not in b.blocked_resource_types


class TestFromEnv:

    def test_connection_url_selects_remote_mode(self):
        cfg = RunConfig.from_env({"CONNECTION_URL": "ws://browser:3000"})
        assert cfg.remote_sessions is True
        assert cfg.connection_url == "ws://browser:3000"

    def test_empty_connection_url_is_local(self):
        assert RunConfig.from_env({"CONNECTION_URL": ""}).remote_sessions is False

    def test_all_variables(self):
        cfg = RunConfig.from_env({
            "CRAWLER_LISTING_URL": "https://old.reddit.com/r/python/new/",
            "CRAWLER_CUTOFF_HOURS": "6",
            "CRAWLER_GROUP_SIZE": "3",
            "CRAWLER_MAX_SESSIONS": "2",
            "CRAWLER_MAX_LISTING_PAGES": "10",
            "CRAWLER_TIMEOUT_MS": "5000",
            "CRAWLER_DEDUPE": "yes",
            "CRAWLER_HEADLESS": "false",
            "CRAWLER_BLOCKED_RESOURCES": "image, media",
            "CRAWLER_SINK": "http",
            "CRAWLER_SINK_URL": "https://sink.example/records",
        })
        assert cfg.listing_url.endswith("/r/python/new/")
        assert cfg.cutoff_hours == 6
        assert cfg.group_size == 3
        assert cfg.max_sessions == 2
        assert cfg.max_listing_pages == 10
        assert cfg.navigation_timeout_ms == 5000
        assert cfg.dedupe_stubs is True
        assert cfg.headless is False
        assert cfg.blocked_resource_types == ["image", "media"]
        assert cfg.sink == "http"
        assert cfg.validate() is cfg

    def test_bad_integer(self):
        with pytest.raises(ConfigurationAbsence):
            RunConfig.from_env({"CRAWLER_GROUP_SIZE": "five"})


class TestFromCliArgs:

    def test_flags_override_env(self):
        args = argparse.Namespace(
            listing_url=None, cutoff_hours=12, group_size=None, max_sessions=4,
            max_listing_pages=None, timeout=None, connection_url=None,
            sink="log", output=None, sink_url=None, dedupe=True, headed=True,
        )
        cfg = RunConfig.from_cli_args(args, env={"CRAWLER_GROUP_SIZE": "2"})
        assert cfg.cutoff_hours == 12
        assert cfg.group_size == 2
        assert cfg.max_sessions == 4
        assert cfg.sink == "log"
        assert cfg.dedupe_stubs is True
        assert cfg.headless is False


class TestValidate:

    @pytest.mark.parametrize("overrides", [
        {"listing_url": ""},
        {"cutoff_hours": 0},
        {"group_size": 0},
        {"max_sessions": 0},
        {"max_listing_pages": 0},
        {"sink": "kafka"},
        {"sink": "http", "sink_url": None},
    ])
    def test_rejects(self, overrides):
        with pytest.raises(ConfigurationAbsence):
            RunConfig(**overrides).validate()
