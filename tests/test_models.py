"""
Tests for record types, attribute schemas and score parsing.
"""

import dataclasses
import json

import pytest

from forum_crawler.models import (
    CommentAttributes,
    DiscussionNode,
    ItemDetail,
    ItemStub,
    ListingAttributes,
    PostAttributes,
    millis_to_iso,
    parse_score,
)


class TestParseScore:

    @pytest.mark.parametrize("text,expected", [
        ("42", 42),
        ("42 points", 42),
        ("1 point", 1),
        ("-7 points", -7),
        ("  15   points ", 15),
        ("12abc", 12),
        ("•", 0),
        ("points", 0),
        ("", 0),
        (None, 0),
    ])
    def test_values(self, text, expected):
        assert parse_score(text) == expected


class TestAttributeSchemas:

    def test_comment_defaults(self):
        attrs = CommentAttributes.from_attributes({})
        assert attrs.fullname is None
        assert attrs.author == ""
        assert attrs.is_deleted is False
        assert attrs.is_collapsed is False

    def test_comment_deleted_hides_author(self):
        attrs = CommentAttributes.from_attributes(
            {"class": "thing comment deleted", "data-author": "someone"}
        )
        assert attrs.raw_author == "someone"
        assert attrs.author == ""

    def test_post_flags(self):
        post = PostAttributes.from_attributes(
            {"data-type": "gallery", "data-promoted": "false", "data-gallery": "true"}
        )
        assert post.media_type == "gallery"
        assert post.is_gallery is True
        assert post.is_promoted is False
        assert post.media_url is None

    def test_listing_parse_is_repeatable(self):
        dataset = {"fullname": "t3_a", "timestamp": "1700000000000", "permalink": "/x/"}
        assert ListingAttributes.from_dataset(dataset) == ListingAttributes.from_dataset(dataset)

    def test_listing_bad_timestamp(self):
        assert ListingAttributes.from_dataset({"timestamp": "NaN"}).to_stub("https://a.b/") is None


class TestRecords:

    def _detail(self):
        stub = ItemStub(
            id="t3_a", community="r/rust", posted_at_millis=1_700_000_000_000,
            author="ferris", url="https://old.reddit.com/r/rust/comments/a/",
        )
        tree = (
            DiscussionNode(id="t1_a", author="x", text="top", score=2, children=(
                DiscussionNode(id="t1_b", is_deleted=True),
            )),
        )
        return ItemDetail(stub=stub, title="T", score=5, discussion=tree)

    def test_stub_iso_timestamp(self):
        assert millis_to_iso(0) == "1970-01-01T00:00:00+00:00"
        assert self._detail().stub.posted_at.startswith("2023-11-14T22:13:20")

    def test_records_are_frozen(self):
        detail = self._detail()
        with pytest.raises(dataclasses.FrozenInstanceError):
            detail.title = "changed"

    def test_to_record_is_json_ready(self):
        record = self._detail().to_record("2024-01-01T00:00:00+00:00")
        decoded = json.loads(json.dumps(record))
        assert decoded["id"] == "t3_a"
        assert decoded["community"] == "r/rust"
        assert decoded["posted_at_millis"] == 1_700_000_000_000
        assert decoded["captured_at"] == "2024-01-01T00:00:00+00:00"
        assert decoded["discussion"][0]["children"][0]["is_deleted"] is True
        assert decoded["discussion"][0]["children"][0]["children"] == []

    def test_comment_count_walks_tree(self):
        assert self._detail().comment_count == 2
