"""Unit tests for feed processing."""

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest
import requests

from feed_notifier.config import FeedConfig
from feed_notifier.errors import ErrorCode, NetworkError
from feed_notifier.rss import FeedProcessor, LinkSource

GITHUB_ATOM = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>octocat's activity</title>
  <entry>
    <id>tag:github.com,2008:WatchEvent/3</id>
    <published>2024-03-03T10:00:00Z</published>
    <title>octocat starred astral-sh/ruff</title>
    <link type="text/html" rel="alternate" href="/astral-sh/ruff"/>
    <content type="html">&lt;p&gt;An extremely fast Python linter&lt;/p&gt;</content>
  </entry>
  <entry>
    <id>tag:github.com,2008:PushEvent/2</id>
    <published>2024-03-02T10:00:00Z</published>
    <title>octocat pushed to main in octocat/hello</title>
    <link type="text/html" rel="alternate" href="/octocat/hello/compare"/>
  </entry>
  <entry>
    <id>tag:github.com,2008:WatchEvent/1</id>
    <published>2024-03-01T10:00:00Z</published>
    <title>octocat starred vitejs/vite</title>
    <link type="text/html" rel="alternate" href="https://github.com/vitejs/vite"/>
  </entry>
</feed>
"""

RSS_FEED = """<?xml version="1.0"?>
<rss version="2.0">
  <channel>
    <title>Blog</title>
    <item>
      <title>Second post</title>
      <link>https://blog.example.com/2</link>
      <guid>post-2</guid>
      <pubDate>Tue, 02 Jan 2024 09:00:00 GMT</pubDate>
      <description>&lt;b&gt;Bold&lt;/b&gt; intro</description>
    </item>
    <item>
      <title>First post</title>
      <link>https://blog.example.com/1</link>
      <guid>post-1</guid>
      <pubDate>Mon, 01 Jan 2024 09:00:00 GMT</pubDate>
    </item>
    <item>
      <title>No date</title>
      <link>https://blog.example.com/undated</link>
    </item>
  </channel>
</rss>
"""


def feed_response(body: str, status: int = 200):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.content = body.encode()
    return response


def make_processor(body: str, config: FeedConfig | None = None, status: int = 200):
    session = Mock()
    session.headers = {}
    session.get.return_value = feed_response(body, status)
    return FeedProcessor("https://example.com/feed", config, session=session)


class TestFeedProcessorUnit:
    """Unit tests for FeedProcessor."""

    def test_github_feed_filters_starred_and_resolves_links(self):
        config = FeedConfig(title_pattern="starred", base_url="https://github.com")

        items = make_processor(GITHUB_ATOM, config).fetch_items()

        assert [item.title for item in items] == [
            "octocat starred vitejs/vite",
            "octocat starred astral-sh/ruff",
        ]
        assert items[1].link == "https://github.com/astral-sh/ruff"
        assert items[0].link == "https://github.com/vitejs/vite"
        assert items[1].description == "An extremely fast Python linter"

    def test_items_are_oldest_first(self):
        items = make_processor(RSS_FEED).fetch_items()

        assert [item.id for item in items] == ["post-1", "post-2"]
        assert items[0].published == datetime(2024, 1, 1, 9, tzinfo=UTC)

    def test_entries_without_date_are_dropped(self):
        items = make_processor(RSS_FEED).fetch_items()

        assert all(item.link != "https://blog.example.com/undated" for item in items)

    def test_cursor_filters_strictly_after(self):
        cursor = datetime(2024, 1, 1, 9, tzinfo=UTC)

        items = make_processor(RSS_FEED).fetch_items(cursor)

        assert [item.id for item in items] == ["post-2"]

    def test_max_feed_items(self):
        items = make_processor(RSS_FEED, FeedConfig(max_feed_items=1)).fetch_items()

        assert [item.id for item in items] == ["post-1"]

    def test_html_is_stripped_from_description(self):
        items = make_processor(RSS_FEED).fetch_items()

        assert items[1].description == "Bold intro"

    def test_http_error_raises_network_error(self):
        with pytest.raises(NetworkError) as exc_info:
            make_processor("", status=500).fetch_items()

        assert exc_info.value.code is ErrorCode.NETWORK_ERROR
        assert exc_info.value.status_code == 500

    def test_transport_error_raises_network_error(self):
        processor = make_processor("")
        processor.session.get.side_effect = requests.ConnectionError("down")

        with pytest.raises(NetworkError):
            processor.fetch_items()

    def test_entry_without_id_gets_stable_hash(self):
        body = RSS_FEED.replace("<guid>post-1</guid>", "")

        first = make_processor(body).fetch_items()
        second = make_processor(body).fetch_items()

        assert first[0].id == second[0].id
        assert len(first[0].id) == 64


class TestLinkSourceUnit:
    """Unit tests for LinkSource."""

    def test_single_item_for_link(self):
        items = LinkSource("https://example.com/article").fetch_items()

        assert len(items) == 1
        assert items[0].link == "https://example.com/article"
        assert items[0].id == "https://example.com/article"
