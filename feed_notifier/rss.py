"""RSS/Atom feed processing for Feed Notifier."""

import hashlib
import re
from datetime import UTC, datetime
from urllib.parse import urljoin

import feedparser
import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .config import FeedConfig
from .errors import NetworkError
from .logging_config import create_execution_logger
from .models import FeedItem


class FeedProcessor:
    """Fetches a feed and turns its entries into eligible FeedItems."""

    def __init__(
        self,
        feed_url: str,
        config: FeedConfig | None = None,
        timeout: int = 30,
        execution_id: str | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize FeedProcessor.

        Args:
            feed_url: RSS/Atom feed URL
            config: Variant feed rules (title filter, base URL, item limit)
            timeout: HTTP request timeout in seconds
            execution_id: Execution ID for logging context
            session: Optional HTTP session
        """
        self.feed_url = feed_url
        self.config = config or FeedConfig()
        self.timeout = timeout
        self.logger = create_execution_logger("feed_processor", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "feed-notifier/1.0"})
        self.title_pattern = (
            re.compile(self.config.title_pattern) if self.config.title_pattern else None
        )

    def fetch_items(self, since: datetime | None = None) -> list[FeedItem]:
        """Fetch the feed and return eligible items, oldest first.

        Args:
            since: Cursor; only items published strictly after it are returned

        Returns:
            Eligible FeedItems, capped at ``max_feed_items``

        Raises:
            NetworkError: If the feed cannot be downloaded
        """
        self.logger.info("Downloading feed", feed_url=self.feed_url)
        try:
            response = self.session.get(self.feed_url, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(self.feed_url) from e
        if not response.ok:
            raise NetworkError(self.feed_url, response.status_code)

        items = self.parse_feed(response.content)
        eligible = [
            item
            for item in items
            if item.is_published_after(since) and self.matches_title(item)
        ]

        self.logger.info(
            "Feed fetched",
            feed_url=self.feed_url,
            total_entries=len(items),
            eligible_items=len(eligible),
        )
        return eligible[: self.config.max_feed_items]

    def parse_feed(self, content: bytes) -> list[FeedItem]:
        """Parse feed content into FeedItems ordered oldest first."""
        feed = feedparser.parse(content)

        if feed.bozo and hasattr(feed, "bozo_exception"):
            self.logger.warning(
                f"Feed parsing warning: {feed.bozo_exception}",
                feed_url=self.feed_url,
                bozo_exception=str(feed.bozo_exception),
            )

        items = []
        for entry in feed.entries:
            item = self.normalize_item(entry)
            if item is None:
                continue
            items.append(item)

        # Feeds list newest first
        items.reverse()
        items.sort(key=lambda item: item.published)
        return items

    def matches_title(self, item: FeedItem) -> bool:
        if self.title_pattern is None:
            return True
        return bool(self.title_pattern.search(item.title))

    def normalize_item(self, entry) -> FeedItem | None:
        """Normalize a feedparser entry; entries without link or date are dropped."""
        link = entry.get("link", "")
        if not link:
            self.logger.warning("Skipping entry without link", feed_url=self.feed_url)
            return None
        link = urljoin(self.config.base_url or self.feed_url, link)

        published_str = entry.get("published") or entry.get("updated")
        if not published_str:
            self.logger.warning("Skipping entry without date", link=link)
            return None
        try:
            published = date_parser.parse(published_str)
        except (ValueError, OverflowError):
            self.logger.warning(
                "Skipping entry with invalid date", link=link, published=published_str
            )
            return None
        if published.tzinfo is None:
            published = published.replace(tzinfo=UTC)

        description = entry.get("summary") or entry.get("description") or ""
        if not description and entry.get("content"):
            # Atom entries may only carry <content>
            description = entry["content"][0].get("value", "")
        item_id = entry.get("id") or hashlib.sha256(
            f"{link}|{published_str}".encode()
        ).hexdigest()

        return FeedItem(
            id=item_id,
            title=(entry.get("title") or "").strip(),
            link=link,
            published=published,
            description=self.clean_html_content(description),
        )

    @staticmethod
    def clean_html_content(content: str) -> str:
        if not content:
            return ""
        soup = BeautifulSoup(content, "html.parser")
        for tag in soup(["script", "style"]):
            tag.decompose()
        return " ".join(soup.get_text(" ").split())


class LinkSource:
    """Single-URL source: one item for the configured link."""

    def __init__(self, link: str, execution_id: str | None = None):
        self.link = link
        self.logger = create_execution_logger("link_source", execution_id)

    def fetch_items(self, since: datetime | None = None) -> list[FeedItem]:
        self.logger.info("Using configured link", link=self.link)
        return [
            FeedItem(
                id=self.link,
                title="",
                link=self.link,
                published=datetime.now(UTC),
            )
        ]
