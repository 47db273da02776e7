"""Item processing orchestration: fetch, enrich, publish, advance cursor."""

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Protocol

from .bluesky import BlueskyPublisher
from .config import Config, Variant
from .content import ContentExtractor
from .cursor import CursorStore
from .formatters import format_bluesky_post, format_webhook_message
from .image import ImageProcessor
from .logging_config import create_execution_logger
from .metadata import MetadataFetcher
from .models import FeedItem, ImageAsset, OpenGraphData, RunMetrics, Summary
from .summarize import Summarizer
from .webhook import WebhookPublisher


class ItemSource(Protocol):
    """Feed or single-link source of items."""

    def fetch_items(self, since: datetime | None = None) -> list[FeedItem]: ...


def merge_items(queued: list[FeedItem], fetched: list[FeedItem]) -> list[FeedItem]:
    """Merge queued and fetched items, de-duplicated by id, oldest first."""
    merged: dict[str, FeedItem] = {}
    for item in [*queued, *fetched]:
        merged.setdefault(item.id, item)
    return sorted(merged.values(), key=lambda item: item.published)


class FetchAndNotify:
    """Runs one notification pass over the configured source."""

    def __init__(
        self,
        config: Config,
        source: ItemSource,
        cursor_store: CursorStore,
        metadata_fetcher: MetadataFetcher,
        content_extractor: ContentExtractor,
        summarizer: Summarizer,
        image_processor: ImageProcessor,
        bluesky: BlueskyPublisher,
        webhook: WebhookPublisher,
        execution_id: str | None = None,
    ):
        self.config = config
        self.source = source
        self.cursor_store = cursor_store
        self.metadata_fetcher = metadata_fetcher
        self.content_extractor = content_extractor
        self.summarizer = summarizer
        self.image_processor = image_processor
        self.bluesky = bluesky
        self.webhook = webhook
        self.logger = create_execution_logger("notifier", execution_id)
        self.metrics = RunMetrics()

    @property
    def uses_cursor(self) -> bool:
        return self.config.variant is not Variant.LINK_INSIGHT

    async def execute(self) -> RunMetrics:
        """Process up to ``max_post_count`` eligible items, strictly in order.

        The cursor is advanced after each item whose Bluesky post and webhook
        message both succeeded. Any error aborts the run and is re-raised;
        items committed before it stay committed.

        Returns:
            Metrics for the run

        Raises:
            AuthError: If Bluesky login fails (before any item is processed)
            NotifierError: On feed fetch, state or publish failures
        """
        metrics = self.metrics = RunMetrics()
        self.logger.log_execution_start(
            variant=self.config.variant.value, max_post_count=self.config.max_post_count
        )

        try:
            await self.bluesky.login()

            cursor = None
            if self.uses_cursor:
                cursor = await asyncio.to_thread(self.cursor_store.load_cursor)

            pending: list[FeedItem] = []
            if self.config.feed.use_queue:
                queued = await asyncio.to_thread(self.cursor_store.load_queue)
                if cursor is None:
                    # First run: the feed backlog is skipped, only queued items go out
                    self.logger.warning(
                        "No cursor found, processing queued items only",
                        queue_length=len(queued),
                    )
                    items = queued
                else:
                    fetched = await asyncio.to_thread(self.source.fetch_items, cursor)
                    items = merge_items(queued, fetched)
                pending = list(items)
            else:
                items = await asyncio.to_thread(self.source.fetch_items, cursor)

            metrics.items_found = len(items)
            self.logger.info(
                f"Found {len(items)} eligible items",
                items_found=len(items),
                cursor=cursor.isoformat() if cursor else None,
            )

            if not items:
                if self.config.feed.use_queue and cursor is None:
                    await asyncio.to_thread(
                        self.cursor_store.save_cursor, datetime.now(UTC)
                    )
                self.logger.info("Nothing to post")

            for item in items[: self.config.max_post_count]:
                posted = await self.process_item(item, metrics)
                metrics.items_processed += 1
                if not posted:
                    continue

                if self.config.feed.use_queue:
                    pending = [entry for entry in pending if entry.id != item.id]
                    await asyncio.to_thread(self.cursor_store.save_queue, pending)

                if self.uses_cursor:
                    cursor = item.published if cursor is None else max(cursor, item.published)
                    await asyncio.to_thread(self.cursor_store.save_cursor, cursor)

        except Exception as e:
            metrics.errors.append(str(e))
            self.logger.error(f"Run aborted: {e}", error=str(e))
            self.logger.log_execution_end(success=False, metrics=metrics.to_dict())
            raise

        self.logger.log_metrics(metrics.to_dict())
        self.logger.log_execution_end(success=True, metrics=metrics.to_dict())
        return metrics

    async def create_summary(self, item: FeedItem) -> Summary | None:
        text = await asyncio.to_thread(
            self.content_extractor.extract, item.link, item.description
        )
        return await asyncio.to_thread(self.summarizer.create_summary, text, item.link)

    async def prepare_image(self, ogp: OpenGraphData) -> ImageAsset | None:
        if not ogp.has_image():
            return None
        return await asyncio.to_thread(
            self.image_processor.resize, ogp.first_image.url, uuid.uuid4().hex
        )

    async def process_item(self, item: FeedItem, metrics: RunMetrics) -> bool:
        """Enrich and publish one item.

        Returns:
            True when published to every configured channel, False when skipped
        """
        self.logger.log_item_processing(item.title or item.link, "processing")

        ogp, summary = await asyncio.gather(
            asyncio.to_thread(self.metadata_fetcher.fetch, item.link),
            self.create_summary(item),
        )
        if summary is not None:
            metrics.summaries_generated += 1

        if summary is None and self.config.feed.require_summary:
            self.logger.log_item_processing(item.title or item.link, "skipped_no_summary")
            return False

        post = format_bluesky_post(item, ogp, summary, self.config.limits)
        message = format_webhook_message(
            item,
            ogp,
            summary,
            self.config.limits,
            include_title=self.config.feed.webhook_includes_title,
        )
        image = await self.prepare_image(ogp)
        if image is not None:
            metrics.images_attached += 1

        _, webhook_sent = await asyncio.gather(
            self.bluesky.publish(post, image),
            asyncio.to_thread(self.webhook.send, message),
        )
        metrics.posts_sent += 1
        if webhook_sent:
            metrics.webhook_messages_sent += 1

        self.logger.log_item_processing(item.title or item.link, "published")
        return True
