"""Entry points for Feed Notifier: CLI ``main`` and ``lambda_handler``."""

import argparse
import asyncio
import json
from datetime import UTC, datetime
from typing import Any

import boto3

from .bluesky import BlueskyPublisher
from .config import Config, Variant
from .content import ContentExtractor
from .cursor import CursorStore
from .errors import NotifierError
from .image import ImageProcessor
from .logging_config import create_execution_logger, setup_structured_logging
from .metadata import MetadataFetcher
from .models import RunMetrics
from .notifier import FetchAndNotify
from .rss import FeedProcessor, LinkSource
from .summarize import BedrockTextGenerator, Summarizer
from .webhook import WebhookPublisher


def build_notifier(config: Config, execution_id: str) -> FetchAndNotify:
    """Wire the notifier components for ``config``."""
    if config.variant is Variant.LINK_INSIGHT:
        source = LinkSource(config.source_url, execution_id=execution_id)
    else:
        source = FeedProcessor(
            config.source_url, config.feed, execution_id=execution_id
        )

    generator = BedrockTextGenerator(config.bedrock, execution_id=execution_id)

    return FetchAndNotify(
        config=config,
        source=source,
        cursor_store=CursorStore(config.state_dir, execution_id=execution_id),
        metadata_fetcher=MetadataFetcher(execution_id=execution_id),
        content_extractor=ContentExtractor(execution_id=execution_id),
        summarizer=Summarizer(
            generator, config.retry, config.limits, execution_id=execution_id
        ),
        image_processor=ImageProcessor(
            config.image, config.retry, execution_id=execution_id
        ),
        bluesky=BlueskyPublisher(
            config.bluesky, config.retry, execution_id=execution_id
        ),
        webhook=WebhookPublisher(config.webhook_url, execution_id=execution_id),
        execution_id=execution_id,
    )


def within_posting_window(config: Config, now: datetime | None = None) -> bool:
    """True when the variant has no posting window or ``now`` is in [start, end) hours."""
    window = config.feed.posting_hours_utc
    if window is None:
        return True
    now = now or datetime.now(UTC)
    start, end = window
    return start <= now.astimezone(UTC).hour < end


def run(
    variant: str | None = None,
    execution_id: str | None = None,
    log_level: str | None = None,
) -> RunMetrics | None:
    """Load configuration and run one pass.

    Returns:
        Metrics, or None when outside the posting window

    Raises:
        ConfigurationError: If required settings are missing
        NotifierError: If the run aborts
    """
    config = Config.from_env(variant)
    setup_structured_logging(log_level or config.log_level)
    execution_id = execution_id or (
        f"{config.variant.value}_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    )
    main_logger = create_execution_logger("main", execution_id)

    if not within_posting_window(config):
        main_logger.info(
            "Outside posting hours, nothing to do",
            posting_hours_utc=config.feed.posting_hours_utc,
        )
        return None

    notifier = build_notifier(config, execution_id)
    try:
        return asyncio.run(notifier.execute())
    finally:
        if config.cloudwatch_namespace:
            send_cloudwatch_metrics(
                notifier.metrics,
                config.cloudwatch_namespace,
                config.bedrock.region,
                execution_id,
                config.variant.value,
            )


def _error_details(error: Exception) -> dict[str, Any]:
    if isinstance(error, NotifierError):
        return error.to_dict()
    return {"name": type(error).__name__, "message": str(error)}


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    parser = argparse.ArgumentParser(
        prog="feed-notifier",
        description="Post feed items with AI summaries to Bluesky and a webhook.",
    )
    parser.add_argument(
        "--variant",
        choices=[variant.value for variant in Variant],
        default=None,
        help="Bot variant (defaults to NOTIFIER_VARIANT or github-star)",
    )
    parser.add_argument(
        "--log-level", default=None, help="Override LOG_LEVEL for this run"
    )
    args = parser.parse_args(argv)

    setup_structured_logging(args.log_level or "INFO")
    main_logger = create_execution_logger("main")

    try:
        run(args.variant, log_level=args.log_level)
    except Exception as e:
        main_logger.error(f"Notifier run failed: {e}", error=_error_details(e))
        return 1
    return 0


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda entry point.

    Args:
        event: Lambda event data; an optional ``variant`` key selects the bot
        context: Lambda context object

    Returns:
        Response dictionary with status and metrics
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)
    main_logger.log_execution_start(
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
        lambda_function_name=getattr(context, "function_name", "unknown"),
    )

    try:
        metrics = run((event or {}).get("variant"), execution_id)
    except Exception as e:
        error_msg = f"Critical error in Lambda handler: {e}"
        main_logger.error(error_msg, error=_error_details(e))
        main_logger.log_execution_end(success=False, error=error_msg)
        return {
            "statusCode": 500,
            "body": json.dumps(
                {
                    "message": "Feed notifier execution failed",
                    "execution_id": execution_id,
                    "error": error_msg,
                }
            ),
        }

    main_logger.log_execution_end(success=True)
    return {
        "statusCode": 200,
        "body": json.dumps(
            {
                "message": "Feed notifier execution completed",
                "execution_id": execution_id,
                "metrics": metrics.to_dict() if metrics else None,
            }
        ),
    }


def send_cloudwatch_metrics(
    metrics: RunMetrics,
    namespace: str,
    aws_region: str,
    execution_id: str,
    variant: str,
) -> None:
    """
    Send run metrics to CloudWatch.

    Args:
        metrics: Metrics of the finished run
        namespace: CloudWatch namespace
        aws_region: AWS region for the CloudWatch client
        execution_id: Execution ID for logging context
        variant: Bot variant, used as a metric dimension
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)

    try:
        cloudwatch = boto3.client("cloudwatch", region_name=aws_region)
        execution_success = not metrics.errors
        dimensions = [{"Name": "Variant", "Value": variant}]

        counters = {
            "ItemsFound": metrics.items_found,
            "ItemsProcessed": metrics.items_processed,
            "SummariesGenerated": metrics.summaries_generated,
            "ImagesAttached": metrics.images_attached,
            "PostsSent": metrics.posts_sent,
            "WebhookMessagesSent": metrics.webhook_messages_sent,
            "Errors": len(metrics.errors),
            "ExecutionSuccess": 1 if execution_success else 0,
            "ExecutionFailure": 0 if execution_success else 1,
        }
        metric_data = [
            {
                "MetricName": name,
                "Value": value,
                "Unit": "Count",
                "Dimensions": dimensions,
            }
            for name, value in counters.items()
        ]

        # CloudWatch accepts at most 20 metrics per call
        batch_size = 20
        for i in range(0, len(metric_data), batch_size):
            cloudwatch.put_metric_data(
                Namespace=namespace, MetricData=metric_data[i : i + batch_size]
            )

        metrics_logger.info(
            "Successfully sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            namespace=namespace,
            execution_success=execution_success,
        )

    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))
        # Metrics failure must not change the run outcome
