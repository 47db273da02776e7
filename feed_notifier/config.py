"""Configuration management for Feed Notifier."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError, InvalidSettingError


class Variant(str, Enum):
    """Bot variants sharing this codebase."""

    GITHUB_STAR = "github-star"
    RSS_FEED = "rss-feed"
    LINK_INSIGHT = "link-insight"


def _positive_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    if not raw.isdigit() or int(raw) < 1:
        raise InvalidSettingError(key, raw)
    return int(raw)


@dataclass
class BlueskyConfig:
    """Configuration for the Bluesky account."""

    identifier: str
    password: str
    service_url: str = "https://bsky.social"
    language: str = "ja"
    upload_timeout_seconds: float = 10.0


@dataclass
class BedrockConfig:
    """Configuration for Amazon Bedrock."""

    model_id: str = "amazon.nova-micro-v1:0"
    region: str = "us-east-1"
    max_tokens: int = 1000
    temperature: float = 1.0
    top_p: float = 0.95
    top_k: int = 64


@dataclass
class ImageConfig:
    """Configuration for preview image re-encoding."""

    max_width: int = 2000
    max_height: int = 2000
    max_byte_length: int = 976_560
    image_format: str = "JPEG"
    mime_type: str = "image/jpeg"
    initial_quality: int = 100
    quality_step: int = 5
    max_encode_attempts: int = 15


@dataclass
class RetryConfig:
    """Retry budgets for external calls."""

    summary_max_retries: int = 5
    summary_max_attempts: int = 3
    image_fetch_max_retries: int = 5
    image_upload_max_retries: int = 3
    backoff_factor: float = 0.0


@dataclass
class TextLimits:
    """Grapheme limits for generated and posted text."""

    summary_max_length: int = 100
    bluesky_summary_length: int = 200
    bluesky_max_length: int = 300
    title_max_length: int = 100
    link_display_max_length: int = 30


@dataclass
class FeedConfig:
    """Configuration for the feed source of a variant."""

    title_pattern: str | None = None
    base_url: str | None = None
    max_feed_items: int = 20
    use_queue: bool = False
    posting_hours_utc: tuple[int, int] | None = None
    require_summary: bool = False
    webhook_includes_title: bool = True


VARIANT_FEEDS = {
    Variant.GITHUB_STAR: FeedConfig(
        title_pattern="starred", base_url="https://github.com"
    ),
    Variant.RSS_FEED: FeedConfig(use_queue=True, posting_hours_utc=(1, 15)),
    Variant.LINK_INSIGHT: FeedConfig(require_summary=True, webhook_includes_title=False),
}


@dataclass
class Config:
    """Main configuration loaded once at startup and passed down."""

    variant: Variant
    source_url: str
    bluesky: BlueskyConfig
    bedrock: BedrockConfig
    feed: FeedConfig
    webhook_url: str | None = None
    state_dir: Path = Path("data")
    max_post_count: int = 3
    log_level: str = "INFO"
    cloudwatch_namespace: str | None = None
    image: ImageConfig = field(default_factory=ImageConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    limits: TextLimits = field(default_factory=TextLimits)

    # The Bedrock API key is read by botocore itself from this variable.
    AI_API_KEY_ENV = "AWS_BEARER_TOKEN_BEDROCK"

    @classmethod
    def required_keys(cls, variant: Variant) -> list[str]:
        """Return the environment variables a variant cannot run without."""
        source_key = "LINK" if variant is Variant.LINK_INSIGHT else "RSS_URL"
        return [
            source_key,
            "BLUESKY_IDENTIFIER",
            "BLUESKY_PASSWORD",
            cls.AI_API_KEY_ENV,
        ]

    @classmethod
    def from_env(
        cls, variant: str | Variant | None = None, env_file: str | None = ".env"
    ) -> "Config":
        """Build configuration from environment variables.

        Args:
            variant: Bot variant; falls back to NOTIFIER_VARIANT
            env_file: Optional dotenv file loaded without overriding the environment

        Raises:
            ConfigurationError: If any required variable is missing (all are listed)
            InvalidSettingError: If the variant or MAX_POST_COUNT is invalid
        """
        if env_file and Path(env_file).exists():
            load_dotenv(env_file, override=False)

        raw_variant = variant or os.getenv("NOTIFIER_VARIANT", "github-star")
        try:
            variant = Variant(raw_variant)
        except ValueError as e:
            raise InvalidSettingError("NOTIFIER_VARIANT", str(raw_variant)) from e

        missing = [
            key for key in cls.required_keys(variant) if not os.getenv(key, "").strip()
        ]
        if missing:
            raise ConfigurationError(missing)

        source_key = "LINK" if variant is Variant.LINK_INSIGHT else "RSS_URL"
        region = os.getenv("BEDROCK_REGION") or os.getenv("AWS_REGION", "us-east-1")

        return cls(
            variant=variant,
            source_url=os.environ[source_key].strip(),
            bluesky=BlueskyConfig(
                identifier=os.environ["BLUESKY_IDENTIFIER"].strip(),
                password=os.environ["BLUESKY_PASSWORD"],
            ),
            bedrock=BedrockConfig(
                model_id=os.getenv("BEDROCK_MODEL_ID") or BedrockConfig.model_id,
                region=region,
            ),
            feed=VARIANT_FEEDS[variant],
            webhook_url=os.getenv("WEBHOOK_URL") or None,
            state_dir=Path(os.getenv("STATE_DIR", "data")),
            max_post_count=_positive_int("MAX_POST_COUNT", 3),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cloudwatch_namespace=os.getenv("CLOUDWATCH_NAMESPACE") or None,
        )
