"""Data models for Feed Notifier."""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from dateutil import parser as date_parser

from .text import count_graphemes, truncate


@dataclass(frozen=True)
class FeedItem:
    """Represents a single feed item; ``id`` is the idempotence key."""

    id: str
    title: str
    link: str
    published: datetime
    description: str = ""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeedItem):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def is_published_after(self, instant: datetime | None) -> bool:
        """True when the item is newer than ``instant`` (or there is no instant)."""
        return instant is None or self.published > instant

    def to_dict(self) -> dict[str, str]:
        """Serialize for the unposted-items queue file."""
        return {
            "id": self.id,
            "title": self.title,
            "link": self.link,
            "published": self.published.isoformat(),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedItem":
        """Rebuild an item written by :meth:`to_dict`."""
        published = date_parser.isoparse(data["published"])
        if published.tzinfo is None:
            published = published.replace(tzinfo=UTC)
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            link=data["link"],
            published=published,
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class OgpImage:
    """A single og:image entry."""

    url: str
    width: int | None = None
    height: int | None = None
    type: str | None = None


@dataclass(frozen=True)
class OpenGraphData:
    """Open Graph metadata; every field may be absent."""

    title: str | None = None
    description: str | None = None
    images: tuple[OgpImage, ...] = ()
    url: str | None = None

    @classmethod
    def empty(cls) -> "OpenGraphData":
        return cls()

    @property
    def first_image(self) -> OgpImage | None:
        return self.images[0] if self.images else None

    def has_image(self) -> bool:
        return bool(self.images)

    def is_empty(self) -> bool:
        return not (self.title or self.description or self.images)


class InvalidSummaryError(ValueError):
    """Raised when summary text is blank or too long."""


@dataclass(frozen=True)
class Summary:
    """AI-generated summary text."""

    text: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    MAX_LENGTH = 1000
    BLUESKY_RECOMMENDED_LENGTH = 200

    @classmethod
    def create(cls, text: str) -> "Summary":
        """Create a summary, rejecting blank or over-long text."""
        if not text or not text.strip():
            raise InvalidSummaryError("Summary text cannot be empty")
        length = count_graphemes(text)
        if length > cls.MAX_LENGTH:
            raise InvalidSummaryError(
                f"Summary must be at most {cls.MAX_LENGTH} characters (got {length})"
            )
        return cls(text.strip())

    @classmethod
    def for_bluesky(
        cls, text: str, max_length: int = BLUESKY_RECOMMENDED_LENGTH
    ) -> "Summary":
        """Create a summary trimmed to fit a Bluesky post."""
        return cls.create(truncate(text.strip(), max_length))

    def __len__(self) -> int:
        return count_graphemes(self.text)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a summary validation pass."""

    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def ok(cls, warnings: tuple[str, ...] = ()) -> "ValidationResult":
        return cls(valid=True, warnings=warnings)

    @classmethod
    def failed(cls, *errors: str) -> "ValidationResult":
        return cls(valid=False, errors=tuple(errors))


@dataclass(frozen=True)
class ImageAsset:
    """Re-encoded preview image ready for upload."""

    data: bytes
    mime_type: str

    @property
    def byte_length(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class LinkFacet:
    """Hyperlink annotation over a UTF-8 byte range of post text."""

    byte_start: int
    byte_end: int
    uri: str


@dataclass(frozen=True)
class BlueskyPost:
    """Everything needed to publish one Bluesky post."""

    text: str
    url: str
    title: str
    facets: tuple[LinkFacet, ...] = ()
    description: str = ""
    langs: tuple[str, ...] = ("ja",)


@dataclass
class RunMetrics:
    """Counters for one notifier run."""

    items_found: int = 0
    items_processed: int = 0
    summaries_generated: int = 0
    images_attached: int = 0
    posts_sent: int = 0
    webhook_messages_sent: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
