"""Persisted cursor and unposted-items queue."""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from dateutil import parser as date_parser

from .errors import StateError
from .logging_config import create_execution_logger
from .models import FeedItem

TIMESTAMP_FILE = ".timestamp"
QUEUE_FILE = ".itemList.json"

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_epoch_millis(instant: datetime) -> int:
    # Rounded up so a reloaded cursor never precedes the saved instant
    return -((EPOCH - instant) // timedelta(milliseconds=1))


def from_epoch_millis(millis: int) -> datetime:
    return EPOCH + timedelta(milliseconds=millis)


class CursorStore:
    """File-backed last-processed instant plus the queue of unposted items."""

    def __init__(self, state_dir: Path | str, execution_id: str | None = None):
        self.state_dir = Path(state_dir)
        self.timestamp_path = self.state_dir / TIMESTAMP_FILE
        self.queue_path = self.state_dir / QUEUE_FILE
        self.logger = create_execution_logger("cursor_store", execution_id)

    def load_cursor(self) -> datetime | None:
        """Read the cursor; a missing or empty file means no cursor.

        Raises:
            StateError: If the file holds neither epoch millis nor ISO 8601
        """
        if not self.timestamp_path.exists():
            self.logger.info("No cursor file found", path=str(self.timestamp_path))
            return None

        raw = self.timestamp_path.read_text(encoding="utf-8").strip()
        if not raw:
            return None

        if raw.isdigit():
            return from_epoch_millis(int(raw))
        try:
            instant = date_parser.isoparse(raw)
        except ValueError as e:
            raise StateError(str(self.timestamp_path), f"invalid timestamp {raw!r}") from e
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return instant

    def save_cursor(self, instant: datetime) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.timestamp_path.write_text(str(to_epoch_millis(instant)), encoding="utf-8")
        self.logger.info("Cursor saved", cursor=instant.isoformat())

    def load_queue(self) -> list[FeedItem]:
        """Read unposted items; unreadable content is treated as an empty queue."""
        if not self.queue_path.exists():
            return []
        try:
            data = json.loads(self.queue_path.read_text(encoding="utf-8"))
            return [FeedItem.from_dict(entry) for entry in data]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            self.logger.warning(
                f"Ignoring unreadable queue file: {e}",
                path=str(self.queue_path),
                error=str(e),
            )
            return []

    def save_queue(self, items: list[FeedItem]) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.queue_path.write_text(
            json.dumps([item.to_dict() for item in items], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        self.logger.debug("Queue saved", queue_length=len(items))
