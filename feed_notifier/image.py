"""Preview image fetching and re-encoding under a byte budget."""

import ipaddress
import tempfile
from io import BytesIO
from pathlib import Path
from urllib.parse import urlparse

import requests
from PIL import Image

from .config import ImageConfig, RetryConfig
from .errors import ImageProcessError, NetworkError
from .logging_config import create_execution_logger
from .models import ImageAsset
from .retry import retry


def is_private_host(url: str) -> bool:
    """True when the URL host is a private, loopback or link-local IP literal."""
    host = urlparse(url).hostname
    if not host:
        return True
    if host == "localhost":
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


class ImageProcessor:
    """Fetches preview images and re-encodes them to fit upload limits."""

    def __init__(
        self,
        config: ImageConfig | None = None,
        retry_config: RetryConfig | None = None,
        timeout: int = 30,
        execution_id: str | None = None,
        session: requests.Session | None = None,
    ):
        self.config = config or ImageConfig()
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.logger = create_execution_logger("image_processor", execution_id)
        self.session = session or requests.Session()

    def resize(self, source_url: str, nonce: str) -> ImageAsset | None:
        """Fetch ``source_url`` and re-encode it under the byte budget.

        Args:
            source_url: Image URL taken from the page metadata
            nonce: Unique token used to name scratch files

        Returns:
            ImageAsset, or None when the image cannot be fetched or decoded
        """
        if is_private_host(source_url):
            self.logger.warning("Skipping image on private host", url=source_url)
            return None

        try:
            data = self.fetch(source_url)
            asset = self.encode(data, nonce)
        except Exception as e:
            self.logger.error(
                f"Image processing failed: {e}", url=source_url, error=str(e)
            )
            return None

        self.logger.info(
            "Image processed",
            url=source_url,
            byte_length=asset.byte_length,
            mime_type=asset.mime_type,
        )
        return asset

    def fetch(self, url: str) -> bytes:
        """Download image bytes, retrying non-image or failed responses.

        Raises:
            NetworkError: When every attempt fails
        """

        def attempt() -> bytes:
            response = self.session.get(url, timeout=self.timeout)
            content_type = response.headers.get("content-type", "")
            if not response.ok or not content_type.startswith("image"):
                raise NetworkError(url, response.status_code)
            return response.content

        def on_retry(error: BaseException, attempt_number: int) -> None:
            self.logger.log_retry("image fetch", attempt_number, error)

        return retry(
            attempt,
            max_retries=self.retry_config.image_fetch_max_retries,
            on_retry=on_retry,
            backoff_factor=self.retry_config.backoff_factor,
        )

    def encode(self, data: bytes, nonce: str) -> ImageAsset:
        """Re-encode with decreasing quality until within the byte budget.

        The smallest encoding is returned when the budget is never met.

        Raises:
            ImageProcessError: If the data cannot be decoded as an image
        """
        try:
            with Image.open(BytesIO(data)) as source:
                image = source.convert("RGB")
        except (OSError, Image.DecompressionBombError) as e:
            raise ImageProcessError(
                f"Unable to decode image: {e}", {"byte_length": len(data)}
            ) from e

        image.thumbnail((self.config.max_width, self.config.max_height))
        suffix = self.config.image_format.lower()
        smallest: bytes | None = None

        with tempfile.TemporaryDirectory(prefix="feed_notifier_") as tmp_dir:
            for attempt in range(self.config.max_encode_attempts):
                quality = max(
                    self.config.initial_quality - attempt * self.config.quality_step, 1
                )
                path = Path(tmp_dir) / f"{nonce}_{attempt}.{suffix}"
                image.save(path, self.config.image_format, quality=quality)
                encoded = path.read_bytes()

                if smallest is None or len(encoded) < len(smallest):
                    smallest = encoded

                if len(encoded) <= self.config.max_byte_length:
                    self.logger.debug(
                        "Image within byte budget",
                        quality=quality,
                        byte_length=len(encoded),
                    )
                    return ImageAsset(encoded, self.config.mime_type)

        if smallest is None:
            raise ImageProcessError("No encode attempts were made")

        self.logger.warning(
            "Image byte budget not met, using smallest encoding",
            byte_length=len(smallest),
            max_byte_length=self.config.max_byte_length,
        )
        return ImageAsset(smallest, self.config.mime_type)
