"""Bluesky publisher for Feed Notifier."""

import asyncio

from atproto import AsyncClient, models

from .config import BlueskyConfig, RetryConfig
from .errors import AuthError, ErrorCode, NotifierError, UploadError
from .logging_config import create_execution_logger
from .models import BlueskyPost, ImageAsset
from .retry import async_retry


class BlueskyPublisher:
    """Publishes posts with a link-card embed to Bluesky."""

    def __init__(
        self,
        config: BlueskyConfig,
        retry_config: RetryConfig | None = None,
        execution_id: str | None = None,
        client: AsyncClient | None = None,
    ):
        self.config = config
        self.retry_config = retry_config or RetryConfig()
        self.logger = create_execution_logger("bluesky_publisher", execution_id)
        self.client = client or AsyncClient(base_url=config.service_url)

    async def login(self) -> None:
        """Log in to the account.

        Raises:
            AuthError: If the credentials are rejected or the service is unreachable
        """
        try:
            await self.client.login(self.config.identifier, self.config.password)
        except Exception as e:
            self.logger.error(
                f"Bluesky login failed: {e}",
                identifier=self.config.identifier,
                error=str(e),
            )
            raise AuthError("bluesky") from e
        self.logger.info("Logged in to Bluesky", identifier=self.config.identifier)

    async def upload_image(self, image: ImageAsset):
        """Upload ``image`` with a per-attempt timeout and bounded retries.

        Raises:
            UploadError: When every attempt fails or times out
        """

        async def attempt():
            try:
                response = await asyncio.wait_for(
                    self.client.upload_blob(image.data),
                    timeout=self.config.upload_timeout_seconds,
                )
            except TimeoutError as e:
                raise UploadError(
                    "Image upload timed out",
                    {"timeout_seconds": self.config.upload_timeout_seconds},
                ) from e
            return response.blob

        def on_retry(error: BaseException, attempt_number: int) -> None:
            self.logger.log_retry("image upload", attempt_number, error)

        try:
            return await async_retry(
                attempt,
                max_retries=self.retry_config.image_upload_max_retries,
                on_retry=on_retry,
                backoff_factor=self.retry_config.backoff_factor,
            )
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(
                f"Image upload failed: {e}", {"byte_length": image.byte_length}
            ) from e

    def build_facets(self, post: BlueskyPost) -> list:
        return [
            models.AppBskyRichtextFacet.Main(
                index=models.AppBskyRichtextFacet.ByteSlice(
                    byte_start=facet.byte_start, byte_end=facet.byte_end
                ),
                features=[models.AppBskyRichtextFacet.Link(uri=facet.uri)],
            )
            for facet in post.facets
        ]

    async def publish(self, post: BlueskyPost, image: ImageAsset | None = None) -> str:
        """Publish ``post``; an image that fails to upload is left out.

        Returns:
            URI of the created post

        Raises:
            NotifierError: If the post itself cannot be created
        """
        thumb = None
        if image is not None:
            try:
                thumb = await self.upload_image(image)
            except UploadError as e:
                self.logger.warning(
                    f"Posting without thumbnail: {e}", error=e.to_dict()
                )

        embed = models.AppBskyEmbedExternal.Main(
            external=models.AppBskyEmbedExternal.External(
                uri=post.url,
                title=post.title,
                description=post.description,
                thumb=thumb,
            )
        )

        try:
            response = await self.client.send_post(
                text=post.text,
                facets=self.build_facets(post),
                embed=embed,
                langs=list(post.langs),
            )
        except Exception as e:
            raise NotifierError(
                f"Bluesky post failed: {e}",
                ErrorCode.NETWORK_ERROR,
                {"url": post.url},
            ) from e

        self.logger.info(
            "Posted to Bluesky",
            uri=response.uri,
            url=post.url,
            has_thumbnail=thumb is not None,
        )
        return response.uri
