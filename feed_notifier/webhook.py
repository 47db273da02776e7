"""Webhook publisher (IFTTT-style ``value1`` body)."""

import requests

from .errors import NetworkError
from .logging_config import create_execution_logger


class WebhookPublisher:
    """Sends a message to the configured webhook; no URL means no-op."""

    def __init__(
        self,
        url: str | None,
        timeout: int = 30,
        execution_id: str | None = None,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.logger = create_execution_logger("webhook_publisher", execution_id)
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def send(self, text: str) -> bool:
        """POST ``{"value1": text}``.

        Returns:
            True when sent, False when the webhook is not configured

        Raises:
            NetworkError: On a transport failure or a non-2xx response
        """
        if not self.enabled:
            self.logger.debug("Webhook URL not configured, skipping")
            return False

        try:
            response = self.session.post(
                self.url, json={"value1": text}, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise NetworkError(self.url) from e

        if not response.ok:
            self.logger.error(
                "Webhook request failed",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise NetworkError(self.url, response.status_code)

        self.logger.info("Webhook message sent", status_code=response.status_code)
        return True
