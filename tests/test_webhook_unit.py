"""Unit tests for the webhook publisher."""

from unittest.mock import Mock

import pytest
import requests

from feed_notifier.errors import ErrorCode, NetworkError
from feed_notifier.webhook import WebhookPublisher

WEBHOOK_URL = "https://maker.ifttt.com/trigger/post/json/with/key/abc"


def make_response(status: int):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.text = "Congratulations!"
    return response


class TestWebhookPublisherUnit:
    """Unit tests for WebhookPublisher."""

    def test_posts_value1_body(self):
        session = Mock()
        session.post.return_value = make_response(200)

        sent = WebhookPublisher(WEBHOOK_URL, session=session).send("hello\nhttps://example.com")

        assert sent is True
        session.post.assert_called_once_with(
            WEBHOOK_URL, json={"value1": "hello\nhttps://example.com"}, timeout=30
        )

    def test_missing_url_is_noop(self):
        session = Mock()
        publisher = WebhookPublisher(None, session=session)

        assert publisher.enabled is False
        assert publisher.send("hello") is False
        session.post.assert_not_called()

    def test_non_2xx_raises(self):
        session = Mock()
        session.post.return_value = make_response(401)

        with pytest.raises(NetworkError) as exc_info:
            WebhookPublisher(WEBHOOK_URL, session=session).send("hello")

        assert exc_info.value.code is ErrorCode.NETWORK_ERROR
        assert exc_info.value.status_code == 401

    def test_transport_error_raises(self):
        session = Mock()
        session.post.side_effect = requests.ConnectionError("reset")

        with pytest.raises(NetworkError):
            WebhookPublisher(WEBHOOK_URL, session=session).send("hello")
