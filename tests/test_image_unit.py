"""Unit tests for the image re-encoder."""

import os
import tempfile
from io import BytesIO
from unittest.mock import Mock, patch

import requests
from PIL import Image

from feed_notifier.config import ImageConfig, RetryConfig
from feed_notifier.image import ImageProcessor, is_private_host


def png_bytes(width: int = 64, height: int = 48, color=(200, 30, 30)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, "PNG")
    return buffer.getvalue()


def noise_png(size: int) -> bytes:
    buffer = BytesIO()
    Image.effect_noise((size, size), 100).convert("RGB").save(buffer, "PNG")
    return buffer.getvalue()


def image_response(content: bytes, content_type: str = "image/png", status: int = 200):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.headers = {"content-type": content_type}
    response.content = content
    return response


def make_processor(session, config: ImageConfig | None = None, retries: int = 2):
    return ImageProcessor(
        config or ImageConfig(),
        RetryConfig(image_fetch_max_retries=retries),
        session=session,
    )


class TestImageProcessorUnit:
    """Unit tests for ImageProcessor."""

    def test_small_image_is_reencoded_as_jpeg(self):
        session = Mock()
        session.get.return_value = image_response(png_bytes())

        asset = make_processor(session).resize("https://example.com/og.png", "n1")

        assert asset is not None
        assert asset.mime_type == "image/jpeg"
        assert asset.data[:2] == b"\xff\xd8"
        assert asset.byte_length == len(asset.data)

    def test_large_image_fits_within_bounds(self):
        session = Mock()
        session.get.return_value = image_response(png_bytes(3000, 1500))

        asset = make_processor(session).resize("https://example.com/og.png", "n1")

        with Image.open(BytesIO(asset.data)) as encoded:
            assert encoded.size == (2000, 1000)

    def test_fetch_retries_non_image_responses(self):
        session = Mock()
        session.get.side_effect = [
            image_response(b"<html></html>", content_type="text/html"),
            image_response(b"", status=503),
            image_response(png_bytes()),
        ]

        asset = make_processor(session, retries=2).resize("https://example.com/a.png", "n")

        assert asset is not None
        assert session.get.call_count == 3

    def test_fetch_exhaustion_returns_none(self):
        session = Mock()
        session.get.return_value = image_response(b"", status=404)

        asset = make_processor(session, retries=2).resize("https://example.com/a.png", "n")

        assert asset is None
        assert session.get.call_count == 3

    def test_network_exception_returns_none(self):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("refused")

        assert make_processor(session, retries=0).resize("https://example.com/a.png", "n") is None

    def test_undecodable_image_returns_none(self):
        session = Mock()
        session.get.return_value = image_response(b"not an image", content_type="image/png")

        assert make_processor(session).resize("https://example.com/a.png", "n") is None

    def test_private_hosts_are_skipped(self):
        session = Mock()
        processor = make_processor(session)

        for url in (
            "http://127.0.0.1/a.png",
            "http://10.0.0.5/a.png",
            "http://169.254.169.254/latest",
            "http://localhost/a.png",
            "http://[::1]/a.png",
        ):
            assert processor.resize(url, "n") is None, url

        session.get.assert_not_called()

    def test_is_private_host_allows_public_names(self):
        assert is_private_host("https://example.com/a.png") is False
        assert is_private_host("https://93.184.216.34/a.png") is False

    def test_budget_miss_returns_smallest_encoding(self):
        config = ImageConfig(max_byte_length=100, max_encode_attempts=4)
        processor = make_processor(Mock(), config)
        data = noise_png(200)

        asset = processor.encode(data, "n")

        first = ImageConfig()
        with Image.open(BytesIO(data)) as source:
            buffer = BytesIO()
            source.convert("RGB").save(buffer, "JPEG", quality=first.initial_quality)
        assert asset.byte_length > 100
        assert asset.byte_length <= len(buffer.getvalue())

    def test_first_encode_uses_full_quality(self):
        config = ImageConfig(max_byte_length=10**9)
        processor = make_processor(Mock(), config)
        data = png_bytes()

        with patch.object(Image.Image, "save", autospec=True, side_effect=Image.Image.save) as save:
            processor.encode(data, "n")

        assert save.call_count == 1
        assert save.call_args.kwargs["quality"] == 100

    def test_encode_attempts_are_bounded(self):
        config = ImageConfig(max_byte_length=1, max_encode_attempts=15)
        processor = make_processor(Mock(), config)
        data = png_bytes()

        with patch.object(Image.Image, "save", autospec=True, side_effect=Image.Image.save) as save:
            processor.encode(data, "n")

        qualities = [call.kwargs["quality"] for call in save.call_args_list]
        assert qualities == [100 - 5 * i for i in range(15)]

    def test_temporary_directory_removed_on_success(self):
        created = []
        real_temporary_directory = tempfile.TemporaryDirectory

        def tracking(*args, **kwargs):
            tmp = real_temporary_directory(*args, **kwargs)
            created.append(tmp.name)
            return tmp

        processor = make_processor(Mock())
        with patch("feed_notifier.image.tempfile.TemporaryDirectory", side_effect=tracking):
            processor.encode(png_bytes(), "nonce123")

        assert len(created) == 1
        assert not os.path.exists(created[0])

    def test_temporary_directory_removed_on_error(self):
        created = []
        real_temporary_directory = tempfile.TemporaryDirectory

        def tracking(*args, **kwargs):
            tmp = real_temporary_directory(*args, **kwargs)
            created.append(tmp.name)
            return tmp

        session = Mock()
        session.get.return_value = image_response(png_bytes())
        processor = make_processor(session)

        with patch("feed_notifier.image.tempfile.TemporaryDirectory", side_effect=tracking):
            with patch.object(Image.Image, "save", side_effect=OSError("disk full")):
                asset = processor.resize("https://example.com/a.png", "n")

        assert asset is None
        assert len(created) == 1
        assert not os.path.exists(created[0])
