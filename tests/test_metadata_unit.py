"""Unit tests for Open Graph metadata fetching and content extraction."""

from unittest.mock import Mock, patch

import fitz
import pytest
import requests

from feed_notifier.content import MAX_PDF_BYTES, ContentExtractor, extract_video_id
from feed_notifier.errors import DocumentNotFoundError, ErrorCode
from feed_notifier.metadata import METADATA_USER_AGENT, MetadataFetcher
from feed_notifier.models import OpenGraphData

OGP_HTML = """
<html>
  <head>
    <title>Fallback title</title>
    <meta property="og:title" content="Example Project" />
    <meta property="og:description" content="A fast build tool" />
    <meta property="og:image" content="/images/card.png" />
    <meta property="og:image:width" content="1200" />
    <meta property="og:image:height" content="630" />
    <meta property="og:image:type" content="image/png" />
    <meta property="og:url" content="https://example.com/project" />
  </head>
  <body><p>Hello</p></body>
</html>
"""

ARTICLE_HTML = """
<html><head><title>Post</title></head>
<body>
  <nav>Home | About</nav>
  <article>
    <h1>Release notes</h1>
    <p>This release makes the parser twice as fast by caching tokens between runs.</p>
    <p>It also adds a new plugin interface so that linters can share the AST.</p>
    <p>Upgrading requires no configuration changes for most projects.</p>
  </article>
  <footer>Copyright</footer>
</body></html>
"""


def html_response(text: str, content_type: str = "text/html; charset=utf-8"):
    response = Mock()
    response.text = text
    response.content = text.encode()
    response.headers = {"content-type": content_type}
    response.raise_for_status.return_value = None
    return response


def pdf_bytes(title: str) -> bytes:
    document = fitz.open()
    page = document.new_page()
    page.insert_text((72, 72), title)
    data = document.tobytes()
    document.close()
    return data


class TestMetadataFetcherUnit:
    """Unit tests for MetadataFetcher."""

    def test_user_agent_is_twitterbot(self):
        session = requests.Session()
        MetadataFetcher(session=session)

        assert session.headers["User-Agent"] == METADATA_USER_AGENT == "Twitterbot"

    def test_parses_open_graph_tags(self):
        session = Mock()
        session.headers = {}
        session.get.return_value = html_response(OGP_HTML)

        data = MetadataFetcher(session=session).fetch("https://example.com/project/")

        assert data.title == "Example Project"
        assert data.description == "A fast build tool"
        assert data.url == "https://example.com/project"
        image = data.first_image
        assert image.url == "https://example.com/images/card.png"
        assert (image.width, image.height, image.type) == (1200, 630, "image/png")

    def test_title_tag_fallback(self):
        session = Mock()
        session.headers = {}
        session.get.return_value = html_response(
            "<html><head><title> Plain page </title></head></html>"
        )

        data = MetadataFetcher(session=session).fetch("https://example.com/")

        assert data.title == "Plain page"
        assert data.has_image() is False

    def test_network_failure_degrades_to_empty(self):
        session = Mock()
        session.headers = {}
        session.get.side_effect = requests.ConnectionError("refused")

        data = MetadataFetcher(session=session).fetch("https://example.com/")

        assert data == OpenGraphData.empty()

    def test_http_error_degrades_to_empty(self):
        session = Mock()
        session.headers = {}
        response = html_response("")
        response.raise_for_status.side_effect = requests.HTTPError("404")
        session.get.return_value = response

        assert MetadataFetcher(session=session).fetch("https://example.com/").is_empty()

    def test_pdf_path_uses_file_name_without_fetching(self):
        session = Mock()
        session.headers = {}

        data = MetadataFetcher(session=session).fetch(
            "https://example.com/papers/attention%20is%20all.pdf"
        )

        assert data.title == "attention is all.pdf"
        session.get.assert_not_called()

    def test_pdf_content_type_uses_first_text_block(self):
        session = Mock()
        session.headers = {}
        response = html_response("", content_type="application/pdf")
        response.content = pdf_bytes("Scaling Laws Report")
        session.get.return_value = response

        data = MetadataFetcher(session=session).fetch("https://example.com/download?id=1")

        assert data.title == "Scaling Laws Report"

    def test_corrupt_pdf_has_no_title(self):
        session = Mock()
        session.headers = {}
        response = html_response("", content_type="application/pdf")
        response.content = b"%PDF-broken"
        session.get.return_value = response

        data = MetadataFetcher(session=session).fetch("https://example.com/download?id=2")

        assert data.title is None


class TestContentExtractorUnit:
    """Unit tests for ContentExtractor."""

    def test_extracts_article_text(self):
        session = Mock()
        session.get.return_value = html_response(ARTICLE_HTML)

        text = ContentExtractor(session=session).extract("https://example.com/post")

        assert "twice as fast" in text
        assert "plugin interface" in text

    def test_failure_returns_fallback(self):
        session = Mock()
        session.get.side_effect = requests.Timeout("slow")

        text = ContentExtractor(session=session).extract(
            "https://example.com/post", fallback="feed description"
        )

        assert text == "feed description"

    def test_empty_page_returns_fallback(self):
        with patch.object(ContentExtractor, "extract_text", return_value=""):
            session = Mock()
            session.get.return_value = html_response("<html></html>")

            text = ContentExtractor(session=session).extract("https://example.com", "fb")

        assert text == "fb"


class TestContentExtractorDocumentsUnit:
    """Unit tests for PDF, slide deck and video extraction."""

    def test_pdf_path_text_is_extracted(self):
        session = Mock()
        session.get.return_value = html_response("", content_type="application/octet-stream")
        session.get.return_value.content = pdf_bytes("Serverless cost guide")

        text = ContentExtractor(session=session).extract("https://example.com/slides.pdf")

        assert "Serverless cost guide" in text

    def test_pdf_content_type_text_is_extracted(self):
        session = Mock()
        session.get.return_value = html_response("", content_type="application/pdf")
        session.get.return_value.content = pdf_bytes("Query planner notes")

        text = ContentExtractor(session=session).extract("https://example.com/download?id=1")

        assert "Query planner notes" in text

    def test_oversized_pdf_falls_back(self):
        session = Mock()
        session.get.return_value = html_response("", content_type="application/pdf")
        session.get.return_value.content = b"%PDF" + b"0" * MAX_PDF_BYTES

        text = ContentExtractor(session=session).extract("https://example.com/a.pdf", "fb")

        assert text == "fb"

    def test_speakerdeck_download_link_is_followed(self):
        page = html_response(
            '<html><body><a title="Download PDF" '
            'href="https://files.speakerdeck.com/deck.pdf">PDF</a></body></html>'
        )
        document = html_response("", content_type="application/pdf")
        document.content = pdf_bytes("Deck about caching")
        session = Mock()
        session.get.side_effect = [page, document]

        text = ContentExtractor(session=session).extract("https://speakerdeck.com/user/deck")

        assert "Deck about caching" in text
        assert session.get.call_args_list[1].args[0] == "https://files.speakerdeck.com/deck.pdf"

    def test_docswell_relative_download_link_is_resolved(self):
        page = html_response('<a href="/s/user/ABC123/download">DL</a>')
        document = html_response("", content_type="application/pdf")
        document.content = pdf_bytes("Docswell slides")
        session = Mock()
        session.get.side_effect = [page, document]

        ContentExtractor(session=session).extract("https://www.docswell.com/s/user/ABC123")

        assert (
            session.get.call_args_list[1].args[0]
            == "https://www.docswell.com/s/user/ABC123/download"
        )

    def test_slide_page_without_download_link_falls_back(self):
        session = Mock()
        session.get.return_value = html_response("<html><body>no link</body></html>")
        extractor = ContentExtractor(session=session)

        with pytest.raises(DocumentNotFoundError) as exc_info:
            extractor.slide_pdf_url("https://speakerdeck.com/u/d", 'a[title="Download PDF"]')

        assert exc_info.value.code is ErrorCode.FILE_NOT_FOUND
        assert extractor.extract("https://speakerdeck.com/u/d", "fb") == "fb"

    def test_youtube_transcript_is_joined(self):
        api = Mock()
        transcript = api.list.return_value.find_transcript.return_value
        transcript.fetch.return_value = [Mock(text="hello"), Mock(text="world")]
        session = Mock()

        text = ContentExtractor(session=session, transcript_api=api).extract(
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        )

        assert text == "hello world"
        api.list.assert_called_once_with("dQw4w9WgXcQ")
        api.list.return_value.find_transcript.assert_called_once_with(["ja", "en"])
        session.get.assert_not_called()

    def test_youtube_without_transcript_falls_back(self):
        api = Mock()
        api.list.side_effect = RuntimeError("Transcripts are disabled")

        text = ContentExtractor(session=Mock(), transcript_api=api).extract(
            "https://youtu.be/dQw4w9WgXcQ", "fb"
        )

        assert text == "fb"

    def test_unsupported_video_url_is_rejected(self):
        with pytest.raises(ValueError):
            extract_video_id("https://www.youtube.com/feed/trending")
