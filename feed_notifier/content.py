"""Readable text extraction for articles, PDFs, slide decks and videos."""

import re
from urllib.parse import urljoin, urlparse

import fitz
import requests
from bs4 import BeautifulSoup
from lxml import html as lxml_html
from readability import Document
from youtube_transcript_api import YouTubeTranscriptApi

from .errors import DocumentNotFoundError
from .logging_config import create_execution_logger

YOUTUBE_HOSTS = frozenset({"www.youtube.com", "youtube.com", "m.youtube.com", "youtu.be"})
TRANSCRIPT_LANGUAGES = ["ja", "en"]

# Slide hosts mapped to the selector of their PDF download link
SLIDE_DOWNLOAD_SELECTORS = {
    "speakerdeck.com": 'a[title="Download PDF"]',
    "www.docswell.com": 'a[href$="download"]',
}

MAX_PDF_BYTES = 40 * 1024 * 1024

_VIDEO_ID = re.compile(r"(?:v=|/v/|youtu\.be/|embed/|shorts/)([a-zA-Z0-9_-]{11})")


def is_pdf_url(url: str) -> bool:
    return urlparse(url).path.lower().endswith(".pdf")


def extract_video_id(url: str) -> str:
    match = _VIDEO_ID.search(url)
    if not match:
        raise ValueError(f"Invalid or unsupported YouTube URL: '{url}'")
    return match.group(1)


class ContentExtractor:
    """Extracts the main text behind a link for summarization.

    Web pages go through readability, PDFs and slide decks through PyMuPDF,
    and YouTube videos through their transcript.
    """

    def __init__(
        self,
        timeout: int = 30,
        execution_id: str | None = None,
        session: requests.Session | None = None,
        transcript_api: YouTubeTranscriptApi | None = None,
    ):
        self.timeout = timeout
        self.logger = create_execution_logger("content_extractor", execution_id)
        self.session = session or requests.Session()
        self.transcript_api = transcript_api

    def extract(self, url: str, fallback: str = "") -> str:
        """Return readable text for ``url``, or ``fallback`` when extraction fails."""
        try:
            text = self.extract_from_url(url)
        except Exception as e:
            self.logger.warning(
                f"Content extraction failed for {url}: {e}", url=url, error=str(e)
            )
            return fallback

        if not text:
            self.logger.info("No readable content found", url=url)
            return fallback

        self.logger.info("Extracted article text", url=url, text_length=len(text))
        return text

    def extract_from_url(self, url: str) -> str:
        host = urlparse(url).hostname or ""
        if host in YOUTUBE_HOSTS:
            return self.youtube_transcript(url)

        if host in SLIDE_DOWNLOAD_SELECTORS:
            pdf_url = self.slide_pdf_url(url, SLIDE_DOWNLOAD_SELECTORS[host])
            return self.pdf_text(self._get(pdf_url).content, pdf_url)

        response = self._get(url)
        content_type = response.headers.get("content-type", "")
        if is_pdf_url(url) or "application/pdf" in content_type:
            return self.pdf_text(response.content, url)
        return self.extract_text(response.text)

    def _get(self, url: str) -> requests.Response:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response

    def slide_pdf_url(self, url: str, selector: str) -> str:
        """Find the PDF download link on a slide page.

        Raises:
            DocumentNotFoundError: If the page has no download link
        """
        soup = BeautifulSoup(self._get(url).text, "html.parser")
        link = soup.select_one(selector)
        href = link.get("href") if link else None
        if not href:
            raise DocumentNotFoundError(url)
        self.logger.info("Found slide PDF", url=url, pdf_url=urljoin(url, href))
        return urljoin(url, href)

    def pdf_text(self, content: bytes, url: str) -> str:
        if len(content) >= MAX_PDF_BYTES:
            self.logger.warning(
                "PDF too large to summarize",
                url=url,
                byte_length=len(content),
                max_byte_length=MAX_PDF_BYTES,
            )
            return ""
        return self.extract_pdf_text(content)

    @staticmethod
    def extract_pdf_text(content: bytes) -> str:
        with fitz.open(stream=content, filetype="pdf") as document:
            pages = [page.get_text() for page in document]
        lines = [line.strip() for page in pages for line in page.splitlines()]
        return "\n".join(line for line in lines if line)

    def youtube_transcript(self, url: str) -> str:
        video_id = extract_video_id(url)
        api = self.transcript_api or YouTubeTranscriptApi()
        transcript = api.list(video_id).find_transcript(TRANSCRIPT_LANGUAGES)
        text = " ".join(snippet.text for snippet in transcript.fetch())
        self.logger.info("Fetched video transcript", video_id=video_id)
        return text

    @staticmethod
    def extract_text(page_html: str) -> str:
        doc = Document(page_html)
        tree = lxml_html.fromstring(doc.summary())
        lines = [line.strip() for line in tree.text_content().splitlines() if line.strip()]
        return "\n".join(lines)
