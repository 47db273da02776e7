"""Open Graph metadata fetching."""

from pathlib import PurePosixPath
from urllib.parse import unquote, urljoin, urlparse

import fitz
import requests
from bs4 import BeautifulSoup

from .logging_config import create_execution_logger
from .models import OgpImage, OpenGraphData

# Many sites only serve og:* tags to known crawlers.
METADATA_USER_AGENT = "Twitterbot"


def _to_int(value: str | None) -> int | None:
    try:
        return int(value) if value else None
    except ValueError:
        return None


class MetadataFetcher:
    """Fetches Open Graph metadata; every failure degrades to empty metadata."""

    def __init__(
        self,
        timeout: int = 30,
        execution_id: str | None = None,
        session: requests.Session | None = None,
    ):
        self.timeout = timeout
        self.logger = create_execution_logger("metadata_fetcher", execution_id)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": METADATA_USER_AGENT})

    def fetch(self, url: str) -> OpenGraphData:
        """Fetch metadata for ``url``.

        Args:
            url: Page or document URL

        Returns:
            OpenGraphData, empty when nothing could be fetched or parsed
        """
        if urlparse(url).path.lower().endswith(".pdf"):
            title = self.pdf_title_from_path(url)
            self.logger.info("Using PDF file name as title", url=url, title=title)
            return OpenGraphData(title=title, url=url)

        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.warning(
                f"Failed to fetch metadata for {url}: {e}", url=url, error=str(e)
            )
            return OpenGraphData.empty()

        content_type = response.headers.get("content-type", "")
        try:
            if "application/pdf" in content_type:
                data = self.parse_pdf(response.content, url)
            else:
                data = self.parse_html(response.text, url)
        except Exception as e:
            self.logger.warning(
                f"Failed to parse metadata for {url}: {e}", url=url, error=str(e)
            )
            return OpenGraphData.empty()

        self.logger.info(
            "Fetched metadata",
            url=url,
            empty=data.is_empty(),
            has_title=bool(data.title),
            image_count=len(data.images),
        )
        return data

    @staticmethod
    def pdf_title_from_path(url: str) -> str:
        return unquote(PurePosixPath(urlparse(url).path).name)

    def parse_pdf(self, content: bytes, url: str) -> OpenGraphData:
        """Use the first text block of the first page as the title."""
        with fitz.open(stream=content, filetype="pdf") as document:
            if document.page_count == 0:
                return OpenGraphData(url=url)
            blocks = document[0].get_text("blocks")

        for block in blocks:
            text = " ".join(block[4].split())
            if text:
                return OpenGraphData(title=text, url=url)
        return OpenGraphData(url=url)

    def parse_html(self, html: str, url: str) -> OpenGraphData:
        """Extract og:* tags; relative image URLs are resolved against ``url``."""
        soup = BeautifulSoup(html, "html.parser")

        def og(name: str) -> str | None:
            tag = soup.find("meta", attrs={"property": f"og:{name}"}) or soup.find(
                "meta", attrs={"name": f"og:{name}"}
            )
            if tag and tag.get("content"):
                return tag["content"].strip()
            return None

        images: tuple[OgpImage, ...] = ()
        image_url = og("image") or og("image:url")
        if image_url:
            images = (
                OgpImage(
                    url=urljoin(url, image_url),
                    width=_to_int(og("image:width")),
                    height=_to_int(og("image:height")),
                    type=og("image:type"),
                ),
            )

        title = og("title")
        if not title and soup.title and soup.title.string:
            title = soup.title.string.strip() or None

        return OpenGraphData(
            title=title,
            description=og("description"),
            images=images,
            url=og("url") or url,
        )
