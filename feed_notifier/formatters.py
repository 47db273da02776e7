"""Post payload formatting for Bluesky and the webhook."""

from urllib.parse import urlparse

from .config import TextLimits
from .models import BlueskyPost, FeedItem, LinkFacet, OpenGraphData, Summary
from .text import count_graphemes, truncate, utf8_length


def resolve_title(item: FeedItem, ogp: OpenGraphData, limits: TextLimits) -> str:
    """Item title, else metadata title, truncated to the title limit."""
    title = (item.title or ogp.title or "").strip()
    return truncate(title, limits.title_max_length)


def link_display_text(url: str, max_length: int) -> str:
    """Host plus path without scheme, shortened for display."""
    parsed = urlparse(url)
    host_with_path = f"{parsed.netloc}{parsed.path}".rstrip("/") or url
    return truncate(host_with_path, max_length)


def format_webhook_message(
    item: FeedItem,
    ogp: OpenGraphData,
    summary: Summary | None,
    limits: TextLimits | None = None,
    include_title: bool = True,
) -> str:
    """Build the webhook text: ``summary\\n\\ntitle\\nlink`` or ``title\\nlink``.

    Without the title the text is ``summary\\nlink``.
    """
    if not include_title:
        return f"{summary.text}\n{item.link}" if summary else item.link

    limits = limits or TextLimits()
    title = resolve_title(item, ogp, limits)
    body = f"{title}\n{item.link}" if title else item.link
    if summary:
        return f"{summary.text}\n\n{body}"
    return body


def format_bluesky_post(
    item: FeedItem,
    ogp: OpenGraphData,
    summary: Summary | None,
    limits: TextLimits | None = None,
) -> BlueskyPost:
    """Build the Bluesky post text with a link facet over the shortened URL.

    The summary is trimmed so that the whole text stays within the post limit.
    """
    limits = limits or TextLimits()
    title = resolve_title(item, ogp, limits)
    display_link = link_display_text(item.link, limits.link_display_max_length)

    tail_prefix = f"{title}\n" if title else ""
    tail = f"{tail_prefix}{display_link}"

    head = ""
    if summary:
        budget = limits.bluesky_max_length - count_graphemes(tail) - 2
        if budget > 0:
            head = f"{truncate(summary.text, budget)}\n\n"

    text = f"{head}{tail}"
    byte_start = utf8_length(head + tail_prefix)
    facet = LinkFacet(
        byte_start=byte_start,
        byte_end=byte_start + utf8_length(display_link),
        uri=item.link,
    )

    return BlueskyPost(
        text=text,
        url=item.link,
        title=(ogp.title or item.title or "").strip(),
        facets=(facet,),
        description=(ogp.description or item.description or "").strip(),
    )
