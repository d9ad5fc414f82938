"""RSS/Atom feed resolution into bundle entries.

Pipeline for one request:
1. Validate the feed URL (no network call on failure)
2. GET the feed with feed-appropriate Accept headers
3. Parse it with feedparser
4. Turn the first N items into entries, one at a time, degrading per item

Per-item problems never abort the batch; only the feed-level steps raise.
"""

import io
from calendar import timegm
from dataclasses import dataclass, field
from datetime import UTC, datetime
from urllib.parse import urlparse

import feedparser
import httpx
from loguru import logger

from source_bundler.archive import iso_timestamp
from source_bundler.config import settings
from source_bundler.errors import (
    InvalidInputError,
    NothingFoundError,
    ParseError,
    UpstreamError,
)
from source_bundler.http import http_client
from source_bundler.models import Entry
from source_bundler.security import parse_http_url
from source_bundler.sources.article import fetch_article_text
from source_bundler.text import clamp_int, create_entry_id, first_non_empty, html_to_text

FEED_ACCEPT = "application/rss+xml, application/xml, text/xml; q=0.9, */*; q=0.8"
NO_BODY_PLACEHOLDER = "(No body content provided by the feed)"


@dataclass
class FeedResult:
    title: str
    description: str | None
    url: str
    total_entries: int
    entries: list[Entry] = field(default_factory=list)


def clamp_item_limit(raw: object) -> int:
    """Effective item count: ``min(max(parsed, 1), 40)``, 15 when unparseable.

    Parsing is lenient on purpose: the leading integer is kept, so ``"12abc"``
    is 12 and ``3.9`` is 3. Only input with no leading integer falls back to 15.
    """
    return clamp_int(
        raw,
        low=1,
        high=settings.max_item_limit,
        default=settings.default_item_limit,
    )


def _published_at(item: feedparser.FeedParserDict) -> str | None:
    """ISO-8601 UTC publication time, else the raw date string, else None."""
    for parsed_field, raw_field in (
        ("published_parsed", "published"),
        ("updated_parsed", "updated"),
    ):
        time_struct = item.get(parsed_field)
        if time_struct:
            try:
                return iso_timestamp(
                    datetime.fromtimestamp(timegm(time_struct), tz=UTC)
                )
            except (ValueError, OverflowError):
                pass
        raw = item.get(raw_field)
        if isinstance(raw, str) and raw.strip():
            return raw.strip()
    return None


def _raw_body(item: feedparser.FeedParserDict) -> str:
    """Richest available body: content-encoded / content, then summary."""
    contents = [c.get("value", "") for c in item.get("content", []) or []]
    return first_non_empty(*contents, item.get("summary")) or ""


def parse_feed_document(data: bytes) -> feedparser.FeedParserDict:
    """Parse raw feed bytes, raising ParseError if nothing feed-like is found."""
    try:
        parsed = feedparser.parse(io.BytesIO(data))
    except Exception as e:
        logger.error(f"Failed to parse feed: {e}")
        raise ParseError(
            "We couldn't understand that feed. "
            "Double-check the URL or try another feed."
        ) from e

    if not parsed.get("version") and not parsed.entries:
        logger.warning(f"Not a syndication document: {parsed.get('bozo_exception')}")
        raise ParseError(
            "We couldn't understand that feed. "
            "Double-check the URL or try another feed."
        )
    return parsed


async def build_entry(
    index: int,
    item: feedparser.FeedParserDict,
    fallback_url: str,
    fetch_articles: bool = False,
    client: httpx.AsyncClient | None = None,
) -> Entry:
    """Turn one feed item into an Entry. *index* is 1-based."""
    raw_title = item.get("title")
    title = (
        raw_title.strip()
        if isinstance(raw_title, str) and raw_title.strip()
        else f"Entry {index}"
    )

    link = item.get("link")
    url = link.strip() if isinstance(link, str) and link.strip() else fallback_url

    feed_text = html_to_text(_raw_body(item))
    article_text = None
    if fetch_articles:
        article_text = await fetch_article_text(url, client=client)

    return Entry(
        id=create_entry_id(index, title),
        title=title,
        url=url,
        published_at=_published_at(item),
        text_content=first_non_empty(article_text, feed_text) or NO_BODY_PLACEHOLDER,
    )


async def resolve_feed(
    feed_url: str | None,
    limit: object = None,
    fetch_articles: bool = False,
    client: httpx.AsyncClient | None = None,
    invalid_url_status: int = 422,
) -> FeedResult:
    """Fetch a feed and build entries for its first *limit* items.

    Args:
        feed_url: Feed URL supplied by the caller.
        limit: Raw item count, clamped with :func:`clamp_item_limit`.
        fetch_articles: Also fetch each item's page and prefer its main text.
        client: Injected HTTP client (tests, connection reuse).
        invalid_url_status: Status for a malformed URL (500 for fixed feeds).

    Raises:
        InvalidInputError, UpstreamError, ParseError, NothingFoundError
    """
    if not feed_url or not feed_url.strip():
        raise InvalidInputError("Please enter an RSS feed URL.", status=400)

    valid_url = parse_http_url(feed_url)
    if valid_url is None:
        raise InvalidInputError(
            "That doesn't look like a valid URL.", status=invalid_url_status
        )

    count = clamp_item_limit(limit)
    logger.info(f"Resolving feed {valid_url} (limit={count}, articles={fetch_articles})")

    async with http_client(client) as http:
        try:
            resp = await http.get(
                valid_url,
                headers={
                    "User-Agent": settings.feed_user_agent,
                    "Accept": FEED_ACCEPT,
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Feed request failed for {valid_url}: {e}")
            raise UpstreamError(
                f"We couldn't reach that feed ({type(e).__name__}). "
                "Please try again later."
            ) from e

        if not resp.is_success:
            raise UpstreamError(
                f"We couldn't reach that feed (status {resp.status_code}). "
                "Please try again later.",
                upstream_status=resp.status_code,
            )

        parsed = parse_feed_document(resp.content)
        items = list(parsed.entries)
        if not items:
            raise NothingFoundError(
                "That feed didn't include any entries. "
                "Try a different feed with recent posts."
            )

        feed_meta = parsed.feed
        source_title = (feed_meta.get("title") or "").strip() or (
            urlparse(valid_url).hostname or valid_url
        )
        description = feed_meta.get("subtitle") or None
        source_url = feed_meta.get("link") or valid_url

        # Strictly sequential: one item's fetches finish before the next begin
        entries: list[Entry] = []
        for index, item in enumerate(items[:count], start=1):
            entries.append(
                await build_entry(
                    index,
                    item,
                    fallback_url=source_url,
                    fetch_articles=fetch_articles,
                    client=http,
                )
            )

    logger.info(f"Built {len(entries)} entries from {len(items)} feed items")
    return FeedResult(
        title=source_title,
        description=description,
        url=source_url,
        total_entries=len(items),
        entries=entries,
    )
