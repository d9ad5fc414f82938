"""Full-article extraction with a readability heuristic.

Fails soft: every error path returns ``None`` so a caller can fall back to
the next-richest content it has.
"""

import httpx
from loguru import logger
from readability import Document

from source_bundler.config import settings
from source_bundler.http import http_client
from source_bundler.security import is_safe_url
from source_bundler.text import html_to_text


def extract_main_text(html: str) -> str | None:
    """Reduce a full HTML page to its main-content plain text."""
    if not html or not html.strip():
        return None
    summary_html = Document(html).summary(html_partial=True)
    text = html_to_text(summary_html)
    return text or None


async def fetch_article_text(
    url: str, client: httpx.AsyncClient | None = None
) -> str | None:
    """Fetch *url* and return its main-content text, or None on any failure."""
    if not url or not is_safe_url(url):
        logger.warning(f"Skipping article fetch for unsafe URL: {url}")
        return None

    try:
        async with http_client(client) as http:
            resp = await http.get(
                url, headers={"User-Agent": settings.article_user_agent}
            )
        if not resp.is_success:
            logger.warning(f"Failed to fetch article {url}: HTTP {resp.status_code}")
            return None
        return extract_main_text(resp.text)
    except Exception as e:
        logger.warning(f"Error fetching or parsing article {url}: {e}")
        return None
