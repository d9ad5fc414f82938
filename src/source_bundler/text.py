"""Text utilities: slug/id allocation, word counts, HTML normalization."""

import html
import math
import re
import unicodedata

import html2text
from loguru import logger

ENTRY_FALLBACK = "entry"
SOURCE_FALLBACK = "notebooklm-source"
ENTRY_SLUG_LENGTH = 48

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_TAG_RE = re.compile(r"<[a-zA-Z/!][^>]*>")
# html2text renders <a href="X">X</a> as <X>
_AUTOLINK_RE = re.compile(r"<([a-zA-Z][a-zA-Z0-9+.-]*:[^>\s]+)>")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


# ---------------------------------------------------------------------------
# Slugs and identifiers
# ---------------------------------------------------------------------------


def slugify(
    text: str, fallback: str = SOURCE_FALLBACK, max_length: int | None = None
) -> str:
    """Convert arbitrary text into a lowercase, hyphen-separated slug.

    Accents are folded to their base letters; anything outside ``[a-z0-9]``
    collapses into single hyphens.  Returns *fallback* when nothing is left.
    """
    decomposed = unicodedata.normalize("NFKD", text or "")
    ascii_text = "".join(c for c in decomposed if not unicodedata.combining(c))
    slug = _NON_ALNUM_RE.sub("-", ascii_text.lower()).strip("-")
    if max_length is not None:
        slug = slug[:max_length].strip("-")
    return slug or fallback


def create_entry_id(index: int, title: str) -> str:
    """Build an archive entry id like ``03-some-title``.

    Identical titles stay distinct only through the index prefix.
    """
    short = slugify(title, fallback=ENTRY_FALLBACK, max_length=ENTRY_SLUG_LENGTH)
    return f"{index:02d}-{short}"


def count_words(text: str) -> int:
    """Count whitespace-delimited non-empty tokens."""
    return len(text.split()) if text else 0


def clamp_int(raw: object, low: int, high: int, default: int) -> int:
    """Parse a leading integer from *raw* and clamp it to ``[low, high]``.

    ``"12abc"`` parses as 12; anything without a leading integer (including
    None, booleans and non-finite floats) yields *default*.
    """
    parsed: int | None = None
    if isinstance(raw, bool):
        parsed = None
    elif isinstance(raw, int):
        parsed = raw
    elif isinstance(raw, float):
        parsed = int(raw) if math.isfinite(raw) else None
    elif raw is not None:
        match = _LEADING_INT_RE.match(str(raw))
        parsed = int(match.group(1)) if match else None

    if parsed is None:
        return default
    return min(max(parsed, low), high)


def first_non_empty(*candidates: str | None) -> str | None:
    """Return the first candidate that is non-empty after stripping."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate
    return None


# ---------------------------------------------------------------------------
# HTML -> plain text
# ---------------------------------------------------------------------------


def _converter() -> html2text.HTML2Text:
    converter = html2text.HTML2Text()
    converter.body_width = 0  # no wrapping
    converter.ignore_images = True
    converter.ignore_emphasis = True
    converter.use_automatic_links = True
    converter.unicode_snob = True
    return converter


def _strip_tags(markup: str) -> str:
    """Crude fallback used when the converter itself fails."""
    text = html.unescape(_TAG_RE.sub(" ", markup))
    lines = [" ".join(line.split()) for line in text.splitlines()]
    return _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()


def html_to_text(markup: str | None) -> str:
    """Convert an HTML fragment to plain text.

    Images are dropped, a link whose text equals its target collapses to the
    bare text, and lines are never re-wrapped.  Input with no tags is
    treated as plain text so its newlines survive untouched.  Never raises.
    """
    if not markup or not markup.strip():
        return ""

    if not _TAG_RE.search(markup):
        return html.unescape(markup).strip()

    try:
        text = _converter().handle(markup)
    except Exception as e:
        logger.debug(f"html2text failed, falling back to tag stripping: {e}")
        return _strip_tags(markup)

    text = _AUTOLINK_RE.sub(r"\1", text)
    text = "\n".join(line.rstrip() for line in text.splitlines())
    text = _BLANK_RUN_RE.sub("\n\n", text).strip()
    return text or _strip_tags(markup)
