"""Source bundle assembly.

A bundle is a ZIP holding ``manifest.json``, one markdown file per entry and
``sources.json`` with the raw text keyed by entry id.  The ZIP is returned
base64-encoded so it can travel inside a JSON result.
"""

import base64
import io
import json
import zipfile
from dataclasses import dataclass
from datetime import UTC, datetime

from source_bundler.models import Entry
from source_bundler.text import count_words, slugify

SCHEMA_URI = "https://notebooklm.google.com/schemas/source-bundle.v1.json"
MANIFEST_NAME = "manifest.json"
SOURCES_NAME = "sources.json"
SUMMARY_CHARS = 320


@dataclass(frozen=True)
class Archive:
    base64: str
    file_name: str
    data: bytes

    def to_dict(self) -> dict:
        return {"base64": self.base64, "fileName": self.file_name}


def iso_timestamp(now: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = (now or datetime.now(UTC)).astimezone(UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode_archive(data: bytes, file_name: str) -> Archive:
    return Archive(
        base64=base64.b64encode(data).decode("ascii"),
        file_name=file_name,
        data=data,
    )


def entry_file_name(entry: Entry, namespace: str | None = None) -> str:
    name = f"{entry.id}.md"
    return f"{namespace}/{name}" if namespace else name


def render_entry(entry: Entry) -> str:
    """Markdown body for one entry: heading block, blank line, text."""
    header = [f"# {entry.title}"]
    if entry.published_at:
        header.append(f"Published: {entry.published_at}")
    header.append(f"Source: {entry.url}")
    header.append("")
    return "\n".join(header) + "\n" + entry.text_content + "\n"


def build_manifest(
    entries: list[Entry],
    title: str,
    description: str | None,
    url: str,
    generated_at: str,
    namespace: str | None = None,
) -> dict:
    return {
        "$schema": SCHEMA_URI,
        "generatedAt": generated_at,
        "source": {
            "title": title,
            "description": description,
            "url": url,
        },
        "entries": [
            {
                "id": entry.id,
                "title": entry.title,
                "url": entry.url,
                "publishedAt": entry.published_at,
                "wordCount": count_words(entry.text_content),
                "file": entry_file_name(entry, namespace),
            }
            for entry in entries
        ],
    }


def build_archive(
    entries: list[Entry],
    title: str,
    description: str | None,
    url: str,
    namespace: str | None = None,
    now: datetime | None = None,
) -> Archive:
    """Package a finalized entry list into a base64 ZIP source bundle.

    Args:
        entries: Ordered entries; every one becomes exactly one file.
        title: Source title, also used (slugified) for the file name.
        description: Source description or None.
        url: Canonical source URL.
        namespace: Optional folder for the per-entry files (``articles``).
        now: Override for the generation time.

    Returns:
        Archive with base64 payload and ``{slug}-{YYYY-MM-DD}.zip`` name.
    """
    moment = now or datetime.now(UTC)
    generated_at = iso_timestamp(moment)

    manifest = build_manifest(
        entries, title, description, url, generated_at, namespace=namespace
    )
    sources = {
        "version": 1,
        "createdAt": generated_at,
        "entries": [
            {
                "id": entry.id,
                "title": entry.title,
                "url": entry.url,
                "publishedAt": entry.published_at,
                "text": entry.text_content,
            }
            for entry in entries
        ],
    }

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(MANIFEST_NAME, json.dumps(manifest, ensure_ascii=False, indent=2))
        for entry in entries:
            zf.writestr(entry_file_name(entry, namespace), render_entry(entry))
        zf.writestr(SOURCES_NAME, json.dumps(sources, ensure_ascii=False, indent=2))

    file_name = f"{slugify(title)}-{generated_at[:10]}.zip"
    return encode_archive(buffer.getvalue(), file_name)


def summarize_entries(entries: list[Entry]) -> list[dict]:
    """Per-entry summary rows for rendering a result without the archive."""
    return [
        {
            "id": entry.id,
            "title": entry.title,
            "url": entry.url,
            "publishedAt": entry.published_at,
            "wordCount": count_words(entry.text_content),
            "summary": entry.text_content[:SUMMARY_CHARS],
        }
        for entry in entries
    ]
