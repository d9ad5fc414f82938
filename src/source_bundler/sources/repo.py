"""Code repository / ZIP archive bundling.

Walks an in-memory ZIP, keeps documents, images and media as-is, renames
recognized source files to ``*.txt`` (content unchanged) and drops the rest.
Build, dependency, VCS and cache directories and dotfiles are skipped.
"""

import io
import json
import zipfile
import zlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from urllib.parse import urlparse

import httpx
from loguru import logger

from source_bundler.archive import Archive, encode_archive, iso_timestamp
from source_bundler.config import settings
from source_bundler.errors import (
    InvalidInputError,
    NothingFoundError,
    ParseError,
    UpstreamError,
)
from source_bundler.http import http_client
from source_bundler.models import RepoFile, RepoInfo
from source_bundler.security import parse_http_url

MANIFEST_NAME = "notebooklm-manifest.json"
GITHUB_API = "https://api.github.com"


@dataclass(frozen=True)
class BundlerRules:
    """Static classification tables consumed by :func:`bundle_zip`."""

    ignored_dirs: frozenset[str]
    document_extensions: frozenset[str]
    image_extensions: frozenset[str]
    media_extensions: frozenset[str]
    code_extensions: frozenset[str]

    def passes_through(self, extension: str) -> bool:
        return (
            extension in self.document_extensions
            or extension in self.image_extensions
            or extension in self.media_extensions
        )

    def is_code(self, extension: str) -> bool:
        return extension in self.code_extensions


DEFAULT_RULES = BundlerRules(
    ignored_dirs=frozenset(
        {
            "node_modules",
            ".git",
            "dist",
            "build",
            "out",
            "target",
            "vendor",
            "bin",
            "obj",
            ".idea",
            ".vscode",
            "__pycache__",
            ".next",
            ".nuxt",
            "coverage",
        }
    ),
    document_extensions=frozenset({"pdf", "txt", "md", "docx"}),
    image_extensions=frozenset(
        {
            "avif", "bmp", "gif", "ico", "jp2", "png", "webp", "tif", "tiff",
            "heic", "heif", "jpeg", "jpg", "jpe",
        }
    ),
    media_extensions=frozenset(
        {
            "3g2", "3gp", "aac", "aif", "aifc", "aiff", "amr", "au", "avi",
            "cda", "m4a", "mid", "mp3", "mp4", "mpeg", "ogg", "opus", "ra",
            "ram", "snd", "wav", "wma",
        }
    ),
    code_extensions=frozenset(
        {
            "js", "ts", "jsx", "tsx", "py", "java", "c", "cpp", "h", "hpp",
            "cs", "go", "rs", "rb", "php", "swift", "kt", "scala", "vue",
            "svelte", "sql", "sh", "bash", "yaml", "yml", "json", "xml",
            "html", "css", "scss", "less", "r", "m", "pl", "pm", "t", "lua",
            "dart", "elm", "erl", "ex", "exs", "fs", "fsx", "hs", "lhs",
        }
    ),
)


@dataclass
class RepoBundle:
    source: str
    repo: RepoInfo | None
    stats: dict[str, int]
    files: list[RepoFile] = field(default_factory=list)
    archive: Archive | None = None


def parse_repository_url(url: str | None) -> RepoInfo:
    """Parse ``https://github.com/owner/name[/...]`` into a RepoInfo."""
    valid = parse_http_url(url)
    if valid is None:
        raise InvalidInputError("Please enter a valid GitHub repository URL.")

    parts = [p for p in urlparse(valid).path.split("/") if p]
    if len(parts) < 2:
        raise InvalidInputError("Invalid GitHub repository URL")

    owner, name = parts[0], parts[1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return RepoInfo(owner=owner, name=name, url=f"https://github.com/{owner}/{name}")


async def download_repository_zip(
    repo: RepoInfo, client: httpx.AsyncClient | None = None
) -> bytes:
    """Download the default-branch zipball of *repo*."""
    zip_url = f"{GITHUB_API}/repos/{repo.owner}/{repo.name}/zipball"
    logger.info(f"Downloading {repo.owner}/{repo.name} from {zip_url}")
    try:
        async with http_client(client) as http:
            resp = await http.get(zip_url, headers=settings.github_headers())
    except httpx.HTTPError as e:
        raise UpstreamError(f"Failed to download repo: {e}") from e

    if resp.status_code == 404:
        raise NothingFoundError("Repository not found or private")
    if not resp.is_success:
        raise UpstreamError(
            f"Failed to download repo: {resp.reason_phrase or resp.status_code}",
            upstream_status=resp.status_code,
        )
    return resp.content


def _is_ignored(path: str, rules: BundlerRules) -> bool:
    return any(part in rules.ignored_dirs for part in path.split("/"))


def _extension(file_name: str) -> str:
    if "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[1].lower()


def _target_path(path: str, repo: RepoInfo | None) -> str:
    """Drop a wrapping ``owner-name-sha/`` folder when it names the repo."""
    parts = path.split("/")
    if len(parts) > 1 and repo is not None and repo.name in parts[0]:
        return "/".join(parts[1:])
    return path


def bundle_zip(
    data: bytes,
    repo: RepoInfo | None = None,
    archive_name: str | None = None,
    rules: BundlerRules = DEFAULT_RULES,
    now: datetime | None = None,
) -> RepoBundle:
    """Filter and re-package a ZIP archive for knowledge-base import.

    Args:
        data: Raw ZIP bytes (GitHub zipball or an upload).
        repo: Repository identity; enables root-folder stripping.
        archive_name: Base name for the output file (uploads).
        rules: Classification tables.
        now: Override for the manifest timestamp.

    Raises:
        ParseError: *data* is not a readable ZIP archive, or a kept member
            cannot be read.
        NothingFoundError: no member survived classification.
    """
    try:
        source_zip = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as e:
        raise ParseError("That file is not a readable ZIP archive.") from e

    stats = {"totalFiles": 0, "includedFiles": 0, "codeFilesConverted": 0}
    files: list[RepoFile] = []
    output = io.BytesIO()

    with source_zip, zipfile.ZipFile(
        output, "w", compression=zipfile.ZIP_DEFLATED
    ) as out_zip:
        members = source_zip.infolist()
        stats["totalFiles"] = len(members)

        for member in members:
            path = member.filename
            if member.is_dir() or _is_ignored(path, rules):
                continue

            file_name = path.rsplit("/", 1)[-1]
            if not file_name or file_name.startswith("."):
                continue

            extension = _extension(file_name)
            target = _target_path(path, repo)
            is_code = False
            if rules.passes_through(extension):
                pass
            elif rules.is_code(extension):
                is_code = True
                target = f"{target}.txt"
                stats["codeFilesConverted"] += 1
            else:
                continue

            try:
                content = source_zip.read(member)
            except (zipfile.BadZipFile, RuntimeError, NotImplementedError, zlib.error) as e:
                logger.error(f"Failed to read archive member {path}: {e}")
                raise ParseError(
                    f"Could not read '{path}' from the archive (corrupt, encrypted "
                    "or unsupported compression)."
                ) from e
            out_zip.writestr(target, content)
            stats["includedFiles"] += 1
            files.append(
                RepoFile(
                    path=target,
                    name=file_name,
                    original_extension=extension,
                    converted_name=target.rsplit("/", 1)[-1],
                    size=len(content),
                    is_code=is_code,
                )
            )

        if stats["includedFiles"] == 0:
            raise NothingFoundError("No supported files found in the archive.")

        source = "github" if repo else "upload"
        manifest = {
            "source": source,
            "generatedAt": iso_timestamp(now or datetime.now(UTC)),
            "repo": repo.to_dict() if repo else None,
            "stats": stats,
            "files": [f.path for f in files],
        }
        out_zip.writestr(MANIFEST_NAME, json.dumps(manifest, indent=2))

    if repo is not None:
        base_name = f"{repo.owner}-{repo.name}"
    else:
        base_name = (archive_name or "archive").rsplit("/", 1)[-1]
        if base_name.lower().endswith(".zip"):
            base_name = base_name[: -len(".zip")]
    logger.info(
        f"Bundled {stats['includedFiles']}/{stats['totalFiles']} files "
        f"({stats['codeFilesConverted']} converted)"
    )
    return RepoBundle(
        source=source,
        repo=repo,
        stats=stats,
        files=files,
        archive=encode_archive(output.getvalue(), f"{base_name}-notebooklm.zip"),
    )
