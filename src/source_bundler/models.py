"""Records passed between the resolvers and the archive builder."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Entry:
    """One bundled document. ``text_content`` is never empty."""

    id: str
    title: str
    url: str
    published_at: str | None
    text_content: str


@dataclass(frozen=True)
class DocLink:
    """A ``- [title](url): description`` line from an llms.txt listing."""

    title: str
    url: str
    description: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RepoInfo:
    owner: str
    name: str
    url: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RepoFile:
    """An archive member that survived classification.

    ``path`` is the rewritten destination path, ``size`` the byte length
    of the copied content.
    """

    path: str
    name: str
    original_extension: str
    converted_name: str
    size: int
    is_code: bool

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "name": self.name,
            "originalExtension": self.original_extension,
            "convertedName": self.converted_name,
            "size": self.size,
            "isCode": self.is_code,
        }


@dataclass(frozen=True)
class GenerationResult:
    """One scraped + annotated page inside the generation pipeline."""

    url: str
    title: str
    description: str
    markdown: str
    index: int
