"""Failure taxonomy shared by the resolvers.

Stages raise these; the top-level ``bundle_*`` functions turn them into
structured ``{"ok": False, ...}`` results so nothing escapes to the caller.
"""


class BundleError(Exception):
    """Base class for failures that abort a whole resolution.

    Keyword arguments become retry hints in the structured failure
    (e.g. ``canGenerate=True``).
    """

    status = 500

    def __init__(self, message: str, status: int | None = None, **hints):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.hints = hints

    def to_result(self) -> dict:
        return {"ok": False, "error": self.message, "status": self.status, **self.hints}


class InvalidInputError(BundleError):
    """Malformed or missing request input. No network call was made."""

    status = 422


class UpstreamError(BundleError):
    """A required fetch returned non-2xx or could not connect."""

    status = 502

    def __init__(
        self,
        message: str,
        status: int | None = None,
        upstream_status: int | None = None,
        **hints,
    ):
        if upstream_status is not None:
            hints["upstreamStatus"] = upstream_status
        super().__init__(message, status, **hints)
        self.upstream_status = upstream_status


class ParseError(BundleError):
    """The fetched document could not be understood."""

    status = 422


class NothingFoundError(BundleError):
    """Parsing succeeded but there was nothing to bundle."""

    status = 404


class GenerationError(BundleError):
    """Hard failure inside the docs generation pipeline."""

    status = 502
