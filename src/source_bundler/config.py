"""Configuration settings for Source Bundler."""

import os
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Source Bundler configuration.

    Environment variables:
    - LOG_LEVEL: loguru level for the server (default: INFO)
    - TOOL_TIMEOUT: Hard timeout for one tool call in seconds (0 = no timeout)
    - HTTP_TIMEOUT: Timeout for ordinary outbound fetches in seconds
    - SCRAPE_TIMEOUT: Timeout for the generation scrape call (default: 30)
    - HACKERNEWS_FEED_URL: Feed used by the hackernews action
    - GENERATION_DELAY: Pause between generated pages in seconds (default: 0.5)
    - FIRECRAWL_API_URL: Base URL of the mapping/scrape service
    - MAPPING_API_KEY / ANNOTATION_API_KEY: Default credentials for generation
        when the caller does not pass any
    - LLM_MODELS: LiteLLM model chain for annotation, "primary,fallback,..."
    - OUTPUT_DIR: Write archives here instead of returning base64 (default: "")
    - GITHUB_TOKEN: Token for repository zipball downloads (also GH_TOKEN)
    """

    # Timeouts
    tool_timeout: int = 300
    http_timeout: float = 20
    scrape_timeout: float = 30

    # User agents
    feed_user_agent: str = (
        "NotebookLM-Source-Converter/1.0 (+https://notebooklm.google.com)"
    )
    article_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    docs_user_agent: str = (
        "LLMsTxt-Fetcher/1.0 (https://github.com/answerdotai/llms-txt)"
    )

    # Feeds
    hackernews_feed_url: str = "https://hnrss.org/frontpage"
    default_item_limit: int = 15
    max_item_limit: int = 40

    # Docs generation
    default_max_pages: int = 20
    max_pages_cap: int = 50
    generation_delay: float = 0.5
    annotation_excerpt_chars: int = 4000
    firecrawl_api_url: str = "https://api.firecrawl.dev"
    mapping_api_key: SecretStr | None = None
    annotation_api_key: SecretStr | None = None

    # Annotation (LiteLLM)
    llm_models: str = "gemini/gemini-2.5-flash"  # provider/model (fallback chain)
    llm_temperature: float | None = None

    # Output
    output_dir: str = ""  # empty: archives are returned inline as base64

    # Repository downloads
    github_token: SecretStr | None = None

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    # --- Credential resolution ---

    def resolve_mapping_key(self, explicit: str | None = None) -> str | None:
        """Return the explicit mapping key, else MAPPING_API_KEY, else None."""
        if explicit and explicit.strip():
            return explicit.strip()
        if self.mapping_api_key:
            return self.mapping_api_key.get_secret_value() or None
        return None

    def resolve_annotation_key(self, explicit: str | None = None) -> str | None:
        """Return the explicit annotation key, else ANNOTATION_API_KEY, else None."""
        if explicit and explicit.strip():
            return explicit.strip()
        if self.annotation_api_key:
            return self.annotation_api_key.get_secret_value() or None
        return None

    def github_headers(self) -> dict[str, str]:
        """Return GitHub API headers, including auth token if available."""
        headers = {"Accept": "application/vnd.github+json"}
        token = (
            self.github_token.get_secret_value() if self.github_token else None
        ) or (os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN"))
        if token:
            headers["Authorization"] = f"token {token}"
        return headers

    # --- Path helpers ---

    def get_output_dir(self) -> Path | None:
        """Get the archive output directory, or None for inline archives."""
        if self.output_dir:
            return Path(self.output_dir).expanduser()
        return None


settings = Settings()
