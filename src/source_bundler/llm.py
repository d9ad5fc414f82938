"""LLM utilities for Source Bundler using LiteLLM"""

import json
import logging
import os
import re

# Silence LiteLLM completely - must be done BEFORE import
os.environ["LITELLM_LOG"] = "ERROR"

import litellm

litellm.suppress_debug_info = True  # type: ignore[assignment]
litellm.set_verbose = False

# Force redirect LiteLLM's logger to null
logging.getLogger("LiteLLM").setLevel(logging.ERROR)
logging.getLogger("LiteLLM").handlers = [logging.NullHandler()]

from litellm import acompletion  # noqa: E402
from loguru import logger  # noqa: E402
from pydantic import BaseModel, ValidationError, field_validator  # noqa: E402

from source_bundler.config import settings  # noqa: E402

DEFAULT_TITLE = "Untitled page"
DEFAULT_DESCRIPTION = "No description available."

ANNOTATION_PROMPT = (
    "Generate a concise title and description for the web page below. "
    "The title must be 3-4 words. The description must be exactly 9-10 words "
    "summarizing what the page covers. "
    'Respond ONLY with a JSON object: {"title": "...", "description": "..."}'
)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class PageAnnotation(BaseModel):
    title: str
    description: str

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


def get_llm_config() -> dict:
    """Build LLM configuration with fallback."""
    models = [m.strip() for m in settings.llm_models.split(",") if m.strip()]
    if not models:
        models = ["gemini/gemini-2.5-flash"]

    primary = models[0]
    fallbacks = models[1:] if len(models) > 1 else None

    return {
        "model": primary,
        "fallbacks": fallbacks,
        "temperature": settings.llm_temperature,
    }


def parse_annotation(raw: str | None) -> PageAnnotation | None:
    """Pull the ``{title, description}`` object out of a model reply."""
    if not raw:
        return None
    match = _JSON_OBJECT_RE.search(raw)
    if not match:
        return None
    try:
        return PageAnnotation.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError):
        return None


async def annotate_page(
    url: str,
    markdown: str,
    api_key: str,
    fallback_title: str | None = None,
) -> tuple[str, str]:
    """Ask the annotation model for a short title and description.

    Never raises: any failure or malformed reply yields placeholders
    (``fallback_title`` when the page supplied one).
    """
    placeholder = (fallback_title or "").strip() or DEFAULT_TITLE
    excerpt = markdown[: settings.annotation_excerpt_chars]

    config = get_llm_config()
    messages = [
        {
            "role": "user",
            "content": f"{ANNOTATION_PROMPT}\n\nURL: {url}\n\nContent:\n{excerpt}",
        }
    ]
    try:
        response = await acompletion(
            model=config["model"],
            messages=messages,
            fallbacks=config["fallbacks"],
            temperature=config["temperature"],
            api_key=api_key,
        )
        reply = response.choices[0].message.content
    except Exception as e:
        logger.warning(f"Annotation failed for {url}: {e}")
        return placeholder, DEFAULT_DESCRIPTION

    annotation = parse_annotation(str(reply) if reply is not None else None)
    if annotation is None:
        logger.warning(f"Malformed annotation for {url}, using placeholders")
        return placeholder, DEFAULT_DESCRIPTION
    return annotation.title, annotation.description
