"""
SEO slug generation for article titles.

A single non-streaming chat-completion request asks the model to turn a
title (in any language) into an English URL alias. Providers put the answer
in different places, so extraction walks an ordered list of strategies and
takes the first usable one.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from ..logging_utils import log_operation
from .exceptions import HTTPStatusError, LLMError, SlugGenerationError, TransportError

logger = structlog.get_logger(__name__)

DEFAULT_SLUG_MODEL = "gpt-3.5-turbo"
DEFAULT_SLUG_TIMEOUT = 30.0
SLUG_TEMPERATURE = 0.3
MAX_TOKENS = 100
REASONER_MAX_TOKENS = 1000
MAX_SLUG_LENGTH = 60
COMPLETIONS_PATH = "/chat/completions"

SLUG_PROMPT = """Convert the following article title into an SEO-friendly English URL slug.

Requirements:
1. All lowercase
2. Words joined with hyphens (-)
3. Only English letters, digits and hyphens
4. Concise, between 3 and 8 words
5. Drop filler words such as the, a, an
6. Output only the slug, with no explanation or other text

Title: {title}"""

_SLUG_TOKEN = re.compile(r"[a-z][a-z0-9-]*[a-z0-9]", re.IGNORECASE)

SlugExtractor = Callable[[Any], str | None]


def normalize_endpoint(endpoint: str) -> str:
    """Append the completions path to an endpoint that looks bare."""
    if COMPLETIONS_PATH in endpoint or "/v1/" in endpoint:
        return endpoint
    return endpoint.removesuffix("/") + COMPLETIONS_PATH


def is_reasoner_model(model: str | None) -> bool:
    """Reasoning models spend tokens thinking before they answer."""
    return bool(model) and ("reasoner" in model or "r1" in model)


def _first_choice(data: Any) -> dict[str, Any]:
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            return choices[0]
    return {}


def _message(data: Any) -> dict[str, Any]:
    message = _first_choice(data).get("message")
    return message if isinstance(message, dict) else {}


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_message_content(data: Any) -> str | None:
    """OpenAI format."""
    return _text(_message(data).get("content"))


def extract_reasoning_content(data: Any) -> str | None:
    """Reasoner format: the slug usually comes last in the reasoning."""
    reasoning = _text(_message(data).get("reasoning_content"))
    if not reasoning:
        return None
    matches = _SLUG_TOKEN.findall(reasoning)
    return matches[-1] if matches else None


def extract_choice_text(data: Any) -> str | None:
    """Legacy completions format."""
    return _text(_first_choice(data).get("text"))


def _top_level(key: str) -> SlugExtractor:
    def extract(data: Any) -> str | None:
        return _text(data.get(key)) if isinstance(data, dict) else None

    extract.__name__ = f"extract_{key}"
    return extract


def extract_bare_string(data: Any) -> str | None:
    return _text(data)


SLUG_EXTRACTORS: list[SlugExtractor] = [
    extract_message_content,
    extract_reasoning_content,
    extract_choice_text,
    _top_level("result"),
    _top_level("response"),
    _top_level("output"),
    extract_bare_string,
]


def extract_slug_text(
    data: Any, extractors: list[SlugExtractor] | None = None
) -> str | None:
    """Run extractors in order; the first non-empty answer wins."""
    for extractor in extractors or SLUG_EXTRACTORS:
        text = extractor(data)
        if text:
            logger.debug("Slug text extracted", extractor=extractor.__name__)
            return text
    return None


def sanitize_slug(raw: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Reduce a model answer to ``[a-z0-9-]``, hyphen separated."""
    slug = re.sub(r"^[\"'`]|[\"'`]$", "", raw.strip())
    slug = re.sub(r"^slug[：:]\s*", "", slug, flags=re.IGNORECASE)
    slug = slug.split("\n", 1)[0]
    slug = slug.lower()
    slug = re.sub(r"[^a-z0-9\-\s]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")
    return slug[:max_length]


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    encoded = ""
    while number:
        number, remainder = divmod(number, 36)
        encoded = digits[remainder] + encoded
    return encoded


def fallback_slug(now: float | None = None) -> str:
    """Timestamp-derived slug for when the model gives nothing usable."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"article-{_base36(millis)}"


def build_slug_payload(title: str, model: str | None) -> dict[str, Any]:
    return {
        "messages": [{"role": "user", "content": SLUG_PROMPT.format(title=title)}],
        "model": model or DEFAULT_SLUG_MODEL,
        "max_tokens": REASONER_MAX_TOKENS if is_reasoner_model(model) else MAX_TOKENS,
        "temperature": SLUG_TEMPERATURE,
        "stream": False,
    }


@log_operation("generate_seo_slug")
async def generate_seo_slug(
    title: str,
    *,
    endpoint: str,
    api_key: str | None = None,
    model: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_SLUG_TIMEOUT,
) -> str:
    """
    Ask the endpoint for a URL slug for ``title``.

    Raises:
        HTTPStatusError: The endpoint answered with an error status.
        TransportError: The request could not be completed.
        SlugGenerationError: No usable slug could be extracted.
    """
    url = normalize_endpoint(endpoint)
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    payload = build_slug_payload(title, model)
    model_name = payload["model"]
    log = logger.bind(endpoint=url, model=model_name)

    client = http_client or httpx.AsyncClient(timeout=timeout)
    try:
        log.debug("Slug request", max_tokens=payload["max_tokens"])
        response = await client.post(url, json=payload, headers=headers, timeout=timeout)
        if not response.is_success:
            log.error(
                "Slug request failed",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise HTTPStatusError(
                f"Slug API request failed: {response.status_code}",
                status_code=response.status_code,
                response_text=response.text,
                model=model_name,
            )
        data = response.json()
    except httpx.HTTPError as e:
        log.error("Slug request transport failure", error_message=str(e))
        raise TransportError(f"Slug request failed: {e!s}", model=model_name) from e
    except ValueError as e:
        raise SlugGenerationError(
            f"Slug response was not JSON: {e!s}", model=model_name
        ) from e
    finally:
        if http_client is None:
            await client.aclose()

    raw = extract_slug_text(data)
    if raw is None:
        raise SlugGenerationError(
            "Endpoint returned no usable slug text",
            model=model_name,
            response_data=data if isinstance(data, dict) else {},
        )

    slug = sanitize_slug(raw)
    if not slug:
        raise SlugGenerationError(
            f"Slug text {raw[:40]!r} is empty after sanitizing", model=model_name
        )

    log.info("Slug generated", slug=slug)
    return slug


async def generate_seo_slug_or_fallback(title: str, **kwargs: Any) -> str:
    """Caller-level policy: any LLM failure degrades to ``fallback_slug()``."""
    try:
        return await generate_seo_slug(title, **kwargs)
    except LLMError as e:
        logger.warning(
            "Slug generation failed, using local fallback",
            error_type=type(e).__name__,
            error_message=str(e),
        )
        return fallback_slug()
