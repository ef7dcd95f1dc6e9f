"""LLM provider client for visualization generation.

Talks to the OpenAI, Anthropic and Gemini REST APIs with plain HTTP calls.
Handles prompt construction, request configuration and mapping of transport
failures to ProviderError. Parsing of the replies lives in
markviz.services.generation_service.
"""
import base64
import logging
import os
from typing import Any, Dict, Optional, Sequence

import requests

from markviz.errors import ProviderError, UnsupportedResponseFormatError

logger = logging.getLogger(__name__)

# Public API
__all__ = [
    "get_llm_config",
    "build_config_prompt",
    "build_image_prompt",
    "build_svg_prompt",
    "request_openai_config",
    "request_anthropic_config",
    "request_gemini_image",
    "request_gemini_svg",
]

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

CONFIG_SYSTEM_PROMPT = (
    "You are a data visualization expert. Analyze markdown content and return "
    "only valid JSON for chart configuration."
)

# Substrings in a Gemini error message meaning the image modality was refused
UNSUPPORTED_FORMAT_MARKERS = ("response modalit", "not supported", "unsupported")


def get_llm_config() -> Dict[str, Any]:
    """Retrieve provider configuration from environment variables.

    Returns:
        Dictionary with keys: timeout, temperature, max_tokens, the three
        model names and the three API keys (None when unset)

    Raises:
        ValueError: If configuration values are invalid
    """
    timeout = int(os.getenv("LLM_TIMEOUT", "300"))
    if timeout <= 0:
        raise ValueError("LLM_TIMEOUT must be positive")

    temperature = float(os.getenv("LLM_TEMPERATURE", "0.3"))
    if not 0.0 <= temperature <= 2.0:
        logger.warning(f"LLM_TEMPERATURE {temperature} is outside typical range [0.0, 2.0]")

    max_tokens = int(os.getenv("LLM_MAX_TOKENS", "2048"))
    if max_tokens <= 0:
        raise ValueError("LLM_MAX_TOKENS must be positive")

    return {
        "timeout": timeout,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "openai_model": os.getenv("OPENAI_MODEL", "gpt-4-turbo-preview"),
        "anthropic_model": os.getenv("ANTHROPIC_MODEL", "claude-3-opus-20240229"),
        "gemini_image_model": os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image"),
        "gemini_text_model": os.getenv("GEMINI_TEXT_MODEL", "gemini-2.5-flash"),
        "openai_api_key": os.getenv("OPENAI_API_KEY") or None,
        "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY") or None,
        "gemini_api_key": os.getenv("GEMINI_API_KEY") or None,
    }


def build_config_prompt(markdown_content: str) -> str:
    """Construct the chart-configuration prompt for a markdown document."""
    return f"""Analyze the following markdown content and generate a data visualization configuration in JSON format.

The markdown content:
{markdown_content}

Based on the content, determine:
1. What type of data visualization would best represent this information (line, bar, pie, area, scatter, or composed chart)
2. Extract any numeric data, trends, comparisons, or metrics
3. Structure the data appropriately for the chosen chart type

Return ONLY a valid JSON object with this exact structure:
{{
  "chartType": "line" | "bar" | "pie" | "area" | "scatter" | "composed",
  "data": [array of data objects],
  "xAxisKey": "key name for x-axis (if applicable)",
  "yAxisKey": "key name for y-axis (if applicable)",
  "dataKey": "key name for data values (for pie charts)",
  "title": "Chart title",
  "description": "Brief description of what the chart shows",
  "colors": ["#8884d8", "#82ca9d", "#ffc658", ...] (optional array of hex colors)
}}

For line/bar/area charts, data should be an array of objects like: [{{"name": "Jan", "value": 100}}, ...]
For pie charts, data should be an array of objects like: [{{"name": "Category", "value": 30}}, ...]
For composed charts, include multiple dataKeys.

If no clear data can be extracted, create a simple visualization based on the main topics or concepts mentioned."""


def build_image_prompt(markdown_content: str) -> str:
    """Construct the infographic prompt for direct image generation."""
    return f"""Generate an infographic based on the following markdown content.

Markdown content:
{markdown_content}

Requirements:
1. Create a professional, clean, and colorful infographic style visualization.
2. Use a white background.
3. Ensure all text is legible.
4. The image should be 800x600 pixels.

Create an infographic that combines visual elements, icons, charts, and minimal text to effectively communicate the information."""


def build_svg_prompt(markdown_content: str) -> str:
    """Construct the prompt asking a text model for an SVG infographic."""
    return f"""Create an infographic as a standalone SVG document based on the following markdown content.

Markdown content:
{markdown_content}

Requirements:
1. Output a single <svg> element with width="800" height="600" and a viewBox of "0 0 800 600".
2. Use a white background rectangle covering the whole canvas.
3. Use only inline shapes, paths and text; no external images, fonts or scripts.
4. Keep all text legible and inside the canvas.

Return ONLY the SVG markup, with no explanation."""


def _error_detail(response: Optional[requests.Response]) -> str:
    """Pull a readable message out of a failed provider response."""
    if response is None:
        return "no response"
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"HTTP {response.status_code}: {error['message']}"
    return f"HTTP {response.status_code}: {str(body)[:200]}"


def _post_json(
    provider: str,
    url: str,
    *,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: int,
    unsupported_markers: Sequence[str] = ()
) -> Dict[str, Any]:
    """POST a JSON payload to a provider and return the decoded reply.

    Raises:
        UnsupportedResponseFormatError: If the provider rejected the request
            with a message containing one of unsupported_markers
        ProviderError: For timeouts, connection failures, HTTP errors and
            non-JSON replies
    """
    try:
        response = requests.post(url, headers=headers, json=payload, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.Timeout as e:
        logger.error(f"{provider} request timed out after {timeout} seconds")
        raise ProviderError(f"{provider} request timed out after {timeout} seconds") from e
    except requests.exceptions.ConnectionError as e:
        logger.error(f"Could not connect to {provider} at {url}")
        raise ProviderError(f"{provider} service not available at {url}") from e
    except requests.exceptions.HTTPError as e:
        detail = _error_detail(e.response)
        logger.error(f"{provider} API error: {detail}")
        if any(marker in detail.lower() for marker in unsupported_markers):
            raise UnsupportedResponseFormatError(f"{provider} API error: {detail}") from e
        raise ProviderError(f"{provider} API error: {detail}") from e
    except ValueError as e:
        logger.error(f"{provider} returned a non-JSON response: {e}")
        raise ProviderError(f"{provider} returned a non-JSON response") from e


def request_openai_config(markdown_content: str, config: Optional[Dict[str, Any]] = None) -> str:
    """Ask OpenAI for a chart configuration and return the raw JSON text.

    Raises:
        ProviderError: If the call fails or the reply is empty
    """
    config = config or get_llm_config()
    logger.info(f"Sending visualization request to OpenAI ({config['openai_model']})")

    result = _post_json(
        "OpenAI",
        OPENAI_URL,
        headers={"Authorization": f"Bearer {config['openai_api_key']}"},
        payload={
            "model": config["openai_model"],
            "messages": [
                {"role": "system", "content": CONFIG_SYSTEM_PROMPT},
                {"role": "user", "content": build_config_prompt(markdown_content)},
            ],
            "temperature": config["temperature"],
            "response_format": {"type": "json_object"},
        },
        timeout=config["timeout"],
    )

    try:
        content = result["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    if not content:
        raise ProviderError("OpenAI API returned empty response")
    return content


def request_anthropic_config(markdown_content: str, config: Optional[Dict[str, Any]] = None) -> str:
    """Ask Anthropic for a chart configuration and return the raw reply text.

    The reply may still be wrapped in a markdown code fence.

    Raises:
        ProviderError: If the call fails or the reply is not text
    """
    config = config or get_llm_config()
    logger.info(f"Sending visualization request to Anthropic ({config['anthropic_model']})")

    prompt = build_config_prompt(markdown_content)
    prompt += "\n\nReturn ONLY valid JSON, no markdown formatting or code blocks."

    result = _post_json(
        "Anthropic",
        ANTHROPIC_URL,
        headers={
            "x-api-key": config["anthropic_api_key"],
            "anthropic-version": ANTHROPIC_VERSION,
        },
        payload={
            "model": config["anthropic_model"],
            "max_tokens": config["max_tokens"],
            "messages": [{"role": "user", "content": prompt}],
        },
        timeout=config["timeout"],
    )

    blocks = result.get("content") if isinstance(result, dict) else None
    first = blocks[0] if isinstance(blocks, list) and blocks else None
    if not isinstance(first, dict) or first.get("type") != "text":
        raise ProviderError("Anthropic API returned non-text response")
    return first.get("text", "")


def _gemini_parts(result: Dict[str, Any]):
    candidates = result.get("candidates") or []
    if not candidates:
        return []
    return (candidates[0].get("content") or {}).get("parts") or []


def request_gemini_image(markdown_content: str, config: Optional[Dict[str, Any]] = None) -> bytes:
    """Ask an image-capable Gemini model for an infographic.

    Returns:
        Decoded image bytes from the first inline-data part

    Raises:
        UnsupportedResponseFormatError: If the model refuses the image
            modality or answers without image data
        ProviderError: For any other failure
    """
    config = config or get_llm_config()
    model = config["gemini_image_model"]
    logger.info(f"Sending image request to Gemini ({model})")

    result = _post_json(
        "Gemini",
        GEMINI_URL.format(model=model),
        headers={"x-goog-api-key": config["gemini_api_key"]},
        payload={
            "contents": [{"parts": [{"text": build_image_prompt(markdown_content)}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        },
        timeout=config["timeout"],
        unsupported_markers=UNSUPPORTED_FORMAT_MARKERS,
    )

    for part in _gemini_parts(result):
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            try:
                return base64.b64decode(inline["data"])
            except ValueError as e:
                raise ProviderError(f"Gemini returned undecodable image data: {e}") from e

    raise UnsupportedResponseFormatError("No image data found in response")


def request_gemini_svg(markdown_content: str, config: Optional[Dict[str, Any]] = None) -> str:
    """Ask a Gemini text model for an SVG infographic and return the raw text.

    Raises:
        ProviderError: If the call fails or the reply holds no text
    """
    config = config or get_llm_config()
    model = config["gemini_text_model"]
    logger.info(f"Sending SVG request to Gemini ({model})")

    result = _post_json(
        "Gemini",
        GEMINI_URL.format(model=model),
        headers={"x-goog-api-key": config["gemini_api_key"]},
        payload={
            "contents": [{"parts": [{"text": build_svg_prompt(markdown_content)}]}],
            "generationConfig": {
                "temperature": config["temperature"],
                # SVG markup runs far longer than a chart config
                "maxOutputTokens": config["max_tokens"] * 4,
            },
        },
        timeout=config["timeout"],
    )

    text = "".join(part.get("text", "") for part in _gemini_parts(result))
    if not text.strip():
        raise ProviderError("Gemini returned an empty SVG response")
    return text
