"""
Visualization generation service module.

Each way of producing an artifact is a strategy object with a uniform
``try_generate(text)`` method. A FallbackGenerator walks an ordered list
of strategies and returns the first success:

- config chain: OpenAI, then Anthropic; any ProviderError falls through.
- image chain: Gemini direct image, then Gemini SVG + rasterization; only
  UnsupportedResponseFormatError falls through.

There are no retries beyond these hops.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Type

from markviz import llm_client
from markviz.errors import (
    ConfigurationError,
    GenerationError,
    ProviderError,
    UnsupportedResponseFormatError,
)
from markviz.services import render_service
from markviz.validators import validate_visualization_config

logger = logging.getLogger(__name__)

_OPENING_FENCE = re.compile(r'^```[A-Za-z]*\s*')
_CLOSING_FENCE = re.compile(r'\s*```$')


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around a model reply."""
    text = text.strip()
    text = _OPENING_FENCE.sub('', text)
    return _CLOSING_FENCE.sub('', text)


def extract_svg(text: str) -> str:
    """
    Cut the SVG document out of a model reply.

    Returns the substring from the first '<svg' up to and including the
    last '</svg>'.

    Raises:
        GenerationError: If either tag is missing
    """
    start = text.find('<svg')
    end = text.rfind('</svg>')
    if start == -1 or end == -1 or end < start:
        raise GenerationError('No SVG markup found in model response')
    return text[start:end + len('</svg>')]


def parse_config_reply(raw: str, provider: str) -> Dict[str, Any]:
    """
    Decode a provider reply into a visualization config.

    Raises:
        ProviderError: If the reply is not JSON or fails the shape checks
    """
    try:
        config = json.loads(raw)
    except ValueError as e:
        raise ProviderError(f"{provider} returned invalid JSON: {e}") from e

    try:
        return validate_visualization_config(config)
    except ValueError as e:
        raise ProviderError(f"{provider} returned an unusable config: {e}") from e


class GenerationStrategy:
    """One provider/format attempt in a fallback chain."""

    name = 'strategy'

    def is_configured(self) -> bool:
        raise NotImplementedError

    def try_generate(self, text: str):
        raise NotImplementedError


class OpenAIConfigStrategy(GenerationStrategy):
    name = 'OpenAI'

    def is_configured(self) -> bool:
        return bool(llm_client.get_llm_config()['openai_api_key'])

    def try_generate(self, text: str) -> Dict[str, Any]:
        raw = llm_client.request_openai_config(text)
        return parse_config_reply(raw, self.name)


class AnthropicConfigStrategy(GenerationStrategy):
    name = 'Anthropic'

    def is_configured(self) -> bool:
        return bool(llm_client.get_llm_config()['anthropic_api_key'])

    def try_generate(self, text: str) -> Dict[str, Any]:
        raw = llm_client.request_anthropic_config(text)
        return parse_config_reply(strip_code_fences(raw), self.name)


class GeminiImageStrategy(GenerationStrategy):
    name = 'Gemini image'

    def is_configured(self) -> bool:
        return bool(llm_client.get_llm_config()['gemini_api_key'])

    def try_generate(self, text: str) -> bytes:
        return llm_client.request_gemini_image(text)


class SvgRasterStrategy(GenerationStrategy):
    """Asks a text model for SVG and rasterizes it to PNG."""

    name = 'Gemini SVG'

    def __init__(self, width: int = 800, height: int = 600, max_png_size: int = 10 * 1024 * 1024):
        self.width = width
        self.height = height
        self.max_png_size = max_png_size

    def is_configured(self) -> bool:
        return bool(llm_client.get_llm_config()['gemini_api_key'])

    def try_generate(self, text: str) -> bytes:
        raw = llm_client.request_gemini_svg(text)
        svg_markup = extract_svg(strip_code_fences(raw))
        logger.info(f"Extracted SVG markup ({len(svg_markup)} chars), rasterizing")
        return render_service.rasterize_svg(
            svg_markup,
            width=self.width,
            height=self.height,
            max_png_size=self.max_png_size
        )


class FallbackGenerator:
    """
    Runs an ordered list of strategies until one succeeds.

    Strategies that are not configured are skipped. When a configured
    strategy raises ``fallback_on`` the next configured one is tried; any
    other exception ends the chain. If every configured strategy failed,
    the last error is re-raised.
    """

    def __init__(
        self,
        strategies: List[GenerationStrategy],
        *,
        fallback_on: Type[Exception] = ProviderError,
        missing_credentials_message: str = 'No provider configured'
    ):
        self.strategies = strategies
        self.fallback_on = fallback_on
        self.missing_credentials_message = missing_credentials_message

    def generate(self, text: str):
        """
        Produce an artifact from document text.

        Raises:
            ConfigurationError: If no strategy is configured
            ProviderError: If the last configured strategy failed
            GenerationError: If provider output lacks the expected shape
        """
        configured = [s for s in self.strategies if s.is_configured()]
        if not configured:
            raise ConfigurationError(self.missing_credentials_message)

        last_error: Optional[Exception] = None
        for index, strategy in enumerate(configured):
            try:
                result = strategy.try_generate(text)
                logger.info(f"{strategy.name}: generation succeeded")
                return result
            except self.fallback_on as e:
                last_error = e
                if index + 1 < len(configured):
                    logger.warning(
                        f"{strategy.name} failed ({e}); falling back to {configured[index + 1].name}"
                    )
                else:
                    logger.error(f"{strategy.name} failed: {e}")

        raise last_error


def build_config_generator() -> FallbackGenerator:
    """OpenAI first, Anthropic second."""
    return FallbackGenerator(
        [OpenAIConfigStrategy(), AnthropicConfigStrategy()],
        fallback_on=ProviderError,
        missing_credentials_message=(
            'No LLM API key configured. Please set OPENAI_API_KEY or '
            'ANTHROPIC_API_KEY environment variable.'
        )
    )


def build_image_generator(
    width: int = 800,
    height: int = 600,
    max_png_size: int = 10 * 1024 * 1024
) -> FallbackGenerator:
    """Direct Gemini image first, SVG rasterization when the format is refused."""
    return FallbackGenerator(
        [GeminiImageStrategy(), SvgRasterStrategy(width, height, max_png_size)],
        fallback_on=UnsupportedResponseFormatError,
        missing_credentials_message=(
            'No image API key configured. Please set GEMINI_API_KEY environment variable.'
        )
    )
