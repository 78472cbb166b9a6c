# ============================================================================
# GEMINI IMAGE CLIENT
# ============================================================================
# STATUS: Infrastructure - Google Gemini image generation adapter
# PURPOSE: One model call per invocation; reference and logo image loading
# EXPORTS: ReferenceImageLoader, GeminiImageClient
# DEPENDENCIES: google-genai, httpx, config
# ============================================================================
"""
Gemini Image Client.

Thin adapter around google-genai. One call to generate() is one request to
one model: no retries, no fallback. Retry and tier policy live in
services.generation_gateway.

Request shape:
    contents = [prompt text, reference image, (logo image)]
    config   = GenerateContentConfig(response_modalities=["IMAGE", "TEXT"])

Response handling:
    - First inline_data part is the image (base64 str payloads decoded)
    - Blocked prompt or SAFETY finish -> GenerationRejected
    - Text only -> ExternalServiceError(NO_IMAGE_RETURNED)
    - SDK / transport exceptions propagate unchanged for classification

Reference images are accepted as data: URLs or fetched over http(s).
"""

import base64
import binascii
from typing import Optional

import httpx
from google import genai
from google.genai import types

from util_logger import LoggerFactory, ComponentType
from config import GenerationConfig, get_config
from core.errors import ErrorCode
from core.models.generation import ImagePayload
from exceptions import (
    ConfigurationError,
    ContextResolutionError,
    ExternalServiceError,
    GenerationRejected,
)

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "GeminiImageClient")

_BLOCKING_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"}


class ReferenceImageLoader:
    """
    Load an image URL into bytes.

    Supports data:<mime>;base64,<payload> and http(s) URLs.
    """

    def __init__(self, timeout_seconds: float = 30.0, http_client: Optional[httpx.Client] = None):
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    def load(self, url: str) -> ImagePayload:
        """
        Raises:
            ContextResolutionError: Malformed data URL, unsupported scheme,
                or HTTP fetch failure (REFERENCE_FETCH_FAILED)
        """
        if url.startswith("data:"):
            return self._decode_data_url(url)
        if url.startswith(("http://", "https://")):
            return self._fetch(url)
        raise ContextResolutionError(
            f"Unsupported image URL scheme: {url[:32]}",
            error_code=ErrorCode.REFERENCE_FETCH_FAILED
        )

    def _decode_data_url(self, url: str) -> ImagePayload:
        header, _, payload = url.partition(",")
        mime_type = header[5:].split(";")[0] or "image/png"
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ContextResolutionError(
                "Reference image data URL is not valid base64",
                error_code=ErrorCode.REFERENCE_FETCH_FAILED
            ) from e
        return ImagePayload(data=data, mime_type=mime_type)

    def _fetch(self, url: str) -> ImagePayload:
        try:
            if self._http_client is not None:
                response = self._http_client.get(url, timeout=self.timeout_seconds)
            else:
                with httpx.Client(timeout=self.timeout_seconds, follow_redirects=True) as client:
                    response = client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ContextResolutionError(
                f"Timed out fetching reference image after {self.timeout_seconds}s",
                error_code=ErrorCode.REFERENCE_FETCH_FAILED
            ) from e
        except httpx.HTTPError as e:
            raise ContextResolutionError(
                f"Failed to fetch reference image: {e}",
                error_code=ErrorCode.REFERENCE_FETCH_FAILED
            ) from e

        mime_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
        return ImagePayload(data=response.content, mime_type=mime_type or "image/png")


class GeminiImageClient:
    """
    Single-call image generation against one Gemini model.

    Usage:
        client = GeminiImageClient()
        image = client.generate("gemini-2.5-flash-image-preview", prompt, reference)
    """

    def __init__(self, config: Optional[GenerationConfig] = None, client: Optional[genai.Client] = None):
        self.config = config or get_config().generation
        if client is None:
            if not self.config.api_key:
                raise ConfigurationError("GEMINI_API_KEY is required for image generation")
            client = genai.Client(
                api_key=self.config.api_key,
                http_options=types.HttpOptions(timeout=self.config.timeout_seconds * 1000),
            )
        self._client = client

    def generate(
        self,
        model: str,
        prompt: str,
        reference: ImagePayload,
        logo: Optional[ImagePayload] = None
    ) -> ImagePayload:
        """
        Generate one image.

        Raises:
            GenerationRejected: Prompt blocked or candidate stopped for safety
            ExternalServiceError: Model answered without an image
            Exception: SDK/transport errors, unchanged
        """
        contents = [
            types.Part.from_text(text=prompt),
            types.Part.from_bytes(data=reference.data, mime_type=reference.mime_type),
        ]
        if logo is not None:
            contents.append(types.Part.from_bytes(data=logo.data, mime_type=logo.mime_type))

        logger.debug(f"🎨 Calling {model} (logo={'yes' if logo else 'no'})")
        response = self._client.models.generate_content(
            model=model,
            contents=contents,
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE", "TEXT"],
                temperature=self.config.temperature,
            ),
        )
        return self._extract_image(model, response)

    def _extract_image(self, model: str, response) -> ImagePayload:
        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            raise GenerationRejected(
                f"Prompt blocked by {model}: {feedback.block_reason}",
                model=model
            )

        text_parts = []
        for candidate in response.candidates or []:
            content = getattr(candidate, "content", None)
            for part in (content.parts if content else None) or []:
                if getattr(part, "inline_data", None) and part.inline_data.data:
                    data = part.inline_data.data
                    if isinstance(data, str):
                        data = base64.b64decode(data)
                    return ImagePayload(data=data, mime_type=part.inline_data.mime_type or "image/png")
                if getattr(part, "text", None):
                    text_parts.append(part.text)

            finish = getattr(candidate, "finish_reason", None)
            finish_name = getattr(finish, "name", None) or str(finish or "")
            if finish_name in _BLOCKING_FINISH_REASONS:
                raise GenerationRejected(
                    f"{model} stopped generation: {finish_name}",
                    model=model
                )

        snippet = " ".join(text_parts)[:200]
        raise ExternalServiceError(
            f"{model} returned text instead of an image: {snippet}" if snippet
            else f"{model} returned no image",
            error_code=ErrorCode.NO_IMAGE_RETURNED,
            model=model
        )


__all__ = ['ReferenceImageLoader', 'GeminiImageClient']
