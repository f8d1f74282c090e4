"""Gemini generation service.

Implements :class:`~nodeworks.core.services.GenerationService` on top of
Google's ``google-genai`` client (install with ``pip install nodeworks[gemini]``).

Gemini Specifics
----------------
- Image requests go to ``config.image_model``, descriptions to
  ``config.text_model``
- Every request is a single ``generate_content`` call whose parts are an
  instruction preamble, the inline images, and the user prompt
- The response image arrives as an inline data part; a response without one
  is an error
- The client is created lazily on first use, so constructing the service
  (for example at API startup) never requires credentials

Usage Example
-------------
    >>> from nodeworks.core.adapters.gemini import GeminiService
    >>> from nodeworks.core.config import config
    >>>
    >>> service = GeminiService(config)
    >>> result = await service.generate_image("a red bicycle against a brick wall")
    >>> result.image.mime_type
    'image/png'
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from nodeworks.core.config import NodeworksConfig
from nodeworks.core.errors import GenerationServiceError
from nodeworks.core.payloads import GenerationResult, ImagePayload
from nodeworks.core.services import (
    DescribeMode,
    GenerationService,
    describe_prompt,
    service_registry,
)

if TYPE_CHECKING:
    from google import genai

logger = logging.getLogger(__name__)

NO_TEXT_RESPONSE = "No text response from model."
MISSING_LIBRARY = (
    "The gemini service requires the google-genai package (pip install nodeworks[gemini])."
)

GENERATE_PREAMBLE = "Generate a new image based on the following prompt."
MIX_PREAMBLE = "The first image is the source. The second image is for reference."
STYLE_PREAMBLE = (
    "Use the style from the provided image to generate a new image based on the following prompt."
)
REFERENCE_PREAMBLE = "Use the provided image to generate a new image based on the following prompt."


class GeminiService(GenerationService):
    """Generation service backed by the Gemini API.

    Attributes
    ----------
    name : str
        Registry name ("gemini")
    client : genai.Client | None
        API client (None until first request)
    """

    name = "gemini"
    description = "Google Gemini image generation, editing and description"

    def __init__(self, config: NodeworksConfig) -> None:
        super().__init__(config)
        self.client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if self.client is None:
            try:
                from google import genai
            except ImportError as e:
                raise GenerationServiceError(MISSING_LIBRARY) from e

            # api_key=None lets the client read GEMINI_API_KEY / GOOGLE_API_KEY
            self.client = genai.Client(api_key=self.config.api_key)
            logger.info(f"Created Gemini client (image model: {self.config.image_model})")
        return self.client

    @staticmethod
    def _types() -> Any:
        try:
            from google.genai import types
        except ImportError as e:
            raise GenerationServiceError(MISSING_LIBRARY) from e
        return types

    @staticmethod
    def _image_part(payload: ImagePayload) -> Any:
        return GeminiService._types().Part.from_bytes(
            data=payload.to_bytes(), mime_type=payload.mime_type
        )

    @staticmethod
    def _text_part(text: str) -> Any:
        return GeminiService._types().Part.from_text(text=text)

    async def _generate(self, parts: list[Any], action: str) -> GenerationResult:
        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=self.config.image_model,
                contents=parts,
            )
        except Exception as e:
            logger.error(f"Error {action}: {e}")
            raise GenerationServiceError(str(e) or f"Failed {action}.") from e

        candidates = response.candidates or []
        content = candidates[0].content if candidates else None
        if content is None or not content.parts:
            raise GenerationServiceError("API returned an invalid or empty response.")

        image: ImagePayload | None = None
        text = NO_TEXT_RESPONSE
        for part in content.parts:
            if part.inline_data is not None and part.inline_data.data:
                data = part.inline_data.data
                if isinstance(data, str):
                    image = ImagePayload(data, part.inline_data.mime_type or "image/png")
                else:
                    image = ImagePayload.from_bytes(data, part.inline_data.mime_type or "image/png")
            elif part.text:
                text = part.text

        if image is None:
            raise GenerationServiceError("API did not return an image.")
        return GenerationResult(image=image, text=text)

    async def generate_image(self, prompt: str) -> GenerationResult:
        parts = [self._text_part(GENERATE_PREAMBLE), self._text_part(prompt)]
        return await self._generate(parts, "generating image")

    async def edit_image(self, base64_image: str, mime_type: str, prompt: str) -> GenerationResult:
        parts = [self._image_part(ImagePayload(base64_image, mime_type)), self._text_part(prompt)]
        return await self._generate(parts, "editing image")

    async def mix_images(
        self, source: ImagePayload, reference: ImagePayload, prompt: str
    ) -> GenerationResult:
        parts = [
            self._text_part(MIX_PREAMBLE),
            self._image_part(source),
            self._image_part(reference),
            self._text_part(prompt),
        ]
        return await self._generate(parts, "mixing images")

    async def generate_with_style(self, reference: ImagePayload, prompt: str) -> GenerationResult:
        parts = [
            self._text_part(STYLE_PREAMBLE),
            self._image_part(reference),
            self._text_part(prompt),
        ]
        return await self._generate(parts, "generating with style")

    async def generate_with_reference(
        self, reference: ImagePayload, prompt: str
    ) -> GenerationResult:
        parts = [
            self._text_part(REFERENCE_PREAMBLE),
            self._image_part(reference),
            self._text_part(prompt),
        ]
        return await self._generate(parts, "generating with reference")

    async def describe_image(
        self, base64_image: str, mime_type: str, mode: DescribeMode | str = DescribeMode.NORMAL
    ) -> str:
        client = self._get_client()
        parts = [
            self._image_part(ImagePayload(base64_image, mime_type)),
            self._text_part(describe_prompt(mode)),
        ]
        try:
            response = await client.aio.models.generate_content(
                model=self.config.text_model,
                contents=parts,
            )
        except Exception as e:
            logger.error(f"Error describing image: {e}")
            raise GenerationServiceError(str(e) or "Failed to describe image.") from e
        return response.text or ""


service_registry.register(GeminiService)
