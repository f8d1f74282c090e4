"""Tests for nodeworks.core.services and the Gemini adapter.

The Gemini tests replace the API client with mocks, so they run without
network access or credentials.
"""

from __future__ import annotations

import asyncio
import base64
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from nodeworks.core.adapters.gemini import GENERATE_PREAMBLE, MIX_PREAMBLE, GeminiService
from nodeworks.core.errors import GenerationServiceError
from nodeworks.core.payloads import ImagePayload
from nodeworks.core.services import (
    DESCRIBE_PROMPTS,
    DescribeMode,
    ServiceRegistry,
    describe_prompt,
    service_registry,
)


class TestDescribePrompt:
    """describe_prompt() lookup."""

    @pytest.mark.parametrize("mode", list(DescribeMode))
    def test_every_mode_has_a_prompt(self, mode):
        """Each describe mode maps to its own instruction."""
        assert describe_prompt(mode) == DESCRIBE_PROMPTS[mode]
        assert describe_prompt(mode.value) == DESCRIBE_PROMPTS[mode]

    def test_unknown_mode_falls_back_to_normal(self):
        """Unrecognised modes use the normal instruction."""
        assert describe_prompt("poetic") == "Describe this image in detail."


class TestServiceRegistry:
    """ServiceRegistry bookkeeping."""

    def test_gemini_is_registered(self):
        """Importing the package registers the Gemini service."""
        assert "gemini" in service_registry.list_available()
        assert service_registry.get_service_class("gemini") is GeminiService

    def test_register_and_instantiate(self, test_config, fake_service):
        """Registered classes are instantiated with the config."""
        FakeGenerationService = type(fake_service)
        registry = ServiceRegistry()
        assert registry.register(FakeGenerationService) is FakeGenerationService
        service = registry.instantiate("fake", test_config)
        assert isinstance(service, FakeGenerationService)
        assert service.config is test_config
        assert service.get_service_info() == {"name": "fake", "description": "Test double"}

    def test_unknown_service(self, test_config, fake_service):
        """Unknown names raise KeyError listing what is available."""
        registry = ServiceRegistry()
        registry.register(type(fake_service))
        with pytest.raises(KeyError, match="Available services: fake"):
            registry.instantiate("dall-e", test_config)

    def test_register_overwrites(self, fake_service):
        """Registering a name twice keeps the latest class."""
        FakeGenerationService = type(fake_service)

        class OtherFake(FakeGenerationService):
            pass

        registry = ServiceRegistry()
        registry.register(FakeGenerationService)
        registry.register(OtherFake)
        assert registry.get_service_class("fake") is OtherFake
        assert registry.list_available() == ["fake"]


def _response(*parts):
    content = SimpleNamespace(parts=list(parts))
    return SimpleNamespace(candidates=[SimpleNamespace(content=content)], text=None)


def _image_part(data: bytes = b"\x89PNG fake", mime_type: str = "image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)


def _text_part(text: str):
    return SimpleNamespace(inline_data=None, text=text)


@pytest.fixture
def gemini(test_config, monkeypatch):
    """GeminiService with a mocked client and plain tuples for request parts."""
    monkeypatch.setattr(GeminiService, "_text_part", staticmethod(lambda text: ("text", text)))
    monkeypatch.setattr(
        GeminiService,
        "_image_part",
        staticmethod(lambda payload: ("image", payload.mime_type)),
    )
    service = GeminiService(test_config)
    service.client = MagicMock()
    service.client.aio.models.generate_content = AsyncMock()
    return service


class TestGeminiService:
    """Response handling of the Gemini adapter."""

    def test_generate_image(self, gemini, test_config):
        """The inline image and text parts become a GenerationResult."""
        gemini.client.aio.models.generate_content.return_value = _response(
            _text_part("Here you go"), _image_part(b"abc")
        )
        result = asyncio.run(gemini.generate_image("a red bicycle"))

        assert result.image == ImagePayload(base64.b64encode(b"abc").decode(), "image/png")
        assert result.text == "Here you go"
        kwargs = gemini.client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == test_config.image_model
        assert kwargs["contents"] == [("text", GENERATE_PREAMBLE), ("text", "a red bicycle")]

    def test_default_text(self, gemini):
        """An image-only response gets the placeholder text."""
        gemini.client.aio.models.generate_content.return_value = _response(_image_part())
        result = asyncio.run(gemini.edit_image("QUJD", "image/jpeg", "make it blue"))
        assert result.text == "No text response from model."

    def test_mix_part_order(self, gemini, make_image_payload):
        """Mixing sends the preamble, source, reference, then the prompt."""
        gemini.client.aio.models.generate_content.return_value = _response(_image_part())
        source = make_image_payload()
        reference = ImagePayload("QUJD", "image/webp")
        asyncio.run(gemini.mix_images(source, reference, "blend"))
        contents = gemini.client.aio.models.generate_content.call_args.kwargs["contents"]
        assert contents == [
            ("text", MIX_PREAMBLE),
            ("image", "image/png"),
            ("image", "image/webp"),
            ("text", "blend"),
        ]

    def test_no_image_in_response(self, gemini):
        """A text-only response is an error."""
        gemini.client.aio.models.generate_content.return_value = _response(_text_part("sorry"))
        with pytest.raises(GenerationServiceError, match="API did not return an image."):
            asyncio.run(gemini.generate_image("x"))

    def test_empty_response(self, gemini):
        """No candidates is an invalid response."""
        gemini.client.aio.models.generate_content.return_value = SimpleNamespace(candidates=[])
        with pytest.raises(GenerationServiceError, match="invalid or empty response"):
            asyncio.run(gemini.generate_with_style(ImagePayload("QUJD", "image/png"), "x"))

    def test_client_error_is_wrapped(self, gemini):
        """Client exceptions become GenerationServiceError with the same message."""
        gemini.client.aio.models.generate_content.side_effect = RuntimeError("quota exceeded")
        with pytest.raises(GenerationServiceError, match="quota exceeded"):
            asyncio.run(gemini.generate_with_reference(ImagePayload("QUJD", "image/png"), "x"))

    def test_describe_uses_text_model(self, gemini, test_config):
        """Descriptions go to the text model with the mode's instruction."""
        gemini.client.aio.models.generate_content.return_value = SimpleNamespace(text="A cat.")
        text = asyncio.run(gemini.describe_image("QUJD", "image/png", DescribeMode.SHORT))
        assert text == "A cat."
        kwargs = gemini.client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == test_config.text_model
        assert kwargs["contents"][-1] == ("text", DESCRIBE_PROMPTS[DescribeMode.SHORT])

    def test_missing_client_library(self, test_config, monkeypatch):
        """Without google-genai installed the first request fails clearly."""
        monkeypatch.setitem(sys.modules, "google", None)
        service = GeminiService(test_config)
        with pytest.raises(GenerationServiceError, match="google-genai"):
            asyncio.run(service.generate_image("x"))
