"""Values that travel along connections.

Image ports carry :class:`ImagePayload`, text ports carry :class:`TextPayload`,
and the generator's ``any`` output carries a :class:`GenerationResult`.
Executors also accept the loose dictionary shapes found in snapshots produced
by other front ends (``{"base64_image", "mime_type"}``, ``{"image_url"}`` with
a data URL, ``{"text"}``), normalised by the helpers below.
"""

from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass
from typing import Any

from PIL import Image, UnidentifiedImageError

from .errors import MalformedPayloadError

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class ImagePayload:
    """An embedded image: base64 text plus its MIME type."""

    base64_image: str
    mime_type: str

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> ImagePayload:
        return cls(base64.b64encode(data).decode("ascii"), mime_type)

    @classmethod
    def from_image(cls, image: Image.Image, format: str = "PNG") -> ImagePayload:
        buffer = io.BytesIO()
        image.save(buffer, format=format)
        mime_type = Image.MIME.get(format.upper(), f"image/{format.lower()}")
        return cls.from_bytes(buffer.getvalue(), mime_type)

    @classmethod
    def from_data_url(cls, url: str) -> ImagePayload:
        match = _DATA_URL_RE.match(url.strip())
        if match is None:
            raise MalformedPayloadError("Image data URL is not a base64 data URL.")
        return cls(match.group("data"), match.group("mime"))

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_image}"

    def to_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.base64_image, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedPayloadError(f"Image payload is not valid base64: {e}") from e

    def open(self) -> Image.Image:
        """Decode into a Pillow image (fully loaded)."""
        try:
            image = Image.open(io.BytesIO(self.to_bytes()))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise MalformedPayloadError(f"Could not decode {self.mime_type} image.") from e
        return image


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class GenerationResult:
    """What the generation service returns for image requests."""

    image: ImagePayload
    text: str = ""

    @property
    def image_url(self) -> str:
        return self.image.data_url


def normalize_image_input(value: Any) -> ImagePayload | None:
    """Resolve an input value to an image payload.

    Returns:
        The payload, or None if the value carries no image at all

    Raises:
        MalformedPayloadError: If the value claims to carry an image that
            cannot be recognised
    """
    if value is None:
        return None
    if isinstance(value, ImagePayload):
        return value
    if isinstance(value, GenerationResult):
        return value.image
    if isinstance(value, str):
        return ImagePayload.from_data_url(value) if value.startswith("data:") else None
    if isinstance(value, dict):
        if value.get("base64_image") and value.get("mime_type"):
            return ImagePayload(value["base64_image"], value["mime_type"])
        image_url = value.get("image_url")
        if isinstance(image_url, str) and image_url:
            return ImagePayload.from_data_url(image_url)
    return None


def normalize_text_input(value: Any) -> str | None:
    """Resolve an input value to text, or None if it carries none."""
    if value is None:
        return None
    if isinstance(value, (TextPayload, GenerationResult)):
        return value.text
    if isinstance(value, str):
        return None if value.startswith("data:") else value
    if isinstance(value, dict) and isinstance(value.get("text"), str):
        return value["text"]
    return None


def image_url_for(value: Any) -> str | None:
    """Return a displayable image URL for a value, or None."""
    if isinstance(value, dict) and isinstance(value.get("image_url"), str):
        return value["image_url"] or None
    try:
        payload = normalize_image_input(value)
    except MalformedPayloadError:
        return None
    return payload.data_url if payload is not None else None


def to_display(value: Any) -> dict[str, str | None]:
    """Reshape any value into the ``{image_url, text}`` display payload."""
    text = normalize_text_input(value)
    return {
        "image_url": image_url_for(value),
        "text": text if text else None,
    }
