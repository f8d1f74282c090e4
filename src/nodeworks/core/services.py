"""Generation service interface and registry.

The engine talks to the external image model only through
:class:`GenerationService`. Concrete services (see ``nodeworks.core.adapters``)
register themselves with the global :data:`service_registry`, which
instantiates them by name from configuration.

Usage Example
-------------
    >>> from nodeworks.core.services import service_registry
    >>> from nodeworks.core.config import config
    >>>
    >>> service_registry.list_available()
    ['gemini']
    >>> service = service_registry.instantiate("gemini", config)
    >>> result = await service.generate_image("a lighthouse at dusk")
    >>> result.image_url[:22]
    'data:image/png;base64,'
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from .config import NodeworksConfig
from .payloads import GenerationResult, ImagePayload

logger = logging.getLogger(__name__)


class DescribeMode(str, Enum):
    SHORT = "short"
    NORMAL = "normal"
    DETAILED = "detailed"
    AS_PROMPT = "as_prompt"


DESCRIBE_PROMPTS: dict[DescribeMode, str] = {
    DescribeMode.SHORT: "Describe this image concisely in one sentence.",
    DescribeMode.NORMAL: "Describe this image in detail.",
    DescribeMode.DETAILED: (
        "Provide a highly detailed, exhaustive description of this image, "
        "covering every visual aspect."
    ),
    DescribeMode.AS_PROMPT: (
        "Analyze this image and generate a detailed, high-quality image generation "
        "prompt that could be used to create a similar image."
    ),
}


def describe_prompt(mode: DescribeMode | str) -> str:
    """Instruction sent with an image for a describe mode; unknown modes use ``normal``."""
    try:
        return DESCRIBE_PROMPTS[DescribeMode(mode)]
    except ValueError:
        return DESCRIBE_PROMPTS[DescribeMode.NORMAL]


class GenerationService(ABC):
    """Abstract base class for generation services.

    Every method is a coroutine; the runner awaits exactly one of them per
    generative node. Implementations raise
    :class:`~nodeworks.core.errors.GenerationServiceError` (or let the
    client library's own exception propagate) on failure, with a message
    suitable for display on the failing node.

    Attributes
    ----------
    name : str
        Registry name of the service
    description : str
        Short human readable description
    config : NodeworksConfig
        Configuration the service was created with
    """

    name: str = "Base Generation Service"
    description: str = "Base class for generation services"

    def __init__(self, config: NodeworksConfig) -> None:
        self.config = config
        logger.info(f"Initialized {self.name} generation service")

    @abstractmethod
    async def generate_image(self, prompt: str) -> GenerationResult:
        pass

    @abstractmethod
    async def edit_image(self, base64_image: str, mime_type: str, prompt: str) -> GenerationResult:
        pass

    @abstractmethod
    async def mix_images(
        self, source: ImagePayload, reference: ImagePayload, prompt: str
    ) -> GenerationResult:
        """Combine a source image with a reference image under a prompt."""
        pass

    @abstractmethod
    async def generate_with_style(self, reference: ImagePayload, prompt: str) -> GenerationResult:
        pass

    @abstractmethod
    async def generate_with_reference(
        self, reference: ImagePayload, prompt: str
    ) -> GenerationResult:
        pass

    @abstractmethod
    async def describe_image(
        self, base64_image: str, mime_type: str, mode: DescribeMode | str = DescribeMode.NORMAL
    ) -> str:
        """Return a text description of an image."""
        pass

    def get_service_info(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description}


class ServiceRegistry:
    """Registry of generation service classes, keyed by name.

    Notes
    -----
    - Services must be registered before they can be instantiated
    - Registering an existing name overwrites it with a warning
    """

    def __init__(self) -> None:
        self._services: dict[str, type[GenerationService]] = {}

    def register(self, service_class: type[GenerationService]) -> type[GenerationService]:
        """Register a service class. Returns the class so it can be used as a decorator."""
        name = service_class.name
        if name in self._services:
            logger.warning(f"Generation service '{name}' is already registered, overwriting")
        self._services[name] = service_class
        logger.info(f"Registered generation service: {name}")
        return service_class

    def instantiate(self, name: str, config: NodeworksConfig) -> GenerationService:
        """Create an instance of a registered service.

        Raises
        ------
        KeyError
            If ``name`` is not registered
        """
        if name not in self._services:
            available = ", ".join(self.list_available())
            raise KeyError(f"Generation service '{name}' not found. Available services: {available}")
        return self._services[name](config=config)

    def get_service_class(self, name: str) -> type[GenerationService] | None:
        return self._services.get(name)

    def list_available(self) -> list[str]:
        return list(self._services.keys())


# Global service registry
service_registry = ServiceRegistry()
