"""Shared pytest fixtures for Nodeworks tests."""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest
from PIL import Image

from nodeworks.core.config import NodeworksConfig
from nodeworks.core.executors import ExecutorRegistry, build_executor_registry
from nodeworks.core.graph import WorkflowGraph
from nodeworks.core.history import InMemoryHistory
from nodeworks.core.payloads import GenerationResult, ImagePayload
from nodeworks.core.services import DescribeMode, GenerationService


class FakeGenerationService(GenerationService):
    """In-process generation service that records every call.

    Each image call returns a small PNG whose colour cycles with the call
    count, so consecutive fresh results are distinguishable.

    Attributes:
        calls: ``(method, prompt_or_mode)`` tuples in call order
        fail_with: Exception raised by every call when set
        delay: Seconds each call sleeps before returning
    """

    name = "fake"
    description = "Test double"

    def __init__(self, config: NodeworksConfig) -> None:
        super().__init__(config)
        self.calls: list[tuple[str, str]] = []
        self.fail_with: Exception | None = None
        self.delay: float = 0.0

    async def _result(self, method: str, prompt: str) -> GenerationResult:
        self.calls.append((method, prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        shade = (len(self.calls) * 40) % 256
        image = Image.new("RGB", (8, 8), (shade, 0, 0))
        return GenerationResult(image=ImagePayload.from_image(image), text=f"{method}: {prompt}")

    async def generate_image(self, prompt):
        return await self._result("generate_image", prompt)

    async def edit_image(self, base64_image, mime_type, prompt):
        return await self._result("edit_image", prompt)

    async def mix_images(self, source, reference, prompt):
        return await self._result("mix_images", prompt)

    async def generate_with_style(self, reference, prompt):
        return await self._result("generate_with_style", prompt)

    async def generate_with_reference(self, reference, prompt):
        return await self._result("generate_with_reference", prompt)

    async def describe_image(self, base64_image, mime_type, mode=DescribeMode.NORMAL):
        self.calls.append(("describe_image", str(getattr(mode, "value", mode))))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return f"A description ({getattr(mode, 'value', mode)})"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> NodeworksConfig:
    """Create a test configuration with small canvases and a temporary data dir.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        NodeworksConfig instance for testing
    """
    return NodeworksConfig(
        _env_file=None,
        data_dir=temp_dir / "data",
        canvas_size=64,
        render_size=64,
        use_cache=True,
        fail_on_cycle=True,
    )


@pytest.fixture
def fake_service(test_config: NodeworksConfig) -> FakeGenerationService:
    return FakeGenerationService(test_config)


@pytest.fixture
def executors(fake_service: FakeGenerationService, test_config: NodeworksConfig) -> ExecutorRegistry:
    """Standard executor table wired to the fake generation service."""
    return build_executor_registry(fake_service, test_config)


@pytest.fixture
def graph() -> WorkflowGraph:
    return WorkflowGraph()


@pytest.fixture
def history() -> InMemoryHistory:
    return InMemoryHistory()


@pytest.fixture
def make_image_payload() -> Callable[..., ImagePayload]:
    """Factory for PNG payloads of a given size and colour.

    Returns:
        Callable ``(width=4, height=4, color="red") -> ImagePayload``
    """

    def _make(width: int = 4, height: int = 4, color: str = "red") -> ImagePayload:
        return ImagePayload.from_image(Image.new("RGB", (width, height), color))

    return _make


@pytest.fixture
def test_client(fake_service: FakeGenerationService, test_config: NodeworksConfig):
    """FastAPI TestClient whose runs use the fake generation service.

    Yields:
        TestClient with the application lifespan started
    """
    from fastapi.testclient import TestClient

    from nodeworks.api.main import app

    with TestClient(app) as client:
        app.state.service = fake_service
        app.state.executors = build_executor_registry(fake_service, test_config)
        app.state.history = InMemoryHistory()
        yield client
