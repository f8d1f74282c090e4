"""Configuration management for Nodeworks.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the NODEWORKS_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (NODEWORKS_* prefix)
2. .env file in the project root
3. Default values defined in NodeworksConfig

Example .env file:
    NODEWORKS_API_KEY=...
    NODEWORKS_IMAGE_MODEL=gemini-2.5-flash-image
    NODEWORKS_USE_CACHE=true
    NODEWORKS_GENERATION_TIMEOUT=120

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
Components accept a config argument and fall back to this instance, so tests
can pass their own without touching the environment.

Usage Example
-------------
    from nodeworks.core.config import config

    print(config.image_model)
    print(config.fail_on_cycle)

Engine Behaviour Flags
----------------------
- use_cache: Reuse generative results whose fingerprint is unchanged
- fail_on_cycle: Fail the run loudly when the graph contains a cycle instead
  of silently skipping the nodes that can never be scheduled
- generation_timeout: Upper bound (seconds) on a single call to the
  generation service; None waits indefinitely
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BUNDLED_STYLES_DIR = Path(__file__).resolve().parent.parent / "data" / "styles"


class NodeworksConfig(BaseSettings):
    """Main configuration for Nodeworks.

    Values are loaded from environment variables with the NODEWORKS_ prefix,
    with fallback to defaults defined here. ``data_dir`` is created on
    initialization.

    Attributes
    ----------
    Generation Service:
        default_service : str
            Name of the registered generation service to instantiate
        image_model : str
            Model used for image generation and editing
        text_model : str
            Model used for image description
        api_key : str | None
            API key for the generation service (None uses the service default)

    Engine:
        use_cache : bool
            Reuse cached generative results when the fingerprint matches
        fail_on_cycle : bool
            Fail the run when the graph contains a cycle
        generation_timeout : float | None
            Seconds to wait for a single generation call
        canvas_size : int
            Long-side size in pixels of generated solid colour canvases
        render_size : int
            Size in pixels of rendered pose and sketch canvases
        history_limit : int | None
            Maximum number of history entries kept (None is unbounded)

    Paths:
        styles_dir : Path
            Directory holding prompt style YAML files
        data_dir : Path
            Directory for saved workflow snapshots

    Server:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)
        log_level : str
            Logging level for the console script

    Examples
    --------
    Create a custom configuration:

        >>> custom_config = NodeworksConfig(
        ...     use_cache=False,
        ...     generation_timeout=30,
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="NODEWORKS_",
        case_sensitive=False,
    )

    # Generation service settings
    default_service: str = Field(
        default="gemini",
        description="Registered generation service to use",
    )
    image_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Model for image generation and editing",
    )
    text_model: str = Field(
        default="gemini-3-flash-preview",
        description="Model for image description",
    )
    api_key: str | None = Field(
        default=None,
        description="API key for the generation service",
    )

    # Engine behaviour
    use_cache: bool = Field(
        default=True,
        description="Reuse generative results whose fingerprint is unchanged",
    )
    fail_on_cycle: bool = Field(
        default=True,
        description="Fail the run when the graph contains a cycle",
    )
    generation_timeout: float | None = Field(
        default=None,
        description="Seconds to wait for a single generation call (None waits forever)",
        gt=0,
    )
    canvas_size: int = Field(default=1024, ge=64, le=4096)
    render_size: int = Field(default=512, ge=64, le=4096)
    history_limit: int | None = Field(
        default=None,
        description="Maximum number of history entries (None is unbounded)",
        ge=1,
    )

    # Paths
    styles_dir: Path = Field(
        default=BUNDLED_STYLES_DIR,
        description="Directory holding prompt style YAML files",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for saved workflow snapshots",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level for the console script",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the data directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
# Loads values from environment variables (NODEWORKS_* prefix) and .env file.
config = NodeworksConfig()
