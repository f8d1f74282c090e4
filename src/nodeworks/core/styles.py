"""Prompt style libraries.

A style library is a YAML file holding a list of entries::

    - name: cinematic
      prompt: "cinematic still of {prompt}, shallow depth of field"
      negative_prompt: "cartoon, drawing"

Libraries live in ``config.styles_dir`` as ``<file>.yaml`` and are parsed
once per :class:`StyleLibrary` instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from .errors import StyleNotFoundError

logger = logging.getLogger(__name__)

NO_STYLE = "none"
PROMPT_PLACEHOLDER = "{prompt}"


@dataclass(frozen=True)
class Style:
    name: str
    prompt: str = ""
    negative_prompt: str = ""

    def apply(self, user_prompt: str) -> str:
        """Combine this style with a user prompt.

        The style's ``{prompt}`` placeholder is replaced when present;
        otherwise the style text is appended after a comma.
        """
        user_prompt = user_prompt.strip()
        if PROMPT_PLACEHOLDER in self.prompt:
            return self.prompt.replace(PROMPT_PLACEHOLDER, user_prompt).strip()
        parts = [part for part in (user_prompt, self.prompt.strip()) if part]
        return ", ".join(parts)


def parse_styles(raw: str) -> list[Style]:
    """Parse YAML text into styles, skipping entries without a name."""
    entries = yaml.safe_load(raw) or []
    if not isinstance(entries, list):
        raise ValueError("Style library must be a YAML list of entries")

    styles = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("name"):
            continue
        styles.append(
            Style(
                name=str(entry["name"]),
                prompt=str(entry.get("prompt") or ""),
                negative_prompt=str(entry.get("negative_prompt") or ""),
            )
        )
    return styles


class StyleLibrary:
    """Loads and caches style files from a directory."""

    def __init__(self, styles_dir: Path) -> None:
        self.styles_dir = Path(styles_dir)
        self._cache: dict[str, list[Style]] = {}

    def list_files(self) -> list[str]:
        if not self.styles_dir.is_dir():
            return []
        return sorted(path.stem for path in self.styles_dir.glob("*.yaml"))

    def load(self, file_name: str) -> list[Style]:
        """Return the styles of ``<styles_dir>/<file_name>.yaml``.

        Raises:
            StyleNotFoundError: If the file does not exist or is not a valid
                style library
        """
        if file_name in self._cache:
            return self._cache[file_name]

        path = self.styles_dir / f"{file_name}.yaml"
        if not path.is_file():
            raise StyleNotFoundError(f"Style file '{file_name}' not found.")
        try:
            styles = parse_styles(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, ValueError) as e:
            raise StyleNotFoundError(f"Style file '{file_name}' could not be parsed: {e}") from e

        logger.debug(f"Loaded {len(styles)} styles from {path}")
        self._cache[file_name] = styles
        return styles

    def get(self, file_name: str, style_name: str) -> Style:
        for style in self.load(file_name):
            if style.name == style_name:
                return style
        raise StyleNotFoundError(f"Style '{style_name}' not found in '{file_name}'.")

    def apply(self, user_prompt: str, file_name: str, style_name: str) -> str:
        """Apply a named style to ``user_prompt``; ``none`` returns it unchanged."""
        if not style_name or style_name == NO_STYLE:
            return user_prompt
        return self.get(file_name, style_name).apply(user_prompt)
