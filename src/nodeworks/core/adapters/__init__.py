"""Generation service adapters.

Importing this package registers every bundled service with
``nodeworks.core.services.service_registry``.
"""

from nodeworks.core.adapters.gemini import GeminiService

__all__ = ["GeminiService"]
