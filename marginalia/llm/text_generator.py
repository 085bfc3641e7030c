from __future__ import annotations

from abc import ABC, abstractmethod


class TextGenerator(ABC):
    """Abstract interface for the text-generation collaborator.

    Implementations return a best-effort completion for a prompt. They may
    raise on any failure; latency and rate limits are their own business.
    """

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return the completion text for ``prompt``."""
