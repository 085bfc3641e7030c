from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict

import replicate

from marginalia.core.settings import Settings, get_settings
from .text_generator import TextGenerator


class LLMClientError(Exception):
    """Raised when interaction with LLM fails."""


class ReplicateTextGenerator(TextGenerator):
    """Text generator powered by Replicate API."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)

        # Fall back to sensible defaults if custom Settings class is used in tests
        self.model: str = str(getattr(self.settings, "llm_model", "openai/gpt-5-nano"))
        self._log_payloads: bool = bool(getattr(self.settings, "llm_log_payloads", False))
        self._max_completion_tokens: int = int(
            getattr(self.settings, "llm_max_completion_tokens", 256)
        )
        token = str(getattr(self.settings, "replicate_api_token", "") or "")
        self._client = replicate.Client(api_token=token) if token else None

    async def generate(self, prompt: str) -> str:
        # replicate.run blocks; keep the event loop free for other paragraphs
        return await asyncio.to_thread(self._call, prompt)

    def _run(self, input_payload: Dict[str, Any]) -> Any:
        if self._client is not None:
            return self._client.run(self.model, input=input_payload)
        return replicate.run(self.model, input=input_payload)

    def _to_text(self, out: Any) -> str:
        if out is None:
            return ""
        if isinstance(out, str):
            return out
        if isinstance(out, dict):
            # Some models answer with {"text": ...} or {"output": ...}
            for key in ("text", "output"):
                value = out.get(key)
                if isinstance(value, str):
                    return value
            return json.dumps(out, ensure_ascii=False)
        # Many models stream an iterator of string chunks
        try:
            chunks = list(out)
        except TypeError as exc:
            raise LLMClientError("Unexpected streaming output from Replicate") from exc
        return "".join(str(c) for c in chunks)

    def _call(self, prompt: str) -> str:
        input_payload: Dict[str, Any] = {
            "prompt": prompt,
            "reasoning_effort": "minimal",
            "verbosity": "low",
            "max_completion_tokens": self._max_completion_tokens,
        }
        _lvl = logging.INFO if self._log_payloads else logging.DEBUG
        try:
            self.logger.log(
                _lvl,
                "Replicate request | model=%s | input=%s",
                self.model,
                json.dumps(input_payload, ensure_ascii=False),
            )
            out = self._run(input_payload)
            text = self._to_text(out)
            self.logger.log(
                _lvl, "Replicate raw response | model=%s | raw=%s", self.model, text
            )
            return text
        except LLMClientError:
            raise
        except Exception as exc:
            # Ensure failure is visible in logs with stack trace
            self.logger.exception("Replicate request failed: %s", exc)
            raise LLMClientError(f"Replicate request failed: {exc}") from exc


__all__ = ["ReplicateTextGenerator", "LLMClientError"]
