"""Two-stage annotation protocol: classify a paragraph, then generate a note.

Stage 1 asks the collaborator which kind of writing a paragraph is. Stage 2
picks the instruction template for that kind and asks for a short note in a
``TYPE:`` / ``TEXT:`` shape. Output that does not follow the shape degrades
to a commentary holding the raw text. Collaborator failures never escape
:meth:`AnnotationProtocolClient.annotate`.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict

import yaml

from marginalia.core.i18n import I18n
from marginalia.core.models import AnnotationResult, ClassificationLabel, NoteKind
from marginalia.core.settings import Settings, get_settings
from .replicate_client import LLMClientError
from .text_generator import TextGenerator

_TYPE_RE = re.compile(r"(?<![A-Za-z])TYPE:\s*(commentary|question)\b", re.IGNORECASE)
_TEXT_RE = re.compile(r"(?<![A-Za-z])TEXT:\s*(.+)", re.IGNORECASE | re.DOTALL)

_LABELS: Dict[str, ClassificationLabel] = {label.value: label for label in ClassificationLabel}


def _default_prompts_path() -> Path:
    # marginalia/llm/annotator.py -> marginalia/config/prompts.yaml
    return Path(__file__).resolve().parents[1] / "config" / "prompts.yaml"


def normalize_label(raw: str) -> ClassificationLabel:
    """Map raw classifier output onto the closed label set."""
    return _LABELS.get(raw.strip().lower(), ClassificationLabel.OTHER)


class AnnotationProtocolClient:
    """Classify-then-generate exchange with a :class:`TextGenerator`."""

    def __init__(
        self,
        generator: TextGenerator,
        settings: Settings | None = None,
        prompts_path: str | Path | None = None,
        i18n: I18n | None = None,
    ) -> None:
        self.generator = generator
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)
        self.mode: str = str(getattr(self.settings, "annotation_mode", "adaptive"))
        self.i18n = i18n or I18n(str(getattr(self.settings, "language", "en")))

        configured = prompts_path or getattr(self.settings, "prompts_path", None)
        self.prompts_path = Path(configured) if configured else _default_prompts_path()
        try:
            with self.prompts_path.open("r", encoding="utf-8") as fh:
                self.prompts: Dict[str, Dict[str, str]] = yaml.safe_load(fh) or {}
            self.logger.debug("Prompts loaded from: %s", str(self.prompts_path))
        except FileNotFoundError as exc:
            raise LLMClientError(f"Prompts file not found: {self.prompts_path}") from exc
        except yaml.YAMLError as exc:
            raise LLMClientError("Failed to parse prompts file") from exc

        # Fail at startup rather than on the first paragraph
        if self.mode == "direct":
            self._prompt("direct", "user")
        else:
            self._prompt("classify", "user")
            for label in ClassificationLabel:
                self._prompt("annotate", label.value)

    # ------------------------------------------------------------------
    # public API
    async def annotate(self, text: str) -> AnnotationResult:
        """Return a note for ``text``; never raises."""
        try:
            if self.mode == "direct":
                template = self._prompt("direct", "user")
                raw = await self.generator.generate(template.format(paragraph=text))
                return self.parse_annotation(raw)
            label = await self.classify(text)
            return await self.generate(text, label)
        except Exception:
            self.logger.exception(
                "annotation_failed", extra={"mode": self.mode, "chars": len(text)}
            )
            return self.fallback()

    async def classify(self, text: str) -> ClassificationLabel:
        prompt = self._prompt("classify", "user").format(paragraph=text)
        raw = await self.generator.generate(prompt)
        label = normalize_label(raw)
        if label is ClassificationLabel.OTHER and raw.strip().lower() != "other":
            self.logger.info("classification_unrecognized", extra={"raw_label": raw.strip()[:50]})
        return label

    def select_template(self, label: ClassificationLabel | str) -> str:
        """Return the instruction template for a label, ``other`` if unknown."""
        if not isinstance(label, ClassificationLabel):
            label = normalize_label(str(label))
        return self._prompt("annotate", label.value)

    async def generate(self, text: str, label: ClassificationLabel) -> AnnotationResult:
        prompt = self.select_template(label).format(paragraph=text)
        raw = await self.generator.generate(prompt)
        return self.parse_annotation(raw)

    def parse_annotation(self, raw: str) -> AnnotationResult:
        """Extract kind and body from a ``TYPE:`` / ``TEXT:`` response."""
        body = raw.strip()
        if not body:
            self.logger.warning("annotation_empty_output")
            return self.fallback()
        type_match = _TYPE_RE.search(raw)
        text_match = _TEXT_RE.search(raw)
        if type_match and text_match and text_match.group(1).strip():
            return AnnotationResult(
                kind=NoteKind(type_match.group(1).lower()),
                text=text_match.group(1).strip(),
            )
        self.logger.warning("annotation_unexpected_format", extra={"preview": body[:200]})
        return AnnotationResult(kind=NoteKind.COMMENTARY, text=body)

    def fallback(self) -> AnnotationResult:
        key = "connection_fallback" if self.mode == "direct" else "note_fallback"
        return AnnotationResult(
            kind=NoteKind.COMMENTARY, text=self.i18n.t(key), is_fallback=True
        )

    # ------------------------------------------------------------------
    # helpers
    def _prompt(self, section: str, key: str) -> str:
        try:
            return self.prompts[section][key]
        except (KeyError, TypeError) as exc:
            raise LLMClientError(
                f"Prompt '{section}.{key}' not found in {self.prompts_path}"
            ) from exc


__all__ = ["AnnotationProtocolClient", "normalize_label"]
