"""Pydantic models representing core domain entities."""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def fingerprint(text: str) -> str:
    """Content-derived identifier of a paragraph, insensitive to spacing."""
    normalized = " ".join(text.split())
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()


class ClassificationLabel(str, Enum):
    """Content type assigned to a paragraph before generation."""

    JOURNALING = "journaling"
    BRAINSTORMING = "brainstorming"
    TECHNICAL = "technical"
    STORYTELLING = "storytelling"
    NOTE_TAKING = "note-taking"
    OTHER = "other"


class NoteKind(str, Enum):
    COMMENTARY = "commentary"
    QUESTION = "question"


class NoteStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class Paragraph(BaseModel):
    """A non-blank, blank-line-delimited span of the document."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    text: str
    start_offset: int = Field(..., ge=0)
    end_offset: int = Field(..., ge=0)

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.text)


class AnnotationResult(BaseModel):
    """Normalized output of the annotation protocol."""

    model_config = ConfigDict(frozen=True)

    kind: NoteKind
    text: str = Field(..., min_length=1)
    # Set when the text is the fixed message produced after a collaborator failure
    is_fallback: bool = False


class Note(BaseModel):
    """Lifecycle state of the margin note attached to one paragraph index.

    An absent note is represented by the lack of an entry. ``is_visible`` is
    False for suppressed (dismissed) notes; ``stale`` marks notes whose
    paragraph text changed since the note was requested.
    """

    model_config = ConfigDict(frozen=True)

    status: NoteStatus
    kind: NoteKind = NoteKind.COMMENTARY
    text: str
    is_visible: bool = True
    fingerprint: Optional[str] = None
    stale: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_shape(cls, data: Any) -> Any:
        # Older records: {"text", "type", "isVisible", "isLoading"}
        if isinstance(data, dict) and "status" not in data and "type" in data:
            loading = bool(data.get("isLoading"))
            return {
                "status": NoteStatus.PENDING if loading else NoteStatus.RESOLVED,
                "kind": data.get("type"),
                "text": data.get("text", ""),
                "is_visible": data.get("isVisible", True),
            }
        return data

    @property
    def is_pending(self) -> bool:
        return self.status is NoteStatus.PENDING


class SessionSnapshot(BaseModel):
    """Read-only view handed to the presentation layer."""

    document: str
    paragraphs: list[Paragraph]
    notes: Dict[int, Note]
    positions: Dict[int, float]
    hint: Optional[str] = None


__all__ = [
    "fingerprint",
    "ClassificationLabel",
    "NoteKind",
    "NoteStatus",
    "Paragraph",
    "AnnotationResult",
    "Note",
    "SessionSnapshot",
]
