"""Core library exposing domain models, settings, exceptions and i18n."""

from .settings import Settings, get_settings
from .exceptions import DomainError, StorageError
from .i18n import I18n
from .models import (
    AnnotationResult,
    ClassificationLabel,
    Note,
    NoteKind,
    NoteStatus,
    Paragraph,
    SessionSnapshot,
    fingerprint,
)

__all__ = [
    "Settings",
    "get_settings",
    "DomainError",
    "StorageError",
    "I18n",
    "AnnotationResult",
    "ClassificationLabel",
    "Note",
    "NoteKind",
    "NoteStatus",
    "Paragraph",
    "SessionSnapshot",
    "fingerprint",
]
