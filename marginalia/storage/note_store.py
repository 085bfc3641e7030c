"""Note lifecycle state keyed by paragraph index, persisted write-through."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from marginalia.core.exceptions import StorageError
from marginalia.core.i18n import DEFAULT_MESSAGES
from marginalia.core.models import AnnotationResult, Note, NoteKind, NoteStatus, Paragraph
from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class NoteStore:
    """Sole owner of :class:`Note` transitions.

    Every transition replaces the note object for one index, so readers never
    see a half-updated entry. After each mutation the full mapping is written
    to the key/value store as JSON.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = "marginalia-notes",
        placeholder: str = DEFAULT_MESSAGES["note_placeholder"],
        fallback_message: str = DEFAULT_MESSAGES["note_fallback"],
        reanchor: bool = True,
    ) -> None:
        self.kv = kv
        self.key = key
        self.placeholder = placeholder
        self.fallback_message = fallback_message
        self.reanchor = reanchor
        self._notes: Dict[int, Note] = self._load()

    # ------------------------------------------------------------------
    # public API
    def get(self, index: int) -> Optional[Note]:
        """Return the note at ``index`` or ``None`` when absent."""
        return self._notes.get(index)

    def items(self) -> List[tuple[int, Note]]:
        return sorted(self._notes.items())

    def snapshot(self) -> Dict[int, Note]:
        return dict(self._notes)

    def __len__(self) -> int:
        return len(self._notes)

    def __contains__(self, index: object) -> bool:
        return index in self._notes

    def set_pending(self, index: int, fingerprint: str | None = None) -> Note:
        note = Note(
            status=NoteStatus.PENDING,
            kind=NoteKind.COMMENTARY,
            text=self.placeholder,
            fingerprint=fingerprint,
        )
        return self._put(index, note)

    def set_resolved(self, index: int, result: AnnotationResult) -> Note:
        previous = self._notes.get(index)
        note = Note(
            status=NoteStatus.RESOLVED,
            kind=result.kind,
            text=result.text,
            fingerprint=previous.fingerprint if previous else None,
        )
        return self._put(index, note)

    def set_failed(self, index: int, message: str | None = None) -> Note:
        previous = self._notes.get(index)
        note = Note(
            status=NoteStatus.FAILED,
            kind=NoteKind.COMMENTARY,
            text=message or self.fallback_message,
            fingerprint=previous.fingerprint if previous else None,
        )
        return self._put(index, note)

    def suppress(self, index: int) -> Optional[Note]:
        """Hide the note at ``index`` without forgetting it."""
        note = self._notes.get(index)
        if note is None:
            return None
        return self._put(index, note.model_copy(update={"is_visible": False}))

    def clear(self, index: int) -> None:
        if self._notes.pop(index, None) is not None:
            self._save()

    def reconcile(self, paragraphs: Sequence[Paragraph]) -> bool:
        """Re-align notes with the current paragraphs.

        Pending notes keep their index. Other notes stay where their
        paragraph still is, follow their paragraph to a new index when it
        moved, are marked stale when their paragraph changed in place, and
        are dropped when their index no longer exists. Returns True when
        anything changed.
        """
        current = {p.index: p.fingerprint for p in paragraphs}
        by_fingerprint: Dict[str, List[int]] = defaultdict(list)
        for p in paragraphs:
            by_fingerprint[p.fingerprint].append(p.index)

        placed: Dict[int, Note] = {}
        unplaced: List[tuple[int, Note]] = []
        for index, note in sorted(self._notes.items()):
            if note.is_pending:
                placed[index] = note
            elif note.fingerprint is not None and current.get(index) == note.fingerprint:
                placed[index] = note.model_copy(update={"stale": False})
            else:
                unplaced.append((index, note))

        leftovers: List[tuple[int, Note]] = []
        for index, note in unplaced:
            target = None
            if self.reanchor and note.fingerprint is not None:
                target = next(
                    (i for i in by_fingerprint.get(note.fingerprint, []) if i not in placed),
                    None,
                )
            if target is not None:
                placed[target] = note.model_copy(update={"stale": False})
                logger.debug("note_reanchored", extra={"from_index": index, "to_index": target})
            else:
                leftovers.append((index, note))

        for index, note in leftovers:
            if index not in current:
                logger.debug("note_pruned", extra={"paragraph_index": index})
                continue
            if index in placed:
                # Its slot was taken by a note that followed its paragraph here
                logger.debug("note_displaced", extra={"paragraph_index": index})
                continue
            stale = note.fingerprint is not None
            placed[index] = note.model_copy(update={"stale": stale})

        changed = placed != self._notes
        if changed:
            self._notes = dict(sorted(placed.items()))
            self._save()
        return changed

    def dumps(self) -> str:
        """Serialize the full mapping the way it is persisted."""
        return json.dumps(
            {str(i): n.model_dump(mode="json") for i, n in sorted(self._notes.items())},
            ensure_ascii=False,
        )

    # ------------------------------------------------------------------
    # helpers
    def _put(self, index: int, note: Note) -> Note:
        self._notes[index] = note
        self._save()
        return note

    def _save(self) -> None:
        try:
            self.kv.set_item(self.key, self.dumps())
        except StorageError:
            # The in-memory mapping stays authoritative; next mutation retries
            logger.exception("notes_save_failed", extra={"key": self.key})

    def _load(self) -> Dict[int, Note]:
        try:
            raw = self.kv.get_item(self.key)
        except StorageError:
            logger.exception("notes_load_failed", extra={"key": self.key})
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("notes_corrupt", extra={"key": self.key})
            return {}
        if not isinstance(data, dict):
            logger.warning("notes_corrupt", extra={"key": self.key})
            return {}

        notes: Dict[int, Note] = {}
        for raw_index, raw_note in data.items():
            try:
                index = int(raw_index)
                note = Note.model_validate(raw_note)
            except (ValueError, TypeError, PydanticValidationError):
                logger.warning("note_entry_skipped", extra={"entry": str(raw_index)})
                continue
            if index < 0:
                continue
            # No request survives a restart; let the paragraph trigger again
            if note.is_pending:
                continue
            notes[index] = note
        return dict(sorted(notes.items()))


__all__ = ["NoteStore"]
