from __future__ import annotations

import logging
from typing import List, Optional

from marginalia.core.exceptions import StorageError
from marginalia.core.i18n import I18n
from marginalia.core.models import Paragraph, SessionSnapshot
from marginalia.core.settings import Settings, get_settings
from marginalia.editor.events import ContentChanged, EditEvent, KeyPressed, Resized
from marginalia.editor.positions import LayoutMetrics, PositionTracker, TextMeasurer
from marginalia.editor.segmenter import segment
from marginalia.editor.trigger import TriggerController, TriggerPolicy, build_policy
from marginalia.llm.annotator import AnnotationProtocolClient
from marginalia.storage.kv_store import KeyValueStore
from marginalia.storage.note_store import NoteStore

logger = logging.getLogger(__name__)


class MarginSession:
    """State container for one document and its margin notes.

    Owns the document text, the note store, the trigger controller and the
    position tracker. Events are applied one at a time in arrival order.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        annotator: AnnotationProtocolClient,
        settings: Settings | None = None,
        policy: TriggerPolicy | None = None,
        measurer: TextMeasurer | None = None,
        metrics: LayoutMetrics | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.kv = kv
        self.i18n = I18n(self.settings.language)
        self.metrics = metrics or LayoutMetrics()

        self.document = self._load_document()
        self.paragraphs: List[Paragraph] = segment(self.document)

        self.notes = NoteStore(
            kv,
            key=self.settings.notes_key,
            placeholder=self.i18n.t("note_placeholder"),
            fallback_message=self.i18n.t("note_fallback"),
            reanchor=self.settings.reanchor_notes,
        )
        self.notes.reconcile(self.paragraphs)

        self.policy = policy or build_policy(self.settings.trigger_policy)
        self.policy.prime(self.paragraphs)
        self.controller = TriggerController(
            self.notes,
            annotator,
            policy=self.policy,
            min_chars=self.settings.min_paragraph_chars,
        )
        self.tracker = PositionTracker(measurer)
        self.tracker.positions = self.tracker.recompute(self.document, self.metrics)

    # ------------------------------------------------------------------
    # events
    def dispatch(self, event: EditEvent) -> Optional[int]:
        """Apply one edit event; return the paragraph index a note was requested for."""
        if isinstance(event, ContentChanged):
            self._apply_content(event.text)
        elif isinstance(event, Resized):
            if event.metrics is not None:
                self.metrics = event.metrics
            self.tracker.schedule(self.document, self.metrics)
        return self.controller.handle(event, self.paragraphs)

    def content_changed(self, text: str) -> Optional[int]:
        return self.dispatch(ContentChanged(text))

    def key_pressed(self, key: str, is_terminator: bool | None = None) -> Optional[int]:
        return self.dispatch(KeyPressed(key, is_terminator))

    def resize(self, metrics: LayoutMetrics | None = None) -> None:
        self.dispatch(Resized(metrics))

    # ------------------------------------------------------------------
    # views
    def snapshot(self) -> SessionSnapshot:
        notes = self.notes.snapshot()
        return SessionSnapshot(
            document=self.document,
            paragraphs=list(self.paragraphs),
            notes=notes,
            positions=dict(self.tracker.positions),
            hint=None if notes else self._hint(),
        )

    async def settle(self, annotations: bool = True) -> None:
        """Wait for the pending layout pass, and for in-flight annotations
        unless ``annotations`` is false."""
        if annotations:
            await self.controller.wait_idle()
        await self.tracker.wait()

    # ------------------------------------------------------------------
    # helpers
    def _hint(self) -> str:
        if not self.paragraphs:
            return self.i18n.t("empty_state")
        return self.i18n.t("margin_prompt")

    def _apply_content(self, text: str) -> None:
        self.document = text
        self.paragraphs = segment(text)
        try:
            self.kv.set_item(self.settings.content_key, text)
        except StorageError:
            logger.exception("document_save_failed", extra={"key": self.settings.content_key})
        self.notes.reconcile(self.paragraphs)
        self.tracker.schedule(self.document, self.metrics)

    def _load_document(self) -> str:
        try:
            return self.kv.get_item(self.settings.content_key) or ""
        except StorageError:
            logger.exception("document_load_failed", extra={"key": self.settings.content_key})
            return ""


__all__ = ["MarginSession"]
