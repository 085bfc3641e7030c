"""Decide when a paragraph gets a margin note and run the request.

Two interchangeable policies pick the target paragraph from the event
stream; :class:`TriggerController` applies the eligibility gate, records the
``pending`` transition and tracks one asyncio task per paragraph index.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional, Sequence

from marginalia.core.models import Paragraph
from marginalia.llm.annotator import AnnotationProtocolClient
from marginalia.storage.note_store import NoteStore
from .events import ContentChanged, EditEvent, KeyPressed

logger = logging.getLogger(__name__)

MIN_PARAGRAPH_CHARS = 10


class TriggerState(str, Enum):
    IDLE = "idle"
    AWAITING_SECOND_TERMINATOR = "awaiting-second-terminator"


class TriggerPolicy(ABC):
    """Maps edit events to the index of the paragraph to annotate."""

    name: str = ""

    def prime(self, paragraphs: Sequence[Paragraph]) -> None:
        """Observe the document as loaded, before any event arrives."""

    @abstractmethod
    def observe(self, event: EditEvent, paragraphs: Sequence[Paragraph]) -> Optional[int]:
        """Return the target index when ``event`` fires, else ``None``."""


class DoubleTerminatorPolicy(TriggerPolicy):
    """Fire on two adjacent terminator keys.

    ``paragraphs`` is the segmentation of the text the key is about to
    change, so the last paragraph is the one the writer just finished.
    """

    name = "double-terminator"

    def __init__(self) -> None:
        self.state = TriggerState.IDLE

    def observe(self, event: EditEvent, paragraphs: Sequence[Paragraph]) -> Optional[int]:
        if not isinstance(event, KeyPressed):
            return None
        if not event.terminates:
            self.state = TriggerState.IDLE
            return None
        if self.state is TriggerState.IDLE:
            self.state = TriggerState.AWAITING_SECOND_TERMINATOR
            return None
        self.state = TriggerState.IDLE
        if not paragraphs:
            return None
        return paragraphs[-1].index


class ParagraphCountPolicy(TriggerPolicy):
    """Fire when the paragraph count grows; target the second-to-last one.

    The last paragraph is assumed to still be under composition.
    """

    name = "paragraph-count"

    def __init__(self) -> None:
        self.previous_count = 0

    def prime(self, paragraphs: Sequence[Paragraph]) -> None:
        self.previous_count = len(paragraphs)

    def observe(self, event: EditEvent, paragraphs: Sequence[Paragraph]) -> Optional[int]:
        if not isinstance(event, ContentChanged):
            return None
        previous, self.previous_count = self.previous_count, len(paragraphs)
        if self.previous_count > previous and self.previous_count >= 2:
            return self.previous_count - 2
        return None


POLICIES = {
    DoubleTerminatorPolicy.name: DoubleTerminatorPolicy,
    ParagraphCountPolicy.name: ParagraphCountPolicy,
}


def build_policy(name: str) -> TriggerPolicy:
    try:
        return POLICIES[name]()
    except KeyError as exc:
        raise ValueError(f"Unknown trigger policy: {name}") from exc


class TriggerController:
    """Issue annotation requests for eligible paragraphs."""

    def __init__(
        self,
        store: NoteStore,
        annotator: AnnotationProtocolClient,
        policy: TriggerPolicy | None = None,
        min_chars: int = MIN_PARAGRAPH_CHARS,
    ) -> None:
        self.store = store
        self.annotator = annotator
        self.policy = policy or DoubleTerminatorPolicy()
        self.min_chars = min_chars
        # In-flight requests; the attachment point for future cancellation
        self.tasks: Dict[int, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # public API
    def handle(self, event: EditEvent, paragraphs: Sequence[Paragraph]) -> Optional[int]:
        """Feed one event through the policy; return the index requested."""
        target = self.policy.observe(event, paragraphs)
        if target is None:
            return None
        return self.request(target, paragraphs)

    def is_eligible(self, paragraph: Paragraph) -> bool:
        return (
            len(paragraph.text.strip()) >= self.min_chars
            and self.store.get(paragraph.index) is None
            and paragraph.index not in self.tasks
        )

    def request(self, index: int, paragraphs: Sequence[Paragraph]) -> Optional[int]:
        if not 0 <= index < len(paragraphs):
            return None
        paragraph = paragraphs[index]
        if not self.is_eligible(paragraph):
            logger.debug("trigger_skipped", extra={"paragraph_index": index})
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("trigger_without_event_loop", extra={"paragraph_index": index})
            return None

        self.store.set_pending(index, paragraph.fingerprint)
        task = loop.create_task(self._annotate(index, paragraph.text), name=f"annotate-{index}")
        self.tasks[index] = task
        task.add_done_callback(lambda t, i=index: self._forget(i, t))
        logger.info("annotation_requested", extra={"paragraph_index": index})
        return index

    async def wait_idle(self) -> None:
        """Wait until no request is in flight."""
        while self.tasks:
            await asyncio.gather(*list(self.tasks.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # helpers
    async def _annotate(self, index: int, text: str) -> None:
        try:
            result = await self.annotator.annotate(text)
        except Exception:
            logger.exception("annotation_task_failed", extra={"paragraph_index": index})
            self.store.set_failed(index)
            return
        if result.is_fallback:
            self.store.set_failed(index, result.text)
        else:
            self.store.set_resolved(index, result)

    def _forget(self, index: int, task: asyncio.Task) -> None:
        if self.tasks.get(index) is task:
            del self.tasks[index]
        if task.cancelled():
            note = self.store.get(index)
            if note is not None and note.is_pending:
                self.store.clear(index)


__all__ = [
    "TriggerState",
    "TriggerPolicy",
    "DoubleTerminatorPolicy",
    "ParagraphCountPolicy",
    "TriggerController",
    "build_policy",
    "MIN_PARAGRAPH_CHARS",
]
