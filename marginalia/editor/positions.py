"""Vertical offsets of paragraphs, used to align notes with the editor."""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, Optional

from pydantic import BaseModel, Field

from .segmenter import segment

logger = logging.getLogger(__name__)

PositionMap = Dict[int, float]


class LayoutMetrics(BaseModel):
    """Geometry of the editing surface, in pixels."""

    content_width: float = Field(default=640.0, gt=0)
    line_height: float = Field(default=28.0, gt=0)
    padding_top: float = Field(default=60.0, ge=0)
    char_width: float = Field(default=9.6, gt=0)


class TextMeasurer(ABC):
    @abstractmethod
    def measure(self, text: str, metrics: LayoutMetrics) -> float:
        """Rendered height of ``text`` laid out at the content width."""


class MonospaceMeasurer(TextMeasurer):
    """Wrapped-line estimate assuming a fixed advance per character."""

    def measure(self, text: str, metrics: LayoutMetrics) -> float:
        per_line = max(1, int(metrics.content_width // metrics.char_width))
        lines = sum(max(1, math.ceil(len(line) / per_line)) for line in text.split("\n"))
        return lines * metrics.line_height


class PositionTracker:
    """Recomputes the :data:`PositionMap` from scratch on every change.

    :meth:`schedule` defers the measurement until the event loop has had a
    chance to settle pending layout work, and drops any measurement that was
    scheduled earlier and has not run yet.
    """

    def __init__(self, measurer: TextMeasurer | None = None, settle_delay: float = 0.0) -> None:
        self.measurer = measurer or MonospaceMeasurer()
        self.settle_delay = settle_delay
        self.positions: PositionMap = {}
        self._task: Optional[asyncio.Task] = None

    def recompute(self, document: str, metrics: LayoutMetrics) -> PositionMap:
        positions: PositionMap = {}
        y = metrics.padding_top
        for paragraph in segment(document):
            positions[paragraph.index] = y
            # A paragraph is followed by the blank line that separates it
            y += self.measurer.measure(paragraph.text, metrics) + metrics.line_height * 2
        return positions

    def schedule(self, document: str, metrics: LayoutMetrics) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.positions = self.recompute(document, metrics)
            return
        self._task = loop.create_task(self._deferred(document, metrics), name="positions")

    async def wait(self) -> None:
        task = self._task
        if task is not None and not task.done():
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

    async def _deferred(self, document: str, metrics: LayoutMetrics) -> None:
        await asyncio.sleep(self.settle_delay)
        self.positions = self.recompute(document, metrics)
        logger.debug("positions_recomputed", extra={"paragraphs": len(self.positions)})


__all__ = [
    "PositionMap",
    "LayoutMetrics",
    "TextMeasurer",
    "MonospaceMeasurer",
    "PositionTracker",
]
