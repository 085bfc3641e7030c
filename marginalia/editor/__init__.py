"""Document-side logic: segmentation, triggering and note alignment."""

from .events import ContentChanged, EditEvent, KeyPressed, Resized
from .positions import LayoutMetrics, MonospaceMeasurer, PositionMap, PositionTracker, TextMeasurer
from .segmenter import join_paragraphs, segment
from .trigger import (
    DoubleTerminatorPolicy,
    ParagraphCountPolicy,
    TriggerController,
    TriggerPolicy,
    TriggerState,
    build_policy,
)

__all__ = [
    "ContentChanged",
    "EditEvent",
    "KeyPressed",
    "Resized",
    "LayoutMetrics",
    "MonospaceMeasurer",
    "PositionMap",
    "PositionTracker",
    "TextMeasurer",
    "join_paragraphs",
    "segment",
    "DoubleTerminatorPolicy",
    "ParagraphCountPolicy",
    "TriggerController",
    "TriggerPolicy",
    "TriggerState",
    "build_policy",
]
