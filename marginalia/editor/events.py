"""Typed edit-surface events consumed by the session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from .positions import LayoutMetrics

TERMINATOR_KEY = "Enter"


@dataclass(frozen=True)
class ContentChanged:
    text: str


@dataclass(frozen=True)
class KeyPressed:
    """A key went down in the editor, before its effect reaches the text.

    ``is_terminator`` defaults to whether the key is Enter.
    """

    key: str
    is_terminator: Optional[bool] = None

    @property
    def terminates(self) -> bool:
        if self.is_terminator is None:
            return self.key == TERMINATOR_KEY
        return self.is_terminator


@dataclass(frozen=True)
class Resized:
    metrics: Optional["LayoutMetrics"] = None


EditEvent = Union[ContentChanged, KeyPressed, Resized]

__all__ = ["ContentChanged", "KeyPressed", "Resized", "EditEvent", "TERMINATOR_KEY"]
