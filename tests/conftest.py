import sys
from pathlib import Path
from typing import Iterable, List, Union

import pytest

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from marginalia.core.settings import Settings
from marginalia.llm import AnnotationProtocolClient, TextGenerator
from marginalia.storage import MemoryKeyValueStore


class ScriptedGenerator(TextGenerator):
    """Replays canned completions (or raises canned errors) in order."""

    def __init__(self, responses: Iterable[Union[str, Exception]] = ()) -> None:
        self.responses: List[Union[str, Exception]] = list(responses)
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise RuntimeError("no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, storage_backend="memory", language="en")


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def scripted():
    """Factory for scripted text generators."""
    return ScriptedGenerator


@pytest.fixture()
def make_annotator(settings):
    def _make(responses=(), **overrides) -> AnnotationProtocolClient:
        cfg = settings.model_copy(update=overrides) if overrides else settings
        return AnnotationProtocolClient(ScriptedGenerator(responses), settings=cfg)

    return _make
