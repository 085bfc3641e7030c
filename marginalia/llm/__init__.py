"""Text-generation collaborator and the annotation protocol built on it."""

from .text_generator import TextGenerator
from .replicate_client import LLMClientError, ReplicateTextGenerator
from .annotator import AnnotationProtocolClient

__all__ = [
    "TextGenerator",
    "ReplicateTextGenerator",
    "LLMClientError",
    "AnnotationProtocolClient",
]
