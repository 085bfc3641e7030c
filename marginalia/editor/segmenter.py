from __future__ import annotations

from typing import Iterable, List

from marginalia.core.models import Paragraph, fingerprint

PARAGRAPH_DELIMITER = "\n\n"


def segment(document: str) -> List[Paragraph]:
    """Split a document into its non-blank, blank-line-delimited paragraphs.

    Each span between delimiters is trimmed; spans that are blank after
    trimming are dropped and do not consume an index. Offsets point at the
    trimmed text, so ``document[p.start_offset:p.end_offset] == p.text``.
    """
    paragraphs: List[Paragraph] = []
    pos = 0
    length = len(document)
    while pos <= length:
        end = document.find(PARAGRAPH_DELIMITER, pos)
        if end == -1:
            end = length
        chunk = document[pos:end]
        text = chunk.strip()
        if text:
            start = pos + chunk.index(text)
            paragraphs.append(
                Paragraph(
                    index=len(paragraphs),
                    text=text,
                    start_offset=start,
                    end_offset=start + len(text),
                )
            )
        pos = end + len(PARAGRAPH_DELIMITER)
    return paragraphs


def join_paragraphs(paragraphs: Iterable[Paragraph]) -> str:
    """Render paragraphs back into a document, one blank line apart."""
    return PARAGRAPH_DELIMITER.join(p.text for p in paragraphs)


__all__ = ["segment", "join_paragraphs", "fingerprint", "PARAGRAPH_DELIMITER"]
