from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from pydantic import BaseModel

from marginalia.core.models import Note, SessionSnapshot
from marginalia.core.settings import get_settings
from marginalia.editor.positions import LayoutMetrics
from marginalia.llm import AnnotationProtocolClient, ReplicateTextGenerator
from marginalia.logging import setup_logging
from marginalia.storage import build_kv_store
from marginalia.usecases import MarginSession


# ---------------------------------------------------------------------------
# Dependency factories


@lru_cache
def get_session() -> MarginSession:
    """Process-wide session built from settings."""
    settings = get_settings()
    annotator = AnnotationProtocolClient(ReplicateTextGenerator(settings), settings)
    return MarginSession(build_kv_store(settings), annotator, settings)


# ---------------------------------------------------------------------------
# Pydantic schemas


class ContentRequest(BaseModel):
    text: str


class KeyRequest(BaseModel):
    key: str
    is_terminator: Optional[bool] = None


class ResizeRequest(BaseModel):
    metrics: Optional[LayoutMetrics] = None


class EventResponse(BaseModel):
    requested: Optional[int] = None
    snapshot: SessionSnapshot


# ---------------------------------------------------------------------------
# FastAPI application


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    yield


app = FastAPI(title="Marginalia API", lifespan=lifespan)


async def _respond(
    session: MarginSession,
    requested: Optional[int],
    wait: bool,
    annotations: bool = True,
) -> EventResponse:
    if wait:
        await session.settle(annotations=annotations)
    return EventResponse(requested=requested, snapshot=session.snapshot())


# Routes ---------------------------------------------------------------------


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {"status": "ok"}


@app.get("/document", response_model=SessionSnapshot)
async def get_document(session: MarginSession = Depends(get_session)) -> SessionSnapshot:
    return session.snapshot()


@app.put("/document", response_model=EventResponse)
async def put_document(
    req: ContentRequest,
    wait: bool = Query(False),
    session: MarginSession = Depends(get_session),
) -> EventResponse:
    requested = session.content_changed(req.text)
    return await _respond(session, requested, wait)


@app.post("/keys", response_model=EventResponse)
async def press_key(
    req: KeyRequest,
    wait: bool = Query(False),
    session: MarginSession = Depends(get_session),
) -> EventResponse:
    requested = session.key_pressed(req.key, req.is_terminator)
    return await _respond(session, requested, wait)


@app.post("/resize", response_model=EventResponse)
async def resize(
    req: ResizeRequest,
    session: MarginSession = Depends(get_session),
) -> EventResponse:
    session.resize(req.metrics)
    # Layout only; in-flight annotations keep running
    return await _respond(session, None, True, annotations=False)


@app.get("/notes")
async def list_notes(session: MarginSession = Depends(get_session)) -> Dict[int, Note]:
    return session.notes.snapshot()


@app.post("/notes/{index}/dismiss", response_model=Note)
async def dismiss_note(index: int, session: MarginSession = Depends(get_session)) -> Note:
    note = session.notes.suppress(index)
    if note is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Note not found")
    return note


@app.delete("/notes/{index}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(index: int, session: MarginSession = Depends(get_session)) -> None:
    if session.notes.get(index) is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Note not found")
    session.notes.clear(index)


__all__ = ["app", "get_session"]
