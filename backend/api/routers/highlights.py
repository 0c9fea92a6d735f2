"""Highlight endpoints, scoped to a reading.

Routes
------
GET    /readings/{reading_id}/highlights                  List highlights
POST   /readings/{reading_id}/highlights                  Create a highlight
DELETE /readings/{reading_id}/highlights/{highlight_id}   Delete a highlight

Note: this router is mounted with prefix ``/readings`` in ``app.py``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from backend.db.highlights import (
    create_highlight,
    delete_highlight,
    get_highlight,
    list_highlights,
)
from backend.reader.models import Highlight, HighlightColor

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class HighlightCreate(BaseModel):
    text: str = Field(min_length=1)
    color: HighlightColor = "yellow"
    week_id: str = ""
    occurrence: Optional[int] = Field(default=None, ge=0)


class HighlightOut(BaseModel):
    id: str
    reading_id: str
    week_id: str
    text: str
    color: str
    occurrence: Optional[int]
    created_at: int


def _highlight_response(h: Highlight) -> dict[str, Any]:
    return {
        "id": h.id,
        "reading_id": h.reading_id,
        "week_id": h.week_id,
        "text": h.text,
        "color": h.color,
        "occurrence": h.occurrence,
        "created_at": h.created_at,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/{reading_id}/highlights", response_model=list[HighlightOut])
def list_all(reading_id: str, request: Request) -> list[dict[str, Any]]:
    """Return the reading's highlights, oldest first."""
    conn = request.app.state.db
    return [_highlight_response(h) for h in list_highlights(conn, reading_id=reading_id)]


@router.post("/{reading_id}/highlights", response_model=HighlightOut, status_code=201)
def create(reading_id: str, body: HighlightCreate, request: Request) -> dict[str, Any]:
    """Store a new highlight for the reading."""
    conn = request.app.state.db
    try:
        highlight = create_highlight(
            conn,
            reading_id=reading_id,
            text=body.text,
            color=body.color,
            week_id=body.week_id,
            occurrence=body.occurrence,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _highlight_response(highlight)


@router.delete("/{reading_id}/highlights/{highlight_id}")
def remove(reading_id: str, highlight_id: str, request: Request) -> Response:
    """Delete a highlight belonging to the reading."""
    conn = request.app.state.db
    highlight = get_highlight(conn, highlight_id)
    if highlight is None or highlight.reading_id != reading_id:
        raise HTTPException(status_code=404, detail=f"Highlight not found: {highlight_id!r}")
    delete_highlight(conn, highlight_id)
    return Response(status_code=204)
