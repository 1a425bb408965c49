from __future__ import annotations

import json
from typing import Any, AsyncIterator

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from docprovider.events.bus import subscribe
from docprovider.fs.errors import DocumentError


router = APIRouter()


def _sse(event: str, data: Any) -> bytes:
    payload = json.dumps(data, ensure_ascii=False)
    return f"event: {event}\ndata: {payload}\n\n".encode("utf-8")


@router.get("/api/documents/events")
async def get_document_events(request: Request, documentId: str = Query(...)) -> StreamingResponse:
    """
    Server-Sent Events stream of change notices for the children of `documentId`.
    """
    try:
        key = request.app.state.provider.canonical_id(documentId)
    except DocumentError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    bus = request.app.state.bus

    async def gen() -> AsyncIterator[bytes]:
        yield _sse("ready", {"documentId": key})
        async for notice in subscribe(bus, key):
            yield _sse(
                "change",
                {
                    "seq": notice.seq,
                    "documentId": notice.document_id,
                    "uri": notice.uri,
                    "createdAt": notice.created_at,
                },
            )

    return StreamingResponse(gen(), media_type="text/event-stream")
