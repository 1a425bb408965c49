from __future__ import annotations

from typing import Any, Iterator, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from docprovider.fs.errors import (
    DocumentCancelled,
    DocumentError,
    DocumentFatal,
    DocumentIOError,
    DocumentNotFound,
)
from docprovider.fs.provider import DocumentProvider
from docprovider.fs.records import MIME_TYPE_DIR


router = APIRouter()

_CHUNK = 64 * 1024


class CreateBody(BaseModel):
    parentDocumentId: str
    mimeType: str
    displayName: str


class RenameBody(BaseModel):
    documentId: str
    displayName: str


def _provider(request: Request) -> DocumentProvider:
    return request.app.state.provider


def _columns(columns: Optional[str]) -> Optional[list[str]]:
    if not columns:
        return None
    return [c.strip() for c in columns.split(",") if c.strip()] or None


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, DocumentNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, DocumentIOError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, DocumentCancelled):
        return HTTPException(status_code=499, detail=str(e))
    if isinstance(e, DocumentFatal):
        return HTTPException(status_code=500, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.get("/api/roots")
def api_roots(request: Request, columns: Optional[str] = Query(None)) -> dict:
    return {"roots": _provider(request).query_roots(_columns(columns))}


@router.post("/api/roots/reload")
def api_roots_reload(request: Request) -> dict:
    root = _provider(request).reload()
    return {"configured": root is not None}


@router.get("/api/documents")
def api_document(request: Request, documentId: str = Query(...), columns: Optional[str] = Query(None)) -> dict:
    try:
        return _provider(request).query_document(documentId, _columns(columns))
    except DocumentError as e:
        raise _http_error(e) from e


@router.get("/api/documents/children")
def api_children(request: Request, documentId: str = Query(...), columns: Optional[str] = Query(None)) -> dict:
    try:
        rows = _provider(request).query_child_documents(documentId, _columns(columns))
    except DocumentError as e:
        raise _http_error(e) from e
    return {"documentId": documentId, "documents": rows}


@router.get("/api/documents/search")
def api_search(
    request: Request,
    query: str = Query(...),
    rootId: str = Query("root"),
    columns: Optional[str] = Query(None),
) -> dict:
    try:
        return {"documents": _provider(request).query_search_documents(rootId, query, _columns(columns))}
    except DocumentError as e:
        raise _http_error(e) from e


@router.get("/api/documents/recent")
def api_recent(request: Request, rootId: str = Query("root"), columns: Optional[str] = Query(None)) -> dict:
    try:
        return {"documents": _provider(request).query_recent_documents(rootId, _columns(columns))}
    except DocumentError as e:
        raise _http_error(e) from e


@router.get("/api/documents/is-child")
def api_is_child(request: Request, parentDocumentId: str = Query(...), documentId: str = Query(...)) -> dict:
    return {"isChild": _provider(request).is_child_document(parentDocumentId, documentId)}


def _stream(handle: Any) -> Iterator[bytes]:
    try:
        while True:
            chunk = handle.read(_CHUNK)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


@router.get("/api/documents/content")
def api_read(request: Request, documentId: str = Query(...)) -> StreamingResponse:
    provider = _provider(request)
    try:
        meta = provider.query_document(documentId)
        if meta["mime_type"] == MIME_TYPE_DIR:
            raise DocumentIOError(f"{documentId} is a directory")
        handle = provider.open_document(documentId, "r")
    except DocumentError as e:
        raise _http_error(e) from e
    return StreamingResponse(_stream(handle), media_type=meta["mime_type"])


@router.get("/api/documents/thumbnail")
def api_thumbnail(
    request: Request,
    documentId: str = Query(...),
    width: Optional[int] = Query(None, ge=1),
    height: Optional[int] = Query(None, ge=1),
) -> StreamingResponse:
    provider = _provider(request)
    size_hint = (width, height) if width and height else None
    try:
        meta = provider.query_document(documentId)
        handle = provider.open_document_thumbnail(documentId, size_hint)
    except DocumentError as e:
        raise _http_error(e) from e
    return StreamingResponse(_stream(handle), media_type=meta["mime_type"])


@router.put("/api/documents/content")
async def api_write(request: Request, documentId: str = Query(...), mode: str = Query("wt")) -> dict:
    if "w" not in mode:
        raise HTTPException(status_code=400, detail=f"Mode {mode} does not allow writing")
    body = await request.body()
    try:
        handle = _provider(request).open_document(documentId, mode)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except DocumentError as e:
        raise _http_error(e) from e
    with handle:
        written = handle.write(body)
    return {"documentId": documentId, "ok": True, "bytes": written}


@router.post("/api/documents")
def api_create(request: Request, body: CreateBody) -> dict:
    try:
        document_id = _provider(request).create_document(body.parentDocumentId, body.mimeType, body.displayName)
    except DocumentError as e:
        raise _http_error(e) from e
    return {"documentId": document_id}


@router.delete("/api/documents")
def api_delete(request: Request, documentId: str = Query(...)) -> dict:
    try:
        _provider(request).delete_document(documentId)
    except DocumentError as e:
        raise _http_error(e) from e
    return {"documentId": documentId, "ok": True}


@router.post("/api/documents/rename")
def api_rename(request: Request, body: RenameBody) -> dict:
    try:
        document_id = _provider(request).rename_document(body.documentId, body.displayName)
    except DocumentError as e:
        raise _http_error(e) from e
    return {"documentId": document_id}
