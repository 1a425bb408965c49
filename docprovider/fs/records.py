from __future__ import annotations

import enum
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence


MIME_TYPE_DIR = "vnd.android.document/directory"
MIME_TYPE_DEFAULT = "application/octet-stream"

ROOT_ICON = "mipmap/ic_launcher"


class DocumentFlags(enum.IntFlag):
    NONE = 0
    SUPPORTS_THUMBNAIL = 1
    SUPPORTS_WRITE = 2
    SUPPORTS_DELETE = 4
    DIR_SUPPORTS_CREATE = 8
    SUPPORTS_RENAME = 64


class RootFlags(enum.IntFlag):
    NONE = 0
    SUPPORTS_CREATE = 1
    SUPPORTS_RECENTS = 4
    SUPPORTS_SEARCH = 8


# Document columns
COLUMN_DOCUMENT_ID = "document_id"
COLUMN_MIME_TYPE = "mime_type"
COLUMN_DISPLAY_NAME = "_display_name"
COLUMN_LAST_MODIFIED = "last_modified"
COLUMN_FLAGS = "flags"
COLUMN_SIZE = "_size"
COLUMN_ICON = "icon"

# Root columns
COLUMN_ROOT_ID = "root_id"
COLUMN_MIME_TYPES = "mime_types"
COLUMN_TITLE = "title"
COLUMN_SUMMARY = "summary"
COLUMN_AVAILABLE_BYTES = "available_bytes"

DEFAULT_ROOT_PROJECTION: tuple[str, ...] = (
    COLUMN_ROOT_ID,
    COLUMN_MIME_TYPES,
    COLUMN_FLAGS,
    COLUMN_ICON,
    COLUMN_TITLE,
    COLUMN_SUMMARY,
    COLUMN_DOCUMENT_ID,
    COLUMN_AVAILABLE_BYTES,
)

DEFAULT_DOCUMENT_PROJECTION: tuple[str, ...] = (
    COLUMN_DOCUMENT_ID,
    COLUMN_MIME_TYPE,
    COLUMN_DISPLAY_NAME,
    COLUMN_LAST_MODIFIED,
    COLUMN_FLAGS,
    COLUMN_SIZE,
)


def mime_type_for(path: Path) -> str:
    if path.is_dir():
        return MIME_TYPE_DIR
    name = path.name
    dot = name.rfind(".")
    # a leading dot marks a hidden file, not an extension
    if dot <= 0:
        return MIME_TYPE_DEFAULT
    ext = name[dot + 1 :]
    if not ext:
        return MIME_TYPE_DEFAULT
    guessed, _encoding = mimetypes.guess_type(f"x.{ext}", strict=False)
    return guessed or MIME_TYPE_DEFAULT


def capability_flags(path: Path, mime_type: str) -> DocumentFlags:
    flags = DocumentFlags.NONE
    if os.access(path, os.W_OK):
        flags = DocumentFlags.DIR_SUPPORTS_CREATE if path.is_dir() else DocumentFlags.SUPPORTS_WRITE
        flags |= DocumentFlags.SUPPORTS_DELETE | DocumentFlags.SUPPORTS_RENAME
    if path.exists() and mime_type.startswith("image/"):
        flags |= DocumentFlags.SUPPORTS_THUMBNAIL
    return flags


@dataclass(frozen=True)
class DocumentRecord:
    document_id: str
    mime_type: str
    display_name: str
    last_modified: int
    flags: DocumentFlags
    size: Optional[int]
    icon: Optional[str] = None

    def as_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            COLUMN_DOCUMENT_ID: self.document_id,
            COLUMN_MIME_TYPE: self.mime_type,
            COLUMN_DISPLAY_NAME: self.display_name,
            COLUMN_LAST_MODIFIED: self.last_modified,
            COLUMN_FLAGS: int(self.flags),
            COLUMN_SIZE: self.size,
        }
        if self.icon is not None:
            row[COLUMN_ICON] = self.icon
        return row


@dataclass(frozen=True)
class RootDescriptor:
    root_id: str
    title: str
    icon: str
    flags: RootFlags
    document_id: str
    mime_types: str = "*/*"
    summary: Optional[str] = None
    available_bytes: Optional[int] = None

    def as_row(self) -> dict[str, Any]:
        return {
            COLUMN_ROOT_ID: self.root_id,
            COLUMN_MIME_TYPES: self.mime_types,
            COLUMN_FLAGS: int(self.flags),
            COLUMN_ICON: self.icon,
            COLUMN_TITLE: self.title,
            COLUMN_SUMMARY: self.summary,
            COLUMN_DOCUMENT_ID: self.document_id,
            COLUMN_AVAILABLE_BYTES: self.available_bytes,
        }


def build_record(path: Path, document_id: str, *, display_name: Optional[str] = None, icon: Optional[str] = None) -> DocumentRecord:
    """
    Snapshot one filesystem entry. Directories report no size.
    """
    st = path.stat()
    mime = mime_type_for(path)
    return DocumentRecord(
        document_id=document_id,
        mime_type=mime,
        display_name=display_name if display_name is not None else path.name,
        last_modified=int(st.st_mtime * 1000),
        flags=capability_flags(path, mime),
        size=None if path.is_dir() else st.st_size,
        icon=icon,
    )


def project(row: dict[str, Any], projection: Optional[Sequence[str]], default: Sequence[str]) -> dict[str, Any]:
    columns = list(projection) if projection else list(default)
    return {c: row.get(c) for c in columns}


def project_rows(rows: Iterable[dict[str, Any]], projection: Optional[Sequence[str]], default: Sequence[str]) -> list[dict[str, Any]]:
    return [project(r, projection, default) for r in rows]
