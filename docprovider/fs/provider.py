from __future__ import annotations

import heapq
import os
import shutil
import threading
from collections import deque
from pathlib import Path
from typing import Any, BinaryIO, Optional, Sequence

from docprovider.config import ProviderConfig, ensure_root
from docprovider.events.bus import ChangeBus, ChangeNotifier
from docprovider.fs.errors import DocumentCancelled, DocumentIOError, DocumentNotFound
from docprovider.fs.ids import ROOT_ID, IdentifierCodec, is_descendant_id
from docprovider.fs.records import (
    DEFAULT_DOCUMENT_PROJECTION,
    DEFAULT_ROOT_PROJECTION,
    MIME_TYPE_DIR,
    ROOT_ICON,
    DocumentRecord,
    RootDescriptor,
    RootFlags,
    build_record,
    project,
    project_rows,
)
from docprovider.logging.ndjson import log_event


MAX_RESULTS = 64

# Document-contract mode string -> (os.open flags, file object mode)
_OPEN_MODES: dict[str, tuple[int, str]] = {
    "r": (os.O_RDONLY, "rb"),
    "w": (os.O_WRONLY | os.O_CREAT | os.O_TRUNC, "wb"),
    "wt": (os.O_WRONLY | os.O_CREAT | os.O_TRUNC, "wb"),
    "wa": (os.O_WRONLY | os.O_CREAT | os.O_APPEND, "ab"),
    "rw": (os.O_RDWR | os.O_CREAT, "r+b"),
    "rwt": (os.O_RDWR | os.O_CREAT | os.O_TRUNC, "r+b"),
}


def parse_mode(mode: str) -> tuple[int, str]:
    try:
        return _OPEN_MODES[mode]
    except KeyError:
        raise ValueError(f"Bad mode: {mode}") from None


def _check_display_name(display_name: str) -> None:
    if display_name in ("", ".", "..") or "/" in display_name or "\0" in display_name:
        raise DocumentIOError(f"Invalid display name: {display_name!r}")


def find_free_path(desired: Path) -> Path:
    """
    `desired` if nothing exists there, otherwise the first free "name.N.ext" (or "name.N"
    when the name has no extension) in the same directory:
      note.txt -> note.txt.1.txt -> note.txt.2.txt
      sub      -> sub.1 -> sub.2

    Not atomic with the create/rename that follows; callers must tolerate losing a race.
    """
    if not os.path.lexists(desired):
        return desired
    try:
        cap = len(os.listdir(desired.parent)) + 1
    except OSError as e:
        raise DocumentIOError(f"Could not list directory {desired.parent}") from e

    name = desired.name
    dot = name.rfind(".")
    ext = name[dot + 1 :] if dot > 0 else ""
    for i in range(1, cap + 1):
        candidate = desired.with_name(f"{name}.{i}.{ext}" if ext else f"{name}.{i}")
        if not os.path.lexists(candidate):
            return candidate
    raise DocumentIOError(f"No free name for {desired} after {cap} attempts")


def _delete_recursively(path: Path) -> None:
    # Children first; symlinks are removed, never followed.
    if path.is_dir() and not path.is_symlink():
        try:
            children = list(path.iterdir())
        except OSError as e:
            raise DocumentIOError(f"Could not find directory {path}") from e
        for child in children:
            _delete_recursively(child)
        try:
            path.rmdir()
        except OSError as e:
            raise DocumentIOError(f"Failed to delete {path}") from e
        return
    try:
        path.unlink()
    except OSError as e:
        raise DocumentIOError(f"Failed to delete {path}") from e


class DocumentProvider:
    """
    Exposes one on-disk directory as a document tree addressed by "root/<relative path>" ids.

    Stateless apart from the resolved root (swapped as a whole on reload) and the
    notifier's subscription map, so any method may be called from any thread.
    Mutations are not serialized against each other.
    """

    def __init__(self, config: ProviderConfig, notifier: Optional[ChangeNotifier] = None) -> None:
        self.config = config
        self.notifier: ChangeNotifier = notifier if notifier is not None else ChangeBus(config.authority)
        self._codec: Optional[IdentifierCodec] = None
        self.reload()

    @property
    def root(self) -> Optional[Path]:
        codec = self._codec
        return codec.root if codec is not None else None

    def reload(self) -> Optional[Path]:
        root = ensure_root(self.config)
        self._codec = IdentifierCodec(root) if root is not None else None
        log_event(
            level="info" if root is not None else "warn",
            op="provider.reload",
            data={"root": str(root) if root is not None else None},
        )
        return root

    def _require_codec(self) -> IdentifierCodec:
        codec = self._codec
        if codec is None:
            raise DocumentNotFound("No root directory is configured")
        return codec

    def canonical_id(self, document_id: str) -> str:
        return self._require_codec().canonical(document_id)

    def _record(self, codec: IdentifierCodec, path: Path) -> DocumentRecord:
        if path == codec.root:
            return build_record(path, codec.encode(path), display_name=self.config.title, icon=ROOT_ICON)
        return build_record(path, codec.encode(path))

    # ---- queries ----

    def query_roots(self, projection: Optional[Sequence[str]] = None) -> list[dict[str, Any]]:
        codec = self._codec
        if codec is None:
            return []
        try:
            available: Optional[int] = shutil.disk_usage(codec.root).free
        except OSError:
            available = None
        descriptor = RootDescriptor(
            root_id=ROOT_ID,
            title=self.config.title,
            icon=ROOT_ICON,
            flags=RootFlags.SUPPORTS_CREATE | RootFlags.SUPPORTS_RECENTS | RootFlags.SUPPORTS_SEARCH,
            document_id=ROOT_ID,
            available_bytes=available,
        )
        return [project(descriptor.as_row(), projection, DEFAULT_ROOT_PROJECTION)]

    def query_document(self, document_id: str, projection: Optional[Sequence[str]] = None) -> dict[str, Any]:
        codec = self._require_codec()
        path = codec.decode(document_id)
        try:
            record = self._record(codec, path)
        except FileNotFoundError as e:
            raise DocumentNotFound(f"File {document_id} does not exist.") from e
        except OSError as e:
            raise DocumentIOError(f"Could not stat {document_id}") from e
        return project(record.as_row(), projection, DEFAULT_DOCUMENT_PROJECTION)

    def query_child_documents(self, parent_document_id: str, projection: Optional[Sequence[str]] = None) -> list[dict[str, Any]]:
        if self._codec is None:
            self.reload()
        codec = self._codec
        if codec is None:
            return []

        folder = codec.decode(parent_document_id)
        try:
            children = sorted(folder.iterdir(), key=lambda c: (not c.is_dir(), c.name.lower()))
        except OSError:
            children = []

        rows: list[dict[str, Any]] = []
        for child in children:
            try:
                rows.append(self._record(codec, child).as_row())
            except OSError:
                # vanished, unreadable or a symlink loop
                continue

        self.notifier.arm(codec.canonical(parent_document_id))
        return project_rows(rows, projection, DEFAULT_DOCUMENT_PROJECTION)

    def query_search_documents(self, root_id: str, query: str, projection: Optional[Sequence[str]] = None) -> list[dict[str, Any]]:
        codec = self._require_codec()
        if root_id != ROOT_ID:
            raise DocumentNotFound(f"Unknown root: {root_id}")
        needle = query.lower()
        rows: list[dict[str, Any]] = []
        pending: deque[Path] = deque([codec.root])
        while pending and len(rows) < MAX_RESULTS:
            folder = pending.popleft()
            try:
                children = sorted(folder.iterdir(), key=lambda c: c.name.lower())
            except OSError:
                continue
            for child in children:
                if child.is_dir() and not child.is_symlink():
                    pending.append(child)
                if needle in child.name.lower():
                    try:
                        rows.append(self._record(codec, child).as_row())
                    except OSError:
                        continue
                    if len(rows) >= MAX_RESULTS:
                        break
        return project_rows(rows, projection, DEFAULT_DOCUMENT_PROJECTION)

    def query_recent_documents(self, root_id: str, projection: Optional[Sequence[str]] = None) -> list[dict[str, Any]]:
        codec = self._require_codec()
        if root_id != ROOT_ID:
            raise DocumentNotFound(f"Unknown root: {root_id}")
        candidates: list[tuple[float, str]] = []
        for dirpath, _dirnames, filenames in os.walk(codec.root):
            for name in filenames:
                full = os.path.join(dirpath, name)
                try:
                    candidates.append((os.stat(full).st_mtime, full))
                except OSError:
                    continue
        rows: list[dict[str, Any]] = []
        for _mtime, full in heapq.nlargest(MAX_RESULTS, candidates):
            try:
                rows.append(self._record(codec, Path(full)).as_row())
            except OSError:
                continue
        return project_rows(rows, projection, DEFAULT_DOCUMENT_PROJECTION)

    def is_child_document(self, parent_document_id: str, document_id: str) -> bool:
        return is_descendant_id(parent_document_id, document_id)

    # ---- content ----

    def open_document(self, document_id: str, mode: str = "r", signal: Optional[threading.Event] = None) -> BinaryIO:
        """
        Raw, unbuffered handle on the underlying file. `signal` is only honoured at the
        boundary: a handle opened after cancellation is closed again.
        """
        codec = self._require_codec()
        flags, file_mode = parse_mode(mode)
        path = codec.decode(document_id)
        if signal is not None and signal.is_set():
            raise DocumentCancelled(f"Open of {document_id} cancelled")
        try:
            fd = os.open(path, flags, 0o666)
        except OSError as e:
            raise DocumentIOError(f"Could not open {document_id} with mode {mode}") from e
        try:
            handle = os.fdopen(fd, file_mode, buffering=0)
        except OSError as e:
            # directories open fine with O_RDONLY but not as a file object
            os.close(fd)
            raise DocumentIOError(f"Could not open {document_id} with mode {mode}") from e
        if signal is not None and signal.is_set():
            handle.close()
            raise DocumentCancelled(f"Open of {document_id} cancelled")
        log_event(level="info", op="documents.open", documentId=document_id, data={"mode": mode})
        return handle  # type: ignore[return-value]

    def open_document_thumbnail(
        self,
        document_id: str,
        size_hint: Optional[tuple[int, int]] = None,
        signal: Optional[threading.Event] = None,
    ) -> BinaryIO:
        _ = size_hint  # no server-side resizing
        return self.open_document(document_id, "r", signal)

    # ---- mutations ----

    def _notify(self, parent_document_id: str) -> None:
        try:
            self.notifier.notify_change(parent_document_id)
        except Exception as e:  # noqa: BLE001
            log_event(level="warn", op="documents.notify.failed", parentId=parent_document_id, data={"error": str(e)})

    def create_document(self, parent_document_id: str, mime_type: str, display_name: str) -> str:
        codec = self._require_codec()
        folder = codec.decode(parent_document_id)
        if not folder.is_dir():
            raise DocumentIOError(f"Parent {parent_document_id} is not a directory")
        _check_display_name(display_name)

        target = find_free_path(folder / display_name)
        try:
            if mime_type == MIME_TYPE_DIR:
                target.mkdir()
            else:
                # O_EXCL: losing the check-then-create race fails instead of truncating.
                os.close(os.open(target, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o666))
        except OSError as e:
            raise DocumentIOError(f"Failed to create {target}") from e

        document_id = codec.encode(target)
        log_event(
            level="info",
            op="documents.create",
            parentId=codec.canonical(parent_document_id),
            resultId=document_id,
            data={"mimeType": mime_type, "requestedName": display_name},
        )
        self._notify(codec.canonical(parent_document_id))
        return document_id

    def delete_document(self, document_id: str) -> None:
        codec = self._require_codec()
        path = codec.decode(document_id)
        if path == codec.root:
            raise DocumentIOError("Cannot delete the root document")
        parent_id = codec.encode(path.parent)
        try:
            _delete_recursively(path)
        except DocumentIOError as e:
            log_event(level="error", op="documents.delete", documentId=document_id, parentId=parent_id, data={"error": str(e)})
            raise
        log_event(level="info", op="documents.delete", documentId=document_id, parentId=parent_id)
        self._notify(parent_id)

    def rename_document(self, document_id: str, display_name: str) -> str:
        codec = self._require_codec()
        path = codec.decode(document_id)
        if path == codec.root:
            raise DocumentIOError("Cannot rename the root document")
        _check_display_name(display_name)

        dest = find_free_path(path.parent / display_name)
        try:
            os.rename(path, dest)
        except OSError as e:
            raise DocumentIOError(f"Failed to rename {document_id} to {dest.name}") from e

        new_id = codec.encode(dest)
        log_event(level="info", op="documents.rename", documentId=document_id, parentId=codec.encode(path.parent), resultId=new_id)
        self._notify(codec.encode(path.parent))
        return new_id
