from __future__ import annotations

import asyncio
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import AsyncIterator, Callable, DefaultDict, Protocol
from urllib.parse import quote

from docprovider.logging.ndjson import log_event


@dataclass(frozen=True)
class ChangeNotice:
    seq: int
    document_id: str
    uri: str
    created_at: int


Listener = Callable[[ChangeNotice], None]


class ChangeNotifier(Protocol):
    """
    Host-side delivery of "children of <document id> changed" signals.
    """

    def arm(self, document_id: str) -> str: ...

    def notify_change(self, document_id: str) -> ChangeNotice: ...


def children_uri(authority: str, document_id: str) -> str:
    return f"content://{authority}/document/{quote(document_id, safe='')}/children"


class ChangeBus:
    """
    In-process notification bus keyed by parent document id.

    `arm` records that a listing of the parent was served, so observers of that listing
    care about future changes. Delivery is fire-and-forget; a failing listener never
    fails the mutation that triggered it.
    """

    def __init__(self, authority: str) -> None:
        self.authority = authority
        self._lock = threading.Lock()
        self._armed: set[str] = set()
        self._listeners: DefaultDict[str, set[Listener]] = defaultdict(set)
        self._seq = 0

    def arm(self, document_id: str) -> str:
        with self._lock:
            self._armed.add(document_id)
        return children_uri(self.authority, document_id)

    def is_armed(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._armed

    def armed_keys(self) -> set[str]:
        with self._lock:
            return set(self._armed)

    def add_listener(self, document_id: str, listener: Listener) -> None:
        with self._lock:
            self._listeners[document_id].add(listener)

    def remove_listener(self, document_id: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(document_id)
            if listeners is None:
                return
            listeners.discard(listener)
            if not listeners:
                del self._listeners[document_id]

    def notify_change(self, document_id: str) -> ChangeNotice:
        with self._lock:
            self._seq += 1
            notice = ChangeNotice(
                seq=self._seq,
                document_id=document_id,
                uri=children_uri(self.authority, document_id),
                created_at=int(time.time() * 1000),
            )
            targets = list(self._listeners.get(document_id, set()))

        for listener in targets:
            try:
                listener(notice)
            except Exception as e:  # noqa: BLE001
                log_event(
                    level="warn",
                    op="documents.notify.listener_failed",
                    parentId=document_id,
                    data={"error": str(e)},
                )
        log_event(
            level="info",
            op="documents.notify",
            parentId=document_id,
            data={"seq": notice.seq, "listeners": len(targets), "armed": self.is_armed(document_id)},
        )
        return notice


def _offer(q: "asyncio.Queue[ChangeNotice]", notice: ChangeNotice) -> None:
    # drop if backpressure
    try:
        q.put_nowait(notice)
    except asyncio.QueueFull:
        pass


async def subscribe(bus: ChangeBus, document_id: str) -> AsyncIterator[ChangeNotice]:
    """
    Async stream of notices for one parent id. Notices are raised on whatever thread
    ran the mutation and handed over to the subscriber's event loop.
    """
    loop = asyncio.get_running_loop()
    q: asyncio.Queue[ChangeNotice] = asyncio.Queue(maxsize=100)

    def deliver(notice: ChangeNotice) -> None:
        loop.call_soon_threadsafe(_offer, q, notice)

    bus.add_listener(document_id, deliver)
    try:
        while True:
            yield await q.get()
    finally:
        bus.remove_listener(document_id, deliver)
