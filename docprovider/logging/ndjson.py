from __future__ import annotations

import json
import os
import threading
import time
from collections import deque
from pathlib import Path
from typing import Any, Optional

_lock = threading.Lock()

LOG_FILE = "documents.ndjson"
MAX_VALUE_LEN = 300


def log_dir() -> Path:
    p = os.environ.get("DOCPROVIDER_LOG_DIR")
    if p:
        return Path(p)
    # docprovider/logging/ndjson.py -> repo root
    return Path(__file__).resolve().parents[2] / "data" / "logs"


def log_path() -> Path:
    return log_dir() / LOG_FILE


def _clip(v: Any) -> Any:
    if isinstance(v, str) and len(v) > MAX_VALUE_LEN:
        return v[:MAX_VALUE_LEN] + "..."
    return v


def init_logging() -> None:
    log_dir().mkdir(parents=True, exist_ok=True)


def log_event(
    *,
    level: str,
    op: str,
    documentId: Optional[str] = None,
    parentId: Optional[str] = None,
    resultId: Optional[str] = None,
    data: Optional[dict[str, Any]] = None,
) -> None:
    """
    Append one record to the document operation log.

    `documentId` is the document acted on, `parentId` the directory whose listing
    changes, `resultId` the id the operation produced (create/rename).
    """
    rec: dict[str, Any] = {"ts": int(time.time() * 1000), "level": level, "op": op}
    for key, value in (("documentId", documentId), ("parentId", parentId), ("resultId", resultId)):
        if value is not None:
            rec[key] = value
    if data:
        rec["data"] = {str(k): _clip(v) for k, v in data.items()}

    line = json.dumps(rec, ensure_ascii=False)
    with _lock:
        try:
            log_dir().mkdir(parents=True, exist_ok=True)
            with open(log_path(), "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError:
            # Never fail a document operation because of logging.
            pass


def read_tail(*, max_lines: int) -> list[str]:
    p = log_path()
    with _lock:
        try:
            with open(p, encoding="utf-8", errors="ignore") as f:
                tail = deque((ln.rstrip("\n") for ln in f if ln.strip()), maxlen=max_lines)
        except OSError:
            return []
    return list(tail)
