from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from docprovider.logging.ndjson import log_dir, read_tail

router = APIRouter()


@router.get("/api/logs/tail")
def get_logs_tail(lines: int = Query(200, ge=1, le=2000)) -> dict[str, Any]:
    out_lines = read_tail(max_lines=int(lines))
    return {"dir": str(log_dir()), "lines": out_lines, "count": len(out_lines)}
