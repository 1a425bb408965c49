from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docprovider.api.documents import router as documents_router
from docprovider.api.events import router as events_router
from docprovider.api.logs import router as logs_router
from docprovider.config import ProviderConfig, cors_origins, load_config
from docprovider.events.bus import ChangeBus
from docprovider.fs.provider import DocumentProvider
from docprovider.logging.ndjson import init_logging, log_event


def _load_dotenvs() -> None:
    """
    Load environment variables from repo-root/.env (existing variables win).
    """
    repo_root = Path(__file__).resolve().parents[1]
    load_dotenv(repo_root / ".env")


def create_app(config: Optional[ProviderConfig] = None) -> FastAPI:
    if config is None:
        _load_dotenvs()
        config = load_config()
    init_logging()

    app = FastAPI(title="GSE Document Provider", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    bus = ChangeBus(config.authority)
    app.state.bus = bus
    app.state.provider = DocumentProvider(config, notifier=bus)

    @app.get("/api/health")
    def health() -> dict:
        return {"ok": True, "configured": app.state.provider.root is not None}

    @app.middleware("http")
    async def log_exceptions(request, call_next):  # type: ignore[no-untyped-def]
        try:
            return await call_next(request)
        except Exception as e:  # noqa: BLE001
            log_event(
                level="error",
                op="api.exception",
                data={"method": request.method, "path": str(request.url.path), "error": str(e)},
            )
            raise

    app.include_router(documents_router)
    app.include_router(events_router)
    app.include_router(logs_router)

    log_event(
        level="info",
        op="app.startup",
        data={"root": str(app.state.provider.root) if app.state.provider.root else None},
    )
    return app


app = create_app()


def run() -> None:
    import argparse

    import uvicorn

    ap = argparse.ArgumentParser(description="Serve the document provider over HTTP")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    args = ap.parse_args()
    uvicorn.run("docprovider.main:app", host=args.host, port=args.port)
