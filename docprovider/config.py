from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_TITLE = "GSE"
DEFAULT_AUTHORITY = "org.psr.gse.user"


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class ProviderConfig:
    """
    root: directory exposed as the document tree (None = no storage available)
    title: human-readable root title; also the display name of the root document
    authority: host part of change-notification URIs
    """

    root: Optional[Path]
    title: str = DEFAULT_TITLE
    authority: str = DEFAULT_AUTHORITY


def _backend_dir() -> Path:
    # docprovider/config.py -> repo root
    return Path(__file__).resolve().parents[1]


def _resolve_path(p: str) -> Path:
    path = Path(p).expanduser()
    if not path.is_absolute():
        path = (_backend_dir() / path).resolve()
    else:
        path = path.resolve()
    return path


def provider_root() -> str:
    return os.environ.get("DOCPROVIDER_ROOT", "").strip()


def provider_title() -> str:
    return os.environ.get("DOCPROVIDER_TITLE", DEFAULT_TITLE).strip() or DEFAULT_TITLE


def provider_authority() -> str:
    return os.environ.get("DOCPROVIDER_AUTHORITY", DEFAULT_AUTHORITY).strip() or DEFAULT_AUTHORITY


def cors_origins() -> list[str]:
    raw = os.environ.get("DOCPROVIDER_CORS_ORIGINS", "http://localhost:5173")
    return [o.strip() for o in raw.split(",") if o.strip()]


def load_config() -> ProviderConfig:
    """
    Load provider config from environment.

    Supported env vars:
    - DOCPROVIDER_ROOT: directory to expose; relative paths resolve against the repo root
    - DOCPROVIDER_TITLE (optional, default "GSE")
    - DOCPROVIDER_AUTHORITY (optional, default "org.psr.gse.user")
    """
    raw_root = provider_root()
    return ProviderConfig(
        root=_resolve_path(raw_root) if raw_root else None,
        title=provider_title(),
        authority=provider_authority(),
    )


def ensure_root(config: ProviderConfig) -> Optional[Path]:
    """
    Create the configured root if needed. Returns None when there is no usable storage.
    """
    root = config.root
    if root is None:
        return None
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    if not root.is_dir():
        return None
    return root
