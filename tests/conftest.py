"""Pytest bootstrap for local source imports.

Makes ``import docprovider`` resolve to the working tree and sends the NDJSON
event log to a throwaway directory before any application module is imported.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)

if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)

os.environ["DOCPROVIDER_LOG_DIR"] = tempfile.mkdtemp(prefix="docprovider-logs-")
os.environ.pop("DOCPROVIDER_ROOT", None)
