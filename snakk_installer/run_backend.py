#!/usr/bin/env python3
"""Serve the Snakk installer preview API with uvicorn.

Binds to SNAKK_UI_HOST:SNAKK_UI_PORT (127.0.0.1:8787 by default); the API is
read-only and never touches the install tree.
"""

from __future__ import annotations

import os

import uvicorn

from .backend_api import app


def main() -> None:
    host = os.environ.get("SNAKK_UI_HOST", "127.0.0.1")
    port = int(os.environ.get("SNAKK_UI_PORT", "8787"))
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
