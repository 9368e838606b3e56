"""Executable entry point for the schema inspection FastAPI application.

Environment Variables:
    PORT (int): Override listening port (default 8000).

Example:
    $ python -m odata_schema_cache.run_server
    $ PORT=9000 python -m odata_schema_cache.run_server

For production, invoke uvicorn directly:
    uvicorn odata_schema_cache.app:app --host 0.0.0.0 --port 8000 --workers 4
"""

from __future__ import annotations

import os

import uvicorn

from .app import app


def main() -> None:
    """Launch the ASGI server with development-friendly defaults."""
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
