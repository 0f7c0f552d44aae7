#!/usr/bin/env python3
"""
Run the scheduling API under uvicorn.

PORT picks the listening port. Outside production the server reloads on
code changes.
"""

import os

import uvicorn

from telecare.core.config import settings


def main():
    port = int(os.environ.get("PORT", 8000))

    print(f"{settings.app_name} {settings.app_version} ({settings.app_env})")
    print(f"Listening on http://0.0.0.0:{port}, health at /health")
    if settings.debug:
        print(f"Docs at http://localhost:{port}/docs")

    uvicorn.run(
        "telecare.main:app",
        host="0.0.0.0",
        port=port,
        reload=not settings.is_production,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
