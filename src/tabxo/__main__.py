"""Entry point for running tabxo via ``python -m tabxo``."""

from __future__ import annotations

import logging

import uvicorn

from .config import get_settings


def main() -> None:
    """Start the FastAPI server hosting the shared device store."""

    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "tabxo.api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
