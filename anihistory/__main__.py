"""Module executed when running ``python -m anihistory``."""

from __future__ import annotations

import uvicorn

from app.config import settings


def main() -> None:
    """Serve the history API with uvicorn, keeping the application's log setup."""

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
        log_config=None,
        proxy_headers=True,
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
