"""Module executed when running ``python -m youtubio`` or the ``youtubio`` script."""

from __future__ import annotations

import uvicorn

from app.config import settings


def main() -> None:
    """Serve the addon with uvicorn on the configured host and port."""

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
