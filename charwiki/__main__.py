"""
Runs the API server: ``python -m charwiki``.
"""

from __future__ import annotations

import uvicorn

from charwiki.app import create_app
from charwiki.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
