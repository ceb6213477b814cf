from __future__ import annotations

import uvicorn

from promoshot.config import get_settings
from promoshot.web.app import create_app


def main() -> None:
    settings = get_settings()
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.web_host,
        port=settings.web_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == '__main__':
    main()
