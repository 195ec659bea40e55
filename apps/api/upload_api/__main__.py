from __future__ import annotations

import sys

import uvicorn
from pydantic import ValidationError

from upload_api.core.config import get_settings
from upload_api.core.logging_config import configure_logging


def main() -> None:
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        raise SystemExit(1) from e

    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "upload_api.main:get_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
