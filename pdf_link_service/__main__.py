"""
Run the PDF link service with uvicorn.

    python -m pdf_link_service
"""

import logging
import sys

import uvicorn

from .app import create_app
from .config import validate_config_on_startup


logger = logging.getLogger("pdf_link_service")


def main() -> int:
    try:
        settings = validate_config_on_startup()
    except ValueError as e:
        logger.critical(str(e))
        return 1

    logging.getLogger().setLevel(settings.log_level)
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
