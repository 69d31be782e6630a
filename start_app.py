#!/usr/bin/env python
"""Start the marketplace API, taking the port from $PORT."""
import logging
import os

import uvicorn

from app.core.config import get_settings

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    settings = get_settings()
    port = int(os.environ.get("PORT", 8000))

    logger.info("Starting marketplace API on port %s (%s)", port, settings.ENVIRONMENT)

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=port,
        log_level=settings.LOG_LEVEL.lower(),
        reload=not settings.is_production and os.environ.get("RELOAD") == "1",
    )
