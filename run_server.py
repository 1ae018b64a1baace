#!/usr/bin/env python3
"""
PRD Engine server launcher.

Starts uvicorn with the log level taken from PRD_LOG_LEVEL.
"""

import logging

from prd_engine.settings import Settings

if __name__ == "__main__":
    import uvicorn

    config = Settings.get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "prd_engine.api:app",
        host="127.0.0.1",
        port=8000,
        log_level=config.log_level.lower(),
    )
