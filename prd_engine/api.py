"""
PRD Engine - HTTP host
======================

Aplicação FastAPI que expõe o motor de scheduling.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prd_engine import __version__
from prd_engine.scheduling.api import router as scheduling_router
from prd_engine.settings import Settings

logger = logging.getLogger(__name__)

app = FastAPI(title="PRD Scheduling Engine", version=__version__)
app.include_router(scheduling_router)
logger.info("Scheduling API loaded successfully")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    config = Settings.get_config()
    return {
        "status": "ok",
        "version": __version__,
        "default_algorithm": config.default_algorithm,
        "horizon_days": config.horizon_days,
    }
