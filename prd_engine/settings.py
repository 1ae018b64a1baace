"""
PRD Engine - Settings
=====================

Configuração do motor de scheduling carregada de variáveis de ambiente
(ou de um ficheiro .env na raiz do projeto).

Uso:
    from prd_engine.settings import Settings

    horizon = Settings.get_config().horizon_days

Variáveis suportadas:
    PRD_DEFAULT_ALGORITHM=capacity_constrained
    PRD_HORIZON_DAYS=180
    PRD_BOTTLENECK_THRESHOLD=85
    PRD_BLOCKING_VALIDATION=material_unavailable,prerequisite_unmet
    PRD_DEFAULT_WEEKDAYS=0,1,2,3,4,5
    PRD_WINDOW_START=07:30
    PRD_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from datetime import time
from typing import FrozenSet, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


BLOCKABLE_KINDS = frozenset({
    "resource_conflict",
    "material_unavailable",
    "prerequisite_unmet",
})


@dataclass
class EngineSettings:
    """
    Configuração do motor.

    Defaults: EDD, horizonte de um ano,
    segunda a sexta, turno a partir das 08:00.
    """
    default_algorithm: str = "edd"
    horizon_days: int = 365
    bottleneck_threshold: float = 90.0
    blocking_validation: FrozenSet[str] = field(default_factory=frozenset)
    default_weekdays: Tuple[int, ...] = (0, 1, 2, 3, 4)
    window_start: time = time(8, 0)
    log_level: str = "INFO"


class Settings:
    """
    Singleton com a configuração ativa.

    Valores inválidos no ambiente são ignorados (mantém-se o default) com warning.
    """

    _instance: Optional[EngineSettings] = None

    @classmethod
    def _load_from_env(cls) -> EngineSettings:
        """Carrega configuração de variáveis de ambiente."""
        config = EngineSettings()

        value = os.environ.get("PRD_DEFAULT_ALGORITHM")
        if value:
            config.default_algorithm = value.strip().lower()
            logger.info(f"Setting default_algorithm = {config.default_algorithm}")

        value = os.environ.get("PRD_HORIZON_DAYS")
        if value:
            try:
                horizon = int(value)
                if horizon <= 0:
                    raise ValueError(value)
                config.horizon_days = horizon
                logger.info(f"Setting horizon_days = {horizon}")
            except ValueError:
                logger.warning(f"Invalid value for PRD_HORIZON_DAYS: {value}")

        value = os.environ.get("PRD_BOTTLENECK_THRESHOLD")
        if value:
            try:
                config.bottleneck_threshold = float(value)
            except ValueError:
                logger.warning(f"Invalid value for PRD_BOTTLENECK_THRESHOLD: {value}")

        value = os.environ.get("PRD_BLOCKING_VALIDATION")
        if value:
            kinds = {k.strip().lower() for k in value.split(",") if k.strip()}
            unknown = kinds - BLOCKABLE_KINDS
            if unknown:
                logger.warning(f"Ignoring unknown validation kinds: {sorted(unknown)}")
            config.blocking_validation = frozenset(kinds & BLOCKABLE_KINDS)

        value = os.environ.get("PRD_DEFAULT_WEEKDAYS")
        if value:
            try:
                days = tuple(sorted({int(d) for d in value.split(",") if d.strip()}))
                if not days or any(d < 0 or d > 6 for d in days):
                    raise ValueError(value)
                config.default_weekdays = days
            except ValueError:
                logger.warning(f"Invalid value for PRD_DEFAULT_WEEKDAYS: {value}")

        value = os.environ.get("PRD_WINDOW_START")
        if value:
            try:
                config.window_start = time.fromisoformat(value.strip())
            except ValueError:
                logger.warning(f"Invalid value for PRD_WINDOW_START: {value}")

        value = os.environ.get("PRD_LOG_LEVEL")
        if value:
            config.log_level = value.strip().upper()

        return config

    @classmethod
    def get_config(cls) -> EngineSettings:
        """Obtém configuração atual."""
        if cls._instance is None:
            cls._instance = cls._load_from_env()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset para recarregar config."""
        cls._instance = None
