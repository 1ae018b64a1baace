"""
Testes para a configuração por variáveis de ambiente.
"""
from datetime import time

from prd_engine.settings import EngineSettings, Settings


class TestSettings:
    """Settings.get_config()."""

    def test_defaults(self):
        config = Settings.get_config()
        assert config == EngineSettings()
        assert config.default_weekdays == (0, 1, 2, 3, 4)
        assert config.window_start == time(8, 0)

    def test_singleton_until_reset(self, monkeypatch):
        first = Settings.get_config()
        monkeypatch.setenv("PRD_HORIZON_DAYS", "30")
        assert Settings.get_config() is first
        Settings.reset()
        assert Settings.get_config().horizon_days == 30

    def test_invalid_values_keep_defaults(self, monkeypatch):
        monkeypatch.setenv("PRD_HORIZON_DAYS", "-4")
        monkeypatch.setenv("PRD_BOTTLENECK_THRESHOLD", "alto")
        monkeypatch.setenv("PRD_DEFAULT_WEEKDAYS", "1,9")
        monkeypatch.setenv("PRD_WINDOW_START", "oito")
        config = Settings.get_config()
        assert config.horizon_days == 365
        assert config.bottleneck_threshold == 90.0
        assert config.default_weekdays == (0, 1, 2, 3, 4)
        assert config.window_start == time(8, 0)

    def test_blocking_kinds_filtered(self, monkeypatch):
        monkeypatch.setenv("PRD_BLOCKING_VALIDATION", "material_unavailable, deadline_exceeded")
        assert Settings.get_config().blocking_validation == frozenset({"material_unavailable"})

    def test_log_level_uppercased(self, monkeypatch):
        monkeypatch.setenv("PRD_LOG_LEVEL", "debug")
        assert Settings.get_config().log_level == "DEBUG"
