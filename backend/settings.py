"""Configuration applicative backend (API FastAPI) basée sur core.settings.AppSettings."""

from __future__ import annotations

import os
from dataclasses import fields

from core.settings import AppSettings as CoreSettings


class Settings(CoreSettings):
    log_level: str = "INFO"

    @staticmethod
    def load() -> "Settings":
        core = CoreSettings.load()
        log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
        obj = Settings(**{f.name: getattr(core, f.name) for f in fields(core)})
        object.__setattr__(obj, "log_level", log_level)
        return obj
