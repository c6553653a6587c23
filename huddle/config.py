from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./huddle.db"
    store: str = "memory"  # memory|sql
    debounce_ms: int = 100
    seed: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            store=os.getenv("HUDDLE_STORE", cls.store).strip().lower(),
            debounce_ms=int(os.getenv("HUDDLE_DEBOUNCE_MS", str(cls.debounce_ms))),
            seed=_flag(os.getenv("HUDDLE_SEED", "true")),
            log_level=os.getenv("HUDDLE_LOG_LEVEL", cls.log_level).upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
