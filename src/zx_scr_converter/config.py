"""Settings read from ZXSCR_* environment variables and logging setup."""

import logging
import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Settings:
    palette: str
    distance: str
    dither: str
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            palette=os.getenv("ZXSCR_PALETTE", "default"),
            distance=os.getenv("ZXSCR_DISTANCE", "lab").lower(),
            dither=os.getenv("ZXSCR_DITHER", "floyd-steinberg").lower(),
            log_level=os.getenv("ZXSCR_LOG_LEVEL", "WARNING").upper(),
        )


SETTINGS = Settings.from_env()


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    logging.basicConfig(level=level or SETTINGS.log_level)
    return logging.getLogger("zx_scr_converter")
