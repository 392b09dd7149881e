"""
Logging centralizzato: un logger "spiral" su stdout, livello da LOG_LEVEL.
I moduli usano get_logger(__name__).
"""
import logging
import sys

from ..config import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
logger = logging.getLogger("spiral")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

# niente propagazione al root logger (evita righe doppie sotto uvicorn)
logger.propagate = False


def get_logger(name: str | None = None) -> logging.Logger:
    if not name:
        return logger
    if name == "spiral" or name.startswith("spiral."):
        return logging.getLogger(name)
    return logging.getLogger(f"spiral.{name}")
