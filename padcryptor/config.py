# padcryptor/config.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from padcryptor.aes import PRIMITIVES

DEFAULT_BACKEND = "pycryptodome"
DEFAULT_WORKERS = 4

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class Settings:
    backend: str = DEFAULT_BACKEND
    workers: int = DEFAULT_WORKERS
    zeroize: bool = True
    log_level: str = "WARNING"


def _flag(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read PADCRYPTOR_* settings from the environment (and a .env file if present).

    Variables already set in the process environment win over the file.
    """
    load_dotenv(env_file)

    backend = os.getenv("PADCRYPTOR_BACKEND", DEFAULT_BACKEND).strip().lower()
    if backend not in PRIMITIVES:
        raise ValueError(f"PADCRYPTOR_BACKEND must be one of {sorted(PRIMITIVES)}, got {backend!r}")

    raw_workers = os.getenv("PADCRYPTOR_WORKERS", str(DEFAULT_WORKERS))
    try:
        workers = int(raw_workers)
    except ValueError:
        raise ValueError(f"PADCRYPTOR_WORKERS must be an integer, got {raw_workers!r}") from None
    if workers <= 0:
        raise ValueError("PADCRYPTOR_WORKERS must be positive")

    zeroize = _flag("PADCRYPTOR_ZEROIZE", os.getenv("PADCRYPTOR_ZEROIZE", "1"))

    log_level = os.getenv("PADCRYPTOR_LOG_LEVEL", "WARNING").strip().upper()
    if log_level not in _LEVELS:
        raise ValueError(f"PADCRYPTOR_LOG_LEVEL must be one of {sorted(_LEVELS)}, got {log_level!r}")

    return Settings(backend=backend, workers=workers, zeroize=zeroize, log_level=log_level)
