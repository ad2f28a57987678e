"""
Process configuration, read once at startup from the environment (and a
local ``.env`` file when present).

    RAPIDAPI_KEY              provider credential; empty → demo data only
    RAPIDAPI_HOST             provider host (default zillow-com1.p.rapidapi.com)
    PROVIDER_TIMEOUT_SECONDS  per-request timeout for provider calls (default 10)
    ENABLE_DEMO_FALLBACK      fall back to demo data on provider errors (default true)
    LOG_LEVEL                 logging level (default INFO)
    PORT                      HTTP port for main.py (default 8000)
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_RAPIDAPI_HOST = "zillow-com1.p.rapidapi.com"
DEFAULT_TIMEOUT_SECONDS = 10.0


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class Settings(BaseModel):
    rapidapi_key: str = ""
    rapidapi_host: str = DEFAULT_RAPIDAPI_HOST
    provider_timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    enable_demo_fallback: bool = True
    log_level: str = "INFO"
    port: int = 8000

    @property
    def has_credentials(self) -> bool:
        return bool(self.rapidapi_key.strip())


def load_settings(dotenv: bool = True) -> Settings:
    """Builds Settings from the environment. Pass dotenv=False in tests."""
    if dotenv:
        load_dotenv()

    port_raw = os.getenv("PORT", "8000").strip()
    return Settings(
        rapidapi_key=os.getenv("RAPIDAPI_KEY", ""),
        rapidapi_host=os.getenv("RAPIDAPI_HOST", "").strip() or DEFAULT_RAPIDAPI_HOST,
        provider_timeout_seconds=_env_float("PROVIDER_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        enable_demo_fallback=_env_flag("ENABLE_DEMO_FALLBACK"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        port=int(port_raw) if port_raw.isdigit() else 8000,
    )
