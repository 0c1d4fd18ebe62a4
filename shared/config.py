"""Environment-driven settings, read once at process start."""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration handed to the gateway and the API layer."""

    quantum_base_url: str = ""
    quantum_api_key: Optional[str] = None
    request_timeout_ms: int = 60000
    health_timeout_ms: int = 5000
    mock_mode: bool = False
    allow_origin: str = "*"
    host: str = "0.0.0.0"
    port: int = 5000
    portfolio_service_url: str = "http://localhost:5000"

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0

    @property
    def health_timeout_seconds(self) -> float:
        return self.health_timeout_ms / 1000.0

    @property
    def mode(self) -> str:
        return "mock" if self.mock_mode else "live"

    @property
    def allowed_origins(self) -> List[str]:
        origins = [origin.strip() for origin in self.allow_origin.split(",") if origin.strip()]
        return origins or ["*"]


def _as_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _strip_url(value: Optional[str], default: str = "") -> str:
    return (value or default).strip().rstrip("/")


def load_settings() -> Settings:
    """Load runtime settings from environment variables (and a .env file)."""
    load_dotenv()

    return Settings(
        quantum_base_url=_strip_url(os.getenv("QUANTUM_BASE_URL")),
        quantum_api_key=os.getenv("QUANTUM_API_KEY") or None,
        request_timeout_ms=_as_int(os.getenv("REQUEST_TIMEOUT_MS"), 60000),
        health_timeout_ms=_as_int(os.getenv("HEALTH_TIMEOUT_MS"), 5000),
        mock_mode=_as_bool(os.getenv("MOCK_MODE"), False),
        allow_origin=os.getenv("ALLOW_ORIGIN", "*"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int(os.getenv("PORT"), 5000),
        portfolio_service_url=_strip_url(os.getenv("PORTFOLIO_SERVICE_URL"), "http://localhost:5000"),
    )
