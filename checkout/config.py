import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

from checkout.errors import ConfigurationError

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

DEFAULT_POLL_INTERVAL_S = 1.0
DEFAULT_POLL_FAILURE_LIMIT = 1
DEFAULT_UNIT_PRICE = 100  # cents
DEFAULT_HTTP_TIMEOUT_S = 10.0


@dataclass(frozen=True)
class GatewayConfig:
    base_url: str
    api_key: str
    place_id: int


@dataclass(frozen=True)
class PollingSettings:
    # Seconds between two status checks. Tuning knob, not business logic.
    interval_s: float
    failure_limit: int
    unit_price: int


def _require(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} is not set. Check your .env file.")
    return value


def get_gateway_config() -> GatewayConfig:
    """Resolve provider credentials from the environment.

    Called once per gateway call so that a rotated key or a fixed .env is
    picked up without restarting.
    """
    base_url = _require("CHECKOUT_BASE_URL")
    api_key = _require("CHECKOUT_API_KEY")
    raw_place_id = _require("CHECKOUT_PLACE_ID")

    try:
        place_id = int(raw_place_id)
    except ValueError:
        raise ConfigurationError(f"CHECKOUT_PLACE_ID must be an integer, got {raw_place_id!r}")
    if place_id <= 0:
        raise ConfigurationError(f"CHECKOUT_PLACE_ID must be positive, got {place_id}")

    return GatewayConfig(base_url=base_url.rstrip("/"), api_key=api_key, place_id=place_id)


def _positive(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def get_polling_settings() -> PollingSettings:
    return PollingSettings(
        interval_s=_positive("CHECKOUT_POLL_INTERVAL_S", DEFAULT_POLL_INTERVAL_S, float),
        failure_limit=_positive("CHECKOUT_POLL_FAILURE_LIMIT", DEFAULT_POLL_FAILURE_LIMIT, int),
        unit_price=_positive("CHECKOUT_UNIT_PRICE", DEFAULT_UNIT_PRICE, int),
    )


def get_http_timeout() -> float:
    return _positive("CHECKOUT_HTTP_TIMEOUT_S", DEFAULT_HTTP_TIMEOUT_S, float)
