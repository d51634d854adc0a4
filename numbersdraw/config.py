"""Environment-based configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_PICK_COUNT = 6
DEFAULT_MAX_RANGE = 45
DEFAULT_CALLBACK_GAS_LIMIT = 500_000
DEFAULT_REQUEST_CONFIRMATIONS = 3


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment (and ``.env``)."""

    db_url: Optional[str] = None
    log_level: str = "INFO"
    operator_id: Optional[str] = None

    randomness_base_url: Optional[str] = None
    randomness_timeout: int = 45

    vrf_key_hash: str = ""
    vrf_subscription_id: str = ""
    vrf_callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    vrf_request_confirmations: int = DEFAULT_REQUEST_CONFIRMATIONS
    vrf_native_payment: bool = False

    default_pick_count: int = DEFAULT_PICK_COUNT
    default_max_range: int = DEFAULT_MAX_RANGE


def load_settings() -> Settings:
    """Read :class:`Settings` from environment variables.

    ``RANDOMNESS_API_KEY`` is intentionally not part of the settings object so
    it never ends up in logs or reprs; :func:`numbersdraw.randomness.utils.open_session`
    reads it directly.
    """
    load_dotenv()
    return Settings(
        db_url=os.getenv("DB_URL"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        operator_id=os.getenv("OPERATOR_ID"),
        randomness_base_url=os.getenv("RANDOMNESS_BASE_URL"),
        randomness_timeout=_env_int("RANDOMNESS_TIMEOUT", 45),
        vrf_key_hash=os.getenv("VRF_KEY_HASH", ""),
        vrf_subscription_id=os.getenv("VRF_SUBSCRIPTION_ID", ""),
        vrf_callback_gas_limit=_env_int(
            "VRF_CALLBACK_GAS_LIMIT", DEFAULT_CALLBACK_GAS_LIMIT
        ),
        vrf_request_confirmations=_env_int(
            "VRF_REQUEST_CONFIRMATIONS", DEFAULT_REQUEST_CONFIRMATIONS
        ),
        vrf_native_payment=_env_bool("VRF_NATIVE_PAYMENT", False),
        default_pick_count=_env_int("DEFAULT_PICK_COUNT", DEFAULT_PICK_COUNT),
        default_max_range=_env_int("DEFAULT_MAX_RANGE", DEFAULT_MAX_RANGE),
    )
