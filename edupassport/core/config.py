from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
_SEPOLIA_CHAIN_ID = "11155111"


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _getenv_int(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    redis_url: str | None
    contract_address: str = _ZERO_ADDRESS
    chain_id: int = int(_SEPOLIA_CHAIN_ID)
    reveal_duration_days: int = 30
    jwt_private_key_path: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    port = _getenv_int("PORT", "8000")
    chain_id = _getenv_int("CHAIN_ID", _SEPOLIA_CHAIN_ID)
    reveal_duration_days = _getenv_int("REVEAL_DURATION_DAYS", "30")

    if reveal_duration_days <= 0:
        raise ValueError(
            f"REVEAL_DURATION_DAYS must be positive (got {reveal_duration_days})"
        )

    contract_address = _getenv("CONTRACT_ADDRESS", _ZERO_ADDRESS)
    if not contract_address.startswith("0x"):
        raise ValueError(
            f"CONTRACT_ADDRESS must be a 0x-prefixed address (got {contract_address!r})"
        )

    redis_url = _getenv("REDIS_URL", "") or None
    jwt_private_key_path = _getenv("JWT_PRIVATE_KEY_PATH", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        redis_url=redis_url,
        contract_address=contract_address,
        chain_id=chain_id,
        reveal_duration_days=reveal_duration_days,
        jwt_private_key_path=jwt_private_key_path,
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
