from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_PATH_ENV = "WATER_STORE_PATH"
_LOW_THRESHOLD_ENV = "LOW_LEVEL_THRESHOLD"
_COOLDOWN_ENV = "ALERT_COOLDOWN_SECONDS"
_COUNTRY_CODE_ENV = "DEFAULT_COUNTRY_CODE"
_TWILIO_SID_ENV = "TWILIO_ACCOUNT_SID"
_TWILIO_TOKEN_ENV = "TWILIO_AUTH_TOKEN"
_TWILIO_NUMBER_ENV = "TWILIO_PHONE_NUMBER"
_TWILIO_BASE_URL_ENV = "TWILIO_API_BASE_URL"
_SMS_TIMEOUT_ENV = "SMS_GATEWAY_TIMEOUT_SECONDS"
_WORKER_COUNT_ENV = "ALERT_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    store_path: Optional[str]
    low_level_threshold: float
    alert_cooldown_seconds: float
    default_country_code: str
    twilio_account_sid: Optional[str]
    twilio_auth_token: Optional[str]
    twilio_phone_number: Optional[str]
    twilio_base_url: str
    sms_timeout_seconds: float
    alert_workers: int
    log_level: str

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number
        )


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_worker_count(default: int) -> int:
    value = os.getenv(_WORKER_COUNT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/water_store.json"),
        low_level_threshold=_read_positive_float(_LOW_THRESHOLD_ENV, 30.0),
        alert_cooldown_seconds=_read_positive_float(_COOLDOWN_ENV, 300.0),
        default_country_code=_read_str_env(_COUNTRY_CODE_ENV, "+91"),
        twilio_account_sid=_read_optional_env(_TWILIO_SID_ENV, None),
        twilio_auth_token=_read_optional_env(_TWILIO_TOKEN_ENV, None),
        twilio_phone_number=_read_optional_env(_TWILIO_NUMBER_ENV, None),
        twilio_base_url=_read_str_env(_TWILIO_BASE_URL_ENV, "https://api.twilio.com"),
        sms_timeout_seconds=_read_positive_float(_SMS_TIMEOUT_ENV, 10.0),
        alert_workers=_read_worker_count(4),
        log_level=_read_log_level("INFO"),
    )
