from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TypeVar

from dotenv import load_dotenv

T = TypeVar("T", int, float)


@dataclass(frozen=True)
class TwitterCredentials:
    app_key: str
    app_secret: str
    access_token: str
    access_secret: str


@dataclass(frozen=True)
class Settings:
    tensor_api_url: str
    tensor_ws_url: str
    tensor_api_key: str
    discord_webhooks: tuple[str, ...]
    slugs: tuple[str, ...]
    twitter: TwitterCredentials | None
    filter_trait: str | None
    filter_trait_values: tuple[str, ...]
    filter_trait_required: bool
    allowed_tx_types: tuple[str, ...]
    coingecko_api_base: str
    request_timeout_seconds: float
    health_log_interval_seconds: int
    log_level: str


def _required(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _optional_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _optional_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _positive(name: str, value: T) -> T:
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _optional_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def split_csv(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _required_list(name: str) -> tuple[str, ...]:
    values = split_csv(_required(name))
    if not values:
        raise ValueError(f"Environment variable {name} must list at least one value")
    return values


def _twitter_credentials() -> TwitterCredentials | None:
    names = (
        "TWITTER_APP_KEY",
        "TWITTER_APP_SECRET",
        "TWITTER_ACCESS_TOKEN",
        "TWITTER_ACCESS_SECRET",
    )
    values = [os.getenv(name, "").strip() for name in names]
    if not any(values):
        return None
    missing = [name for name, value in zip(names, values) if not value]
    if missing:
        raise ValueError(f"Incomplete Twitter credentials, missing: {', '.join(missing)}")
    return TwitterCredentials(*values)


def load_settings() -> Settings:
    load_dotenv()

    filter_trait = os.getenv("FILTER_TRAIT", "").strip() or None
    filter_trait_values = split_csv(os.getenv("FILTER_TRAIT_VALUES"))
    if filter_trait and not filter_trait_values:
        raise ValueError("FILTER_TRAIT_VALUES is required when FILTER_TRAIT is set")

    return Settings(
        tensor_api_url=os.getenv("TENSOR_API_URL", "https://api.tensor.so/graphql").strip(),
        tensor_ws_url=os.getenv("TENSOR_WS_URL", "wss://api.tensor.so/graphql").strip(),
        tensor_api_key=_required("TENSOR_API_KEY"),
        discord_webhooks=_required_list("DISCORD_WEBHOOKS"),
        slugs=_required_list("SLUGS"),
        twitter=_twitter_credentials(),
        filter_trait=filter_trait,
        filter_trait_values=filter_trait_values,
        filter_trait_required=_optional_bool("FILTER_TRAIT_REQUIRED", True),
        allowed_tx_types=split_csv(os.getenv("ALLOWED_TX_TYPES")),
        coingecko_api_base=os.getenv(
            "COINGECKO_API_BASE", "https://api.coingecko.com/api/v3"
        ).strip(),
        request_timeout_seconds=_positive(
            "REQUEST_TIMEOUT_SECONDS", _optional_float("REQUEST_TIMEOUT_SECONDS", 15.0)
        ),
        health_log_interval_seconds=_positive(
            "HEALTH_LOG_INTERVAL_SECONDS", _optional_int("HEALTH_LOG_INTERVAL_SECONDS", 60)
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
