from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import InvalidConfiguration


class WalrusSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    WALRUS_AGGREGATOR_URL: str = Field(default="https://aggregator.walrus-testnet.walrus.space")
    WALRUS_PUBLISHER_URL: str = Field(default="https://publisher.walrus-testnet.walrus.space")
    WALRUS_TIMEOUT_SECONDS: Optional[float] = Field(default=30.0, gt=0)
    WALRUS_DEFAULT_EPOCHS: Optional[int] = Field(default=None, gt=0)


def validate_base_url(role: str, value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidConfiguration(f"{role} URL is required")
    text = value.strip()
    try:
        url = httpx.URL(text)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidConfiguration(f"invalid {role} URL {value!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidConfiguration(f"{role} URL must be an absolute http(s) URL, got {value!r}")
    if url.query or url.fragment:
        raise InvalidConfiguration(f"{role} URL must not carry a query or fragment, got {value!r}")
    return text.rstrip("/")


@dataclass(frozen=True)
class ClientConfig:
    """Immutable base URLs owned by one client instance."""

    aggregator_url: str
    publisher_url: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "aggregator_url", validate_base_url("aggregator", self.aggregator_url))
        object.__setattr__(self, "publisher_url", validate_base_url("publisher", self.publisher_url))
