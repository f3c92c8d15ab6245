"""Account pool configuration (pydantic v2).

The config is a plain JSON/YAML-compatible structure::

    {"disabled": false, "strategy": "weighted",
     "items": [{"name": "primary", "sub_type": "aliyun", "weight": 3,
                "api_key": "...", "api_secret": "..."}]}

Unknown fields are ignored. Accounts are frozen once parsed.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError


class Strategy(str, Enum):
    ROUND_ROBIN = "round_robin"
    WEIGHTED = "weighted"
    RANDOM = "random"


_STRATEGY_ALIASES = {
    "": Strategy.ROUND_ROBIN,
    "rr": Strategy.ROUND_ROBIN,
    "roundrobin": Strategy.ROUND_ROBIN,
    "round-robin": Strategy.ROUND_ROBIN,
}


class Account(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    name: str
    sub_type: str = ""
    weight: int = Field(1, ge=0, description="Slots in weighted rotation; 0 excludes the account")
    disabled: bool = False
    api_key: str = ""
    api_secret: str = ""
    app_id: str = ""
    region: str = ""
    callback: str = ""
    endpoint: str = ""
    intl_endpoint: str = ""
    from_: str = Field("", alias="from")
    sign_name: str = ""

    @property
    def enabled(self) -> bool:
        return not self.disabled

    def matches(self, sub_provider: str) -> bool:
        return not self.sub_type or self.sub_type == sub_provider

    def __repr__(self) -> str:
        # credentials stay out of reprs and logs
        return f"Account(name={self.name!r}, sub_type={self.sub_type!r}, weight={self.weight}, disabled={self.disabled})"


class Config(BaseModel):
    model_config = ConfigDict(extra="ignore")

    disabled: bool = False
    strategy: Strategy = Strategy.ROUND_ROBIN
    items: List[Account] = Field(default_factory=list)

    @field_validator("strategy", mode="before")
    def _normalize_strategy(cls, v: Any):  # type: ignore
        if isinstance(v, str):
            low = v.strip().lower()
            return _STRATEGY_ALIASES.get(low, low)
        return v

    @classmethod
    def from_json(cls, text: str | bytes) -> "Config":
        return cls.model_validate_json(text)

    def enabled_items(self) -> List[Account]:
        return [a for a in self.items if a.enabled]

    def ensure_usable(self) -> None:
        if self.disabled:
            raise ConfigurationError("sms pool is disabled", code="pool_disabled")
        if not self.items:
            raise ConfigurationError("sms pool has no accounts", code="empty_pool")
        seen: set[str] = set()
        for item in self.items:
            if not item.name:
                raise ConfigurationError("account name must not be empty", code="missing_name")
            if item.name in seen:
                raise ConfigurationError(f"duplicate account name {item.name!r}", code="duplicate_name")
            seen.add(item.name)
        if not self.enabled_items():
            raise ConfigurationError("every account in the sms pool is disabled", code="no_enabled_account")


__all__ = ["Strategy", "Account", "Config"]
