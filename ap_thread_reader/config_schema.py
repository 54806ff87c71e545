from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_LANGUAGE_TAG_RE = re.compile(r"^[A-Za-z]{1,8}(-[A-Za-z0-9]{1,8})*$")

PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]
PositiveFloat = Annotated[float, Field(gt=0.0)]


class HttpConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout_seconds: PositiveFloat = 10.0
    user_agent: str = "ap-thread-reader/0.1"
    max_connections: PositiveInt = 50
    max_keepalive_connections: PositiveInt = 20
    keepalive_expiry_seconds: NonNegativeFloat = 30.0

    @field_validator("user_agent")
    @classmethod
    def _user_agent_must_be_set(cls, v: str) -> str:
        ua = (v or "").strip()
        if not ua:
            raise ValueError("must be a non-empty string")
        return ua


class RetrySettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts: PositiveInt = 3
    base_delay_seconds: NonNegativeFloat = 0.5
    max_delay_seconds: NonNegativeFloat = 8.0
    jitter_ratio: float = Field(0.25, ge=0.0, le=1.0)
    retry_after_cap_seconds: NonNegativeFloat = 30.0

    @model_validator(mode="after")
    def _max_delay_must_cover_base(self) -> "RetrySettings":
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return self


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    context_ttl_seconds: NonNegativeFloat = 30 * 24 * 60 * 60
    object_ttl_seconds: NonNegativeFloat = 300.0
    max_entries: PositiveInt = 2048


class ReaderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    language: str | None = None
    separator: str = "\n\n---\n\n"
    include_metadata: bool = False

    @field_validator("language")
    @classmethod
    def _language_must_be_a_tag(cls, v: str | None) -> str | None:
        tag = (v or "").strip()
        if not tag:
            return None
        if not _LANGUAGE_TAG_RE.fullmatch(tag):
            raise ValueError("must be a BCP 47 language tag such as 'en' or 'en-US'")
        return tag


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    http: HttpConfig = Field(default_factory=HttpConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
