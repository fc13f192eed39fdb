"""Validated chain settings.

:class:`ChainSettings` is the merged, validated result of the configuration
layers handled by :mod:`FallbackChain.loader`. It knows how to turn itself
into the callables :class:`~FallbackChain.types.FallbackOptions` expects.
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .accept import accept_defined, accept_ok, accept_status, accept_truthy
from .types import AcceptFn, AttemptMeta, FallbackOptions, TimeoutSpec

AcceptMode = Literal["any", "ok", "truthy", "defined", "status"]


class ChainSettings(BaseModel):
    """Settings shared by every chain built from one configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_ms: Optional[float] = Field(
        None, ge=0, description="Default per-attempt timeout (ms); null disables it"
    )
    attempt_timeouts_ms: List[Optional[float]] = Field(
        default_factory=list,
        description="Per-attempt timeout overrides by index; falls back to timeout_ms",
    )
    accept: AcceptMode = Field("any", description="Built-in accept predicate")
    accept_status: List[int] = Field(
        default_factory=list, description="Status codes accepted when accept == 'status'"
    )
    log_level: str = Field("INFO", description="Logging level for the CLI")
    telemetry_path: Optional[str] = Field(None, description="JSONL attempt log path")

    @field_validator("attempt_timeouts_ms")
    @classmethod
    def validate_attempt_timeouts(cls, v: List[Optional[float]]) -> List[Optional[float]]:
        """Reject negative overrides."""
        for index, value in enumerate(v):
            if value is not None and value < 0:
                raise ValueError(f"attempt_timeouts_ms[{index}] must be non-negative")
        return v

    @field_validator("accept_status")
    @classmethod
    def validate_status_codes(cls, v: List[int]) -> List[int]:
        """Status codes must be valid HTTP codes."""
        for code in v:
            if not 100 <= code <= 599:
                raise ValueError(f"status code out of range: {code}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_accept_status(self) -> ChainSettings:
        """``accept: status`` needs at least one code."""
        if self.accept == "status" and not self.accept_status:
            raise ValueError("accept_status must list at least one code when accept == 'status'")
        return self

    def timeout_resolver(self) -> TimeoutSpec:
        """Return the ``timeout_ms`` value for FallbackOptions."""
        if not self.attempt_timeouts_ms:
            return self.timeout_ms

        overrides = tuple(self.attempt_timeouts_ms)
        default = self.timeout_ms

        def _timeout_for(meta: AttemptMeta) -> Optional[float]:
            attempt = meta["attempt"]
            if attempt < len(overrides) and overrides[attempt] is not None:
                return overrides[attempt]
            return default

        return _timeout_for

    def accept_predicate(self) -> Optional[AcceptFn]:
        """Map ``accept`` to one of the built-in predicates (``None`` for any)."""
        if self.accept == "ok":
            return accept_ok
        if self.accept == "truthy":
            return accept_truthy
        if self.accept == "defined":
            return accept_defined
        if self.accept == "status":
            return accept_status(*self.accept_status)
        return None


def build_options(settings: ChainSettings, **overrides: Any) -> FallbackOptions:
    """Build FallbackOptions from ``settings``.

    Keyword arguments (``on_attempt``, ``retryable``, ``cancellation_token``,
    ``accept``...) are passed through and take precedence.
    """
    values: dict[str, Any] = {
        "timeout_ms": settings.timeout_resolver(),
        "accept": settings.accept_predicate(),
    }
    values.update(overrides)
    return FallbackOptions(**values)


__all__ = ["AcceptMode", "ChainSettings", "build_options"]
