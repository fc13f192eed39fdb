"""Core types for sequential fallback chains.

This module defines the dataclasses exchanged between the orchestrator,
candidates and observers:

- Outcome: Literal of the five per-attempt classifications
- NamedCandidate: Normalized candidate shape (optional name + run callable)
- AttemptContext: Per-attempt value handed to a candidate
- AttemptInfo: Observation record emitted once per attempt
- FallbackOptions: Per-invocation policies (timeout, accept, retryable, hooks)

All types are frozen dataclasses; a FallbackOptions instance can be shared
across invocations.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Literal,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from .cancellation import CancellationToken
from .errors import FallbackArgumentError, OperationCancelledError

T = TypeVar("T")

# ============================================================================
# Outcomes
# ============================================================================

Outcome = Literal[
    "success",  # Value returned and accepted
    "unacceptable",  # Value returned but rejected by accept()
    "rejected",  # Candidate raised an error
    "timeout",  # Attempt exceeded its timeout
    "aborted",  # External cancellation stopped the chain
]

OUTCOMES: Tuple[str, ...] = ("success", "unacceptable", "rejected", "timeout", "aborted")

# Outcomes that carry a value rather than (only) an error
_VALUE_OUTCOMES = frozenset({"success", "unacceptable"})

AttemptMeta = Dict[str, int]
CandidateFn = Callable[["AttemptContext"], Union[Any, Awaitable[Any]]]
CandidateLike = Union[CandidateFn, "NamedCandidate", Mapping[str, Any]]
TimeoutSpec = Union[float, int, Callable[[AttemptMeta], Optional[float]], None]
AcceptFn = Callable[[Any, AttemptMeta], bool]
RetryableFn = Callable[[BaseException, AttemptMeta], bool]
AttemptObserver = Callable[["AttemptInfo"], None]


def default_is_cancellation(error: BaseException) -> bool:
    """Recognize the built-in cancellation signals."""
    return isinstance(error, (OperationCancelledError, asyncio.CancelledError))


# ============================================================================
# Candidates
# ============================================================================


@dataclass(frozen=True)
class NamedCandidate:
    """A fallback provider with an optional display name.

    Attributes:
        run: Callable receiving an :class:`AttemptContext` and returning a
            value or an awaitable of one
        name: Identifier used in observation records and logs

    Example:
        ```python
        candidate = NamedCandidate(fetch_from_cache, name="cache")
        ```
    """

    run: CandidateFn
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not callable(self.run):
            msg = f"run must be callable, got {type(self.run).__name__}"
            raise FallbackArgumentError(msg)
        if self.name is not None and not isinstance(self.name, str):
            msg = f"name must be a string, got {type(self.name).__name__}"
            raise FallbackArgumentError(msg)


# ============================================================================
# AttemptContext
# ============================================================================


@dataclass(frozen=True)
class AttemptContext:
    """Context handed to a candidate for one attempt.

    Attributes:
        attempt: Zero-based attempt index
        cancellation_token: Token cancelled on external cancellation or timeout
        prior_errors: Errors recorded by earlier attempts, oldest first
    """

    attempt: int
    cancellation_token: CancellationToken
    prior_errors: Tuple[BaseException, ...] = ()

    @property
    def is_cancelled(self) -> bool:
        """Shortcut for ``cancellation_token.is_cancelled()``."""
        return self.cancellation_token.is_cancelled()


# ============================================================================
# AttemptInfo
# ============================================================================


@dataclass(frozen=True)
class AttemptInfo:
    """Observation record for a single attempt.

    Attributes:
        attempt: Zero-based attempt index
        outcome: Classification of the attempt
        duration_ms: Wall-clock duration in milliseconds
        name: Candidate name, if one was given
        value: Returned value (``success`` and ``unacceptable`` only)
        error: Error behind the outcome (every outcome except ``success``)
        has_value: Whether ``value`` is meaningful, since ``None`` is a valid value

    Example:
        ```python
        info = AttemptInfo(attempt=0, outcome="success", duration_ms=12.5,
                           name="primary", value="ok", has_value=True)
        ```
    """

    attempt: int
    outcome: Outcome
    duration_ms: float
    name: Optional[str] = None
    value: Any = None
    error: Optional[BaseException] = None
    has_value: bool = False

    def __post_init__(self) -> None:
        """Validate record integrity."""
        if self.outcome not in OUTCOMES:
            msg = f"unknown outcome {self.outcome!r}"
            raise ValueError(msg)
        if self.attempt < 0:
            msg = f"attempt must be non-negative, got {self.attempt}"
            raise ValueError(msg)
        if self.duration_ms < 0:
            msg = f"duration_ms must be non-negative, got {self.duration_ms}"
            raise ValueError(msg)
        if self.outcome in _VALUE_OUTCOMES and not self.has_value:
            msg = f"outcome={self.outcome!r} requires a value"
            raise ValueError(msg)
        if self.outcome != "success" and self.error is None:
            msg = f"outcome={self.outcome!r} requires an error"
            raise ValueError(msg)

    @property
    def is_success(self) -> bool:
        """Check if this attempt produced the chain's result."""
        return self.outcome == "success"

    @property
    def is_terminal(self) -> bool:
        """Check if this outcome alone ends the chain."""
        return self.outcome in ("success", "aborted")

    def as_dict(self) -> Dict[str, Any]:
        """Return the record as a dict, omitting absent fields."""
        data: Dict[str, Any] = {
            "attempt": self.attempt,
            "outcome": self.outcome,
            "duration_ms": self.duration_ms,
        }
        if self.name is not None:
            data["name"] = self.name
        if self.has_value:
            data["value"] = self.value
        if self.error is not None:
            data["error"] = self.error
        return data


# ============================================================================
# FallbackOptions
# ============================================================================


def _check_callable(name: str, value: Any) -> None:
    if value is not None and not callable(value):
        msg = f"{name} must be callable, got {type(value).__name__}"
        raise FallbackArgumentError(msg)


@dataclass(frozen=True)
class FallbackOptions:
    """Policies applied to one fallback invocation.

    Attributes:
        cancellation_token: External token; cancelling it aborts the chain
        timeout_ms: Per-attempt timeout in milliseconds, or a callable taking
            ``{"attempt": n}`` and returning one. ``None``, negative and
            non-finite values disable the timeout for that attempt.
        accept: ``accept(value, {"attempt": n})``; defaults to accepting everything
        retryable: ``retryable(error, {"attempt": n})``; defaults to retrying
            everything except cancellation signals
        on_attempt: Observer called once per attempt with an :class:`AttemptInfo`
        is_cancellation: Classifier recognizing cancellation signals

    Example:
        ```python
        options = FallbackOptions(
            timeout_ms=lambda meta: 2_000 if meta["attempt"] == 0 else 8_000,
            accept=accept_ok,
            on_attempt=recorder,
        )
        ```
    """

    cancellation_token: Optional[CancellationToken] = None
    timeout_ms: TimeoutSpec = None
    accept: Optional[AcceptFn] = None
    retryable: Optional[RetryableFn] = None
    on_attempt: Optional[AttemptObserver] = None
    is_cancellation: Callable[[BaseException], bool] = field(default=default_is_cancellation)

    def __post_init__(self) -> None:
        """Validate option types."""
        if self.cancellation_token is not None and not isinstance(
            self.cancellation_token, CancellationToken
        ):
            msg = (
                "cancellation_token must be a CancellationToken, "
                f"got {type(self.cancellation_token).__name__}"
            )
            raise FallbackArgumentError(msg)
        timeout = self.timeout_ms
        if timeout is not None and not callable(timeout):
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                msg = f"timeout_ms must be a number or callable, got {type(timeout).__name__}"
                raise FallbackArgumentError(msg)
        _check_callable("accept", self.accept)
        _check_callable("retryable", self.retryable)
        _check_callable("on_attempt", self.on_attempt)
        _check_callable("is_cancellation", self.is_cancellation)

    def resolve_timeout_ms(self, attempt: int) -> Optional[float]:
        """Return the effective timeout for ``attempt``, or ``None`` for no timeout."""
        timeout = self.timeout_ms
        if callable(timeout):
            timeout = timeout({"attempt": attempt})
        if timeout is None or isinstance(timeout, bool):
            return None
        if not isinstance(timeout, (int, float)):
            return None
        if not math.isfinite(timeout) or timeout < 0:
            return None
        return float(timeout)

    def is_acceptable(self, value: Any, attempt: int) -> bool:
        """Apply ``accept`` (default: accept everything)."""
        if self.accept is None:
            return True
        return bool(self.accept(value, {"attempt": attempt}))

    def is_retryable(self, error: BaseException, attempt: int) -> bool:
        """Apply ``retryable`` (default: everything except cancellation signals)."""
        if self.retryable is None:
            return not self.is_cancellation(error)
        return bool(self.retryable(error, {"attempt": attempt}))


__all__ = [
    "AcceptFn",
    "AttemptContext",
    "AttemptInfo",
    "AttemptMeta",
    "AttemptObserver",
    "CandidateFn",
    "CandidateLike",
    "FallbackOptions",
    "NamedCandidate",
    "OUTCOMES",
    "Outcome",
    "RetryableFn",
    "TimeoutSpec",
    "default_is_cancellation",
]
