# === NAVMAP v1 ===
# {
#   "module": "FallbackChain.errors",
#   "purpose": "Error taxonomy for sequential fallback chains.",
#   "sections": [
#     {
#       "id": "fallbackchainerror",
#       "name": "FallbackChainError",
#       "anchor": "class-fallbackchainerror",
#       "kind": "class"
#     },
#     {
#       "id": "fallbackargumenterror",
#       "name": "FallbackArgumentError",
#       "anchor": "class-fallbackargumenterror",
#       "kind": "class"
#     },
#     {
#       "id": "unacceptableresulterror",
#       "name": "UnacceptableResultError",
#       "anchor": "class-unacceptableresulterror",
#       "kind": "class"
#     },
#     {
#       "id": "attempttimeouterror",
#       "name": "AttemptTimeoutError",
#       "anchor": "class-attempttimeouterror",
#       "kind": "class"
#     },
#     {
#       "id": "operationcancellederror",
#       "name": "OperationCancelledError",
#       "anchor": "class-operationcancellederror",
#       "kind": "class"
#     },
#     {
#       "id": "fallbackexhaustederror",
#       "name": "FallbackExhaustedError",
#       "anchor": "class-fallbackexhaustederror",
#       "kind": "class"
#     },
#     {
#       "id": "configurationerror",
#       "name": "ConfigurationError",
#       "anchor": "class-configurationerror",
#       "kind": "class"
#     },
#     {
#       "id": "describe-error",
#       "name": "describe_error",
#       "anchor": "function-describe-error",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Error taxonomy for sequential fallback chains.

Responsibilities
----------------
- Define the synthetic errors produced by the orchestrator itself
  (:class:`UnacceptableResultError`, :class:`AttemptTimeoutError`,
  :class:`FallbackExhaustedError`) so callers can tell "everything failed"
  apart from "cancelled" and "a candidate refused to continue".
- Provide :class:`OperationCancelledError`, the default cancellation signal
  raised by :class:`~FallbackChain.cancellation.CancellationToken`.
- Offer :func:`describe_error` for rendering arbitrary errors into log lines
  and telemetry payloads.

Design Notes
------------
- Errors raised by candidates are never wrapped when they terminate a chain;
  only exhaustion produces a wrapper.
- The payload attributes are plain values so they serialise cleanly.
"""

from __future__ import annotations

from typing import Any, Sequence

__all__ = (
    "FallbackChainError",
    "FallbackArgumentError",
    "UnacceptableResultError",
    "AttemptTimeoutError",
    "OperationCancelledError",
    "FallbackExhaustedError",
    "ConfigurationError",
    "describe_error",
)


class FallbackChainError(Exception):
    """Base class for all errors raised by FallbackChain."""


class FallbackArgumentError(FallbackChainError, TypeError):
    """Raised when ``fallback`` is called with malformed candidates."""


class UnacceptableResultError(FallbackChainError):
    """Recorded when a candidate succeeds but its value fails ``accept``."""

    def __init__(self, value: Any, *, attempt: int) -> None:
        super().__init__("Unacceptable result")
        self.value = value
        self.attempt = attempt


class AttemptTimeoutError(FallbackChainError):
    """Raised by the attempt timer when a candidate exceeds its timeout."""

    def __init__(self, timeout_ms: float, *, attempt: int | None = None) -> None:
        super().__init__(f"Timed out after {timeout_ms:g}ms")
        self.timeout_ms = timeout_ms
        self.attempt = attempt


class OperationCancelledError(FallbackChainError):
    """Cooperative cancellation signal.

    Raised by :meth:`CancellationToken.raise_if_cancelled` and used as the
    default cancellation reason when a source is cancelled without one.
    """

    def __init__(self, message: str = "Operation was cancelled", *, reason: Any = None) -> None:
        super().__init__(message)
        self.reason = reason


class FallbackExhaustedError(FallbackChainError):
    """Raised when every candidate was tried and none succeeded acceptably.

    Attributes:
        errors: Ordered errors collected from each non-terminal attempt
        candidate_count: Number of candidates in the chain
    """

    def __init__(self, errors: Sequence[BaseException], candidate_count: int) -> None:
        super().__init__(f"All {candidate_count} fallback candidates failed")
        self.errors: tuple[BaseException, ...] = tuple(errors)
        self.candidate_count = candidate_count

    @property
    def last_error(self) -> BaseException | None:
        """Error from the final attempt, if any was recorded."""
        return self.errors[-1] if self.errors else None


class ConfigurationError(FallbackChainError, ValueError):
    """Raised when chain configuration is invalid."""


def describe_error(error: BaseException | None) -> str | None:
    """Render ``error`` as ``ClassName: message`` for logs and telemetry.

    Examples:
        >>> describe_error(ValueError("boom"))
        'ValueError: boom'
        >>> describe_error(None) is None
        True
    """
    if error is None:
        return None
    message = str(error)
    name = type(error).__name__
    return f"{name}: {message}" if message else name
