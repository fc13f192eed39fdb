# === NAVMAP v1 ===
# {
#   "module": "FallbackChain.__init__",
#   "purpose": "Sequential fallback chains for asyncio.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Sequential Fallback Chains

Invokes distinct providers one at a time, in order, until one returns a value
the caller accepts:
- Lazy, ordered invocation (never more than one candidate active)
- Per-attempt timeouts raced against the candidate
- Cooperative cancellation through CancellationToken
- Accept/retryable predicates deciding when to move on
- Per-attempt observation records for logging and telemetry

Public API:
  fallback - Run a chain once
  FallbackOrchestrator - Reusable orchestrator bound to FallbackOptions
  FallbackOptions - Per-invocation policies
  AttemptContext / AttemptInfo - Per-attempt context and observation record
  CancellationToken - Cooperative cancellation signal
  accept_ok / accept_status / accept_truthy / accept_defined - Accept predicates
"""

from .accept import accept_defined, accept_ok, accept_status, accept_truthy
from .cancellation import CancellationToken, linked_token
from .errors import (
    AttemptTimeoutError,
    ConfigurationError,
    FallbackArgumentError,
    FallbackChainError,
    FallbackExhaustedError,
    OperationCancelledError,
    UnacceptableResultError,
)
from .orchestrator import FallbackOrchestrator, fallback
from .types import (
    AttemptContext,
    AttemptInfo,
    FallbackOptions,
    NamedCandidate,
    Outcome,
)

__version__ = "0.3.0"

__all__ = [
    "AttemptContext",
    "AttemptInfo",
    "AttemptTimeoutError",
    "CancellationToken",
    "ConfigurationError",
    "FallbackArgumentError",
    "FallbackChainError",
    "FallbackExhaustedError",
    "FallbackOptions",
    "FallbackOrchestrator",
    "NamedCandidate",
    "OperationCancelledError",
    "Outcome",
    "UnacceptableResultError",
    "accept_defined",
    "accept_ok",
    "accept_status",
    "accept_truthy",
    "fallback",
    "linked_token",
]
