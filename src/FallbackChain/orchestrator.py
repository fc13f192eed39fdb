# === NAVMAP v1 ===
# {
#   "module": "FallbackChain.orchestrator",
#   "purpose": "Sequential fallback orchestrator.",
#   "sections": [
#     {
#       "id": "fallbackorchestrator",
#       "name": "FallbackOrchestrator",
#       "anchor": "class-fallbackorchestrator",
#       "kind": "class"
#     },
#     {
#       "id": "fallback",
#       "name": "fallback",
#       "anchor": "function-fallback",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Sequential Fallback Orchestrator

Invokes an ordered list of candidates one at a time until one returns a value
accepted by the caller, or the list is exhausted:
- Lazy, in-order invocation with exactly one active candidate
- Per-attempt timeout raced against the candidate's result
- External cancellation propagated into every attempt
- Outcome classification (success, unacceptable, rejected, timeout, aborted)
- One observation record per attempt via ``on_attempt``

Design:
- The timeout is a race, not preemption. A candidate that ignores its
  cancellation token keeps running in the background after its timeout is
  reported, and any side effects it has still happen. Its late result or
  error is discarded.
- External cancellation is cooperative: the orchestrator signals the active
  attempt and waits for the candidate to settle before surfacing the abort.
- Timer and cancellation-listener registrations are released on every exit
  path of an attempt, before its outcome is classified.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Set, Tuple

from .cancellation import CancellationToken, linked_token
from .candidates import normalize_candidates
from .errors import (
    AttemptTimeoutError,
    FallbackArgumentError,
    FallbackExhaustedError,
    OperationCancelledError,
    UnacceptableResultError,
    describe_error,
)
from .types import (
    AttemptContext,
    AttemptInfo,
    CandidateLike,
    FallbackOptions,
    NamedCandidate,
    Outcome,
)

LOGGER = logging.getLogger(__name__)

# Candidates that lost a timeout race; referenced until they finish
_DETACHED: Set[asyncio.Future] = set()


@dataclass(frozen=True)
class _Settled:
    """How one attempt settled, before classification."""

    value: Any = None
    error: Optional[BaseException] = None
    timed_out: bool = False
    interrupted: bool = False


def _discard_late_result(task: asyncio.Future) -> None:
    _DETACHED.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        LOGGER.debug(f"Ignoring late error from timed-out candidate: {describe_error(error)}")
    else:
        LOGGER.debug("Ignoring late result from timed-out candidate")


def _detach(task: asyncio.Future) -> None:
    _DETACHED.add(task)
    task.add_done_callback(_discard_late_result)


class FallbackOrchestrator:
    """
    Runs fallback chains under a fixed set of options.

    Attributes:
        options: FallbackOptions applied to every chain
        logger: Logger instance
    """

    def __init__(
        self,
        options: Optional[FallbackOptions] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if options is not None and not isinstance(options, FallbackOptions):
            msg = f"options must be a FallbackOptions, got {type(options).__name__}"
            raise FallbackArgumentError(msg)
        self.options = options if options is not None else FallbackOptions()
        self.logger = logger or LOGGER

    async def run(self, candidates: Sequence[CandidateLike]) -> Any:
        """Run ``candidates`` in order and return the first accepted value.

        Raises:
            FallbackArgumentError: If ``candidates`` is malformed (before any attempt)
            FallbackExhaustedError: If every candidate failed or was rejected
            Exception: The external cancellation reason, or a candidate's error
                when ``retryable`` declines it, propagated unwrapped
        """
        chain = normalize_candidates(candidates)
        external = self.options.cancellation_token
        errors: List[BaseException] = []

        self.logger.debug(f"Starting fallback chain: {len(chain)} candidate(s)")

        for attempt, candidate in enumerate(chain):
            if external is not None and external.is_cancelled():
                self.logger.info(f"Fallback chain cancelled before attempt {attempt}")
                external.raise_if_cancelled()

            started = time.monotonic()
            settled = await self._execute(candidate, attempt, external, tuple(errors))
            outcome, value, error = self._classify(settled, attempt, external)
            duration_ms = (time.monotonic() - started) * 1000.0

            if outcome == "unacceptable":
                errors.append(error)

            self._emit(
                AttemptInfo(
                    attempt=attempt,
                    outcome=outcome,
                    duration_ms=duration_ms,
                    name=candidate.name,
                    value=value,
                    error=error,
                    has_value=outcome in ("success", "unacceptable"),
                )
            )

            label = candidate.name or f"#{attempt}"
            if outcome == "success":
                self.logger.info(
                    f"Fallback candidate {label} succeeded (attempt={attempt}, "
                    f"elapsed={duration_ms:.1f}ms)"
                )
                return value

            if outcome == "aborted":
                self.logger.info(f"Fallback chain aborted during candidate {label}")
                raise error

            if outcome == "rejected" and not self.options.is_retryable(error, attempt):
                self.logger.info(
                    f"Fallback candidate {label} failed with a non-retryable error: "
                    f"{describe_error(error)}"
                )
                raise error

            if outcome != "unacceptable":
                errors.append(error)

            self.logger.debug(
                f"Candidate {label} {outcome}, trying next candidate "
                f"({describe_error(error)})"
            )

        self.logger.warning(f"All {len(chain)} fallback candidates failed")
        raise FallbackExhaustedError(errors, len(chain)) from (errors[-1] if errors else None)

    async def _execute(
        self,
        candidate: NamedCandidate,
        attempt: int,
        external: Optional[CancellationToken],
        prior_errors: Tuple[BaseException, ...],
    ) -> _Settled:
        """Run one candidate, bounded by its timeout, and report how it settled."""
        loop = asyncio.get_running_loop()
        timeout_ms = self.options.resolve_timeout_ms(attempt)

        with ExitStack() as cleanup:
            token = cleanup.enter_context(linked_token(external))

            waiters: Set[asyncio.Future] = set()
            timer: Optional[asyncio.Future] = None
            if timeout_ms is not None:
                timer = loop.create_future()
                waiters.add(timer)

                def _expire() -> None:
                    timeout_error = AttemptTimeoutError(timeout_ms, attempt=attempt)
                    if not timer.done():
                        timer.set_exception(timeout_error)
                    token.cancel(timeout_error)

                handle = loop.call_later(timeout_ms / 1000.0, _expire)
                cleanup.callback(handle.cancel)
                cleanup.callback(self._settle_timer, timer)

            self.logger.debug(
                f"Attempt {attempt} ({candidate.name or 'unnamed'}): "
                f"timeout={'none' if timeout_ms is None else f'{timeout_ms:g}ms'}"
            )

            context = AttemptContext(
                attempt=attempt,
                cancellation_token=token,
                prior_errors=prior_errors,
            )
            try:
                result = candidate.run(context)
            except (Exception, asyncio.CancelledError) as exc:
                return _Settled(error=exc)

            if not inspect.isawaitable(result):
                return _Settled(value=result)

            task = asyncio.ensure_future(result)
            waiters.add(task)
            try:
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError as exc:
                # the task running the chain was cancelled
                token.cancel(exc)
                if not task.done():
                    _detach(task)
                return _Settled(error=exc, interrupted=True)

            # a candidate that settled in the same loop pass as the timer wins
            if task.done():
                try:
                    return _Settled(value=task.result())
                except (Exception, asyncio.CancelledError) as exc:
                    return _Settled(error=exc)

            _detach(task)
            return _Settled(error=timer.exception(), timed_out=True)

    @staticmethod
    def _settle_timer(timer: asyncio.Future) -> None:
        if not timer.done():
            timer.cancel()
        elif not timer.cancelled():
            # mark the timeout error as retrieved
            timer.exception()

    def _classify(
        self,
        settled: _Settled,
        attempt: int,
        external: Optional[CancellationToken],
    ) -> Tuple[Outcome, Any, Optional[BaseException]]:
        """Return ``(outcome, value, error)`` for a settled attempt."""
        externally_cancelled = external is not None and external.is_cancelled()

        if settled.interrupted:
            return "aborted", None, settled.error

        if settled.timed_out:
            if externally_cancelled:
                return "aborted", None, self._cancellation_error(external)
            return "timeout", None, settled.error

        if settled.error is None:
            value = settled.value
            try:
                acceptable = self.options.is_acceptable(value, attempt)
            except Exception as exc:
                return self._classify_error(exc, externally_cancelled), None, exc
            if acceptable:
                return "success", value, None
            return "unacceptable", value, UnacceptableResultError(value, attempt=attempt)

        return self._classify_error(settled.error, externally_cancelled), None, settled.error

    def _classify_error(self, error: BaseException, externally_cancelled: bool) -> Outcome:
        if externally_cancelled or self.options.is_cancellation(error):
            return "aborted"
        return "rejected"

    @staticmethod
    def _cancellation_error(token: CancellationToken) -> BaseException:
        reason = token.reason
        if isinstance(reason, BaseException):
            return reason
        return OperationCancelledError(reason=reason)

    def _emit(self, info: AttemptInfo) -> None:
        if self.options.on_attempt is not None:
            self.options.on_attempt(info)


async def fallback(
    candidates: Sequence[CandidateLike],
    options: Optional[FallbackOptions] = None,
) -> Any:
    """Run ``candidates`` in order until one returns an acceptable value.

    Args:
        candidates: Non-empty sequence of callables, NamedCandidates or
            ``{"name": ..., "run": ...}`` mappings
        options: Optional FallbackOptions

    Returns:
        The first accepted value

    Example:
        ```python
        value = await fallback(
            [NamedCandidate(primary, name="primary"), secondary],
            FallbackOptions(timeout_ms=2_000, accept=accept_truthy),
        )
        ```
    """
    return await FallbackOrchestrator(options).run(candidates)


__all__ = ["FallbackOrchestrator", "fallback"]
