"""
Fallback Types & Candidate Normalization Tests

Covers:
- AttemptInfo validation and helpers
- FallbackOptions validation and timeout resolution
- Candidate shape normalization
- Error payloads
"""

from __future__ import annotations

import asyncio

import pytest

from FallbackChain.cancellation import CancellationToken
from FallbackChain.candidates import normalize_candidate, normalize_candidates
from FallbackChain.errors import (
    AttemptTimeoutError,
    FallbackArgumentError,
    FallbackExhaustedError,
    OperationCancelledError,
    UnacceptableResultError,
    describe_error,
)
from FallbackChain.types import (
    AttemptContext,
    AttemptInfo,
    FallbackOptions,
    NamedCandidate,
    default_is_cancellation,
)


def _noop(ctx):
    return None


class TestAttemptInfo:
    """AttemptInfo record integrity."""

    def test_success_record(self):
        info = AttemptInfo(attempt=0, outcome="success", duration_ms=1.5, value="x", has_value=True)
        assert info.is_success
        assert info.is_terminal
        assert info.as_dict() == {
            "attempt": 0,
            "outcome": "success",
            "duration_ms": 1.5,
            "value": "x",
        }

    def test_none_is_a_valid_value(self):
        info = AttemptInfo(
            attempt=1,
            outcome="unacceptable",
            duration_ms=0.0,
            value=None,
            has_value=True,
            error=UnacceptableResultError(None, attempt=1),
        )
        assert "value" in info.as_dict()
        assert not info.is_terminal

    def test_rejects_unknown_outcome(self):
        with pytest.raises(ValueError, match="unknown outcome"):
            AttemptInfo(attempt=0, outcome="skipped", duration_ms=0.0)  # type: ignore[arg-type]

    def test_rejects_negative_fields(self):
        with pytest.raises(ValueError, match="attempt"):
            AttemptInfo(attempt=-1, outcome="success", duration_ms=0.0, has_value=True)
        with pytest.raises(ValueError, match="duration_ms"):
            AttemptInfo(attempt=0, outcome="success", duration_ms=-1.0, has_value=True)

    def test_failure_outcomes_require_error(self):
        with pytest.raises(ValueError, match="requires an error"):
            AttemptInfo(attempt=0, outcome="rejected", duration_ms=0.0)

    def test_value_outcomes_require_value(self):
        with pytest.raises(ValueError, match="requires a value"):
            AttemptInfo(attempt=0, outcome="success", duration_ms=0.0)


class TestFallbackOptions:
    """Option validation and derived policies."""

    def test_defaults(self):
        options = FallbackOptions()
        assert options.resolve_timeout_ms(0) is None
        assert options.is_acceptable(None, 0)
        assert options.is_retryable(RuntimeError("x"), 0)
        assert not options.is_retryable(OperationCancelledError(), 0)
        assert not options.is_retryable(asyncio.CancelledError(), 0)

    @pytest.mark.parametrize("timeout", [True, "100", [100]])
    def test_rejects_invalid_timeout_types(self, timeout):
        with pytest.raises(FallbackArgumentError, match="timeout_ms"):
            FallbackOptions(timeout_ms=timeout)

    @pytest.mark.parametrize("field", ["accept", "retryable", "on_attempt", "is_cancellation"])
    def test_rejects_non_callable_hooks(self, field):
        with pytest.raises(FallbackArgumentError, match=field):
            FallbackOptions(**{field: 42})

    def test_rejects_foreign_token(self):
        with pytest.raises(FallbackArgumentError, match="cancellation_token"):
            FallbackOptions(cancellation_token=object())  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "timeout,expected",
        [
            (100, 100.0),
            (0, 0.0),
            (12.5, 12.5),
            (-5, None),
            (float("inf"), None),
            (float("nan"), None),
            (None, None),
        ],
    )
    def test_resolve_static_timeout(self, timeout, expected):
        assert FallbackOptions(timeout_ms=timeout).resolve_timeout_ms(0) == expected

    def test_resolve_timeout_function(self):
        options = FallbackOptions(timeout_ms=lambda meta: [50, None, True, "x"][meta["attempt"]])
        assert options.resolve_timeout_ms(0) == 50.0
        assert options.resolve_timeout_ms(1) is None
        assert options.resolve_timeout_ms(2) is None
        assert options.resolve_timeout_ms(3) is None

    def test_accept_result_is_coerced_to_bool(self):
        options = FallbackOptions(accept=lambda value, meta: value)
        assert options.is_acceptable("yes", 0) is True
        assert options.is_acceptable("", 0) is False

    def test_default_is_cancellation(self):
        assert default_is_cancellation(OperationCancelledError())
        assert default_is_cancellation(asyncio.CancelledError())
        assert not default_is_cancellation(TimeoutError())


class TestAttemptContext:
    def test_is_cancelled_reflects_token(self):
        token = CancellationToken()
        ctx = AttemptContext(attempt=0, cancellation_token=token)
        assert not ctx.is_cancelled
        token.cancel()
        assert ctx.is_cancelled
        assert ctx.prior_errors == ()


class TestCandidateNormalization:
    """Accepted candidate shapes."""

    def test_callable(self):
        candidate = normalize_candidate(_noop)
        assert candidate.run is _noop
        assert candidate.name is None

    def test_named_candidate_passthrough(self):
        named = NamedCandidate(_noop, name="cache")
        assert normalize_candidate(named) is named

    def test_mapping(self):
        candidate = normalize_candidate({"name": "primary", "run": _noop})
        assert candidate == NamedCandidate(_noop, name="primary")

    def test_mapping_without_name(self):
        assert normalize_candidate({"run": _noop}).name is None

    def test_mapping_without_callable_run(self):
        with pytest.raises(FallbackArgumentError, match="index 2"):
            normalize_candidate({"run": "not callable"}, index=2)

    def test_non_callable(self):
        with pytest.raises(FallbackArgumentError, match="int"):
            normalize_candidate(42)

    def test_named_candidate_validates(self):
        with pytest.raises(FallbackArgumentError):
            NamedCandidate("nope")  # type: ignore[arg-type]
        with pytest.raises(FallbackArgumentError):
            NamedCandidate(_noop, name=3)  # type: ignore[arg-type]

    def test_sequence_types(self):
        assert len(normalize_candidates([_noop, _noop])) == 2
        assert len(normalize_candidates((_noop,))) == 1

    @pytest.mark.parametrize("candidates", [[], "ab", b"ab", None, {"run": _noop}])
    def test_rejects_non_sequences(self, candidates):
        with pytest.raises(FallbackArgumentError, match="non-empty sequence"):
            normalize_candidates(candidates)


class TestErrors:
    """Error payloads and messages."""

    def test_timeout_message(self):
        error = AttemptTimeoutError(250.0, attempt=1)
        assert str(error) == "Timed out after 250ms"
        assert error.attempt == 1

    def test_unacceptable_payload(self):
        error = UnacceptableResultError({"ok": False}, attempt=0)
        assert str(error) == "Unacceptable result"
        assert error.value == {"ok": False}

    def test_exhausted_payload(self):
        errors = [RuntimeError("a"), ValueError("b")]
        error = FallbackExhaustedError(errors, 2)
        assert error.errors == tuple(errors)
        assert error.last_error is errors[1]
        assert FallbackExhaustedError([], 0).last_error is None

    def test_argument_error_is_type_error(self):
        assert issubclass(FallbackArgumentError, TypeError)

    def test_describe_error(self):
        assert describe_error(ValueError("boom")) == "ValueError: boom"
        assert describe_error(KeyError()) == "KeyError"
        assert describe_error(None) is None
