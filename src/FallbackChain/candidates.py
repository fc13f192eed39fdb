"""Candidate normalization.

Candidates arrive as bare callables, :class:`NamedCandidate` instances or
``{"name": ..., "run": ...}`` mappings. The shape is resolved exactly once,
here, and the rest of the package only ever sees :class:`NamedCandidate`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, List

from .errors import FallbackArgumentError
from .types import CandidateLike, NamedCandidate


def normalize_candidate(candidate: CandidateLike, *, index: int | None = None) -> NamedCandidate:
    """Resolve ``candidate`` into a :class:`NamedCandidate`.

    Args:
        candidate: Callable, NamedCandidate or mapping with a callable ``run``
        index: Position in the chain, used in error messages

    Raises:
        FallbackArgumentError: If the shape is not recognized
    """
    if isinstance(candidate, NamedCandidate):
        return candidate
    if isinstance(candidate, Mapping):
        run = candidate.get("run")
        if not callable(run):
            where = f" at index {index}" if index is not None else ""
            raise FallbackArgumentError(f"candidate{where} has no callable 'run'")
        return NamedCandidate(run=run, name=candidate.get("name"))
    if callable(candidate):
        return NamedCandidate(run=candidate)
    where = f" at index {index}" if index is not None else ""
    raise FallbackArgumentError(
        f"candidate{where} must be callable or provide a 'run' callable, "
        f"got {type(candidate).__name__}"
    )


def normalize_candidates(candidates: Any) -> List[NamedCandidate]:
    """Validate a whole chain before any attempt runs.

    Raises:
        FallbackArgumentError: If ``candidates`` is not a non-empty sequence
            or any entry has an unrecognized shape
    """
    if isinstance(candidates, (str, bytes)) or not isinstance(candidates, Sequence):
        raise FallbackArgumentError(
            "fallback(candidates): candidates must be a non-empty sequence"
        )
    if len(candidates) == 0:
        raise FallbackArgumentError(
            "fallback(candidates): candidates must be a non-empty sequence"
        )
    return [normalize_candidate(c, index=i) for i, c in enumerate(candidates)]


__all__ = ["normalize_candidate", "normalize_candidates"]
