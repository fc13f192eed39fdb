# === NAVMAP v1 ===
# {
#   "module": "FallbackChain.telemetry",
#   "purpose": "Attempt observers and JSONL telemetry storage.",
#   "sections": [
#     {
#       "id": "attemptrecord",
#       "name": "AttemptRecord",
#       "anchor": "class-attemptrecord",
#       "kind": "class"
#     },
#     {
#       "id": "attemptrecorder",
#       "name": "AttemptRecorder",
#       "anchor": "class-attemptrecorder",
#       "kind": "class"
#     },
#     {
#       "id": "loggingobserver",
#       "name": "LoggingObserver",
#       "anchor": "class-loggingobserver",
#       "kind": "class"
#     },
#     {
#       "id": "jsonlattemptsink",
#       "name": "JsonlAttemptSink",
#       "anchor": "class-jsonlattemptsink",
#       "kind": "class"
#     },
#     {
#       "id": "compose-observers",
#       "name": "compose_observers",
#       "anchor": "function-compose-observers",
#       "kind": "function"
#     },
#     {
#       "id": "summarize-records",
#       "name": "summarize_records",
#       "anchor": "function-summarize-records",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Attempt Observers & Telemetry Storage

Ready-made ``on_attempt`` callbacks:
  - AttemptRecorder: keep records in memory (tests, debugging)
  - LoggingObserver: one structured log line per attempt
  - JsonlAttemptSink: append validated records to a JSONL file

Plus helpers to fan out to several observers and to summarize stored
records per candidate.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import Counter, defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import describe_error
from .types import OUTCOMES, AttemptInfo, AttemptObserver, Outcome

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Record model
# ============================================================================


class AttemptRecord(BaseModel):
    """Validated, serializable form of an :class:`AttemptInfo`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    run_id: Optional[str] = Field(None, description="Correlation id of the chain run")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the attempt settled")
    attempt: int = Field(..., ge=0, description="Zero-based attempt index")
    name: Optional[str] = Field(None, description="Candidate name")
    outcome: Outcome = Field(..., description="Attempt classification")
    duration_ms: float = Field(..., ge=0, description="Attempt duration in milliseconds")
    error: Optional[str] = Field(None, description="Rendered error, if any")

    @classmethod
    def from_info(cls, info: AttemptInfo, run_id: Optional[str] = None) -> AttemptRecord:
        """Build a record from an observation."""
        return cls(
            run_id=run_id,
            attempt=info.attempt,
            name=info.name,
            outcome=info.outcome,
            duration_ms=info.duration_ms,
            error=describe_error(info.error),
        )


# ============================================================================
# Observers
# ============================================================================


class AttemptRecorder:
    """Collects observation records in memory.

    Example:
        ```python
        recorder = AttemptRecorder()
        await fallback(candidates, FallbackOptions(on_attempt=recorder))
        assert recorder.outcomes() == ["timeout", "success"]
        ```
    """

    def __init__(self) -> None:
        self._records: List[AttemptInfo] = []

    def __call__(self, info: AttemptInfo) -> None:
        self._records.append(info)

    @property
    def records(self) -> List[AttemptInfo]:
        """Recorded observations, oldest first."""
        return list(self._records)

    def outcomes(self) -> List[str]:
        """Outcomes in attempt order."""
        return [info.outcome for info in self._records]

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


class LoggingObserver:
    """Logs one line per attempt with structured ``extra_fields``."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        *,
        level: int = logging.DEBUG,
        run_id: Optional[str] = None,
    ) -> None:
        self.logger = logger or logging.getLogger("FallbackChain.attempts")
        self.level = level
        self.run_id = run_id

    def __call__(self, info: AttemptInfo) -> None:
        if not self.logger.isEnabledFor(self.level):
            return
        fields: Dict[str, Any] = {
            "attempt": info.attempt,
            "candidate": info.name,
            "outcome": info.outcome,
            "duration_ms": round(info.duration_ms, 3),
        }
        if info.error is not None:
            fields["error"] = describe_error(info.error)
        self.logger.log(
            self.level,
            f"attempt {info.attempt} ({info.name or 'unnamed'}): {info.outcome} "
            f"in {info.duration_ms:.1f}ms",
            extra={"run_id": self.run_id, "extra_fields": fields},
        )


class JsonlAttemptSink:
    """Appends one JSON line per attempt to ``path``.

    Thread-safe; the parent directory is created on first write.
    """

    def __init__(self, path: Union[str, Path], run_id: Optional[str] = None) -> None:
        self.path = Path(path)
        self.run_id = run_id
        self._lock = threading.Lock()

    def __call__(self, info: AttemptInfo) -> None:
        record = AttemptRecord.from_info(info, run_id=self.run_id)
        line = record.model_dump_json()
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


def load_attempt_records(path: Union[str, Path]) -> List[AttemptRecord]:
    """Read records written by :class:`JsonlAttemptSink`.

    Malformed lines are skipped with a warning.

    Raises:
        FileNotFoundError: If ``path`` does not exist
    """
    path = Path(path)
    if not path.exists():
        msg = f"Telemetry file not found: {path}"
        raise FileNotFoundError(msg)

    records: List[AttemptRecord] = []
    with path.open(encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(AttemptRecord.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping malformed record at {path}:{lineno}: {e}")
    return records


def compose_observers(*observers: Optional[AttemptObserver]) -> AttemptObserver:
    """Combine observers into one callback, skipping ``None`` entries."""
    active = [observer for observer in observers if observer is not None]

    def _fan_out(info: AttemptInfo) -> None:
        for observer in active:
            observer(info)

    return _fan_out


# ============================================================================
# Summaries
# ============================================================================


def summarize_records(
    records: Iterable[Union[AttemptRecord, AttemptInfo]],
) -> Dict[str, Dict[str, Any]]:
    """Aggregate attempts per candidate name.

    Returns:
        Mapping of candidate name (``"<unnamed>"`` when absent) to
        ``{"attempts", "outcomes", "success_rate", "mean_duration_ms"}``
    """
    durations: Dict[str, List[float]] = defaultdict(list)
    outcomes: Dict[str, Counter] = defaultdict(Counter)

    for record in records:
        key = record.name or "<unnamed>"
        durations[key].append(record.duration_ms)
        outcomes[key][record.outcome] += 1

    summary: Dict[str, Dict[str, Any]] = {}
    for key in sorted(durations):
        count = len(durations[key])
        summary[key] = {
            "attempts": count,
            "outcomes": {o: outcomes[key][o] for o in OUTCOMES if outcomes[key][o]},
            "success_rate": outcomes[key]["success"] / count,
            "mean_duration_ms": sum(durations[key]) / count,
        }
    return summary


__all__ = [
    "AttemptRecord",
    "AttemptRecorder",
    "JsonlAttemptSink",
    "LoggingObserver",
    "compose_observers",
    "load_attempt_records",
    "summarize_records",
]
