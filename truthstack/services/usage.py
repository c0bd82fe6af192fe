"""Usage recording: write-only sinks behind a fire-and-forget emitter."""

import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

from ..config import settings
from ..models.schemas import UsageRecord, UsageSummary

logger = logging.getLogger(__name__)


class UsageRecorder(ABC):
    """Abstract base class for usage sinks."""

    @abstractmethod
    def record(self, record: UsageRecord) -> None:
        """Persist one usage record.

        Args:
            record: Summary of a completed analysis
        """
        pass


class InMemoryUsageRecorder(UsageRecorder):
    """Keeps the most recent records in memory and aggregates them."""

    def __init__(self, max_records: int = 1000):
        self.max_records = max_records
        self._records: List[UsageRecord] = []
        self._lock = threading.Lock()

    def record(self, record: UsageRecord) -> None:
        with self._lock:
            self._records.append(record)
            if len(self._records) > self.max_records:
                del self._records[: len(self._records) - self.max_records]

    @property
    def records(self) -> List[UsageRecord]:
        with self._lock:
            return list(self._records)

    def summarize(self, recent: int = 20) -> UsageSummary:
        """Aggregate stored records by category, verdict and model.

        Args:
            recent: Number of most recent records to include

        Returns:
            UsageSummary with counts and the newest records first
        """
        records = self.records
        return UsageSummary(
            total=len(records),
            with_image=sum(1 for r in records if r.has_image),
            by_category=dict(Counter(r.category or "Other" for r in records)),
            by_verdict=dict(Counter(r.verdict for r in records)),
            by_model=dict(Counter(r.model for r in records)),
            recent=list(reversed(records[-recent:])) if recent > 0 else [],
        )


class JsonlUsageRecorder(UsageRecorder):
    """Appends records as JSON lines to a local file."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.USAGE_LOG_PATH)
        self._lock = threading.Lock()

    def record(self, record: UsageRecord) -> None:
        line = record.model_dump_json()
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")


class UsageEmitter:
    """Hands usage records to a recorder without blocking the caller.

    Records are written on a single background worker. A failing write is
    logged and dropped; it never reaches the analysis that produced it.
    """

    def __init__(self, recorder: UsageRecorder):
        self.recorder = recorder
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="usage")

    def emit(self, record: UsageRecord) -> Optional[Future]:
        """Queue a record for writing.

        Returns:
            The pending write, or None if the emitter is shut down
        """
        try:
            future = self._executor.submit(self.recorder.record, record)
        except RuntimeError as e:
            logger.warning(f"Usage emitter unavailable, dropping record: {e}")
            return None
        future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future: Future):
        error = future.exception()
        if error is not None:
            logger.error(f"Failed to save usage record: {error}")

    def shutdown(self, wait: bool = True):
        """Stop the worker, optionally waiting for queued writes."""
        self._executor.shutdown(wait=wait)


def get_usage_recorder(kind: Optional[str] = None) -> Optional[UsageRecorder]:
    """Factory function to get the configured usage recorder.

    Args:
        kind: Recorder kind ("memory", "jsonl" or "none")

    Returns:
        UsageRecorder instance, or None when recording is disabled
    """
    kind = kind or settings.USAGE_RECORDER

    if kind == "memory":
        return InMemoryUsageRecorder()
    elif kind == "jsonl":
        return JsonlUsageRecorder()
    elif kind == "none":
        return None
    else:
        raise ValueError(
            f"Unknown usage recorder: {kind}. "
            "Choose from: memory, jsonl, none"
        )
