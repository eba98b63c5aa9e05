"""
Usage accounting sink.

The orchestrator reports one record per dispatched chat request. Pricing,
cost calculation and persistence live elsewhere; the gateway ships an
in-memory log that keeps recent records for the management API.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, asdict, field
from typing import Optional, List, Dict, Any, Protocol

logger = logging.getLogger(__name__)


class UsageSink(Protocol):
    """Fire-and-forget receiver of usage records."""

    def record_usage(
        self,
        provider_id: str,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
        duration_ms: int,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        ...


@dataclass
class UsageRecord:
    """One chat request's usage."""
    provider_id: str
    model_id: str
    input_tokens: int
    output_tokens: int
    duration_ms: int
    success: bool
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UsageLog:
    """
    In-memory usage sink bounded to the most recent records.

    Args:
        max_records: Records kept before the oldest are dropped
    """

    def __init__(self, max_records: int = 10000):
        self._records: deque = deque(maxlen=max_records)
        self._lock = threading.Lock()

    def record_usage(
        self,
        provider_id: str,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
        duration_ms: int,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        record = UsageRecord(
            provider_id=provider_id,
            model_id=model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            duration_ms=duration_ms,
            success=success,
            error=error,
        )
        with self._lock:
            self._records.append(record)

        if success:
            logger.info(
                f"Usage {provider_id}/{model_id}: in={input_tokens} out={output_tokens} {duration_ms}ms"
            )
        else:
            logger.warning(f"Failed request {provider_id}/{model_id} after {duration_ms}ms: {error}")

    def records(
        self,
        limit: int = 100,
        provider_id: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> List[UsageRecord]:
        """Most recent records first, optionally filtered."""
        with self._lock:
            snapshot = list(self._records)

        matches = [
            r for r in reversed(snapshot)
            if (provider_id is None or r.provider_id == provider_id)
            and (model_id is None or r.model_id == model_id)
        ]
        return matches[:limit]

    def summary(self) -> Dict[str, Any]:
        """Totals over all kept records, grouped by provider."""
        with self._lock:
            snapshot = list(self._records)

        by_provider: Dict[str, Dict[str, int]] = {}
        for r in snapshot:
            totals = by_provider.setdefault(r.provider_id, {
                "requests": 0,
                "failures": 0,
                "input_tokens": 0,
                "output_tokens": 0,
            })
            totals["requests"] += 1
            totals["failures"] += 0 if r.success else 1
            totals["input_tokens"] += r.input_tokens
            totals["output_tokens"] += r.output_tokens

        return {
            "total_requests": len(snapshot),
            "failed_requests": sum(1 for r in snapshot if not r.success),
            "input_tokens": sum(r.input_tokens for r in snapshot),
            "output_tokens": sum(r.output_tokens for r in snapshot),
            "by_provider": by_provider,
        }

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
