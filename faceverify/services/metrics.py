"""Performance metrics tracker."""
from faceverify.domain.value_objects.verification import MetricsSnapshot


class MetricsTracker:
    """Counters accumulated for the lifetime of the engine.

    The processing time is a cumulative running average: old samples are
    never decayed. Only ``reset()`` zeroes the counters.
    """

    def __init__(self) -> None:
        self._snapshot = MetricsSnapshot()

    def record(self, success: bool, processing_time_ms: float) -> None:
        current = self._snapshot
        total = current.total_verifications + 1
        average = (current.average_processing_time_ms * (total - 1) + processing_time_ms) / total
        self._snapshot = current.model_copy(update={
            "total_verifications": total,
            "successful_verifications": current.successful_verifications + (1 if success else 0),
            "average_processing_time_ms": average,
        })

    def record_cache_hit(self) -> None:
        self._snapshot = self._snapshot.model_copy(
            update={"cache_hits": self._snapshot.cache_hits + 1}
        )

    def record_cache_miss(self) -> None:
        self._snapshot = self._snapshot.model_copy(
            update={"cache_misses": self._snapshot.cache_misses + 1}
        )

    def snapshot(self) -> MetricsSnapshot:
        return self._snapshot.model_copy()

    def reset(self) -> None:
        self._snapshot = MetricsSnapshot()
