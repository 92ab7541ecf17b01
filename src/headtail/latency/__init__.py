from .buckets import LatencyBuckets
from .recorder import LatencyRecorder, LatencySummary

__all__ = ["LatencyBuckets", "LatencyRecorder", "LatencySummary"]
