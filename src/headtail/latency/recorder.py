import math
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from headtail.latency.buckets import LatencyBuckets
from headtail.utils.extreme_queue import BoundedExtremeQueue, Orientation


@dataclass
class LatencySummary:
    """
    A snapshot of a `LatencyRecorder`. All latencies are in microseconds.

    `head` holds the smallest retained samples and `tail` the largest ones.
    Both lists are in ascending order.
    """

    buckets: LatencyBuckets
    head_size: int
    tail_size: int
    count: int = 0
    total_us: int = 0
    min_us: Optional[int] = None
    max_us: Optional[int] = None
    counts: List[int] = field(default_factory=list)
    underflow: int = 0
    overflow: int = 0
    head: List[int] = field(default_factory=list)
    tail: List[int] = field(default_factory=list)

    @classmethod
    def merge(cls, summaries: Iterable["LatencySummary"]) -> "LatencySummary":
        """
        Combines summaries recorded independently (e.g., by concurrent
        appenders). The merged head/tail sizes are the smallest of the inputs
        so that the retained extremes are exact for the combined stream.
        """
        to_merge = list(summaries)
        if len(to_merge) == 0:
            raise ValueError("Cannot merge an empty set of latency summaries.")

        recorder = LatencyRecorder(
            to_merge[0].buckets,
            head_size=min(s.head_size for s in to_merge),
            tail_size=min(s.tail_size for s in to_merge),
        )
        for summary in to_merge:
            recorder.absorb(summary)
        return recorder.summary()

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LatencySummary":
        return cls(
            buckets=LatencyBuckets.from_dict(raw["buckets"]),
            head_size=int(raw["head_size"]),
            tail_size=int(raw["tail_size"]),
            count=int(raw["count"]),
            total_us=int(raw["total_us"]),
            min_us=raw.get("min_us"),
            max_us=raw.get("max_us"),
            counts=[int(c) for c in raw["counts"]],
            underflow=int(raw["underflow"]),
            overflow=int(raw["overflow"]),
            head=list(raw["head"]),
            tail=list(raw["tail"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buckets": self.buckets.to_dict(),
            "head_size": self.head_size,
            "tail_size": self.tail_size,
            "count": self.count,
            "total_us": self.total_us,
            "min_us": self.min_us,
            "max_us": self.max_us,
            "counts": list(self.counts),
            "underflow": self.underflow,
            "overflow": self.overflow,
            "head": list(self.head),
            "tail": list(self.tail),
        }

    @property
    def mean_us(self) -> Optional[float]:
        if self.count == 0:
            return None
        return self.total_us / self.count

    def percentile(self, p: float) -> Optional[float]:
        """
        Estimates the `p`-th percentile (0 < p <= 100).

        Ranks covered by the retained head or tail are answered exactly.
        Other ranks are answered with the upper edge of the histogram bucket
        holding the rank. Returns `None` when there are no samples or when the
        rank falls in the underflow/overflow region without being retained.
        """
        if not 0 < p <= 100:
            raise ValueError("Percentile must be in (0, 100] (got {}).".format(p))
        if self.count == 0:
            return None

        rank = max(math.ceil(p * self.count / 100.0), 1)
        if rank <= len(self.head):
            return float(self.head[rank - 1])
        rank_from_top = self.count - rank + 1
        if rank_from_top <= len(self.tail):
            return float(self.tail[len(self.tail) - rank_from_top])

        if rank <= self.underflow:
            return None
        cumulative = np.cumsum(np.asarray(self.counts, dtype=np.int64))
        in_range_rank = rank - self.underflow
        if len(cumulative) == 0 or in_range_rank > cumulative[-1]:
            # Falls in the overflow region.
            return None
        idx = int(np.searchsorted(cumulative, in_range_rank, side="left"))
        _, bucket_end = self.buckets.bucket_range(idx)
        return float(bucket_end)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Returns the histogram with one row per bucket.
        """
        edges = self.buckets.edges()
        return pd.DataFrame(
            {
                "bucket_start_us": edges[:-1],
                "bucket_end_us": edges[1:],
                "count": np.asarray(self.counts, dtype=np.int64),
            }
        )


class LatencyRecorder:
    """
    Records latency samples in bounded memory: a fixed histogram plus the
    `head_size` smallest and `tail_size` largest samples seen.

    This class is not thread safe. Concurrent producers should each use their
    own recorder and combine the results with `absorb()`.
    """

    def __init__(
        self, buckets: LatencyBuckets, head_size: int, tail_size: int
    ) -> None:
        if head_size < 0 or tail_size < 0:
            raise ValueError(
                "Head and tail sizes must be non-negative (got {} and {}).".format(
                    head_size, tail_size
                )
            )
        self._buckets = buckets
        self._counts = buckets.empty_counts()
        self._underflow = 0
        self._overflow = 0
        self._count = 0
        self._total_us = 0
        self._min_us: Optional[int] = None
        self._max_us: Optional[int] = None
        # The head keeps the smallest samples; the tail keeps the largest.
        self._head: BoundedExtremeQueue[int] = BoundedExtremeQueue(
            head_size, Orientation.Min
        )
        self._tail: BoundedExtremeQueue[int] = BoundedExtremeQueue(
            tail_size, Orientation.Max
        )

    @property
    def buckets(self) -> LatencyBuckets:
        return self._buckets

    @property
    def count(self) -> int:
        return self._count

    def record(self, latency_us: int) -> None:
        idx = self._buckets.index_of(latency_us)
        if idx < 0:
            self._underflow += 1
        elif idx >= self._buckets.num_buckets:
            self._overflow += 1
        else:
            self._counts[idx] += 1

        self._count += 1
        self._total_us += latency_us
        if self._min_us is None or latency_us < self._min_us:
            self._min_us = latency_us
        if self._max_us is None or latency_us > self._max_us:
            self._max_us = latency_us

        self._head.add(latency_us)
        self._tail.add(latency_us)

    def absorb(self, summary: LatencySummary) -> None:
        if summary.buckets != self._buckets:
            raise ValueError(
                "Cannot absorb a summary with bucket layout {} into {}.".format(
                    summary.buckets, self._buckets
                )
            )
        self._counts += np.asarray(summary.counts, dtype=np.int64)
        self._underflow += summary.underflow
        self._overflow += summary.overflow
        self._count += summary.count
        self._total_us += summary.total_us
        if summary.min_us is not None and (
            self._min_us is None or summary.min_us < self._min_us
        ):
            self._min_us = summary.min_us
        if summary.max_us is not None and (
            self._max_us is None or summary.max_us > self._max_us
        ):
            self._max_us = summary.max_us

        for value in summary.head:
            self._head.add(value)
        for value in summary.tail:
            self._tail.add(value)

    def set_extreme_sizes(self, head_size: int, tail_size: int) -> None:
        self._head.set_limit(head_size)
        self._tail.set_limit(tail_size)
        self._head.shrink()
        self._tail.shrink()

    def summary(self) -> LatencySummary:
        # Min-oriented queues drain largest first; Max-oriented ones drain
        # smallest first.
        head = list(reversed(self._head.copy().drain()))
        tail = self._tail.copy().drain()
        return LatencySummary(
            buckets=self._buckets,
            head_size=self._head.limit,
            tail_size=self._tail.limit,
            count=self._count,
            total_us=self._total_us,
            min_us=self._min_us,
            max_us=self._max_us,
            counts=[int(c) for c in self._counts],
            underflow=self._underflow,
            overflow=self._overflow,
            head=head,
            tail=tail,
        )
