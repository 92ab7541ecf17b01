import math
import numpy as np
import numpy.typing as npt
from typing import Any, Dict, Tuple


class LatencyBuckets:
    """
    A fixed histogram layout over `[lower, upper)` (in microseconds).

    Bucket `i` covers `[lower + i * granularity, lower + (i + 1) * granularity)`.
    The last bucket is clipped to `upper`. Values below `lower` are counted
    as underflow and values at or above `upper` as overflow.
    """

    def __init__(self, lower: int, upper: int, granularity: int) -> None:
        if granularity <= 0:
            raise ValueError(
                "Bucket granularity must be positive (got {}).".format(granularity)
            )
        if upper <= lower:
            raise ValueError(
                "Bucket upper bound ({}) must exceed the lower bound ({}).".format(
                    upper, lower
                )
            )
        self._lower = lower
        self._upper = upper
        self._granularity = granularity
        self._num_buckets = math.ceil((upper - lower) / granularity)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LatencyBuckets":
        return cls(int(raw["lower"]), int(raw["upper"]), int(raw["granularity"]))

    def to_dict(self) -> Dict[str, int]:
        return {
            "lower": self._lower,
            "upper": self._upper,
            "granularity": self._granularity,
        }

    @property
    def lower(self) -> int:
        return self._lower

    @property
    def upper(self) -> int:
        return self._upper

    @property
    def granularity(self) -> int:
        return self._granularity

    @property
    def num_buckets(self) -> int:
        return self._num_buckets

    def empty_counts(self) -> npt.NDArray[np.int64]:
        return np.zeros(self._num_buckets, dtype=np.int64)

    def index_of(self, latency_us: int) -> int:
        """
        Returns the bucket index for `latency_us`, -1 for underflow and
        `num_buckets` for overflow.
        """
        if latency_us < self._lower:
            return -1
        if latency_us >= self._upper:
            return self._num_buckets
        return int((latency_us - self._lower) // self._granularity)

    def bucket_range(self, idx: int) -> Tuple[int, int]:
        start = self._lower + idx * self._granularity
        return start, min(start + self._granularity, self._upper)

    def edges(self) -> npt.NDArray[np.int64]:
        edges = self._lower + np.arange(self._num_buckets + 1) * self._granularity
        edges[-1] = self._upper
        return edges.astype(np.int64)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LatencyBuckets):
            return False
        return (
            self._lower == other._lower
            and self._upper == other._upper
            and self._granularity == other._granularity
        )

    def __hash__(self) -> int:
        return hash((self._lower, self._upper, self._granularity))

    def __repr__(self) -> str:
        return "LatencyBuckets(lower={}, upper={}, granularity={})".format(
            self._lower, self._upper, self._granularity
        )
