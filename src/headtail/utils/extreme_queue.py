import enum
from typing import Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T", int, float)


class Orientation(str, enum.Enum):
    # Keep the largest values seen.
    Max = "max"
    # Keep the smallest values seen.
    Min = "min"

    @staticmethod
    def from_str(candidate: str) -> "Orientation":
        if candidate == Orientation.Max.value:
            return Orientation.Max
        elif candidate == Orientation.Min.value:
            return Orientation.Min
        else:
            raise ValueError("Unrecognized orientation {}".format(candidate))


class BoundedExtremeQueue(Generic[T]):
    """
    Tracks the `limit` most extreme values of a stream using an array-backed
    binary heap.

    The heap root is always the "weakest" retained value: the smallest one
    when retaining the largest values (`Orientation.Max`) and the largest one
    when retaining the smallest values (`Orientation.Min`). Evicting the
    weakest value is therefore a root removal.

    There are two layers of operations:
      - `push()` / `pop()` / `peek()` only maintain the heap ordering.
      - `add()` / `shrink()` also enforce `limit`.

    `push()` and `set_limit()` can leave the queue holding more than `limit`
    values. Each later `add()` removes one excess value (on top of evicting
    for the value it inserts); `shrink()` removes all of them at once. So an
    `add()` only guarantees `len(queue) <= limit` afterwards when the queue
    held at most `limit + 1` values beforehand. An `add()` that starts more
    than one value over the limit still leaves the queue over the limit.

    This class is not thread safe.
    """

    def __init__(self, limit: int, orientation: Orientation) -> None:
        assert limit >= 0
        self._limit = limit
        self._orientation = orientation
        self._values: List[T] = []

    @classmethod
    def from_values(
        cls, limit: int, orientation: Orientation, values: Iterable[T]
    ) -> "BoundedExtremeQueue[T]":
        """
        Builds a queue holding all of `values` (the limit is not enforced).
        Call `shrink()` afterwards to converge to `limit`.
        """
        queue = cls(limit, orientation)
        queue._values.extend(values)
        for idx in reversed(range(len(queue._values) // 2)):
            queue._sift_down(idx)
        return queue

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def orientation(self) -> Orientation:
        return self._orientation

    def set_limit(self, limit: int) -> None:
        # NOTE: Lowering the limit does not evict anything. Use `shrink()` to
        # converge immediately.
        assert limit >= 0
        self._limit = limit

    def push(self, value: T) -> None:
        self._values.append(value)
        self._sift_up(len(self._values) - 1)

    def pop(self) -> Optional[T]:
        if len(self._values) == 0:
            return None
        last = self._values.pop()
        if len(self._values) == 0:
            return last
        root = self._values[0]
        self._values[0] = last
        self._sift_down(0)
        return root

    def peek(self) -> Optional[T]:
        if len(self._values) == 0:
            return None
        return self._values[0]

    def add(self, value: T) -> None:
        self.push(value)
        if len(self._values) > self._limit:
            self.pop()
        # The queue was already over the limit before this call. Remove at
        # most one of the pre-existing excess values.
        if len(self._values) > self._limit:
            self.pop()

    def shrink(self) -> None:
        while len(self._values) > self._limit:
            self.pop()

    def values(self) -> List[T]:
        """
        Returns a copy of the retained values, in heap (not sorted) order.
        """
        return list(self._values)

    def drain(self) -> List[T]:
        """
        Removes all values, weakest first.
        """
        drained = []
        while len(self._values) > 0:
            drained.append(self.pop())
        return drained

    def copy(self) -> "BoundedExtremeQueue[T]":
        cpy: BoundedExtremeQueue[T] = BoundedExtremeQueue(
            self._limit, self._orientation
        )
        cpy._values = list(self._values)
        return cpy

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return "BoundedExtremeQueue(limit={}, orientation={}, size={})".format(
            self._limit, self._orientation.value, len(self._values)
        )

    def _is_weaker(self, left: T, right: T) -> bool:
        """
        Returns True iff `left` should sit closer to the root than `right`.
        """
        if self._orientation == Orientation.Max:
            return left < right
        else:
            return left > right

    def _sift_up(self, idx: int) -> None:
        values = self._values
        while idx > 0:
            parent = (idx - 1) // 2
            if not self._is_weaker(values[idx], values[parent]):
                break
            values[idx], values[parent] = values[parent], values[idx]
            idx = parent

    def _sift_down(self, idx: int) -> None:
        values = self._values
        size = len(values)
        while True:
            left = 2 * idx + 1
            if left >= size:
                break
            child = left
            right = left + 1
            if right < size and self._is_weaker(values[right], values[left]):
                child = right
            if not self._is_weaker(values[child], values[idx]):
                break
            values[idx], values[child] = values[child], values[idx]
            idx = child
