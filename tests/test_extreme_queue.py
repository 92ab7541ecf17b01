import random
import sys

import pytest

from headtail.utils.extreme_queue import BoundedExtremeQueue, Orientation

MAX_INT64 = 2**63 - 1

# pylint: disable=protected-access


def drain_all(queue: BoundedExtremeQueue) -> list:
    values = []
    while True:
        value = queue.pop()
        if value is None:
            break
        values.append(value)
    return values


def assert_heap_property(queue: BoundedExtremeQueue) -> None:
    values = queue._values
    for idx in range(1, len(values)):
        parent = (idx - 1) // 2
        assert not queue._is_weaker(values[idx], values[parent])


def test_max_pop_order():
    pq = BoundedExtremeQueue.from_values(10, Orientation.Max, [7, MAX_INT64, 10000, 0])
    pq.push(16)
    assert [pq.pop() for _ in range(5)] == [0, 7, 16, 10000, MAX_INT64]


def test_min_pop_order():
    pq = BoundedExtremeQueue.from_values(10, Orientation.Min, [7, MAX_INT64, 10000, 0])
    pq.push(16)
    assert [pq.pop() for _ in range(5)] == [MAX_INT64, 10000, 16, 7, 0]


def test_max_shrinking():
    pq = BoundedExtremeQueue.from_values(1, Orientation.Max, [7, 10000, 0, 5, 99, 1, 1])
    pq.shrink()
    assert pq.pop() == 10000
    assert len(pq) == 0


def test_max_add():
    pq = BoundedExtremeQueue.from_values(3, Orientation.Max, [1000, 10000])
    pq.add(5)
    assert pq.peek() == 5
    pq.add(5000)
    assert pq.peek() == 1000

    pq.set_limit(2)
    pq.shrink()
    assert pq.pop() == 5000
    assert pq.pop() == 10000


def test_empty():
    for orientation in [Orientation.Max, Orientation.Min]:
        pq = BoundedExtremeQueue[int](3, orientation)
        assert len(pq) == 0
        assert pq.pop() is None
        assert pq.peek() is None
        pq.shrink()
        assert len(pq) == 0


def test_pop_single():
    pq = BoundedExtremeQueue[int](3, Orientation.Max)
    pq.push(42)
    assert pq.peek() == 42
    assert len(pq) == 1
    assert pq.pop() == 42
    assert pq.pop() is None


@pytest.mark.parametrize("orientation", [Orientation.Max, Orientation.Min])
def test_ordering_law(orientation: Orientation):
    prng = random.Random(1234)
    for _ in range(20):
        values = [prng.randint(-1000, 1000) for _ in range(prng.randint(0, 200))]
        pq = BoundedExtremeQueue[int](5, orientation)
        for value in values:
            pq.push(value)
        assert_heap_property(pq)

        drained = drain_all(pq)
        assert len(drained) == len(values)
        if orientation == Orientation.Max:
            assert drained == sorted(values)
        else:
            assert drained == sorted(values, reverse=True)


@pytest.mark.parametrize("orientation", [Orientation.Max, Orientation.Min])
def test_bounded_retention(orientation: Orientation):
    prng = random.Random(42)
    limit = 7
    pq = BoundedExtremeQueue[int](limit, orientation)
    seen = []
    for _ in range(500):
        value = prng.randint(0, 100)
        pq.add(value)
        seen.append(value)
        assert len(pq) <= limit
        assert_heap_property(pq)

        if orientation == Orientation.Max:
            expected = sorted(seen, reverse=True)[:limit]
        else:
            expected = sorted(seen)[:limit]
        assert sorted(pq.values()) == sorted(expected)


def test_floats():
    pq = BoundedExtremeQueue[float](2, Orientation.Min)
    for value in [0.5, -1.25, 3.0, 0.25, sys.float_info.max]:
        pq.add(value)
    assert pq.drain() == [0.25, -1.25]


def test_limit_zero():
    for orientation in [Orientation.Max, Orientation.Min]:
        pq = BoundedExtremeQueue[int](0, orientation)
        for value in [3, 1, 2]:
            pq.add(value)
            assert len(pq) == 0
        assert pq.pop() is None

        # Raw pushes still work when the limit is zero.
        pq.push(5)
        assert len(pq) == 1
        pq.shrink()
        assert len(pq) == 0


def test_shrink_idempotent():
    pq = BoundedExtremeQueue.from_values(3, Orientation.Max, list(range(20)))
    pq.shrink()
    after_first = pq.values()
    assert len(after_first) == 3
    pq.shrink()
    assert pq.values() == after_first
    assert sorted(pq.values()) == [17, 18, 19]


def test_shrink_within_limit_is_noop():
    pq = BoundedExtremeQueue.from_values(10, Orientation.Min, [4, 2, 8])
    before = pq.values()
    pq.shrink()
    assert pq.values() == before


def test_set_limit_does_not_shrink():
    pq = BoundedExtremeQueue.from_values(10, Orientation.Max, list(range(10)))
    pq.set_limit(4)
    assert pq.limit == 4
    assert len(pq) == 10


def test_limit_reduction_converges_through_add():
    pq = BoundedExtremeQueue.from_values(10, Orientation.Max, list(range(10)))
    pq.set_limit(4)

    # One excess value is removed per add.
    sizes = []
    for value in range(100, 110):
        pq.add(value)
        sizes.append(len(pq))
    assert sizes == [9, 8, 7, 6, 5, 4, 4, 4, 4, 4]
    assert sorted(pq.values()) == [106, 107, 108, 109]


def test_limit_reduction_with_weak_values():
    pq = BoundedExtremeQueue.from_values(8, Orientation.Min, [1, 2, 3, 4, 5, 6, 7, 8])
    pq.set_limit(3)
    for _ in range(5):
        pq.add(1000)
    assert len(pq) == 3
    assert sorted(pq.values()) == [1, 2, 3]


def test_add_after_raw_push_overfill():
    pq = BoundedExtremeQueue[int](2, Orientation.Max)
    for value in [5, 1, 9, 3]:
        pq.push(value)
    assert len(pq) == 4
    pq.add(7)
    assert len(pq) == 3
    pq.add(8)
    assert len(pq) == 2
    assert sorted(pq.values()) == [8, 9]


def test_add_far_over_limit_stays_over_limit():
    pq = BoundedExtremeQueue.from_values(5, Orientation.Min, [1, 2, 3, 4, 5])
    pq.set_limit(2)
    pq.add(0)
    assert len(pq) == 4
    assert len(pq) > pq.limit
    assert sorted(pq.values()) == [0, 1, 2, 3]


def test_from_values_does_not_enforce_limit():
    pq = BoundedExtremeQueue.from_values(2, Orientation.Min, [5, 1, 9, 3])
    assert len(pq) == 4
    assert pq.peek() == 9
    assert_heap_property(pq)


def test_copy_is_independent():
    pq = BoundedExtremeQueue.from_values(5, Orientation.Max, [3, 1, 2])
    cpy = pq.copy()
    assert cpy.drain() == [1, 2, 3]
    assert len(pq) == 3
    assert pq.limit == cpy.limit
    assert pq.orientation == cpy.orientation


def test_orientation_from_str():
    assert Orientation.from_str("max") == Orientation.Max
    assert Orientation.from_str("min") == Orientation.Min
    with pytest.raises(ValueError):
        Orientation.from_str("median")
