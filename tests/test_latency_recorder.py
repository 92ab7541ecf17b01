import pytest

from headtail.latency import LatencyBuckets, LatencyRecorder, LatencySummary


def test_bucket_layout():
    buckets = LatencyBuckets(0, 3000, 10)
    assert buckets.num_buckets == 300
    assert buckets.index_of(0) == 0
    assert buckets.index_of(9) == 0
    assert buckets.index_of(10) == 1
    assert buckets.index_of(2999) == 299
    assert buckets.index_of(3000) == 300
    assert buckets.index_of(-1) == -1
    assert buckets.bucket_range(1) == (10, 20)


def test_bucket_layout_clips_last_bucket():
    buckets = LatencyBuckets(100, 125, 10)
    assert buckets.num_buckets == 3
    assert buckets.bucket_range(2) == (120, 125)
    assert list(buckets.edges()) == [100, 110, 120, 125]
    assert buckets.index_of(124) == 2
    assert buckets.index_of(125) == 3


def test_invalid_bucket_layouts():
    with pytest.raises(ValueError):
        LatencyBuckets(0, 100, 0)
    with pytest.raises(ValueError):
        LatencyBuckets(100, 100, 10)
    with pytest.raises(ValueError):
        LatencyBuckets(100, 50, 10)


def test_record_and_summary():
    recorder = LatencyRecorder(LatencyBuckets(0, 100, 10), head_size=2, tail_size=3)
    for value in [5, 15, 15, 42, 99, 100, 250, 3]:
        recorder.record(value)

    summary = recorder.summary()
    assert summary.count == 8
    assert summary.total_us == 529
    assert summary.min_us == 3
    assert summary.max_us == 250
    assert summary.underflow == 0
    assert summary.overflow == 2
    assert summary.counts == [2, 2, 0, 0, 1, 0, 0, 0, 0, 1]
    assert summary.head == [3, 5]
    assert summary.tail == [99, 100, 250]
    assert summary.mean_us == pytest.approx(529 / 8)

    # Taking a summary must not consume the retained extremes.
    assert recorder.summary().head == [3, 5]
    assert recorder.summary().tail == [99, 100, 250]


def test_underflow():
    recorder = LatencyRecorder(LatencyBuckets(50, 100, 10), head_size=1, tail_size=1)
    recorder.record(10)
    recorder.record(60)
    summary = recorder.summary()
    assert summary.underflow == 1
    assert summary.counts == [0, 1, 0, 0, 0]


def test_zero_sized_extremes():
    recorder = LatencyRecorder(LatencyBuckets(0, 100, 10), head_size=0, tail_size=0)
    for value in range(50):
        recorder.record(value)
    summary = recorder.summary()
    assert summary.count == 50
    assert summary.head == []
    assert summary.tail == []


def test_negative_extreme_sizes():
    with pytest.raises(ValueError):
        LatencyRecorder(LatencyBuckets(0, 100, 10), head_size=-1, tail_size=1)


def test_empty_summary():
    summary = LatencyRecorder(LatencyBuckets(0, 100, 10), 3, 3).summary()
    assert summary.count == 0
    assert summary.mean_us is None
    assert summary.min_us is None
    assert summary.percentile(50) is None


def test_percentile():
    recorder = LatencyRecorder(LatencyBuckets(0, 1000, 10), head_size=2, tail_size=2)
    for value in range(1, 101):
        recorder.record(value)
    summary = recorder.summary()

    # Covered by the head and tail: exact.
    assert summary.percentile(1) == 1.0
    assert summary.percentile(2) == 2.0
    assert summary.percentile(100) == 100.0
    assert summary.percentile(99) == 99.0
    # Answered from the histogram: upper edge of the holding bucket.
    assert summary.percentile(50) == 60.0
    assert summary.percentile(90) == 100.0

    with pytest.raises(ValueError):
        summary.percentile(0)
    with pytest.raises(ValueError):
        summary.percentile(101)


def test_percentile_in_overflow():
    recorder = LatencyRecorder(LatencyBuckets(0, 10, 10), head_size=1, tail_size=1)
    for value in [1, 50, 60, 70, 80]:
        recorder.record(value)
    summary = recorder.summary()
    assert summary.percentile(100) == 80.0
    # Rank 3 of 5 is in the overflow region and not retained.
    assert summary.percentile(60) is None
    assert summary.percentile(20) == 1.0


def test_absorb():
    buckets = LatencyBuckets(0, 100, 10)
    left = LatencyRecorder(buckets, head_size=2, tail_size=2)
    right = LatencyRecorder(buckets, head_size=2, tail_size=2)
    for value in [10, 20, 30]:
        left.record(value)
    for value in [5, 95, 150]:
        right.record(value)

    left.absorb(right.summary())
    summary = left.summary()
    assert summary.count == 6
    assert summary.total_us == 310
    assert summary.min_us == 5
    assert summary.max_us == 150
    assert summary.overflow == 1
    assert sum(summary.counts) == 5
    assert summary.head == [5, 10]
    assert summary.tail == [95, 150]


def test_absorb_mismatched_buckets():
    left = LatencyRecorder(LatencyBuckets(0, 100, 10), 1, 1)
    right = LatencyRecorder(LatencyBuckets(0, 100, 5), 1, 1)
    with pytest.raises(ValueError):
        left.absorb(right.summary())


def test_merge_uses_smallest_extreme_sizes():
    buckets = LatencyBuckets(0, 100, 10)
    first = LatencyRecorder(buckets, head_size=3, tail_size=1)
    second = LatencyRecorder(buckets, head_size=2, tail_size=4)
    for value in [1, 2, 3, 4]:
        first.record(value)
    for value in [50, 0, 70]:
        second.record(value)

    merged = LatencySummary.merge([first.summary(), second.summary()])
    assert merged.head_size == 2
    assert merged.tail_size == 1
    assert merged.head == [0, 1]
    assert merged.tail == [70]
    assert merged.count == 7


def test_merge_empty():
    with pytest.raises(ValueError):
        LatencySummary.merge([])


def test_set_extreme_sizes():
    recorder = LatencyRecorder(LatencyBuckets(0, 100, 10), head_size=5, tail_size=5)
    for value in range(20):
        recorder.record(value)
    recorder.set_extreme_sizes(2, 3)
    summary = recorder.summary()
    assert summary.head == [0, 1]
    assert summary.tail == [17, 18, 19]
    assert summary.head_size == 2
    assert summary.tail_size == 3


def test_dict_conversion():
    recorder = LatencyRecorder(LatencyBuckets(0, 100, 10), head_size=2, tail_size=2)
    for value in [7, 12, 300]:
        recorder.record(value)
    summary = recorder.summary()
    restored = LatencySummary.from_dict(summary.to_dict())
    assert restored == summary


def test_to_dataframe():
    recorder = LatencyRecorder(LatencyBuckets(0, 30, 10), head_size=1, tail_size=1)
    for value in [1, 2, 25]:
        recorder.record(value)
    df = recorder.summary().to_dataframe()
    assert list(df.columns) == ["bucket_start_us", "bucket_end_us", "count"]
    assert df["bucket_start_us"].tolist() == [0, 10, 20]
    assert df["bucket_end_us"].tolist() == [10, 20, 30]
    assert df["count"].tolist() == [2, 0, 1]
