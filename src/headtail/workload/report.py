from typing import List, Tuple
from tabulate import tabulate

from headtail.workload.append_loop import AppendLoopResponse

REPORTED_PERCENTILES = [50.0, 90.0, 99.0, 99.9]


def summary_rows(response: AppendLoopResponse) -> List[Tuple[str, str]]:
    rows = [
        ("Results merged", str(response.num_merged)),
        ("Mode", "async" if response.is_async else "sync"),
        ("Appenders", str(response.concurrency)),
        ("Appends", str(response.num_appends)),
        ("Failures", str(response.num_failures)),
        ("Bytes appended", str(response.bytes_appended)),
        ("Duration (s)", "{:.3f}".format(response.duration_s)),
        ("Throughput (appends/s)", "{:.1f}".format(response.throughput)),
    ]
    if response.time_log is not None:
        rows.append(("Time log valid", str(response.time_log.valid)))

    latency = response.latency
    if latency is None or latency.count == 0:
        return rows

    rows.append(("Mean latency (us)", "{:.1f}".format(latency.mean_us)))
    rows.append(("Min latency (us)", str(latency.min_us)))
    for p in REPORTED_PERCENTILES:
        value = latency.percentile(p)
        rows.append(
            (
                "p{:g} latency (us)".format(p),
                "{:.0f}".format(value) if value is not None else "n/a",
            )
        )
    rows.append(("Max latency (us)", str(latency.max_us)))
    rows.append(("Head (us)", ", ".join(str(v) for v in latency.head)))
    rows.append(("Tail (us)", ", ".join(str(v) for v in latency.tail)))
    if latency.underflow > 0 or latency.overflow > 0:
        rows.append(
            (
                "Outside buckets",
                "{} below, {} above".format(latency.underflow, latency.overflow),
            )
        )
    return rows


def format_summary(response: AppendLoopResponse) -> str:
    return tabulate(summary_rows(response), tablefmt="simple_grid")
