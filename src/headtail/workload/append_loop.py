import asyncio
import json
import logging
import pathlib
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple

from headtail.latency import LatencyBuckets, LatencyRecorder, LatencySummary
from headtail.utils import log_verbose
from headtail.utils.time_periods import elapsed_s, universal_now
from headtail.workload.log import SharedLog
from headtail.workload.output import write_result
from headtail.workload.records import create_record, decode_record, encode_record

logger = logging.getLogger(__name__)

DEFAULT_RECORD_SIZE = 1024
DEFAULT_CONCURRENCY = 4


@dataclass
class AppendLoopRequest:
    record: bytes
    loop_duration: float
    latency_bucket_lower: int
    latency_bucket_upper: int
    latency_bucket_granularity: int
    latency_head_size: int
    latency_tail_size: int
    concurrency: int = DEFAULT_CONCURRENCY

    @classmethod
    def from_dict(
        cls, raw: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None
    ) -> "AppendLoopRequest":
        """
        Parses a decoded JSON request. Keys missing from `raw` are taken from
        `defaults`. The record is either given as base64 (`record`) or
        generated (`record_size` random bytes).
        """
        if not isinstance(raw, dict):
            raise TypeError("An append loop request must be a JSON object.")
        merged: Dict[str, Any] = {}
        if defaults is not None:
            merged.update(defaults)
        merged.update(raw)

        if "record" in raw:
            encoded = raw["record"]
            if isinstance(encoded, bytes):
                record = encoded
            elif isinstance(encoded, str):
                record = decode_record(encoded)
            else:
                raise TypeError(
                    "record must be a base64 string (got {}).".format(
                        type(encoded).__name__
                    )
                )
        else:
            record_size = int(merged.get("record_size", DEFAULT_RECORD_SIZE))
            record = create_record(record_size)

        request = cls(
            record=record,
            loop_duration=float(merged["loop_duration"]),
            latency_bucket_lower=int(merged["latency_bucket_lower"]),
            latency_bucket_upper=int(merged["latency_bucket_upper"]),
            latency_bucket_granularity=int(merged["latency_bucket_granularity"]),
            latency_head_size=int(merged["latency_head_size"]),
            latency_tail_size=int(merged["latency_tail_size"]),
            concurrency=int(merged.get("concurrency", DEFAULT_CONCURRENCY)),
        )
        request.validate()
        return request

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record": encode_record(self.record),
            "loop_duration": self.loop_duration,
            "latency_bucket_lower": self.latency_bucket_lower,
            "latency_bucket_upper": self.latency_bucket_upper,
            "latency_bucket_granularity": self.latency_bucket_granularity,
            "latency_head_size": self.latency_head_size,
            "latency_tail_size": self.latency_tail_size,
            "concurrency": self.concurrency,
        }

    def validate(self) -> None:
        if self.loop_duration <= 0:
            raise ValueError(
                "loop_duration must be positive (got {}).".format(self.loop_duration)
            )
        if self.latency_head_size < 0 or self.latency_tail_size < 0:
            raise ValueError("Latency head and tail sizes must be non-negative.")
        if self.concurrency < 1:
            raise ValueError(
                "concurrency must be at least 1 (got {}).".format(self.concurrency)
            )
        # Raises if the bucket layout is invalid.
        self.buckets()

    def buckets(self) -> LatencyBuckets:
        return LatencyBuckets(
            self.latency_bucket_lower,
            self.latency_bucket_upper,
            self.latency_bucket_granularity,
        )

    def new_recorder(self) -> LatencyRecorder:
        return LatencyRecorder(
            self.buckets(), self.latency_head_size, self.latency_tail_size
        )


@dataclass
class TimeLog:
    start: datetime
    end: datetime
    valid: bool

    @classmethod
    def merge(cls, logs: Iterable["TimeLog"]) -> "TimeLog":
        to_merge = list(logs)
        if len(to_merge) == 0:
            raise ValueError("Cannot merge an empty set of time logs.")
        return cls(
            start=min(tl.start for tl in to_merge),
            end=max(tl.end for tl in to_merge),
            valid=all(tl.valid for tl in to_merge),
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TimeLog":
        return cls(
            start=datetime.fromisoformat(raw["start"]),
            end=datetime.fromisoformat(raw["end"]),
            valid=bool(raw["valid"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "valid": self.valid,
        }

    @property
    def duration_s(self) -> float:
        return elapsed_s(self.start, self.end)


@dataclass
class AppendLoopResponse:
    MERGEABLE_TYPE: ClassVar[str] = "AppendLoopResponse"

    success: bool
    message: str = ""
    is_async: bool = False
    concurrency: int = 1
    num_appends: int = 0
    num_failures: int = 0
    bytes_appended: int = 0
    duration_s: float = 0.0
    throughput: float = 0.0
    latency: Optional[LatencySummary] = None
    time_log: Optional[TimeLog] = None
    num_merged: int = 1

    @classmethod
    def failed(cls, message: str, is_async: bool = False) -> "AppendLoopResponse":
        return cls(success=False, message=message, is_async=is_async, num_merged=0)

    @classmethod
    def merge(
        cls, responses: Iterable["AppendLoopResponse"]
    ) -> "AppendLoopResponse":
        """
        Combines the results of append loops that ran concurrently. The merged
        throughput is computed over the union of the runs' time windows.
        """
        successful = []
        for response in responses:
            if not response.success:
                logger.warning(
                    "Skipping a failed append loop result: %s", response.message
                )
                continue
            successful.append(response)
        if len(successful) == 0:
            raise ValueError("There are no successful append loop results to merge.")

        time_log = TimeLog.merge(r.time_log for r in successful if r.time_log)
        num_appends = sum(r.num_appends for r in successful)
        duration_s = time_log.duration_s
        return cls(
            success=True,
            message="Merged {} result(s).".format(len(successful)),
            is_async=any(r.is_async for r in successful),
            concurrency=sum(r.concurrency for r in successful),
            num_appends=num_appends,
            num_failures=sum(r.num_failures for r in successful),
            bytes_appended=sum(r.bytes_appended for r in successful),
            duration_s=duration_s,
            throughput=num_appends / duration_s if duration_s > 0 else 0.0,
            latency=LatencySummary.merge(r.latency for r in successful if r.latency),
            time_log=time_log,
            num_merged=sum(r.num_merged for r in successful),
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AppendLoopResponse":
        latency = raw.get("latency")
        time_log = raw.get("time_log")
        return cls(
            success=bool(raw["success"]),
            message=raw.get("message", ""),
            is_async=bool(raw.get("is_async", False)),
            concurrency=int(raw.get("concurrency", 1)),
            num_appends=int(raw.get("num_appends", 0)),
            num_failures=int(raw.get("num_failures", 0)),
            bytes_appended=int(raw.get("bytes_appended", 0)),
            duration_s=float(raw.get("duration_s", 0.0)),
            throughput=float(raw.get("throughput", 0.0)),
            latency=LatencySummary.from_dict(latency) if latency else None,
            time_log=TimeLog.from_dict(time_log) if time_log else None,
            num_merged=int(raw.get("num_merged", 1)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "is_async": self.is_async,
            "concurrency": self.concurrency,
            "num_appends": self.num_appends,
            "num_failures": self.num_failures,
            "bytes_appended": self.bytes_appended,
            "duration_s": self.duration_s,
            "throughput": self.throughput,
            "latency": self.latency.to_dict() if self.latency else None,
            "time_log": self.time_log.to_dict() if self.time_log else None,
            "num_merged": self.num_merged,
        }


class _LoopStats:
    def __init__(self) -> None:
        self.num_appends = 0
        self.num_failures = 0
        self.bytes_appended = 0

    def add(self, other: "_LoopStats") -> None:
        self.num_appends += other.num_appends
        self.num_failures += other.num_failures
        self.bytes_appended += other.bytes_appended


class AppendLoopHandler:
    """
    Appends the same record to a log, back-to-back, for a fixed duration and
    reports the append latencies.

    In synchronous mode, one append is in flight at a time. In asynchronous
    mode, `request.concurrency` appenders run as asyncio tasks. Each appender
    records into its own `LatencyRecorder`; the recorders are merged once the
    loop finishes.
    """

    def __init__(
        self,
        log: SharedLog,
        is_async: bool,
        output_directory: Optional[str | pathlib.Path] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._log = log
        self._is_async = is_async
        self._output_directory = output_directory
        self._defaults = defaults

    @property
    def is_async(self) -> bool:
        return self._is_async

    def call(self, payload: bytes) -> bytes:
        try:
            raw = json.loads(payload)
            request = AppendLoopRequest.from_dict(raw, self._defaults)
        except (ValueError, KeyError, TypeError) as ex:
            logger.error("Invalid append loop request: %s", str(ex))
            response = AppendLoopResponse.failed(
                "Invalid request: {}".format(ex), self._is_async
            )
        else:
            response = self.run(request)
        return json.dumps(response.to_dict()).encode("UTF-8")

    def run(self, request: AppendLoopRequest) -> AppendLoopResponse:
        if self._is_async:
            response = asyncio.run(self.run_async(request))
        else:
            response = self._run_sync(request)

        if self._output_directory is not None:
            write_result(
                self._output_directory,
                AppendLoopResponse.MERGEABLE_TYPE,
                response.to_dict(),
            )
        return response

    async def run_async(self, request: AppendLoopRequest) -> AppendLoopResponse:
        request.validate()
        logger.info(
            "Starting async append loop (%d appenders, %.2f s, %d byte records)",
            request.concurrency,
            request.loop_duration,
            len(request.record),
        )
        start_ts = universal_now()
        start = time.perf_counter()
        deadline = time.monotonic() + request.loop_duration

        results: List[Tuple[LatencyRecorder, _LoopStats]] = await asyncio.gather(
            *[
                self._appender(worker_idx, request, deadline)
                for worker_idx in range(request.concurrency)
            ]
        )

        duration_s = time.perf_counter() - start
        end_ts = universal_now()

        stats = _LoopStats()
        for _, worker_stats in results:
            stats.add(worker_stats)
        latency = LatencySummary.merge(recorder.summary() for recorder, _ in results)
        return self._build_response(
            request, stats, latency, duration_s, start_ts, end_ts
        )

    def _run_sync(self, request: AppendLoopRequest) -> AppendLoopResponse:
        request.validate()
        logger.info(
            "Starting sync append loop (%.2f s, %d byte records)",
            request.loop_duration,
            len(request.record),
        )
        recorder = request.new_recorder()
        stats = _LoopStats()
        start_ts = universal_now()
        start = time.perf_counter()
        deadline = time.monotonic() + request.loop_duration

        while time.monotonic() < deadline:
            begin_ns = time.perf_counter_ns()
            try:
                self._log.append(request.record)
            except Exception as ex:  # pylint: disable=broad-exception-caught
                self._on_append_failure(0, stats, ex)
                continue
            self._on_append_success(
                request, recorder, stats, time.perf_counter_ns() - begin_ns
            )

        duration_s = time.perf_counter() - start
        end_ts = universal_now()
        return self._build_response(
            request, stats, recorder.summary(), duration_s, start_ts, end_ts
        )

    async def _appender(
        self, worker_idx: int, request: AppendLoopRequest, deadline: float
    ) -> Tuple[LatencyRecorder, _LoopStats]:
        recorder = request.new_recorder()
        stats = _LoopStats()
        while time.monotonic() < deadline:
            begin_ns = time.perf_counter_ns()
            try:
                await self._log.append_async(request.record)
            except Exception as ex:  # pylint: disable=broad-exception-caught
                self._on_append_failure(worker_idx, stats, ex)
                continue
            self._on_append_success(
                request, recorder, stats, time.perf_counter_ns() - begin_ns
            )
        return recorder, stats

    def _on_append_success(
        self,
        request: AppendLoopRequest,
        recorder: LatencyRecorder,
        stats: _LoopStats,
        elapsed_ns: int,
    ) -> None:
        recorder.record(elapsed_ns // 1000)
        stats.num_appends += 1
        stats.bytes_appended += len(request.record)

    def _on_append_failure(
        self, worker_idx: int, stats: _LoopStats, ex: Exception
    ) -> None:
        stats.num_failures += 1
        if stats.num_failures == 1:
            logger.warning("[A %d] Append failed: %s", worker_idx, str(ex))
        else:
            log_verbose(logger, "[A %d] Append failed: %s", worker_idx, str(ex))

    def _build_response(
        self,
        request: AppendLoopRequest,
        stats: _LoopStats,
        latency: LatencySummary,
        duration_s: float,
        start_ts: datetime,
        end_ts: datetime,
    ) -> AppendLoopResponse:
        if stats.num_failures > 0:
            logger.warning(
                "%d of %d appends failed.",
                stats.num_failures,
                stats.num_failures + stats.num_appends,
            )
        logger.info(
            "Append loop done: %d appends in %.3f s", stats.num_appends, duration_s
        )
        return AppendLoopResponse(
            success=True,
            is_async=self._is_async,
            concurrency=request.concurrency if self._is_async else 1,
            num_appends=stats.num_appends,
            num_failures=stats.num_failures,
            bytes_appended=stats.bytes_appended,
            duration_s=duration_s,
            throughput=stats.num_appends / duration_s if duration_s > 0 else 0.0,
            latency=latency,
            time_log=TimeLog(start=start_ts, end=end_ts, valid=end_ts >= start_ts),
        )
