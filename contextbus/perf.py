"""Performance metrics: bus latencies and per-site latency samples with summaries."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Mapping

PERF_METRIC_ENV = "CB_PERF_METRIC"


class MetricIndex(IntEnum):
    """Indexes of measured code sites."""

    START = 0
    FRONTEND_SEARCH_HANDLER_LOGIC_1 = 1
    FRONTEND_SEARCH_HANDLER_1 = 2
    FRONTEND_SEARCH_HANDLER_LOGIC_2 = 3
    FRONTEND_SEARCH_HANDLER_2 = 4
    FRONTEND_SEARCH_HANDLER_3 = 5
    FRONTEND_SEARCH_HANDLER_LOGIC_4 = 6
    FRONTEND_SEARCH_HANDLER_4 = 7
    FRONTEND_SEARCH_HANDLER_LOGIC_5 = 8
    FRONTEND_SEARCH_HANDLER_5 = 9
    FRONTEND_SEARCH_HANDLER_LOGIC_6 = 10
    FRONTEND_SEARCH_HANDLER_6 = 11
    FRONTEND_SEARCH_HANDLER_LOGIC_7 = 12
    SEARCH_NEARBY_OBSERVATION_1 = 13
    SEARCH_NEARBY_LOGIC_2 = 14
    SEARCH_NEARBY_OBSERVATION_2 = 15
    SEARCH_NEARBY_LOGIC_3 = 16
    SEARCH_NEARBY_OBSERVATION_3 = 17
    SEARCH_NEARBY_LOGIC_4 = 18
    END = 19


METRIC_SIZE = 8192
CB_METRIC_LEN = MetricIndex.END * METRIC_SIZE


class CBType(IntFlag):
    """Kinds of observation work done for one event."""

    NONE = 0
    LOGGING = 1
    TRACING = 2
    METRICS = 4


def perf_enabled_from_env(environ: Mapping[str, str]) -> bool:
    """Return True when the environment sets the perf switch to the integer 1."""
    try:
        return int(environ.get(PERF_METRIC_ENV, "")) == 1
    except ValueError:
        return False


PERF_METRIC = perf_enabled_from_env(os.environ)


@dataclass
class CBLatency:
    """Time an event spent queued (channel) and being processed (process), in ns."""

    type: int = 0
    channel: float = 0.0
    process: float = 0.0


@dataclass
class CBLatencyMetric:
    total: int = 0
    latency: list[CBLatency] = field(default_factory=list)
    first_enqueue: int = 0
    last_finished: int = 0


@dataclass
class LatencyMetric:
    total: int = 0
    latency: list[float] = field(default_factory=list)
    mean: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0


@dataclass
class PerfMetric:
    cb_latency: CBLatencyMetric | None = None
    latency: list[LatencyMetric | None] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add_cb_latency(self, cb_type: int, enqueued: int, dequeued: int, finished: int) -> None:
        """Record how long one event waited in the bus and how long it took to observe."""
        if not PERF_METRIC or self.cb_latency is None:
            return
        metric = self.cb_latency
        with self._lock:
            metric.latency.append(
                CBLatency(
                    type=int(cb_type),
                    channel=float(dequeued - enqueued),
                    process=float(finished - dequeued),
                )
            )
            metric.total += 1
            if metric.first_enqueue == 0:
                metric.first_enqueue = enqueued
            metric.last_finished = finished

    def add_latency(self, index: int, value: float) -> None:
        """Store one sample for a site; samples beyond the site's capacity are dropped."""
        if not PERF_METRIC or len(self.latency) <= index:
            return
        target = self.latency[index]
        if target is None:
            return
        with self._lock:
            slot = target.total
            target.total += 1
        if slot < len(target.latency):
            target.latency[slot] = value

    def calculate(self) -> PerfMetric | None:
        """Summarise and return collected samples, then reset the collectors."""
        if not PERF_METRIC:
            return None

        source = self.cb_latency if self.cb_latency is not None else CBLatencyMetric()
        with self._lock:
            result = PerfMetric(
                cb_latency=CBLatencyMetric(
                    total=source.total,
                    latency=list(source.latency[: source.total]),
                    first_enqueue=source.first_enqueue,
                    last_finished=source.last_finished,
                ),
                latency=[None] * MetricIndex.END,
            )
            source.total = 0
            source.latency.clear()

        for index, collected in enumerate(self.latency[: MetricIndex.END]):
            if collected is None:
                continue
            total = min(collected.total, len(collected.latency))
            if total:
                samples = sorted(collected.latency[:total])
                collected.latency[:total] = samples
                half = total // 2
                if total % 2 == 0:
                    median = (samples[half - 1] + samples[half]) / 2
                else:
                    median = samples[half]
                result.latency[index] = LatencyMetric(
                    total=total,
                    mean=sum(samples) / total,
                    median=median,
                    min=samples[0],
                    max=samples[-1],
                )
            collected.total = 0

        return result

    def merge(self, source: PerfMetric | None) -> None:
        """Copy the non-empty summaries of source into this metric."""
        if not PERF_METRIC or source is None:
            return
        for index, summary in enumerate(source.latency):
            if summary is not None and summary.total != 0:
                self.latency[index] = LatencyMetric(
                    total=summary.total,
                    mean=summary.mean,
                    median=summary.median,
                    min=summary.min,
                    max=summary.max,
                )


def new_perf_metric(size: int, first: int, last: int) -> PerfMetric | None:
    """Create collectors of the given capacity for sites first..last inclusive."""
    if not PERF_METRIC:
        return None
    metric = PerfMetric(cb_latency=CBLatencyMetric(), latency=[None] * MetricIndex.END)
    for index in range(first, last + 1):
        metric.latency[index] = LatencyMetric(latency=[0.0] * size)
    return metric


perf_metric: PerfMetric | None = None