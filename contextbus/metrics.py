"""In-memory metric vectors grouped by label values, with a push-gateway client."""

from __future__ import annotations

import math
import threading
import time
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

DEF_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
DEF_MAX_AGE = 600 * 1_000_000_000
DEF_AGE_BUCKETS = 5
DEF_BUF_CAP = 500

_COUNTER = "counter"
_GAUGE = "gauge"
_HISTOGRAM = "histogram"
_SUMMARY = "summary"
_KINDS = (_COUNTER, _GAUGE, _HISTOGRAM, _SUMMARY)


@dataclass
class MetricOpts:
    """Options shared by every metric kind."""

    id: int = 0
    namespace: str = ""
    subsystem: str = ""
    name: str = ""
    help: str = ""
    const_labels: dict[str, str] | None = None
    label_names: list[str] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        if not self.name:
            return ""
        return "_".join(part for part in (self.namespace, self.subsystem, self.name) if part)


@dataclass
class HistogramOpts(MetricOpts):
    buckets: list[float] = field(default_factory=list)


@dataclass
class SummaryObjective:
    """A quantile (key) and its allowed absolute error (value)."""

    key: float = 0.0
    value: float = 0.0


@dataclass
class SummaryOpts(MetricOpts):
    objectives: list[SummaryObjective] = field(default_factory=list)
    max_age: int = DEF_MAX_AGE
    age_buckets: int = DEF_AGE_BUCKETS
    buf_cap: int = DEF_BUF_CAP


@dataclass
class PrometheusConfiguration:
    counters: list[MetricOpts] = field(default_factory=list)
    gauges: list[MetricOpts] = field(default_factory=list)
    histograms: list[HistogramOpts] = field(default_factory=list)
    summaries: list[SummaryOpts] = field(default_factory=list)


def _fmt(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    number = float(value)
    if number.is_integer() and abs(number) < 1e15:
        return str(int(number))
    return repr(number)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class _Family:
    """Series of one metric keyed by label values, with text rendering."""

    def __init__(self, opts: MetricOpts, kind: str) -> None:
        if not opts.full_name:
            raise ValueError("metric name is empty")
        self.opts = opts
        self.kind = kind
        self.name = opts.full_name
        self.label_names = tuple(opts.label_names)
        self.lock = threading.Lock()
        self.series: dict[tuple[str, ...], Any] = {}

    def key(self, labels: Mapping[str, str] | None) -> tuple[str, ...]:
        given = dict(labels or {})
        if set(given) != set(self.label_names):
            raise ValueError(
                f"labels {sorted(given)} do not match label names {sorted(self.label_names)}"
            )
        return tuple(str(given[name]) for name in self.label_names)

    def update(
        self,
        labels: Mapping[str, str] | None,
        apply: Callable[[Any], Any],
        factory: Callable[[], Any],
    ) -> None:
        key = self.key(labels)
        with self.lock:
            current = self.series.get(key)
            self.series[key] = apply(factory() if current is None else current)

    def clear(self) -> None:
        with self.lock:
            self.series.clear()

    def labels(self, key: tuple[str, ...], extra: tuple[tuple[str, str], ...] = ()) -> str:
        pairs = dict(self.opts.const_labels or {})
        pairs.update(zip(self.label_names, key))
        items = sorted(pairs.items()) + list(extra)
        if not items:
            return ""
        return "{" + ",".join(f'{name}="{_escape(value)}"' for name, value in items) + "}"

    def render(self, sample_lines: Callable[[tuple[str, ...], Any], list[str]]) -> str:
        with self.lock:
            series = sorted(self.series.items())
            if not series:
                return ""
            lines = []
            if self.opts.help:
                lines.append(f"# HELP {self.name} {self.opts.help}")
            lines.append(f"# TYPE {self.name} {self.kind}")
            for key, state in series:
                lines.extend(sample_lines(key, state))
        return "\n".join(lines) + "\n"


class CounterVec:
    def __init__(self, opts: MetricOpts) -> None:
        self._family = _Family(opts, _COUNTER)

    @property
    def name(self) -> str:
        return self._family.name

    def inc(self, labels: Mapping[str, str] | None) -> None:
        self._family.update(labels, lambda total: total + 1.0, float)

    def reset(self) -> None:
        self._family.clear()

    def _lines(self, key: tuple[str, ...], total: float) -> list[str]:
        return [f"{self.name}{self._family.labels(key)} {_fmt(total)}"]

    def expose(self) -> str:
        """Render the series in text exposition format; empty when there is none."""
        return self._family.render(self._lines)


class GaugeVec:
    def __init__(self, opts: MetricOpts) -> None:
        self._family = _Family(opts, _GAUGE)

    @property
    def name(self) -> str:
        return self._family.name

    def set(self, labels: Mapping[str, str] | None, value: float) -> None:
        self._family.update(labels, lambda _old: float(value), float)

    def reset(self) -> None:
        self._family.clear()

    def _lines(self, key: tuple[str, ...], value: float) -> list[str]:
        return [f"{self.name}{self._family.labels(key)} {_fmt(value)}"]

    def expose(self) -> str:
        return self._family.render(self._lines)


@dataclass
class _HistogramState:
    counts: list[int]
    total: float = 0.0
    count: int = 0


class HistogramVec:
    def __init__(self, opts: HistogramOpts) -> None:
        self._family = _Family(opts, _HISTOGRAM)
        buckets = [b for b in (opts.buckets or DEF_BUCKETS) if not math.isinf(b)]
        if any(later <= earlier for earlier, later in zip(buckets, buckets[1:])):
            raise ValueError("histogram buckets must be in strictly increasing order")
        self.buckets = tuple(float(b) for b in buckets)

    @property
    def name(self) -> str:
        return self._family.name

    def observe(self, labels: Mapping[str, str] | None, value: float) -> None:
        def apply(state: _HistogramState) -> _HistogramState:
            for index, bound in enumerate(self.buckets):
                if value <= bound:
                    state.counts[index] += 1
            state.total += value
            state.count += 1
            return state

        self._family.update(labels, apply, lambda: _HistogramState([0] * len(self.buckets)))

    def reset(self) -> None:
        self._family.clear()

    def _lines(self, key: tuple[str, ...], state: _HistogramState) -> list[str]:
        labels = self._family.labels
        lines = [
            f"{self.name}_bucket{labels(key, (('le', _fmt(bound)),))} {count}"
            for bound, count in zip(self.buckets, state.counts)
        ]
        lines.append(f"{self.name}_bucket{labels(key, (('le', '+Inf'),))} {state.count}")
        lines.append(f"{self.name}_sum{labels(key)} {_fmt(state.total)}")
        lines.append(f"{self.name}_count{labels(key)} {state.count}")
        return lines

    def expose(self) -> str:
        return self._family.render(self._lines)


@dataclass
class _SummaryState:
    samples: list[tuple[int, float]] = field(default_factory=list)
    total: float = 0.0
    count: int = 0


class SummaryVec:
    def __init__(self, opts: SummaryOpts) -> None:
        self._family = _Family(opts, _SUMMARY)
        self.objectives = {obj.key: obj.value for obj in opts.objectives}
        self.max_age = opts.max_age

    @property
    def name(self) -> str:
        return self._family.name

    def observe(self, labels: Mapping[str, str] | None, value: float) -> None:
        def apply(state: _SummaryState) -> _SummaryState:
            state.samples.append((time.monotonic_ns(), float(value)))
            state.total += value
            state.count += 1
            return state

        self._family.update(labels, apply, _SummaryState)

    def reset(self) -> None:
        self._family.clear()

    def _quantile(self, values: list[float], quantile: float) -> float:
        if not values:
            return math.nan
        index = max(0, math.ceil(quantile * len(values)) - 1)
        return values[min(index, len(values) - 1)]

    def _lines(self, key: tuple[str, ...], state: _SummaryState) -> list[str]:
        if self.max_age > 0:
            oldest = time.monotonic_ns() - self.max_age
            state.samples = [sample for sample in state.samples if sample[0] >= oldest]
        values = sorted(value for _, value in state.samples)
        labels = self._family.labels
        lines = [
            f"{self.name}{labels(key, (('quantile', _fmt(q)),))} {_fmt(self._quantile(values, q))}"
            for q in sorted(self.objectives)
        ]
        lines.append(f"{self.name}_sum{labels(key)} {_fmt(state.total)}")
        lines.append(f"{self.name}_count{labels(key)} {state.count}")
        return lines

    def expose(self) -> str:
        return self._family.render(self._lines)


def _http_put(url: str, body: bytes) -> None:
    request = urllib.request.Request(
        url,
        data=body,
        method="PUT",
        headers={"Content-Type": "text/plain; version=0.0.4; charset=utf-8"},
    )
    with urllib.request.urlopen(request, timeout=10) as response:
        response.read()


class Pusher:
    """Collects metric vectors and pushes their text to a push gateway."""

    def __init__(
        self, url: str, job: str, send: Callable[[str, bytes], None] | None = None
    ) -> None:
        self.url = url.rstrip("/")
        self.job = job
        self._send = send or _http_put
        self._collectors: dict[int, Any] = {}

    @property
    def endpoint(self) -> str:
        return f"{self.url}/metrics/job/{urllib.parse.quote(self.job, safe='')}"

    def collector(self, vec: Any) -> Pusher:
        """Add a vector to what is pushed; adding the same vector twice has no effect."""
        self._collectors.setdefault(id(vec), vec)
        return self

    def push(self) -> str:
        """Send the current text of every collected vector and return it."""
        body = "".join(vec.expose() for vec in self._collectors.values())
        self._send(self.endpoint, body.encode("utf-8"))
        return body


@dataclass
class _Wrap:
    vec: Any
    pending: bool = False


class MetricVecStore:
    """Metric vectors by kind and options id, tracking which were used since the last push."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._wraps: dict[str, dict[int, _Wrap]] = {kind: {} for kind in _KINDS}
        self._pending: dict[str, list[int]] = {kind: [] for kind in _KINDS}

    def configure(self, config: PrometheusConfiguration) -> None:
        with self._lock:
            for opts in config.counters:
                self._wraps[_COUNTER][opts.id] = _Wrap(CounterVec(opts))
            for opts in config.gauges:
                self._wraps[_GAUGE][opts.id] = _Wrap(GaugeVec(opts))
            for opts in config.histograms:
                self._wraps[_HISTOGRAM][opts.id] = _Wrap(HistogramVec(opts))
            for opts in config.summaries:
                self._wraps[_SUMMARY][opts.id] = _Wrap(SummaryVec(opts))

    def _reset_push(self) -> None:
        for kind, ids in self._pending.items():
            for opts_id in ids:
                wrap = self._wraps[kind].get(opts_id)
                if wrap is not None:
                    wrap.vec.reset()
                    wrap.pending = False
            ids.clear()

    def reset(self) -> None:
        """Clear every vector awaiting a push and forget that it was used."""
        with self._lock:
            self._reset_push()

    def push(self, pusher: Pusher) -> None:
        """Push the vectors used since the last push, then clear them.

        Summaries are handed to the pusher only after the push, so they go out
        with the next one.
        """
        with self._lock:
            for kind in (_COUNTER, _GAUGE, _HISTOGRAM):
                for opts_id in self._pending[kind]:
                    pusher.collector(self._wraps[kind][opts_id].vec)
            try:
                pusher.push()
            except OSError:
                pass
            for opts_id in self._pending[_SUMMARY]:
                pusher.collector(self._wraps[_SUMMARY][opts_id].vec)
            self._reset_push()

    def _get(self, kind: str, opts_id: int) -> Any:
        with self._lock:
            wrap = self._wraps[kind].get(opts_id)
            if wrap is None:
                return None
            if not wrap.pending:
                wrap.pending = True
                self._pending[kind].append(opts_id)
            return wrap.vec

    def counter(self, opts_id: int) -> CounterVec | None:
        return self._get(_COUNTER, opts_id)

    def gauge(self, opts_id: int) -> GaugeVec | None:
        return self._get(_GAUGE, opts_id)

    def histogram(self, opts_id: int) -> HistogramVec | None:
        return self._get(_HISTOGRAM, opts_id)

    def summary(self, opts_id: int) -> SummaryVec | None:
        return self._get(_SUMMARY, opts_id)


def _report_payload(url: str, body: bytes) -> None:
    print(f"prometheus gateway received payload, len {len(body)}, body {body!r}")


metric_vec_store = MetricVecStore()
prometheus_pusher = Pusher("http://localhost:9091", "test", send=_report_payload)