"""A small tracer producing spans with explicit identifiers and timestamps."""

from __future__ import annotations

import os
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from contextbus.events import SpanMetadata

DEFAULT_SAMPLE_RATIO = 0.01
SAMPLER_CONST = "const"
SAMPLER_PROBABILISTIC = "probabilistic"


@dataclass(frozen=True)
class SpanContext:
    trace_id_high: int = 0
    trace_id_low: int = 0
    span_id: int = 0
    parent_id: int = 0
    sampled: bool = False
    baggage: Mapping[str, str] = field(default_factory=dict)


def span_context_from_metadata(metadata: SpanMetadata) -> SpanContext:
    """Context of the parent span that metadata records: its span is metadata's parent."""
    return SpanContext(
        trace_id_high=metadata.trace_id_high,
        trace_id_low=metadata.trace_id_low,
        span_id=metadata.parent_id,
        parent_id=0,
        sampled=metadata.sampled,
        baggage=dict(metadata.baggage),
    )


@dataclass(eq=False)
class Span:
    tracer: Tracer
    operation_name: str
    context: SpanContext
    start_time: int
    tags: dict[str, Any] = field(default_factory=dict)
    finish_time: int | None = None

    @property
    def duration(self) -> int | None:
        if self.finish_time is None:
            return None
        return self.finish_time - self.start_time

    def finish(self, finish_time: int | None = None) -> None:
        """Finish the span at the given time in nanoseconds (now by default) and report it."""
        if self.finish_time is not None:
            raise RuntimeError("span already finished")
        self.finish_time = time.time_ns() if finish_time is None else finish_time
        self.tracer._report(self)


class Tracer:
    """Creates spans and keeps the sampled ones that were finished."""

    def __init__(
        self,
        service_name: str,
        sampler_type: str = SAMPLER_CONST,
        sampler_param: float = 1.0,
        host: str = "",
        reporter: Callable[[Span], None] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if not service_name:
            raise ValueError("no service name provided")
        if sampler_type not in (SAMPLER_CONST, SAMPLER_PROBABILISTIC):
            raise ValueError(f"unknown sampler type: {sampler_type!r}")
        self.service_name = service_name
        self.sampler_type = sampler_type
        self.sampler_param = sampler_param
        self.host = host
        self.reported: list[Span] = []
        self._reporter = reporter
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._closed = False

    def random_id(self) -> int:
        """Return a random non-zero 63-bit identifier."""
        with self._lock:
            while True:
                value = self._rng.getrandbits(63)
                if value:
                    return value

    def _sample(self) -> bool:
        if self.sampler_type == SAMPLER_CONST:
            return self.sampler_param != 0
        with self._lock:
            return self._rng.random() < self.sampler_param

    def start_span(
        self,
        operation_name: str,
        child_of: SpanContext | None = None,
        span_id: int | None = None,
        start_time: int | None = None,
        tags: Mapping[str, Any] | None = None,
    ) -> Span:
        """Start a span, as a child of child_of when given, else as the root of a new trace."""
        own_id = span_id or self.random_id()
        if child_of is not None:
            context = SpanContext(
                trace_id_high=child_of.trace_id_high,
                trace_id_low=child_of.trace_id_low,
                span_id=own_id,
                parent_id=child_of.span_id,
                sampled=child_of.sampled,
                baggage=dict(child_of.baggage),
            )
        else:
            context = SpanContext(
                trace_id_low=self.random_id(), span_id=own_id, sampled=self._sample()
            )
        return Span(
            tracer=self,
            operation_name=operation_name,
            context=context,
            start_time=time.time_ns() if start_time is None else start_time,
            tags=dict(tags or {}),
        )

    def _report(self, span: Span) -> None:
        with self._lock:
            if self._closed or not span.context.sampled:
                return
            self.reported.append(span)
        if self._reporter is not None:
            self._reporter(span)

    def close(self) -> None:
        """Stop reporting; spans finished afterwards are dropped."""
        with self._lock:
            self._closed = True


def new_tracer(service_name: str, host: str, ratio: float) -> Tracer:
    """Build a probabilistic tracer; the environment may override the ratio and name."""
    if ratio <= 0:
        ratio = DEFAULT_SAMPLE_RATIO
    if "JAEGER_SAMPLE_RATIO" in os.environ:
        try:
            ratio = float(os.environ["JAEGER_SAMPLE_RATIO"])
        except ValueError:
            ratio = 0.0
    if ratio > 1:
        ratio = 1.0
    service_name = os.environ.get("JAEGER_SERVICE_NAME", service_name)
    return Tracer(service_name, SAMPLER_PROBABILISTIC, ratio, host)