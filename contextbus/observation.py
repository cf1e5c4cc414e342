"""Carrying out observations: structured logs, trace spans and metrics for event data."""

from __future__ import annotations

import json
import re
import sys
from typing import Any, Sequence

from contextbus.events import EventData, EventRepresentation, SpanMetadata, ValueLookupError
from contextbus.jsonenc import JsonBuffer
from contextbus.metrics import MetricVecStore, metric_vec_store
from contextbus.schema import (
    AttributeConfigure,
    LoggingConfigure,
    LogOutType,
    MetricsConfigure,
    MetricType,
    ObservationConfigure,
    StackTraceConfigure,
    TracingConfigure,
)
from contextbus.timing import TIME_FORMAT_DEFAULT, format_timestamp
from contextbus.tracing import span_context_from_metadata

LOG_CALLER = "test/caller.go"
LOG_LEVEL = "info"

_NANOS_PER_MILLISECOND = 1_000_000
_VERB = re.compile(r"%(.)|%$", re.DOTALL)


def _format_message(template: str, values: Sequence[str]) -> str:
    """Substitute values for ``%s`` (or ``%v``) verbs, marking missing and extra values."""
    remaining = list(values)

    def _replace(match: re.Match[str]) -> str:
        verb = match.group(1)
        if verb is None:
            return "%!(NOVERB)"
        if verb == "%":
            return "%"
        if not remaining:
            return f"%!{verb}(MISSING)"
        value = remaining.pop(0)
        if verb in ("s", "v"):
            return value
        return f"%!{verb}(string={value})"

    text = _VERB.sub(_replace, template)
    if remaining:
        text += "%!(EXTRA " + ", ".join(f"string={value}" for value in remaining) + ")"
    return text


def _stacktrace_on(stacktrace: StackTraceConfigure | None) -> bool:
    return stacktrace is not None and stacktrace.switch


def needs_stacktrace(config: ObservationConfigure) -> bool:
    """Return True if the logging or tracing part of the observation asks for a stacktrace."""
    if config.logging is not None and _stacktrace_on(config.logging.stacktrace):
        return True
    if config.tracing is not None and _stacktrace_on(config.tracing.stacktrace):
        return True
    return False


def prepare(config: ObservationConfigure, ctx: Any, data: EventData) -> None:
    """Pre-allocate the span of an event that starts one, linking it to its parent span."""
    tracing = config.tracing
    if tracing is None or not tracing.start:
        return

    if tracing.parent_name:
        previous = data.previous(tracing.parent_name)
        if previous is None:
            print("previous event data not found")
            return
        parent = previous.span_metadata
    else:
        request = ctx.request_context
        parent = request.span_metadata if request is not None else None

    if parent is None:
        print("parent span metadata not found")
        return
    if not parent.sampled:
        print("request not sampled")
        return

    data.span_metadata = SpanMetadata(
        sampled=True,
        trace_id_high=parent.trace_id_high,
        trace_id_low=parent.trace_id_low,
        span_id=ctx.tracer.random_id(),
        parent_id=parent.span_id,
    )


def collect_tags(
    attrs: Sequence[AttributeConfigure], event: EventRepresentation
) -> dict[str, str]:
    """Read each configured attribute from the event; attributes not found are left out."""
    tags: dict[str, str] = {}
    if event.what is None:
        return tags
    for attr in attrs:
        try:
            tags[attr.name] = event.what.get_value(attr.path)
        except ValueLookupError:
            continue
    return tags


def append_tags(
    buffer: JsonBuffer, attrs: Sequence[AttributeConfigure], event: EventRepresentation
) -> JsonBuffer:
    """Write the found attributes to buffer as a JSON object and return the buffer."""
    buffer.begin_object()
    for name, value in collect_tags(attrs, event).items():
        buffer.append_key(name)
        buffer.append_string(value)
    buffer.end_object()
    return buffer


def _message(event: EventRepresentation) -> str:
    what = event.what
    application = what.application if what is not None else None
    if application is None:
        return _format_message("", [])
    values = []
    for path in application.paths or []:
        try:
            values.append(what.get_value(path))
        except ValueLookupError as error:
            values.append(f"!error({error})")
    return _format_message(application.message or "", values)


def render_log(logging: LoggingConfigure, data: EventData) -> str:
    """Render the event as one JSON log entry."""
    event = data.event
    layout = logging.timestamp.format if logging.timestamp is not None else TIME_FORMAT_DEFAULT
    metadata = data.metadata
    request_id = metadata.req_id if metadata is not None else 0
    event_id = metadata.eve_id if metadata is not None else 0

    buffer = JsonBuffer()
    buffer.begin_object()
    buffer.append_key("caller")
    buffer.append_string(LOG_CALLER)
    buffer.append_key("level")
    buffer.append_string(LOG_LEVEL)
    buffer.append_key("time")
    buffer.append_string(format_timestamp(event.when.time, layout))
    buffer.append_key("ID")
    buffer.append_ids(request_id, event_id)
    buffer.append_key("message")
    buffer.append_string(_message(event))
    if logging.attrs:
        buffer.append_key("tags")
        append_tags(buffer, logging.attrs, event)
    buffer.end_object()
    return str(buffer)


def _console_line(entry: str) -> str:
    try:
        fields = json.loads(entry)
    except ValueError:
        return entry
    parts = [
        str(fields.pop("time", "")),
        str(fields.pop("level", "")).upper()[:3],
        f"{fields.pop('caller', '')} >",
        str(fields.pop("message", "")),
    ]
    parts.extend(f"{key}={json.dumps(value)}" for key, value in fields.items())
    return " ".join(part for part in parts if part)


def emit_log(logging: LoggingConfigure | None, data: EventData) -> int:
    """Render and write the log entry to the configured output; return entries produced."""
    if logging is None:
        return 0
    entry = render_log(logging, data)
    if logging.out is LogOutType.STDOUT:
        print(_console_line(entry), file=sys.stdout)
    elif logging.out is LogOutType.STDERR:
        print(_console_line(entry), file=sys.stderr)
    elif logging.out in (LogOutType.UNSET, LogOutType.FILE):
        pass
    else:
        print(entry, file=sys.stdout)
    return 1


def finish_span(tracing: TracingConfigure | None, ctx: Any, data: EventData) -> int:
    """Close the span opened by an earlier event; return the number of spans finished."""
    if tracing is None or not tracing.end:
        return 0

    previous = data.previous(tracing.prev_event_name)
    if previous is None:
        print("previous event not found", tracing.prev_event_name)
        return 0
    metadata = previous.span_metadata
    if metadata is None:
        print("previous span metadata not found", tracing.prev_event_name)
        return 0

    span = ctx.tracer.start_span(
        tracing.span_name,
        child_of=span_context_from_metadata(metadata),
        span_id=metadata.span_id,
        start_time=previous.event.when.time,
        tags=collect_tags(tracing.attrs, data.event),
    )
    span.finish(data.event.when.time)
    return 1


def _recorder_name(data: EventData) -> str:
    recorder = data.event.recorder
    return recorder.name if recorder is not None else ""


def record_metric(
    metric: MetricsConfigure | None, data: EventData, store: MetricVecStore
) -> int:
    """Update the metric vector the configuration names; return 1 when handled."""
    if metric is None:
        return 0

    labels = collect_tags(metric.attrs, data.event)

    if metric.type is MetricType.COUNTER:
        vec = store.counter(metric.opts_id)
        if vec is None:
            print("counter vec not found for Opts", metric.opts_id)
            return 0
        vec.inc(labels)
        if labels:
            print(f'metrics Counter("{metric.name}", {labels})')
        else:
            print(f'metrics Counter("{metric.name}")')
    elif metric.type is MetricType.HISTOGRAM:
        previous = data.previous(metric.prev_name)
        if previous is None:
            print("previous event not found", metric.prev_name)
            return 1
        vec = store.histogram(metric.opts_id)
        if vec is None:
            print("histogram vec not found for Opts", metric.opts_id)
            return 0
        elapsed = data.event.when.time - previous.event.when.time
        vec.observe(labels, elapsed / _NANOS_PER_MILLISECOND)
        print(
            f'metrics Histogram("{metric.name}", {labels or {}})={elapsed} '
            f"(from {_recorder_name(previous)} to {_recorder_name(data)})"
        )
    elif metric.type in (MetricType.GAUGE, MetricType.SUMMARY):
        print("metrics not recorded for", metric.name)

    return 1


def observe(config: ObservationConfigure, ctx: Any, data: EventData) -> tuple[int, int, int]:
    """Carry out the observation; return the numbers of log entries, spans and metrics."""
    logs = emit_log(config.logging, data)
    spans = finish_span(config.tracing, ctx, data)
    metrics = len(config.metrics)
    for metric in config.metrics:
        record_metric(metric, data, metric_vec_store)
    return logs, spans, metrics