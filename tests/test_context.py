import time

from contextbus.context import (
    Context,
    EventContext,
    MessageType,
    RequestContext,
)
from contextbus.events import EventData, EventRecorder, EventRepresentation, SpanMetadata
from contextbus.schema import PrerequisiteSnapshot, PrerequisiteSnapshots


def _event(name, prev=None):
    return EventData(
        event=EventRepresentation(recorder=EventRecorder(name=name)), prev_event_data=prev
    )


def test_payload_carries_request_fields():
    snapshots = PrerequisiteSnapshots({"r": PrerequisiteSnapshot(value=[1, 2])})
    span = SpanMetadata(sampled=True, span_id=7)
    ctx = Context(
        request_context=RequestContext(lib="rest", request_id=42, configure_id=3),
        event_context=EventContext(snapshots=snapshots),
        span_metadata=span,
    )
    payload = ctx.payload()
    assert payload.request_id == 42
    assert payload.config_id == 3
    assert payload.snapshots is snapshots
    assert payload.parent is span
    assert payload.m_type is MessageType.REQUEST
    assert payload.uuid == ""


def test_stamp_sets_current_time():
    ctx = Context()
    before = time.time_ns()
    value = ctx.stamp()
    after = time.time_ns()
    assert before <= ctx.timestamp <= after
    assert value == ctx.timestamp


def test_set_prev_event_returns_self_and_links():
    previous = EventContext()
    data = _event("EventA")
    current = EventContext()
    assert current.set_prev_event(previous, data) is current
    assert current.prev_event_context is previous
    assert current.prev_event_data is data


def test_previous_event_names_most_recent_first():
    chain = _event("C", _event("B", _event("A")))
    ctx = Context(event_context=EventContext().set_prev_event(None, chain))
    assert ctx.previous_event_names() == ["C", "B", "A"]


def test_previous_event_names_empty_without_events():
    assert Context(event_context=EventContext()).previous_event_names() == []
    assert Context().previous_event_names() == []