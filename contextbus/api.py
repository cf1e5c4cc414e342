"""Entry points for instrumented code: retrieving contexts and submitting events."""

from __future__ import annotations

import time
from typing import Any, Mapping

from contextbus.bus import observation_bus
from contextbus.configure import CBCID_BYPASS, CBCID_DEFAULT, Configuration, store
from contextbus.context import CB_CONTEXT_NAME, Context, EventContext, Payload, RequestContext
from contextbus.events import (
    EventData,
    EventMessage,
    EventMetadata,
    EventRecorder,
    EventRepresentation,
    EventWhat,
    EventWhen,
    EventWhere,
)
from contextbus.observation import prepare
from contextbus.profiler import environment_profiler
from contextbus.reaction import PrerequisiteError
from contextbus.schema import ObservationType, PrerequisiteSnapshots, ReactionType


def from_context(values: Mapping[str, Any]) -> Context | None:
    """Return the context stored under the context-bus key, or None."""
    return values.get(CB_CONTEXT_NAME)


def from_payload(payload: Payload | None) -> Context | None:
    """Build a context from an incoming payload; None when absent or bypassed."""
    if payload is None or payload.config_id == CBCID_BYPASS:
        return None
    request = RequestContext(
        lib="",
        request_id=payload.request_id,
        configure_id=payload.config_id,
        event_message=None,
        span_metadata=payload.parent,
    )
    event = EventContext(codebase=None, snapshots=PrerequisiteSnapshots())
    return Context(request_context=request, event_context=event, tracer=observation_bus.tracer)


def _react(config: Configuration, name: str, snapshots: PrerequisiteSnapshots | None) -> None:
    reaction = config.reaction_for(name)
    if reaction is None or snapshots is None:
        return
    snapshot = snapshots.get(name)
    if snapshot is None:
        return
    try:
        accomplished = reaction.pre_tree.check(snapshot)
    except PrerequisiteError:
        return
    if not accomplished:
        return

    print("prerequisites accomplished")
    if reaction.type is ReactionType.FAULT_DELAY:
        delay_ms = reaction.params.ms
        time.sleep(delay_ms / 1000)
        print("slept for", delay_ms, "ms")


def on_submission(
    ctx: Context, where: EventWhere, who: EventRecorder, app: EventMessage
) -> EventData:
    """Record an event: update snapshots and event chain, react, and queue it for observation."""
    timestamp = ctx.stamp()
    what = EventWhat(application=app)
    event = EventRepresentation(
        when=EventWhen(time=timestamp), where=where, recorder=who, what=what
    )

    request = ctx.request_context
    if request is not None:
        what.with_library(request.lib, request.event_message)

    event_context = ctx.event_context
    if event_context is None:
        event_context = EventContext()
        ctx.event_context = event_context

    metadata = EventMetadata(
        req_id=request.request_id if request is not None else 0,
        eve_id=observation_bus.new_event_id(),
    )
    metadata.esp = environment_profiler.latest().timestamp
    data = EventData(event=event, metadata=metadata)

    config = store.get(request.configure_id if request is not None else CBCID_DEFAULT)
    if config is None:
        config = Configuration()

    snapshots = config.update_snapshots(who.name, event_context.snapshots)
    offset = event_context.offset_snapshots
    if offset is not None:
        offset = config.update_snapshots(who.name, offset)

    observation = config.observation_for(who.name)
    if observation.type in (ObservationType.START, ObservationType.INTER):
        chained = EventContext(snapshots=snapshots, offset_snapshots=offset)
        ctx.event_context = chained.set_prev_event(event_context, data)
    if observation.type in (ObservationType.INTER, ObservationType.END):
        data.prev_event_data = event_context.prev_event_data

    prepare(observation, ctx, data)
    if data.span_metadata is not None:
        ctx.span_metadata = data.span_metadata

    _react(config, who.name, snapshots)

    observation_bus.submit(ctx, config, data)
    return data