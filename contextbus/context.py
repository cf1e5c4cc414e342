"""Request and event contexts carried through a request while it is observed."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from contextbus.events import EventData, EventMessage, SpanMetadata
from contextbus.perf import PerfMetric
from contextbus.schema import PrerequisiteSnapshots

CB_CONTEXT_NAME = "context_bus"


class MessageType(Enum):
    UNSET = 0
    REQUEST = 1
    RESPONSE = 2


@dataclass
class CodeBaseInfo:
    name: str = ""
    file: str = ""
    line: int = 0


@dataclass
class Payload:
    """What travels with an inter-service message."""

    request_id: int = 0
    config_id: int = 0
    snapshots: PrerequisiteSnapshots | None = None
    addition: Any = None
    parent: SpanMetadata | None = None
    m_type: MessageType = MessageType.UNSET
    uuid: str = ""
    metric: PerfMetric | None = None


@dataclass
class RequestContext:
    """Inter-service request context written by the network layer."""

    lib: str = ""
    request_id: int = 0
    configure_id: int = 0
    event_message: EventMessage | None = None
    span_metadata: SpanMetadata | None = None


@dataclass
class EventContext:
    """Context associated with each observation."""

    codebase: CodeBaseInfo | None = None
    snapshots: PrerequisiteSnapshots | None = None
    offset_snapshots: PrerequisiteSnapshots | None = None
    prev_event_context: EventContext | None = None
    prev_event_data: EventData | None = None

    def set_prev_event(
        self, event_context: EventContext | None, event_data: EventData | None
    ) -> EventContext:
        """Link this context to the previous one and its event; return self."""
        self.prev_event_context = event_context
        self.prev_event_data = event_data
        return self


@dataclass
class Context:
    request_context: RequestContext | None = None
    event_context: EventContext | None = None
    tracer: Any = None
    span_metadata: SpanMetadata | None = None
    timestamp: int = 0

    def payload(self) -> Payload:
        """Build the payload to attach to an outgoing request."""
        request = self.request_context or RequestContext()
        snapshots = self.event_context.snapshots if self.event_context is not None else None
        return Payload(
            request_id=request.request_id,
            config_id=request.configure_id,
            snapshots=snapshots,
            addition=None,
            parent=self.span_metadata,
            m_type=MessageType.REQUEST,
            uuid="",
        )

    def stamp(self) -> int:
        """Set the timestamp to the current time in nanoseconds and return it."""
        self.timestamp = time.time_ns()
        return self.timestamp

    def previous_event_names(self) -> list[str]:
        """Names of the recorders of earlier events, most recent first."""
        if self.event_context is None or self.event_context.prev_event_data is None:
            return []
        return [
            data.event.recorder.name if data.event.recorder is not None else ""
            for data in self.event_context.prev_event_data.chain()
        ]