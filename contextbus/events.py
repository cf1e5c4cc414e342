"""Event representation: attributes, messages, recorders and linked event data."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from itertools import islice
from typing import Iterator, Sequence


class ValueLookupError(LookupError):
    """Raised when a path does not resolve to a value in an event."""


class AttributeValueType(Enum):
    UNSET = 0
    STR = 1
    ATTR = 2


@dataclass
class AttributeValue:
    """Either a string value or a nested set of attributes."""

    type: AttributeValueType = AttributeValueType.UNSET
    text: str = ""
    struct: Attributes | None = None

    def clone(self) -> AttributeValue:
        if self.type is AttributeValueType.ATTR:
            struct = self.struct.clone() if self.struct is not None else None
            return AttributeValue(type=self.type, struct=struct)
        return AttributeValue(type=self.type, text=self.text)

    def merge(self, value: AttributeValue | None) -> AttributeValue:
        """Merge nested attributes when both sides are nested; otherwise keep self."""
        if (
            value is not None
            and self.type is AttributeValueType.ATTR
            and value.type is AttributeValueType.ATTR
        ):
            if self.struct is None:
                self.struct = value.struct
            else:
                self.struct.merge(value.struct)
        return self


@dataclass
class Attributes:
    """A mapping from keys to attribute values."""

    attrs: dict[str, AttributeValue] = field(default_factory=dict)

    def clone(self) -> Attributes:
        return Attributes({key: value.clone() for key, value in self.attrs.items()})

    def get_value(self, path: Sequence[str]) -> str:
        """Resolve a key path to a string; a nested value at the end is rendered whole."""
        keys = list(path)
        if not keys or keys[0] not in self.attrs:
            raise ValueLookupError("value not found")

        value = self.attrs[keys[0]]
        last = len(keys) == 1
        if value.type is AttributeValueType.STR:
            if last:
                return value.text
            raise ValueLookupError("invalid Path for a string value")
        if value.type is AttributeValueType.ATTR:
            if last:
                return repr(value)
            if value.struct is None:
                raise ValueLookupError("value not found")
            return value.struct.get_value(keys[1:])
        raise ValueLookupError("invalid AttributeValueType")

    def merge(self, attrs: Attributes | None) -> Attributes:
        """Add keys missing here; merge nested values recursively. Existing strings win."""
        if attrs is None:
            return self
        for key, value in attrs.attrs.items():
            existing = self.attrs.get(key)
            if existing is None:
                self.attrs[key] = value
            elif existing.type is AttributeValueType.ATTR:
                if existing.struct is None:
                    existing.struct = value.struct
                else:
                    existing.struct.merge(value.struct)
        return self

    def set_string(self, key: str, value: str) -> Attributes:
        self.attrs[key] = AttributeValue(type=AttributeValueType.STR, text=value)
        return self

    def with_attributes(self, key: str, attrs: Attributes | None) -> Attributes:
        """Set nested attributes under key, merging what was there; return the nested set."""
        value = AttributeValue(
            type=AttributeValueType.ATTR,
            struct=attrs if attrs is not None else Attributes(),
        )
        existing = self.attrs.get(key)
        if existing is not None:
            value.merge(existing)
        self.attrs[key] = value
        return value.struct

    def get_string(self, key: str) -> str | None:
        value = self.attrs.get(key)
        if value is not None and value.type is AttributeValueType.STR:
            return value.text
        return None


class PathType(Enum):
    APPLICATION = 1
    LIBRARY = 2


@dataclass
class Path:
    """A path into the application message or into one library's message."""

    type: PathType
    keys: list[str] = field(default_factory=list)


@dataclass
class EventWhen:
    time: int = 0

    def merge(self, when: EventWhen | None) -> EventWhen:
        if when is not None and self.time == 0:
            self.time = when.time
        return self


@dataclass
class EventWhere:
    attrs: Attributes | None = None
    stacktrace: str = ""

    def merge(self, where: EventWhere | None) -> EventWhere:
        if where is not None:
            if self.attrs is None:
                self.attrs = where.attrs
            else:
                self.attrs.merge(where.attrs)
            if not self.stacktrace:
                self.stacktrace = where.stacktrace
        return self


class EventRecorderType(Enum):
    UNSET = 0
    APPLICATION = 1
    LIBRARY = 2


@dataclass
class EventRecorder:
    type: EventRecorderType = EventRecorderType.UNSET
    name: str = ""

    def merge(self, recorder: EventRecorder | None) -> EventRecorder:
        if recorder is not None:
            if self.type is EventRecorderType.UNSET:
                self.type = recorder.type
            if not self.name:
                self.name = recorder.name
        return self


_MESSAGE_KEY = "__message__"


@dataclass
class EventMessage:
    """A message template with its attributes and the paths filling its placeholders."""

    attrs: Attributes | None = None
    message: str = ""
    paths: list[Path] = field(default_factory=list)

    def get_value(self, path: Sequence[str]) -> str:
        keys = list(path)
        if not keys:
            raise ValueLookupError("invalid Path length for EventMessage")
        if len(keys) == 1 and keys[0] == _MESSAGE_KEY:
            return self.message
        if self.attrs is None:
            raise ValueLookupError("value not found")
        return self.attrs.get_value(keys)

    def attributes(self) -> Attributes:
        """Return the attributes, creating an empty set if there is none."""
        if self.attrs is None:
            self.attrs = Attributes()
        return self.attrs

    def with_attributes(self, attrs: Attributes | None) -> Attributes:
        if attrs is None:
            attrs = Attributes()
        if self.attrs is None:
            self.attrs = attrs
        else:
            self.attrs.merge(attrs)
        return self.attrs

    def set_message(self, message: str) -> EventMessage:
        self.message = message
        return self

    def set_paths(self, paths: Sequence[Path]) -> EventMessage:
        self.paths = list(paths)
        return self

    def merge(self, message: EventMessage | None) -> EventMessage:
        if message is not None:
            if self.attrs is None:
                self.attrs = message.attrs
            else:
                self.attrs.merge(message.attrs)
            if not self.message:
                self.message = message.message
        return self


@dataclass
class LibrariesMessage:
    libraries: dict[str, EventMessage] = field(default_factory=dict)

    def get_value(self, path: Sequence[str]) -> str:
        keys = list(path)
        if not self.libraries:
            raise ValueLookupError("empty libraries")
        if not keys:
            raise ValueLookupError("invalid Path len for LibrariesMessage")
        library = self.libraries.get(keys[0])
        if library is None:
            raise ValueLookupError("library not found")
        return library.get_value(keys[1:])

    def merge(self, libraries: LibrariesMessage | None) -> LibrariesMessage:
        if libraries is not None:
            for key, value in libraries.libraries.items():
                existing = self.libraries.get(key)
                if existing is None:
                    self.libraries[key] = value
                else:
                    existing.merge(value)
        return self


@dataclass
class EventWhat:
    """What happened: the application's message and the libraries' messages."""

    application: EventMessage | None = None
    libraries: LibrariesMessage | None = None

    def get_value(self, path: Path) -> str:
        if path.type is PathType.APPLICATION:
            if self.application is None:
                raise ValueLookupError("no application")
            return self.application.get_value(path.keys)
        if self.libraries is None:
            raise ValueLookupError("no libraries")
        return self.libraries.get_value(path.keys)

    def merge(self, what: EventWhat | None) -> EventWhat:
        if what is not None:
            if self.application is None:
                self.application = what.application
            else:
                self.application.merge(what.application)
            if self.libraries is None:
                self.libraries = what.libraries
            else:
                self.libraries.merge(what.libraries)
        return self

    def with_application(self, message: EventMessage | None) -> EventMessage:
        if self.application is None:
            self.application = message if message is not None else EventMessage()
        else:
            self.application.merge(message)
        return self.application

    def with_library(self, key: str, message: EventMessage | None) -> EventMessage:
        """Store message under key, merging any message already there; return it."""
        if message is None:
            message = EventMessage()
        if self.libraries is None:
            self.libraries = LibrariesMessage()
        else:
            existing = self.libraries.libraries.get(key)
            if existing is not None:
                message.merge(existing)
        self.libraries.libraries[key] = message
        return message


@dataclass
class EventRepresentation:
    when: EventWhen | None = None
    where: EventWhere | None = None
    recorder: EventRecorder | None = None
    what: EventWhat | None = None

    def with_when(self, when: EventWhen | None) -> EventWhen:
        if self.when is None:
            self.when = when if when is not None else EventWhen()
        else:
            self.when.merge(when)
        return self.when

    def with_where(self, where: EventWhere | None) -> EventWhere:
        if self.where is None:
            self.where = where if where is not None else EventWhere()
        else:
            self.where.merge(where)
        return self.where

    def with_recorder(self, recorder: EventRecorder | None) -> EventRecorder:
        if self.recorder is None:
            self.recorder = recorder if recorder is not None else EventRecorder()
        else:
            self.recorder.merge(recorder)
        return self.recorder

    def with_what(self, what: EventWhat | None) -> EventWhat:
        if self.what is None:
            self.what = what if what is not None else EventWhat()
        else:
            self.what.merge(what)
        return self.what


@dataclass
class SpanMetadata:
    sampled: bool = False
    trace_id_high: int = 0
    trace_id_low: int = 0
    span_id: int = 0
    parent_id: int = 0
    baggage: dict[str, str] = field(default_factory=dict)

    def hex_string(self) -> str:
        sampled = "true" if self.sampled else "false"
        return (
            f"sampled:{sampled} "
            f"trace_id_high:{self.trace_id_high:x}({self.trace_id_high}) "
            f"trace_id_low:{self.trace_id_low:x}({self.trace_id_low}) "
            f"span_id:{self.span_id:x}({self.span_id}) "
            f"parent_id:{self.parent_id:x}({self.parent_id})"
        )


@dataclass
class EventMetadata:
    req_id: int = 0
    eve_id: int = 0
    pcp: object | None = None
    esp: int = 0


@dataclass
class EventData:
    """An event with its metadata, linked to the event that preceded it."""

    event: EventRepresentation = field(default_factory=EventRepresentation)
    metadata: EventMetadata = field(default_factory=EventMetadata)
    span_metadata: SpanMetadata | None = None
    prev_event_data: EventData | None = None

    def chain(self) -> Iterator[EventData]:
        """Yield this event and then each earlier event, most recent first."""
        node: EventData | None = self
        while node is not None:
            yield node
            node = node.prev_event_data

    def previous(self, name: str) -> EventData | None:
        """Return the nearest earlier event recorded under name, or None."""
        for data in islice(self.chain(), 1, None):
            recorder = data.event.recorder
            if recorder is not None and recorder.name == name:
                return data
        return None