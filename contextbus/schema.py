"""Configuration schema: conditions, prerequisite trees, snapshots and observation settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from contextbus.events import Path
from contextbus.timing import TIME_FORMAT_DEFAULT


class ConditionType(Enum):
    UNSET = 0
    NUM_OF_INVOK = 1


class ConditionOperator(Enum):
    UNSET = 0
    LT = 1
    GT = 2
    LE = 3
    GE = 4
    EQ = 5
    NE = 6


class LogicType(Enum):
    UNSET = 0
    AND = 1
    OR = 2


class ConditionNodeType(Enum):
    UNSET = 0
    MESSAGE = 1
    LOGIC = 2


@dataclass
class ConditionMessage:
    """A comparison of an event's counter against a fixed value."""

    type: ConditionType = ConditionType.UNSET
    op: ConditionOperator = ConditionOperator.UNSET
    value: int = 0


@dataclass
class ConditionLogic:
    """A conjunction or disjunction over other condition nodes, by index."""

    type: LogicType = LogicType.UNSET
    parent: int = -1
    children: list[int] = field(default_factory=list)


@dataclass
class ConditionNode:
    type: ConditionNodeType = ConditionNodeType.UNSET
    message: ConditionMessage | None = None
    logic: ConditionLogic | None = None


@dataclass
class ConditionTree:
    """Condition nodes; the first node is the root."""

    nodes: list[ConditionNode] = field(default_factory=list)
    leaf_ids: list[int] = field(default_factory=list)


class PrerequisiteNodeType(Enum):
    UNSET = 0
    MESSAGE = 1
    LOGIC = 2


@dataclass
class PrerequisiteMessage:
    """A prerequisite on one named event, optionally with conditions on its count."""

    name: str = ""
    condition_tree: ConditionTree | None = None
    parent: int = -1


@dataclass
class PrerequisiteLogic:
    type: LogicType = LogicType.UNSET
    parent: int = -1
    children: list[int] = field(default_factory=list)


@dataclass
class PrerequisiteNode:
    """A node of a prerequisite tree; its id is also its index in the snapshot."""

    id: int = 0
    type: PrerequisiteNodeType = PrerequisiteNodeType.UNSET
    message: PrerequisiteMessage | None = None
    logic: PrerequisiteLogic | None = None
    prev_event_name: str = ""
    prev_event_latency: int = 0


@dataclass
class PrerequisiteTree:
    """Prerequisite nodes; the first node is the root."""

    nodes: list[PrerequisiteNode] = field(default_factory=list)
    leaf_ids: list[int] = field(default_factory=list)


@dataclass
class PrerequisiteSnapshot:
    """Per-node counters of a prerequisite tree."""

    value: list[int] = field(default_factory=list)
    acc: bool = False

    def clone(self) -> PrerequisiteSnapshot:
        if not self.value:
            return PrerequisiteSnapshot()
        return PrerequisiteSnapshot(value=list(self.value), acc=self.acc)

    def merge_offset(self, source: PrerequisiteSnapshot | None) -> None:
        """Add the counters of source to these counters, position by position."""
        if not self.value:
            return
        if source is None or len(source.value) < len(self.value):
            raise ValueError("offset snapshot is shorter than the snapshot it is merged into")
        self.value = [mine + theirs for mine, theirs in zip(self.value, source.value)]


@dataclass
class PrerequisiteSnapshots:
    """Snapshots keyed by reaction name."""

    snapshots: dict[str, PrerequisiteSnapshot] = field(default_factory=dict)

    def clone(self) -> PrerequisiteSnapshots:
        return PrerequisiteSnapshots(
            {name: snapshot.clone() for name, snapshot in self.snapshots.items()}
        )

    def get(self, name: str) -> PrerequisiteSnapshot | None:
        return self.snapshots.get(name)

    def merge_offset(self, source: PrerequisiteSnapshots) -> None:
        for name, snapshot in self.snapshots.items():
            snapshot.merge_offset(source.snapshots.get(name))


class ReactionType(Enum):
    UNSET = 0
    FAULT_DELAY = 1
    FAULT_CRASH = 2
    PRINT_LOG = 3


@dataclass
class FaultDelayParam:
    ms: int = 0


@dataclass
class ReactionConfigure:
    type: ReactionType = ReactionType.UNSET
    params: Any = None
    pre_tree: PrerequisiteTree = field(default_factory=PrerequisiteTree)


class ObservationType(Enum):
    UNSET = 0
    SINGLE = 1
    START = 2
    INTER = 3
    END = 4


class LogOutType(Enum):
    UNSET = 0
    STDOUT = 1
    STDERR = 2
    FILE = 3


@dataclass
class TimestampConfigure:
    format: str = TIME_FORMAT_DEFAULT


@dataclass
class StackTraceConfigure:
    switch: bool = False


@dataclass
class AttributeConfigure:
    """Names a tag and the path its value is read from."""

    name: str
    path: Path


@dataclass
class LoggingConfigure:
    timestamp: TimestampConfigure | None = None
    stacktrace: StackTraceConfigure | None = None
    attrs: list[AttributeConfigure] = field(default_factory=list)
    out: LogOutType = LogOutType.UNSET


@dataclass
class TracingConfigure:
    start: bool = False
    end: bool = False
    span_name: str = ""
    parent_name: str = ""
    prev_event_name: str = ""
    attrs: list[AttributeConfigure] = field(default_factory=list)
    stacktrace: StackTraceConfigure | None = None


class MetricType(Enum):
    UNSET = 0
    COUNTER = 1
    GAUGE = 2
    HISTOGRAM = 3
    SUMMARY = 4


@dataclass
class MetricsConfigure:
    type: MetricType = MetricType.UNSET
    name: str = ""
    opts_id: int = 0
    prev_name: str = ""
    attrs: list[AttributeConfigure] = field(default_factory=list)


@dataclass
class ObservationConfigure:
    type: ObservationType = ObservationType.UNSET
    logging: LoggingConfigure | None = None
    tracing: TracingConfigure | None = None
    metrics: list[MetricsConfigure] = field(default_factory=list)


@dataclass
class Configure:
    """Reactions and observations keyed by event name."""

    reactions: dict[str, ReactionConfigure] | None = None
    observations: dict[str, ObservationConfigure] | None = None


def new_condition_message_node(
    condition_type: ConditionType, operator: ConditionOperator, value: int
) -> ConditionNode:
    return ConditionNode(
        type=ConditionNodeType.MESSAGE,
        message=ConditionMessage(type=condition_type, op=operator, value=value),
    )


def new_condition_logic_node(
    logic_type: LogicType, parent: int, children: Sequence[int] | None
) -> ConditionNode:
    return ConditionNode(
        type=ConditionNodeType.LOGIC,
        logic=ConditionLogic(type=logic_type, parent=parent, children=list(children or [])),
    )


def new_condition_tree(
    nodes: Sequence[ConditionNode], leaf_ids: Sequence[int] | None
) -> ConditionTree:
    return ConditionTree(nodes=list(nodes), leaf_ids=list(leaf_ids or []))


def new_prerequisite_message_node(
    node_id: int,
    name: str,
    condition_tree: ConditionTree | None,
    parent: int,
    children: Sequence[int] | None,
) -> PrerequisiteNode:
    """Build a message node; a message node has no children, so children is not kept."""
    return PrerequisiteNode(
        id=node_id,
        type=PrerequisiteNodeType.MESSAGE,
        message=PrerequisiteMessage(name=name, condition_tree=condition_tree, parent=parent),
    )


def new_prerequisite_logic_node(
    node_id: int, logic_type: LogicType, parent: int, children: Sequence[int] | None
) -> PrerequisiteNode:
    return PrerequisiteNode(
        id=node_id,
        type=PrerequisiteNodeType.LOGIC,
        logic=PrerequisiteLogic(type=logic_type, parent=parent, children=list(children or [])),
    )


def new_attribute_configure(name: str, path: Path) -> AttributeConfigure:
    return AttributeConfigure(name=name, path=path)


def new_logging_configure(
    timestamp: TimestampConfigure | None,
    stacktrace: StackTraceConfigure | None,
    attrs: Sequence[AttributeConfigure] | None,
    out: LogOutType,
) -> LoggingConfigure:
    return LoggingConfigure(
        timestamp=timestamp, stacktrace=stacktrace, attrs=list(attrs or []), out=out
    )