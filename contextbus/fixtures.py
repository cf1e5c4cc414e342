"""Sample paths, messages and prerequisite trees used by examples and tests."""

from __future__ import annotations

from contextbus.events import (
    AttributeValue,
    AttributeValueType,
    Attributes,
    EventMessage,
    Path,
    PathType,
)
from contextbus.reaction import IndexedPrerequisiteTree
from contextbus.schema import (
    ConditionNode,
    ConditionOperator,
    ConditionType,
    LogicType,
    PrerequisiteTree,
    new_attribute_configure,
    new_condition_logic_node,
    new_condition_message_node,
    new_condition_tree,
    new_prerequisite_logic_node,
    new_prerequisite_message_node,
)

PATH_NOT_FOUND = Path(PathType.LIBRARY, ["__not__", "__found__"])
PATH_REST_FROM = Path(PathType.LIBRARY, ["rest", "from"])
PATH_REST_METHOD = Path(PathType.LIBRARY, ["rest", "method"])
PATH_REST_HANDLER = Path(PathType.LIBRARY, ["rest", "handler"])
PATH_REST_KEY = Path(PathType.LIBRARY, ["rest", "key"])
PATH_REST_KEY_ = Path(PathType.LIBRARY, ["rest", "key_"])
PATH_APP_KEY21 = Path(PathType.APPLICATION, ["key2", "key21"])
PATH_APP_MESSAGE = Path(PathType.APPLICATION, ["__message__"])
PATH_LIB1_KEY11 = Path(PathType.LIBRARY, ["lib1", "key1", "key11"])

ATTR_APP_KEY21 = new_attribute_configure("app.key21", PATH_APP_KEY21)
ATTR_APP_MESSAGE = new_attribute_configure("app.message", PATH_APP_MESSAGE)
ATTR_LIB1_KEY11 = new_attribute_configure("lib1.key11", PATH_LIB1_KEY11)
ATTR_REST_FROM = new_attribute_configure("rest.from", PATH_REST_FROM)
ATTR_REST_METHOD = new_attribute_configure("method", PATH_REST_METHOD)
ATTR_REST_HANDLER = new_attribute_configure("handler", PATH_REST_HANDLER)
ATTR_REST_KEY = new_attribute_configure("rest.key", PATH_REST_KEY)
ATTR_REST_KEY_ = new_attribute_configure("rest.key_", PATH_REST_KEY_)


def _invocations(operator: ConditionOperator, value: int) -> ConditionNode:
    return new_condition_message_node(ConditionType.NUM_OF_INVOK, operator, value)


def condition_invoked_once() -> ConditionNode:
    """Number of invocations == 1."""
    return _invocations(ConditionOperator.EQ, 1)


def condition_invoked_at_least(count: int) -> ConditionNode:
    """Number of invocations >= count."""
    return _invocations(ConditionOperator.GE, count)


def rest_event_message() -> EventMessage:
    """A library message as a REST layer would record it."""
    values = {
        "from": "SenderA",
        "method": "POST",
        "handler": "/handler1",
        "key": "This a string attribute",
        "key_": "This another string attribute",
    }
    return EventMessage(
        attrs=Attributes(
            {
                key: AttributeValue(type=AttributeValueType.STR, text=text)
                for key, text in values.items()
            }
        )
    )


def prerequisite_tree0() -> PrerequisiteTree:
    """(EventA) && (EventB = 1)"""
    return PrerequisiteTree(
        nodes=[
            new_prerequisite_logic_node(0, LogicType.AND, -1, [1, 2]),
            new_prerequisite_message_node(1, "EventA", None, 0, None),
            new_prerequisite_message_node(
                2, "EventB", new_condition_tree([condition_invoked_once()], None), 0, None
            ),
        ]
    )


def prerequisite_tree1() -> PrerequisiteTree:
    """((EventA) && (EventB = 1)) || (1 < EventC < 4)"""
    event_c_window = new_condition_tree(
        [
            new_condition_logic_node(LogicType.AND, -1, [1, 2]),
            _invocations(ConditionOperator.GT, 1),
            _invocations(ConditionOperator.LT, 4),
        ],
        None,
    )
    return PrerequisiteTree(
        nodes=[
            new_prerequisite_logic_node(0, LogicType.OR, -1, [1, 4]),
            new_prerequisite_logic_node(1, LogicType.AND, 0, [2, 3]),
            new_prerequisite_message_node(2, "EventA", None, 1, None),
            new_prerequisite_message_node(
                3, "EventB", new_condition_tree([condition_invoked_once()], None), 1, None
            ),
            new_prerequisite_message_node(4, "EventC", event_c_window, 0, None),
        ]
    )


def indexed_tree0() -> IndexedPrerequisiteTree:
    return IndexedPrerequisiteTree(prerequisite_tree0())


def indexed_tree1() -> IndexedPrerequisiteTree:
    return IndexedPrerequisiteTree(prerequisite_tree1())