import pytest

from contextbus.events import Path, PathType
from contextbus.schema import (
    ConditionLogic,
    ConditionMessage,
    ConditionNodeType,
    ConditionOperator,
    ConditionType,
    LogicType,
    LogOutType,
    PrerequisiteNodeType,
    PrerequisiteSnapshot,
    PrerequisiteSnapshots,
    TimestampConfigure,
    new_attribute_configure,
    new_condition_logic_node,
    new_condition_message_node,
    new_condition_tree,
    new_logging_configure,
    new_prerequisite_logic_node,
    new_prerequisite_message_node,
)
from contextbus.timing import TIME_FORMAT_DEFAULT


def test_condition_message_node():
    node = new_condition_message_node(ConditionType.NUM_OF_INVOK, ConditionOperator.EQ, 1)
    assert node.type is ConditionNodeType.MESSAGE
    assert node.message == ConditionMessage(ConditionType.NUM_OF_INVOK, ConditionOperator.EQ, 1)
    assert node.logic is None


def test_condition_logic_node_copies_children():
    children = [1, 2]
    node = new_condition_logic_node(LogicType.AND, -1, children)
    children.append(3)
    assert node.type is ConditionNodeType.LOGIC
    assert node.logic == ConditionLogic(LogicType.AND, -1, [1, 2])


def test_condition_tree_without_leaf_ids():
    node = new_condition_message_node(ConditionType.NUM_OF_INVOK, ConditionOperator.GT, 1)
    tree = new_condition_tree([node], None)
    assert tree.nodes == [node]
    assert tree.leaf_ids == []


def test_prerequisite_message_node():
    node = new_prerequisite_message_node(2, "EventB", None, 0, None)
    assert node.id == 2
    assert node.type is PrerequisiteNodeType.MESSAGE
    assert node.message.name == "EventB"
    assert node.message.parent == 0
    assert node.logic is None


def test_prerequisite_logic_node():
    node = new_prerequisite_logic_node(0, LogicType.OR, -1, [1, 4])
    assert node.type is PrerequisiteNodeType.LOGIC
    assert node.logic.children == [1, 4]
    assert node.logic.type is LogicType.OR
    assert node.message is None


def test_snapshot_clone_is_independent():
    original = PrerequisiteSnapshot(value=[1, 2, 3], acc=True)
    copy = original.clone()
    assert copy == original
    copy.value[0] += 5
    assert original.value == [1, 2, 3]


def test_empty_snapshot_clone_drops_acc():
    copy = PrerequisiteSnapshot(value=[], acc=True).clone()
    assert copy == PrerequisiteSnapshot()


def test_snapshot_merge_offset():
    snapshot = PrerequisiteSnapshot(value=[1, 2])
    snapshot.merge_offset(PrerequisiteSnapshot(value=[3, 4]))
    assert snapshot.value == [4, 6]


def test_snapshot_merge_offset_short_source():
    snapshot = PrerequisiteSnapshot(value=[1, 2])
    with pytest.raises(ValueError):
        snapshot.merge_offset(PrerequisiteSnapshot(value=[1]))
    with pytest.raises(ValueError):
        snapshot.merge_offset(None)


def test_empty_snapshot_merge_offset_accepts_none():
    snapshot = PrerequisiteSnapshot()
    snapshot.merge_offset(None)
    assert snapshot.value == []


def test_snapshots_clone_get_and_merge():
    snapshots = PrerequisiteSnapshots({"EventC": PrerequisiteSnapshot(value=[0, 1, 0])})
    copy = snapshots.clone()
    assert copy == snapshots
    assert copy.get("EventC") is not snapshots.get("EventC")
    assert snapshots.get("missing") is None

    snapshots.merge_offset(copy)
    assert snapshots.get("EventC").value == [0, 2, 0]
    assert copy.get("EventC").value == [0, 1, 0]


def test_logging_and_attribute_configure():
    path = Path(PathType.LIBRARY, ["rest", "key"])
    attr = new_attribute_configure("rest.key", path)
    logging = new_logging_configure(TimestampConfigure(), None, [attr], LogOutType.STDOUT)
    assert logging.attrs == [attr]
    assert logging.out is LogOutType.STDOUT
    assert logging.timestamp.format == TIME_FORMAT_DEFAULT
    assert attr.path is path