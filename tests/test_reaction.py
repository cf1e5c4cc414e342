import pytest

from contextbus.fixtures import indexed_tree0, indexed_tree1
from contextbus.reaction import (
    IndexedPrerequisiteTree,
    PrerequisiteError,
    Reaction,
    check_condition,
)
from contextbus.schema import (
    ConditionOperator,
    ConditionType,
    LogicType,
    PrerequisiteSnapshot,
    PrerequisiteTree,
    ReactionType,
    new_condition_logic_node,
    new_condition_message_node,
    new_condition_tree,
    new_prerequisite_logic_node,
    new_prerequisite_message_node,
)


def test_tree1_check_event_c_window():
    tree = indexed_tree1()
    snapshot = tree.initialize_snapshot()

    # only the 2nd and 3rd invocations of EventC lead to true values
    for expected in [False, True, True, False]:
        tree.update_snapshot("EventC", snapshot)
        assert tree.check(snapshot) is expected

    tree.update_snapshot("EventA", snapshot)
    assert tree.check(snapshot) is False


def test_tree0_initialize_snapshot():
    assert indexed_tree0().initialize_snapshot() == PrerequisiteSnapshot(value=[0, 0, 0])


def test_tree0_update_snapshot():
    tree = indexed_tree0()
    snapshot = tree.initialize_snapshot()
    tree.update_snapshot("EventA", snapshot)
    assert tree.check(snapshot) is False

    tree.update_snapshot("EventB", snapshot)
    assert tree.check(snapshot) is True


def test_update_unknown_name_leaves_snapshot():
    tree = indexed_tree0()
    snapshot = tree.initialize_snapshot()
    tree.update_snapshot("EventZ", snapshot)
    assert snapshot.value == [0, 0, 0]


def test_update_snapshot_errors():
    tree = indexed_tree0()
    with pytest.raises(PrerequisiteError):
        tree.update_snapshot("EventA", None)
    with pytest.raises(PrerequisiteError):
        tree.update_snapshot("EventA", PrerequisiteSnapshot(value=[0]))


def test_check_length_mismatch():
    with pytest.raises(PrerequisiteError):
        indexed_tree1().check(PrerequisiteSnapshot(value=[0, 0]))


def test_empty_tree_is_accomplished():
    tree = IndexedPrerequisiteTree(PrerequisiteTree())
    assert tree.check(PrerequisiteSnapshot()) is True


def test_unsupported_operator():
    node = new_condition_message_node(ConditionType.NUM_OF_INVOK, ConditionOperator.UNSET, 1)
    with pytest.raises(PrerequisiteError):
        check_condition(node, [node], 1)


def test_unsupported_logic_type():
    tree = IndexedPrerequisiteTree(
        PrerequisiteTree(
            nodes=[
                new_prerequisite_logic_node(0, LogicType.UNSET, -1, [1]),
                new_prerequisite_message_node(1, "EventA", None, 0, None),
            ]
        )
    )
    with pytest.raises(PrerequisiteError):
        tree.check(tree.initialize_snapshot())


@pytest.mark.parametrize(
    "operator, value, expected",
    [
        (ConditionOperator.LT, 0, True),
        (ConditionOperator.LE, 1, True),
        (ConditionOperator.GE, 0, False),
        (ConditionOperator.NE, 1, False),
        (ConditionOperator.EQ, 1, True),
        (ConditionOperator.GT, 1, False),
    ],
)
def test_condition_operators(operator, value, expected):
    node = new_condition_message_node(ConditionType.NUM_OF_INVOK, operator, 1)
    assert check_condition(node, [node], value) is expected


def test_or_condition_logic():
    nodes = [
        new_condition_logic_node(LogicType.OR, -1, [1, 2]),
        new_condition_message_node(ConditionType.NUM_OF_INVOK, ConditionOperator.LT, 1),
        new_condition_message_node(ConditionType.NUM_OF_INVOK, ConditionOperator.GT, 4),
    ]
    assert check_condition(nodes[0], nodes, 0) is True
    assert check_condition(nodes[0], nodes, 2) is False
    assert check_condition(nodes[0], nodes, 5) is True


def test_reaction_initialize_snapshot():
    tree = IndexedPrerequisiteTree(
        PrerequisiteTree(
            nodes=[
                new_prerequisite_message_node(
                    0,
                    "EventA",
                    new_condition_tree(
                        [
                            new_condition_message_node(
                                ConditionType.NUM_OF_INVOK, ConditionOperator.GE, 1
                            )
                        ],
                        None,
                    ),
                    -1,
                    None,
                )
            ]
        )
    )
    reaction = Reaction("EventD", ReactionType.FAULT_CRASH, None, tree)
    snapshot = reaction.initialize_snapshot()
    assert snapshot == PrerequisiteSnapshot(value=[0])
    assert tree.check(snapshot) is False
    tree.update_snapshot("EventA", snapshot)
    assert tree.check(snapshot) is True