"""Prerequisite trees with name indexes, snapshot updates and prerequisite checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from contextbus.schema import (
    ConditionNode,
    ConditionNodeType,
    ConditionOperator,
    LogicType,
    PrerequisiteNode,
    PrerequisiteNodeType,
    PrerequisiteSnapshot,
    PrerequisiteTree,
    ReactionType,
)


class PrerequisiteError(ValueError):
    """Raised for malformed prerequisite trees or mismatched snapshots."""


_COMPARISONS = {
    ConditionOperator.LT: lambda value, bound: value < bound,
    ConditionOperator.GT: lambda value, bound: value > bound,
    ConditionOperator.LE: lambda value, bound: value <= bound,
    ConditionOperator.GE: lambda value, bound: value >= bound,
    ConditionOperator.EQ: lambda value, bound: value == bound,
    ConditionOperator.NE: lambda value, bound: value != bound,
}


def check_condition(node: ConditionNode, nodes: Sequence[ConditionNode], value: int) -> bool:
    """Evaluate a condition node against a counter value."""
    if node.type is ConditionNodeType.MESSAGE:
        compare = _COMPARISONS.get(node.message.op)
        if compare is None:
            raise PrerequisiteError("unsupported operation type")
        return compare(value, node.message.value)
    if node.type is ConditionNodeType.LOGIC:
        logic = node.logic
        results = (check_condition(nodes[child], nodes, value) for child in logic.children)
        if logic.type is LogicType.AND:
            return all(results)
        if logic.type is LogicType.OR:
            return any(results)
        raise PrerequisiteError("unsupported PrerequisiteLogicType")
    raise PrerequisiteError("unsupported ConditionNodeType")


def check_prerequisite(
    node: PrerequisiteNode, tree: Any, snapshot: PrerequisiteSnapshot, node_id: int
) -> bool:
    """Evaluate a prerequisite node; a message without conditions is always satisfied."""
    if node.type is PrerequisiteNodeType.MESSAGE:
        value = snapshot.value[node_id]
        conditions = node.message.condition_tree
        if conditions is not None and conditions.nodes:
            return check_condition(conditions.nodes[0], conditions.nodes, value)
        return True
    if node.type is PrerequisiteNodeType.LOGIC:
        logic = node.logic
        results = (
            check_prerequisite(tree.nodes[child], tree, snapshot, child)
            for child in logic.children
        )
        if logic.type is LogicType.AND:
            return all(results)
        if logic.type is LogicType.OR:
            return any(results)
        raise PrerequisiteError("unsupported PrerequisiteLogicType")
    raise PrerequisiteError("unsupported PrerequisiteNodeType")


class IndexedPrerequisiteTree:
    """A prerequisite tree with its message nodes indexed by event name."""

    def __init__(self, tree: PrerequisiteTree) -> None:
        self.tree = tree
        self.index: dict[str, PrerequisiteNode] = {
            node.message.name: node
            for node in tree.nodes
            if node.type is PrerequisiteNodeType.MESSAGE
        }

    @property
    def nodes(self) -> list[PrerequisiteNode]:
        return self.tree.nodes

    def __repr__(self) -> str:
        return f"IndexedPrerequisiteTree({self.tree!r})"

    def initialize_snapshot(self) -> PrerequisiteSnapshot:
        return PrerequisiteSnapshot(value=[0] * len(self.nodes))

    def update_snapshot(self, name: str, snapshot: PrerequisiteSnapshot | None) -> None:
        """Count one more occurrence of the named event in the snapshot."""
        if snapshot is None:
            raise PrerequisiteError("nil pointer PrerequisiteSnapshot")
        if len(snapshot.value) != len(self.nodes):
            raise PrerequisiteError("prerequisite length not match")
        node = self.index.get(name)
        if node is None:
            return
        if node.type is not PrerequisiteNodeType.MESSAGE:
            raise PrerequisiteError("unexpected PrerequisiteNodeType")
        snapshot.value[node.id] += 1

    def check(self, snapshot: PrerequisiteSnapshot) -> bool:
        """Return whether the snapshot satisfies the tree, evaluated from the root."""
        if len(self.nodes) != len(snapshot.value):
            raise PrerequisiteError("prerequisite length not match")
        if not self.nodes:
            return True
        return check_prerequisite(self.nodes[0], self, snapshot, 0)


@dataclass
class Reaction:
    """A reaction to run once its prerequisites are accomplished."""

    name: str
    type: ReactionType
    params: Any
    pre_tree: IndexedPrerequisiteTree

    def initialize_snapshot(self) -> PrerequisiteSnapshot:
        return self.pre_tree.initialize_snapshot()