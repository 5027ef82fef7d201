from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from data_structures.tree import InternalNode, LeafNode, Tree
from errors import SchemaMismatch


@dataclass(frozen=True)
class ProblemSpec:
    num_features: int
    num_classes: int
    num_instances: int = 0
    distinct_classes: tuple[Any, ...] = ()
    actual_mtry: int = 0

    def __post_init__(self) -> None:
        if self.num_features < 0:
            raise ValueError("num_features must be non-negative")
        if self.num_classes < 0:
            raise ValueError("num_classes must be non-negative")
        if self.num_instances < 0:
            raise ValueError("num_instances must be non-negative")
        if self.actual_mtry < 0:
            raise ValueError("actual_mtry must be non-negative")
        object.__setattr__(self, "distinct_classes", tuple(self.distinct_classes))


@dataclass
class Forest:
    problem_spec: ProblemSpec
    trees: list[Tree] = field(default_factory=list)

    def __post_init__(self) -> None:
        trees, self.trees = list(self.trees), []
        for tree in trees:
            self.add_tree(tree)

    @property
    def num_trees(self) -> int:
        return len(self.trees)

    def _check_tree(self, tree: Tree) -> None:
        spec = self.problem_spec
        for index, node in tree.iter_breadth_first():
            if isinstance(node, LeafNode) and len(node.responses) != spec.num_classes:
                raise SchemaMismatch(
                    f"leaf {index} has {len(node.responses)} responses, "
                    f"expected {spec.num_classes}"
                )
            if isinstance(node, InternalNode) and not 0 <= node.split.dimension < spec.num_features:
                raise SchemaMismatch(
                    f"node {index} splits on dimension {node.split.dimension}, "
                    f"forest has {spec.num_features} features"
                )

    def add_tree(self, tree: Tree) -> None:
        self._check_tree(tree)
        self.trees.append(tree)

    def merge(self, other: Forest) -> None:
        mine, theirs = self.problem_spec, other.problem_spec
        if (mine.num_features, mine.num_classes) != (theirs.num_features, theirs.num_classes):
            raise SchemaMismatch(
                "cannot merge forests with different feature or class counts: "
                f"({mine.num_features}, {mine.num_classes}) vs "
                f"({theirs.num_features}, {theirs.num_classes})"
            )
        for tree in other.trees:
            self.add_tree(tree)
