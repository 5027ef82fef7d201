from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterator, Sequence, Union


@dataclass(frozen=True)
class SplitTest:
    dimension: int
    threshold: float


@dataclass(frozen=True)
class LeafNode:
    responses: tuple[float, ...]

    @property
    def weight(self) -> float:
        return float(sum(self.responses))


@dataclass(frozen=True)
class InternalNode:
    split: SplitTest
    left: int
    right: int


Node = Union[LeafNode, InternalNode]


class Tree:
    """Binary decision tree stored as an arena of nodes.

    Slots are allocated first and filled later, which lets builders (the
    flat-array decoder in particular) create children before their content
    is known.
    """

    root = 0

    def __init__(self) -> None:
        self._nodes: list[Node | None] = []

    @classmethod
    def leaf(cls, responses: Sequence[float]) -> Tree:
        tree = cls()
        tree.set_leaf(tree.add_node(), responses)
        return tree

    def add_node(self) -> int:
        self._nodes.append(None)
        return len(self._nodes) - 1

    def _check_unfilled(self, index: int) -> None:
        if self._nodes[index] is not None:
            raise ValueError(f"node {index} is already filled")

    def set_leaf(self, index: int, responses: Sequence[float]) -> LeafNode:
        self._check_unfilled(index)
        node = LeafNode(responses=tuple(float(r) for r in responses))
        self._nodes[index] = node
        return node

    def set_split(self, index: int, dimension: int, threshold: float) -> tuple[int, int]:
        self._check_unfilled(index)
        left = self.add_node()
        right = self.add_node()
        self._nodes[index] = InternalNode(
            split=SplitTest(dimension=int(dimension), threshold=float(threshold)),
            left=left,
            right=right,
        )
        return left, right

    def node(self, index: int) -> Node:
        node = self._nodes[index]
        if node is None:
            raise ValueError(f"node {index} has not been filled")
        return node

    def children(self, index: int) -> tuple[int, ...]:
        node = self.node(index)
        if isinstance(node, InternalNode):
            return (node.left, node.right)
        return ()

    def is_complete(self) -> bool:
        return bool(self._nodes) and all(node is not None for node in self._nodes)

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    @property
    def num_leaves(self) -> int:
        return sum(isinstance(node, LeafNode) for node in self._nodes)

    def iter_breadth_first(self) -> Iterator[tuple[int, Node]]:
        if not self._nodes:
            return
        queue = deque([self.root])
        while queue:
            index = queue.popleft()
            yield index, self.node(index)
            queue.extend(self.children(index))

    def depth(self) -> int:
        if not self._nodes:
            return 0
        max_depth = 0
        stack = [(self.root, 0)]
        while stack:
            index, depth = stack.pop()
            max_depth = max(max_depth, depth)
            stack.extend((child, depth + 1) for child in self.children(index))
        return max_depth

    def __repr__(self) -> str:
        return f"Tree(num_nodes={self.num_nodes}, num_leaves={self.num_leaves})"
