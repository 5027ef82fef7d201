from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from data_structures import InternalNode, Tree
from errors import SchemaMismatch
from record_format import (
    INTERNAL_WEIGHT,
    LEFT_FIELD,
    PARAMETERS_DTYPE,
    PLACEHOLDER_INDEX,
    RIGHT_FIELD,
    TOPOLOGY_DTYPE,
    NodeType,
)


@dataclass
class FlatEncoding:
    topology: np.ndarray
    parameters: np.ndarray


def encode_tree(
    tree: Tree,
    feature_count: int,
    class_count: int,
    child_order: str = "left_first",
) -> FlatEncoding:
    """Linearize ``tree`` into ``topology`` and ``parameters`` arrays.

    Nodes are written depth-first. When an internal record is written the
    positions of its children are not known yet, so both child slots get a
    placeholder and the slot index travels on the stack with the child. The
    slot is patched when the child is popped, right before its own record
    is appended.
    """
    if child_order not in {"left_first", "right_first"}:
        raise ValueError("child_order must be one of: left_first, right_first")
    if not tree.is_complete():
        raise ValueError("cannot encode a tree with unfilled nodes")

    topology: list[int] = [int(feature_count), int(class_count)]
    parameters: list[float] = []

    # (arena index, topology slot of the parent that must point here)
    stack: list[tuple[int, int | None]] = [(tree.root, None)]
    while stack:
        index, patch_slot = stack.pop()
        if patch_slot is not None:
            topology[patch_slot] = len(topology)

        node = tree.node(index)
        if isinstance(node, InternalNode):
            start = len(topology)
            topology.extend(
                [
                    NodeType.THRESHOLD,
                    len(parameters),
                    PLACEHOLDER_INDEX,
                    PLACEHOLDER_INDEX,
                    node.split.dimension,
                ]
            )
            parameters.extend([INTERNAL_WEIGHT, node.split.threshold])

            left = (node.left, start + LEFT_FIELD)
            right = (node.right, start + RIGHT_FIELD)
            # The child pushed last is written first.
            if child_order == "left_first":
                stack.extend([right, left])
            else:
                stack.extend([left, right])
            continue

        if len(node.responses) != class_count:
            raise SchemaMismatch(
                f"leaf {index} has {len(node.responses)} responses, expected {class_count}"
            )
        topology.extend([NodeType.CONST_PROB_LEAF, len(parameters)])
        parameters.append(node.weight)
        parameters.extend(node.responses)

    return FlatEncoding(
        topology=np.asarray([int(word) for word in topology], dtype=TOPOLOGY_DTYPE),
        parameters=np.asarray(parameters, dtype=PARAMETERS_DTYPE),
    )
