from __future__ import annotations

from collections import deque

import numpy as np

from data_structures import Tree
from errors import MalformedTopology, SchemaMismatch
from record_format import (
    DIMENSION_FIELD,
    HEADER_SIZE,
    INTERNAL_RECORD_SIZE,
    LEAF_RECORD_SIZE,
    LEFT_FIELD,
    PARAMS_FIELD,
    RIGHT_FIELD,
    ROOT_INDEX,
    NodeType,
    check_tag_word,
)


def _check_header(topology: np.ndarray, feature_count: int, class_count: int) -> None:
    if topology.size < HEADER_SIZE + LEAF_RECORD_SIZE:
        raise MalformedTopology(
            f"topology has {topology.size} words, too short for a header and a root record"
        )
    if int(topology[0]) != feature_count:
        raise SchemaMismatch(
            f"number of features mismatch: tree has {int(topology[0])}, forest has {feature_count}"
        )
    if int(topology[1]) != class_count:
        raise SchemaMismatch(
            f"number of classes mismatch: tree has {int(topology[1])}, forest has {class_count}"
        )


def _check_record(topology: np.ndarray, index: int, size: int) -> None:
    if index + size > topology.size:
        raise MalformedTopology(
            f"record at topology index {index} needs {size} words, "
            f"topology has {topology.size}"
        )


def _check_payload(parameters: np.ndarray, index: int, start: int, count: int) -> None:
    if start + count > parameters.size:
        raise MalformedTopology(
            f"record at topology index {index} reads parameters[{start}:{start + count}], "
            f"parameters has {parameters.size} values"
        )


def _check_child(topology: np.ndarray, parent: int, child: int, forward_only: bool) -> None:
    if child >= topology.size:
        raise MalformedTopology(
            f"child index {child} of record {parent} is out of range"
        )
    if forward_only and child < parent + INTERNAL_RECORD_SIZE:
        raise MalformedTopology(
            f"child index {child} of record {parent} does not point forward"
        )


def decode_tree(
    topology: np.ndarray,
    parameters: np.ndarray,
    feature_count: int,
    class_count: int,
    check_forward_refs: bool = True,
) -> Tree:
    """Rebuild one tree from its ``topology`` and ``parameters`` arrays.

    Records are visited breadth-first starting at the root record. Each
    queue entry pairs a topology index with the arena slot it fills, so the
    result does not depend on the visiting order.

    With ``check_forward_refs`` disabled, child indices only have to lie
    inside ``topology``. Shared or cyclic references are then caught by the
    node count exceeding what ``topology`` can hold.
    """
    topology = np.asarray(topology, dtype=np.uint32).ravel()
    parameters = np.asarray(parameters, dtype=np.float64).ravel()
    _check_header(topology, feature_count, class_count)

    max_nodes = (topology.size - HEADER_SIZE) // LEAF_RECORD_SIZE
    tree = Tree()
    queue = deque([(ROOT_INDEX, tree.add_node())])
    while queue:
        index, slot = queue.popleft()
        _check_record(topology, index, LEAF_RECORD_SIZE)
        node_type = check_tag_word(topology[index], index)

        if node_type == NodeType.CONST_PROB_LEAF:
            probs_start = int(topology[index + PARAMS_FIELD]) + 1
            _check_payload(parameters, index, probs_start, class_count)
            tree.set_leaf(slot, parameters[probs_start:probs_start + class_count].tolist())
            continue

        _check_record(topology, index, INTERNAL_RECORD_SIZE)
        value_index = int(topology[index + PARAMS_FIELD]) + 1
        _check_payload(parameters, index, value_index, 1)
        left_index = int(topology[index + LEFT_FIELD])
        right_index = int(topology[index + RIGHT_FIELD])
        _check_child(topology, index, left_index, check_forward_refs)
        _check_child(topology, index, right_index, check_forward_refs)

        left, right = tree.set_split(
            slot,
            dimension=int(topology[index + DIMENSION_FIELD]),
            threshold=float(parameters[value_index]),
        )
        if tree.num_nodes > max_nodes:
            raise MalformedTopology(
                f"topology of {topology.size} words cannot hold {tree.num_nodes} nodes"
            )
        queue.append((left_index, left))
        queue.append((right_index, right))

    return tree
