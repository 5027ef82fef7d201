import numpy as np
import pytest

from conftest import build_random_tree, build_stump
from data_structures import InternalNode, LeafNode, Tree
from errors import MalformedTag, MalformedTopology, SchemaMismatch, UnsupportedNodeType
from record_format import LEAF_TAG, PLACEHOLDER_INDEX, NodeType
from tree_decoder import decode_tree
from tree_encoder import encode_tree


def _collect_tree_signature(tree, index=Tree.root):
    node = tree.node(index)
    if isinstance(node, LeafNode):
        return [("L", node.responses)]

    signature = [("S", node.split.dimension, node.split.threshold)]
    signature.extend(_collect_tree_signature(tree, node.left))
    signature.extend(_collect_tree_signature(tree, node.right))
    return signature


def test_minimal_tree_encoding():
    tree = Tree.leaf([0.2, 0.5, 0.3])

    encoding = encode_tree(tree, feature_count=5, class_count=3)

    assert encoding.topology.dtype == np.uint32
    assert encoding.parameters.dtype == np.float64
    assert encoding.topology.tolist() == [5, 3, LEAF_TAG, 0]
    np.testing.assert_allclose(encoding.parameters, [1.0, 0.2, 0.5, 0.3])

    decoded = decode_tree(encoding.topology, encoding.parameters, 5, 3)
    assert decoded.num_nodes == 1
    leaf = decoded.node(decoded.root)
    assert leaf.responses == (0.2, 0.5, 0.3)
    assert leaf.weight == pytest.approx(1.0)


@pytest.mark.parametrize("child_order", ["left_first", "right_first"])
def test_two_level_tree(child_order):
    tree = build_stump(dimension=4, threshold=0.5, left=(1.0, 0.0), right=(0.0, 1.0))

    encoding = encode_tree(tree, feature_count=6, class_count=2, child_order=child_order)
    decoded = decode_tree(encoding.topology, encoding.parameters, 6, 2)

    assert decoded.num_nodes == 3
    root = decoded.node(decoded.root)
    assert isinstance(root, InternalNode)
    assert root.split.dimension == 4
    assert root.split.threshold == 0.5
    assert decoded.node(root.left).responses == (1.0, 0.0)
    assert decoded.node(root.right).responses == (0.0, 1.0)


def test_stump_layout_is_left_first_by_default():
    encoding = encode_tree(build_stump(), feature_count=6, class_count=2)

    # header, internal record at 2, left leaf at 7, right leaf at 9
    assert encoding.topology.tolist() == [6, 2, 0, 0, 7, 9, 4, LEAF_TAG, 2, LEAF_TAG, 5]
    np.testing.assert_allclose(
        encoding.parameters, [1.0, 0.5, 1.0, 1.0, 0.0, 1.0, 0.0, 1.0]
    )


def test_right_first_layout_swaps_physical_order():
    encoding = encode_tree(build_stump(), feature_count=6, class_count=2, child_order="right_first")

    assert encoding.topology.tolist() == [6, 2, 0, 0, 9, 7, 4, LEAF_TAG, 2, LEAF_TAG, 5]
    np.testing.assert_allclose(encoding.parameters[2:5], [1.0, 0.0, 1.0])


def test_all_forward_references_are_patched():
    rng = np.random.default_rng(5)
    tree = build_random_tree(rng, num_features=8, num_classes=3, max_depth=6)

    topology = encode_tree(tree, feature_count=8, class_count=3).topology

    assert PLACEHOLDER_INDEX not in topology.tolist()


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_round_trip_random_trees(seed):
    rng = np.random.default_rng(seed)
    tree = build_random_tree(rng, num_features=10, num_classes=4, max_depth=7)

    encoding = encode_tree(tree, feature_count=10, class_count=4)
    decoded = decode_tree(encoding.topology, encoding.parameters, 10, 4)

    assert decoded.num_nodes == tree.num_nodes
    assert decoded.num_leaves == tree.num_leaves
    assert decoded.depth() == tree.depth()
    assert _collect_tree_signature(decoded) == _collect_tree_signature(tree)


def test_round_trip_is_independent_of_child_order():
    rng = np.random.default_rng(17)
    tree = build_random_tree(rng, num_features=5, num_classes=2, max_depth=5)

    left_first = encode_tree(tree, 5, 2, child_order="left_first")
    right_first = encode_tree(tree, 5, 2, child_order="right_first")

    assert _collect_tree_signature(
        decode_tree(left_first.topology, left_first.parameters, 5, 2)
    ) == _collect_tree_signature(
        decode_tree(right_first.topology, right_first.parameters, 5, 2)
    )


def test_leaf_weight_is_derived_from_responses():
    encoding = encode_tree(Tree.leaf([2.0, 3.0]), feature_count=1, class_count=2)
    assert encoding.parameters[0] == 5.0

    # A stored weight that disagrees with the responses is not used.
    parameters = encoding.parameters.copy()
    parameters[0] = 42.0
    decoded = decode_tree(encoding.topology, parameters, 1, 2)
    assert decoded.node(decoded.root).weight == 5.0


def test_encoder_rejects_wrong_response_length():
    with pytest.raises(SchemaMismatch):
        encode_tree(Tree.leaf([0.5, 0.5]), feature_count=3, class_count=3)


def test_encoder_rejects_incomplete_tree():
    tree = Tree()
    tree.set_split(tree.add_node(), 0, 1.0)

    with pytest.raises(ValueError):
        encode_tree(tree, feature_count=1, class_count=2)
    with pytest.raises(ValueError):
        encode_tree(Tree(), feature_count=1, class_count=2)


def test_encoder_rejects_unknown_child_order():
    with pytest.raises(ValueError):
        encode_tree(Tree.leaf([1.0]), 1, 1, child_order="breadth_first")


@pytest.mark.parametrize(
    "feature_count, class_count",
    [(5, 2), (6, 3)],
)
def test_decoder_checks_header(feature_count, class_count):
    encoding = encode_tree(build_stump(), feature_count=6, class_count=2)

    with pytest.raises(SchemaMismatch):
        decode_tree(encoding.topology, encoding.parameters, feature_count, class_count)


@pytest.mark.parametrize("bit", [2, 3, 11, 20, 27])
def test_decoder_rejects_reserved_bits(bit):
    encoding = encode_tree(build_stump(), feature_count=6, class_count=2)

    root = encoding.topology.copy()
    root[2] |= 1 << bit
    with pytest.raises(MalformedTag):
        decode_tree(root, encoding.parameters, 6, 2)

    leaf = encoding.topology.copy()
    leaf[9] |= 1 << bit
    with pytest.raises(MalformedTag):
        decode_tree(leaf, encoding.parameters, 6, 2)


def test_decoder_rejects_hyperplane_nodes():
    encoding = encode_tree(build_stump(), feature_count=6, class_count=2)
    topology = encoding.topology.copy()
    topology[2] = NodeType.HYPERPLANE

    with pytest.raises(UnsupportedNodeType):
        decode_tree(topology, encoding.parameters, 6, 2)


def test_decoder_rejects_out_of_range_offsets():
    encoding = encode_tree(build_stump(), feature_count=6, class_count=2)

    child = encoding.topology.copy()
    child[5] = 500
    with pytest.raises(MalformedTopology):
        decode_tree(child, encoding.parameters, 6, 2)

    params = encoding.topology.copy()
    params[8] = 100
    with pytest.raises(MalformedTopology):
        decode_tree(params, encoding.parameters, 6, 2)

    with pytest.raises(MalformedTopology):
        decode_tree(encoding.topology[:8], encoding.parameters, 6, 2)

    with pytest.raises(MalformedTopology):
        decode_tree(np.array([6, 2], dtype=np.uint32), encoding.parameters, 6, 2)


def test_decoder_rejects_backward_references():
    encoding = encode_tree(build_stump(), feature_count=6, class_count=2)
    topology = encoding.topology.copy()
    topology[4] = 2

    with pytest.raises(MalformedTopology):
        decode_tree(topology, encoding.parameters, 6, 2)

    # Without the forward check the self reference is caught by the node budget.
    with pytest.raises(MalformedTopology):
        decode_tree(topology, encoding.parameters, 6, 2, check_forward_refs=False)


def test_decoder_accepts_records_out_of_layout_order():
    # Right leaf stored before the left leaf, as written by other encoders.
    topology = np.array([3, 2, 0, 0, 9, 7, 1, LEAF_TAG, 2, LEAF_TAG, 5], dtype=np.uint32)
    parameters = np.array([1.0, -1.5, 1.0, 0.0, 1.0, 1.0, 1.0, 0.0])

    decoded = decode_tree(topology, parameters, 3, 2)

    root = decoded.node(decoded.root)
    assert root.split.dimension == 1
    assert root.split.threshold == -1.5
    assert decoded.node(root.left).responses == (1.0, 0.0)
    assert decoded.node(root.right).responses == (0.0, 1.0)
