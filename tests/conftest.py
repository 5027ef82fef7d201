import sys
from pathlib import Path

import pytest

# Modules live at the project root.
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from data_structures import Forest, ProblemSpec, Tree  # noqa: E402


def build_stump(dimension=4, threshold=0.5, left=(1.0, 0.0), right=(0.0, 1.0)):
    tree = Tree()
    root = tree.add_node()
    left_idx, right_idx = tree.set_split(root, dimension, threshold)
    tree.set_leaf(left_idx, left)
    tree.set_leaf(right_idx, right)
    return tree


def build_random_tree(rng, num_features, num_classes, max_depth):
    tree = Tree()
    stack = [(tree.add_node(), 0)]
    while stack:
        index, depth = stack.pop()
        if depth >= max_depth or (depth > 0 and rng.random() < 0.3):
            tree.set_leaf(index, rng.random(num_classes).tolist())
            continue
        left, right = tree.set_split(
            index,
            int(rng.integers(num_features)),
            float(rng.normal()),
        )
        stack.append((left, depth + 1))
        stack.append((right, depth + 1))
    return tree


@pytest.fixture
def problem_spec():
    return ProblemSpec(
        num_features=6,
        num_classes=2,
        num_instances=120,
        distinct_classes=(0, 1),
        actual_mtry=2,
    )


@pytest.fixture
def small_forest(problem_spec):
    return Forest(
        problem_spec=problem_spec,
        trees=[
            build_stump(),
            build_stump(dimension=1, threshold=-2.25, left=(0.25, 0.75), right=(0.6, 0.4)),
            Tree.leaf([0.5, 0.5]),
        ],
    )
