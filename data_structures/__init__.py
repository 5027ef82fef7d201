"""
Data structures for random forests.

Trees keep their nodes in a flat arena: children are referenced by integer
index, the root is always index 0. A node is either an ``InternalNode``
carrying a ``SplitTest`` or a ``LeafNode`` carrying per-class responses.
"""
from data_structures.forest import Forest, ProblemSpec
from data_structures.tree import InternalNode, LeafNode, SplitTest, Tree

__all__ = [
    "Forest",
    "InternalNode",
    "LeafNode",
    "ProblemSpec",
    "SplitTest",
    "Tree",
]
