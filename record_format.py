"""
Flat record format shared by the tree encoder and decoder.

Every tree is stored as two arrays. ``topology`` holds unsigned 32-bit words:
a two-word header ``[feature_count, class_count]`` followed by node records,
the root record starting at index 2. ``parameters`` holds doubles referenced
from the records.

Leaf record (2 words):
    [tag word, parameters offset]
    parameters[offset] = weight, parameters[offset + 1:][:class_count] = responses

Internal record (5 words):
    [tag word, parameters offset, left index, right index, split dimension]
    parameters[offset] = 1.0, parameters[offset + 1] = threshold

The tag word keeps the node type in its low two bits and flags in its top
nibble. Every other bit must be zero.
"""
from __future__ import annotations

from enum import IntEnum

import numpy as np

from errors import MalformedTag, UnexpectedLeafTags, UnsupportedNodeType, UnsupportedVersion

# Names are part of the on-disk layout and must not change.
EXT_PARAM_GROUP = "_ext_param"
TOPOLOGY = "topology"
PARAMETERS = "parameters"
TREE_PREFIX = "Tree_"
VERSION_GROUP = "."
VERSION_TAG = "vigra_random_forest_version"
FORMAT_VERSION = 0.1
# Files without a version attribute predate versioning.
OLDEST_FORMAT_VERSION = 0.0

TOPOLOGY_DTYPE = np.uint32
PARAMETERS_DTYPE = np.float64

UNFILLED_NODE = 42
ALL_COLUMNS = 0x00000000
TO_BE_PRUNED_TAG = 0x80000000
LEAF_TAG = 0x40000000

TAG_MASK = 0xF0000000
TYPE_MASK = 0x00000003
ZERO_MASK = 0xFFFFFFFF & ~TAG_MASK & ~TYPE_MASK

# Written into child slots until the child record is emitted.
PLACEHOLDER_INDEX = 0xFFFFFFFF

HEADER_SIZE = 2
ROOT_INDEX = HEADER_SIZE

# Field offsets relative to the start of a record.
TAG_FIELD = 0
PARAMS_FIELD = 1
LEFT_FIELD = 2
RIGHT_FIELD = 3
DIMENSION_FIELD = 4

LEAF_RECORD_SIZE = 2
INTERNAL_RECORD_SIZE = 5

INTERNAL_WEIGHT = 1.0


class NodeType(IntEnum):
    THRESHOLD = 0
    HYPERPLANE = 1
    HYPERSPHERE = 2
    CONST_PROB_LEAF = 0 | LEAF_TAG
    LOG_REG_PROB_LEAF = 1 | LEAF_TAG


def is_leaf_word(word: int) -> bool:
    return bool(word & LEAF_TAG)


def check_tag_word(word: int, index: int) -> NodeType:
    """Validate a topology tag word and return the node type it encodes.

    Only plain threshold splits and constant-probability leaves are
    supported; the other codes of the format are recognized but rejected.
    """
    word = int(word)
    if word & ZERO_MASK:
        raise MalformedTag(
            f"unexpected node type at topology index {index}: "
            f"word 0x{word:08x} has bits set outside tag and type masks"
        )

    if is_leaf_word(word):
        if word & TAG_MASK != LEAF_TAG:
            raise UnexpectedLeafTags(
                f"unexpected node type at topology index {index}: "
                f"additional tags in leaf node (word 0x{word:08x})"
            )
        if word != NodeType.CONST_PROB_LEAF:
            raise UnsupportedNodeType(
                f"unsupported leaf type {word & TYPE_MASK} at topology index {index}"
            )
        return NodeType.CONST_PROB_LEAF

    if word != NodeType.THRESHOLD:
        raise UnsupportedNodeType(
            f"unsupported node type 0x{word:08x} at topology index {index}"
        )
    return NodeType.THRESHOLD


def check_version(version: float | None) -> float:
    """Return the effective format version, rejecting files newer than ours."""
    if version is None:
        return OLDEST_FORMAT_VERSION
    version = float(version)
    if version > FORMAT_VERSION:
        raise UnsupportedVersion(
            f"unexpected file format version {version}, "
            f"this reader supports up to {FORMAT_VERSION}"
        )
    return version
