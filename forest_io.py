"""
Import and export of random forests through a hierarchical container store.

Layout relative to the target group::

    @vigra_random_forest_version        format version (absent: oldest format)
    _ext_param/column_count_            number of features
    _ext_param/row_count_               number of training instances
    _ext_param/class_count_             number of classes
    _ext_param/actual_mtry_             features tried per split
    _ext_param/labels                   distinct class labels
    Tree_<k>/topology, Tree_<k>/parameters

Tree numbers are zero-padded to the digit count of ``num_trees - 1`` so
that group names sort in tree order.
"""
from __future__ import annotations

import logging

import numpy as np

from container_store import ContainerStore, MemoryStore, working_group
from data_structures import Forest, ProblemSpec
from errors import ForestFormatError
from forest_params import ForestIOParams
from record_format import (
    EXT_PARAM_GROUP,
    FORMAT_VERSION,
    PARAMETERS,
    TOPOLOGY,
    TREE_PREFIX,
    VERSION_GROUP,
    VERSION_TAG,
    check_version,
)
from tree_decoder import decode_tree
from tree_encoder import encode_tree

logger = logging.getLogger(__name__)


def tree_number_width(num_trees: int) -> int:
    if num_trees < 0:
        raise ValueError("num_trees must be non-negative")
    return len(str(max(num_trees - 1, 0)))


def padded_tree_names(num_trees: int, prefix: str = TREE_PREFIX) -> list[str]:
    width = tree_number_width(num_trees)
    return [f"{prefix}{k:0{width}d}" for k in range(num_trees)]


def _read_problem_spec(store: ContainerStore) -> ProblemSpec:
    store.cd(EXT_PARAM_GROUP)
    try:
        num_features = int(store.read("column_count_"))
        num_instances = int(store.read("row_count_"))
        num_classes = int(store.read("class_count_"))
        labels = np.asarray(store.read("labels")).ravel()
        mtry = int(store.read("actual_mtry_"))
    finally:
        store.cd_up()

    return ProblemSpec(
        num_features=num_features,
        num_classes=num_classes,
        num_instances=num_instances,
        distinct_classes=tuple(labels.tolist()),
        actual_mtry=mtry,
    )


def _write_problem_spec(store: ContainerStore, spec: ProblemSpec) -> None:
    store.cd_mk(EXT_PARAM_GROUP)
    try:
        store.write("column_count_", spec.num_features)
        store.write("row_count_", spec.num_instances)
        store.write("class_count_", spec.num_classes)
        store.write("labels", np.asarray(spec.distinct_classes))
        store.write("actual_mtry_", spec.actual_mtry)
    finally:
        store.cd_up()


def _read_version(store: ContainerStore) -> float:
    if store.exists_attribute(VERSION_GROUP, VERSION_TAG):
        return check_version(store.read_attribute(VERSION_GROUP, VERSION_TAG))
    logger.warning("no %s attribute found, assuming the oldest format", VERSION_TAG)
    return check_version(None)


def import_forest(
    store: ContainerStore,
    path: str = "",
    params: ForestIOParams | None = None,
) -> Forest:
    """Read the forest stored at ``path`` (the current group if empty).

    Any format error aborts the whole import; the store cursor is restored
    either way.
    """
    params = params or ForestIOParams()

    with working_group(store, path):
        version = _read_version(store)
        spec = _read_problem_spec(store)
        forest = Forest(problem_spec=spec)

        tree_groups = sorted(name for name in store.ls() if name.startswith(params.tree_prefix))
        for name in tree_groups:
            store.cd(name)
            try:
                topology = store.read(TOPOLOGY)
                parameters = store.read(PARAMETERS)
            finally:
                store.cd_up()

            try:
                tree = decode_tree(
                    topology,
                    parameters,
                    feature_count=spec.num_features,
                    class_count=spec.num_classes,
                    check_forward_refs=params.check_forward_refs,
                )
            except ForestFormatError as exc:
                raise type(exc)(f"{name}: {exc}") from exc
            logger.debug("decoded %s: %d nodes", name, tree.num_nodes)
            forest.add_tree(tree)

    logger.info(
        "imported forest with %d trees (format version %s)", forest.num_trees, version
    )
    return forest


def export_forest(
    forest: Forest,
    store: ContainerStore,
    path: str = "",
    params: ForestIOParams | None = None,
) -> None:
    """Write ``forest`` into ``path`` (created if missing, current group if empty).

    The target must not hold tree groups yet: old groups would be picked up
    by the next import alongside the new ones.
    """
    params = params or ForestIOParams()
    spec = forest.problem_spec

    with working_group(store, path, create=True):
        stale = [name for name in store.ls() if name.startswith(params.tree_prefix)]
        if stale:
            raise ValueError(
                f"{store.pwd()} already holds {len(stale)} tree groups, export into an empty group"
            )
        store.write_attribute(VERSION_GROUP, VERSION_TAG, FORMAT_VERSION)
        _write_problem_spec(store, spec)

        names = padded_tree_names(forest.num_trees, params.tree_prefix)
        for name, tree in zip(names, forest.trees):
            encoding = encode_tree(
                tree,
                feature_count=spec.num_features,
                class_count=spec.num_classes,
                child_order=params.child_order,
            )
            store.cd_mk(name)
            try:
                store.write(TOPOLOGY, encoding.topology)
                store.write(PARAMETERS, encoding.parameters)
            finally:
                store.cd_up()
            logger.debug("encoded %s: %d topology words", name, encoding.topology.size)

    logger.info("exported forest with %d trees", forest.num_trees)


def save_forest(forest: Forest, filename: str, params: ForestIOParams | None = None) -> None:
    store = MemoryStore()
    export_forest(forest, store, params=params)
    store.save_npz(filename)


def load_forest(filename: str, params: ForestIOParams | None = None) -> Forest:
    return import_forest(MemoryStore.load_npz(filename), params=params)
