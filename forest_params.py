from __future__ import annotations

from dataclasses import dataclass

from record_format import TREE_PREFIX


@dataclass
class ForestIOParams:
    tree_prefix: str = TREE_PREFIX
    child_order: str = "left_first"  # one of: left_first, right_first
    check_forward_refs: bool = True

    def __post_init__(self) -> None:
        if not self.tree_prefix:
            raise ValueError("tree_prefix must be a non-empty string")
        if "/" in self.tree_prefix:
            raise ValueError("tree_prefix must not contain '/'")
        if self.child_order not in {"left_first", "right_first"}:
            raise ValueError("child_order must be one of: left_first, right_first")
