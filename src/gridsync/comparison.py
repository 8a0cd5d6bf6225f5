"""
Structural comparison of canonical option bags.

Dict key order never matters. Lists and tuples compare element-wise, so a
bag that went through JSON still equals the in-memory original. Callables
compare by their own ``__eq__`` (synthesized cell styles compare by
alignment) and otherwise by identity.
"""

from typing import Any, Mapping, Set


def structurally_equal(left: Any, right: Any) -> bool:
    """Deep, order-independent equality for option values."""
    if left is right:
        return True
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(structurally_equal(left[k], right[k]) for k in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(structurally_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, bool) or isinstance(right, bool):
        # Keep True != 1 for flag options
        return type(left) is type(right) and left == right
    try:
        return bool(left == right)
    except Exception:
        return False


def compute_delta(current: Mapping[str, Any], baseline: Mapping[str, Any]) -> Set[str]:
    """Keys whose values differ structurally between two bags.

    A key present on only one side counts as changed.

    Args:
        current: Bag being persisted or inspected
        baseline: Bag it is compared against

    Returns:
        Set of changed keys; empty when the bags are structurally equal
    """
    changed = set()
    for key in set(current) | set(baseline):
        if key not in current or key not in baseline:
            changed.add(key)
        elif not structurally_equal(current[key], baseline[key]):
            changed.add(key)
    return changed
