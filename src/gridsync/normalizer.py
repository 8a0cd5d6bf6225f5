"""
Option normalizer: raw, possibly mixed option bags to canonical bags.

Input may be flat (``{"rowHeight": 28, "enableRangeSelection": True}``) or
structured by settings-dialog section (``{"selection": {...}, "sizing": {...}}``),
and may mix legacy and canonical spellings in any order. Output never
contains a legacy key. Everything here is pure.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Tuple

from gridsync.aliases import SHAPE_NORMALIZERS, resolve_alias
from gridsync.schema import (
    ALIGNMENT_KEYS,
    COLUMN_DEF_PROPERTIES,
    DIALOG_SECTIONS,
    OptionKind,
    ROW_SELECTION_PROPERTIES,
    kind_of,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedOptions:
    """Canonical option bag plus the keys that pass produced."""
    options: Dict[str, Any]
    changed_keys: FrozenSet[str]
    dropped_keys: Tuple[str, ...] = field(default=())


def _is_structural_noise(name: Any) -> bool:
    """Keys that must never reach the canonical bag.

    Numeric array indices, per-column properties and rowSelection sub-fields
    leak to grid level when dialog state is spread carelessly.
    """
    if not isinstance(name, str):
        return True
    if name.isdigit():
        return True
    return name in COLUMN_DEF_PROPERTIES or name in ROW_SELECTION_PROPERTIES or name in ALIGNMENT_KEYS


def sanitize_column_defaults(col_def: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep only column-definition properties and the two alignment enums."""
    return {
        k: v for k, v in col_def.items()
        if k in COLUMN_DEF_PROPERTIES or k in ALIGNMENT_KEYS
    }


def flatten_options(raw: Mapping[str, Any]) -> Tuple[List[Tuple[str, Any]], List[str]]:
    """Flatten dialog sections one level and strip structural noise.

    Args:
        raw: Flat or dialog-sectioned option bag

    Returns:
        (entries, dropped) where entries preserves raw key order and dropped
        lists the noise keys that were removed.
    """
    entries: List[Tuple[str, Any]] = []
    dropped: List[str] = []

    def _take(name: Any, value: Any) -> None:
        if _is_structural_noise(name):
            dropped.append(str(name))
            return
        entries.append((name, value))

    for name, value in raw.items():
        if name in DIALOG_SECTIONS and isinstance(value, dict):
            for sub_name, sub_value in value.items():
                _take(sub_name, sub_value)
        else:
            _take(name, value)

    if dropped:
        logger.debug(f"Dropped structural noise keys: {dropped}")
    return entries, dropped


def _merge_structured(existing: Any, update: Mapping[str, Any], name: str) -> Dict[str, Any]:
    shape_normalizer = SHAPE_NORMALIZERS.get(name)
    if isinstance(existing, dict):
        base = dict(existing)
    elif shape_normalizer is not None and existing is not None:
        base = shape_normalizer(existing)
    else:
        base = {}
    base.update(update)
    return base


def normalize_options(raw: Mapping[str, Any]) -> NormalizedOptions:
    """Turn a raw option bag into a canonical one.

    Later raw keys win on plain conflicts. Merge targets always merge, onto
    whatever accumulated earlier in this same pass.

    Args:
        raw: Raw option bag of arbitrary shape and order

    Returns:
        NormalizedOptions with the canonical bag and its changed keys
    """
    entries, dropped = flatten_options(raw)
    options: Dict[str, Any] = {}
    changed = set()

    for name, value in entries:
        resolved = resolve_alias(name, value)
        key = resolved.canonical_name
        canonical_value = resolved.canonical_value
        if key == 'defaultColDef' and isinstance(canonical_value, dict):
            canonical_value = sanitize_column_defaults(canonical_value)

        if resolved.merge_target is not None:
            options[key] = _merge_structured(options.get(key), canonical_value, key)
        else:
            options[key] = canonical_value
        changed.add(key)

    return NormalizedOptions(options=options, changed_keys=frozenset(changed), dropped_keys=tuple(dropped))


def merge_into_bag(current: Mapping[str, Any], delta: Mapping[str, Any]) -> Dict[str, Any]:
    """Layer a canonical delta over a canonical bag.

    Structured options merge shallowly so sibling sub-fields survive; every
    other option is replaced.
    """
    result = dict(current)
    for key, value in delta.items():
        if kind_of(key) is OptionKind.STRUCTURED and isinstance(value, dict):
            result[key] = _merge_structured(result.get(key), value, key)
        else:
            result[key] = value
    return result


def layer_bags(layers: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge bags left to right; later layers override earlier ones."""
    result: Dict[str, Any] = {}
    for layer in layers:
        result = merge_into_bag(result, layer)
    return result
