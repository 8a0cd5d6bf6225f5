"""
Deprecated option alias table.

The grid engine's option schema has been restructured across versions:
flags were renamed, "suppress" flags were replaced by positive "enable"
fields, and loose booleans were folded into the ``rowSelection`` and
``cellSelection`` objects. Every legacy spelling is listed here together with
a pure transform into its canonical name and value, and (where representable)
the reverse transform used to present a canonical bag in legacy form.

Transforms are shared by the live-apply path and the persisted-read path.
Inversions happen inside the transform, never at application time.
"""

from dataclasses import dataclass
from enum import Enum
import logging
import weakref
from typing import Any, Callable, Dict, Optional

from gridsync.errors import SchemaError
from gridsync.schema import (
    ApplyCategory,
    CANONICAL_OPTIONS,
    OptionKind,
    kind_of,
)

logger = logging.getLogger(__name__)


class MergeStrategy(Enum):
    """How a resolved value combines with what has already accumulated."""
    REPLACE = "replace"
    MERGE_INTO = "merge_into"


@dataclass(frozen=True)
class ResolvedOption:
    """Result of resolving one raw option name/value pair."""
    canonical_name: str
    canonical_value: Any
    merge_strategy: MergeStrategy = MergeStrategy.REPLACE

    @property
    def merge_target(self) -> Optional[str]:
        """Canonical key this value merges into, None for plain replacement."""
        if self.merge_strategy is MergeStrategy.MERGE_INTO:
            return self.canonical_name
        return None


@dataclass(frozen=True)
class AliasEntry:
    """One legacy option spelling and how it maps onto the canonical schema."""
    legacy_name: str
    canonical_name: str
    transform: Callable[[Any], Any]
    merge_strategy: MergeStrategy = MergeStrategy.REPLACE
    reverse: Optional[Callable[[Any], Any]] = None

    def resolve(self, value: Any) -> ResolvedOption:
        return ResolvedOption(self.canonical_name, self.transform(value), self.merge_strategy)


# ========== SHAPE HELPERS ==========

ROW_SELECTION_MODE_MAP = {
    'multiple': 'multiRow',
    'single': 'singleRow',
}


def normalize_row_selection(selection: Any) -> Dict[str, Any]:
    """Convert any historical rowSelection shape into the object form."""
    if isinstance(selection, str):
        return {'mode': ROW_SELECTION_MODE_MAP.get(selection, selection)}
    if isinstance(selection, dict):
        result = dict(selection)
        if result.get('mode') in ROW_SELECTION_MODE_MAP:
            result['mode'] = ROW_SELECTION_MODE_MAP[result['mode']]
        return result
    return {'mode': 'multiRow'}


def normalize_cell_selection(selection: Any) -> Dict[str, Any]:
    """Convert a boolean cellSelection into ``{"enabled": ...}`` form.

    Dicts are returned as given so a sub-field update merges onto the current
    ``enabled`` value instead of resetting it.
    """
    if isinstance(selection, bool):
        return {'enabled': selection}
    if isinstance(selection, dict):
        return dict(selection)
    return {'enabled': False}


def cell_selection_enabled(selection: Any) -> bool:
    """Whether a cellSelection value turns cell selection on.

    An options dict without ``enabled`` counts as enabled.
    """
    if isinstance(selection, dict):
        return bool(selection.get('enabled', True))
    return bool(selection)


def cell_selection_for_engine(selection: Any) -> Any:
    """Engine-facing cellSelection: ``False`` when disabled, options dict or ``True`` when enabled."""
    canonical = normalize_cell_selection(selection)
    if not cell_selection_enabled(canonical):
        return False
    options = {k: v for k, v in canonical.items() if k != 'enabled' and v is not None}
    return options or True


def row_selection_for_engine(selection: Any) -> Dict[str, Any]:
    """Engine-facing rowSelection with unset sub-fields dropped."""
    return {k: v for k, v in normalize_row_selection(selection).items() if v is not None}


def _field(obj: Any, name: str, default: Any) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return default


_ROW_ID_WRAPPERS: 'weakref.WeakKeyDictionary[Callable, Callable]' = weakref.WeakKeyDictionary()


def _wrap_row_node_id(legacy_fn: Any) -> Any:
    """Adapt legacy ``getRowNodeId(data)`` to ``getRowId(params)``.

    Wrappers are cached per legacy function so normalizing the same bag twice
    yields the identical callable.
    """
    if not callable(legacy_fn):
        return legacy_fn
    try:
        cached = _ROW_ID_WRAPPERS.get(legacy_fn)
    except TypeError:
        cached = None
    if cached is not None:
        return cached

    def get_row_id(params: Any) -> Any:
        data = params.get('data') if isinstance(params, dict) else getattr(params, 'data', None)
        return legacy_fn(data)

    get_row_id.__wrapped__ = legacy_fn  # type: ignore[attr-defined]
    try:
        _ROW_ID_WRAPPERS[legacy_fn] = get_row_id
    except TypeError:
        logger.debug(f"Cannot cache getRowId wrapper for {legacy_fn!r}")
    return get_row_id


def _is_side_bar_enabled(value: Any) -> bool:
    return value not in (False, None, '', 'none')


# ========== ALIAS TABLE ==========

_MERGE = MergeStrategy.MERGE_INTO

ALIAS_ENTRIES = (
    # rowSelection sub-fields
    AliasEntry('rowMultiSelectWithClick', 'rowSelection',
               lambda v: {'enableSelectionWithoutKeys': bool(v)}, _MERGE,
               lambda rs: bool(_field(rs, 'enableSelectionWithoutKeys', False))),
    AliasEntry('suppressRowClickSelection', 'rowSelection',
               lambda v: {'enableClickSelection': not v}, _MERGE,
               lambda rs: not _field(rs, 'enableClickSelection', True)),
    AliasEntry('suppressCopyRowsToClipboard', 'rowSelection',
               lambda v: {'copySelectedRows': not v}, _MERGE,
               lambda rs: not _field(rs, 'copySelectedRows', True)),
    AliasEntry('groupSelectsChildren', 'rowSelection',
               lambda v: {'groupSelects': 'descendants' if v else 'self'}, _MERGE,
               lambda rs: _field(rs, 'groupSelects', 'self') in ('descendants', 'filteredDescendants')),

    # cellSelection
    AliasEntry('enableRangeSelection', 'cellSelection',
               lambda v: {'enabled': bool(v)}, _MERGE,
               cell_selection_enabled),
    AliasEntry('suppressCellSelection', 'cellSelection',
               lambda v: {'enabled': not v}, _MERGE,
               lambda cs: not cell_selection_enabled(cs)),
    AliasEntry('suppressMultiRangeSelection', 'cellSelection',
               lambda v: {'suppressMultiRanges': bool(v)}, _MERGE,
               lambda cs: bool(_field(cs, 'suppressMultiRanges', False))),

    # Renames and reshapes
    AliasEntry('groupRemoveSingleChildren', 'groupHideParentOfSingleChild',
               lambda v: v, reverse=lambda v: v),
    AliasEntry('groupUseEntireRow', 'groupDisplayType',
               lambda v: 'groupRows' if v else 'singleColumn',
               reverse=lambda v: v == 'groupRows'),
    AliasEntry('enterMovesDown', 'enterNavigatesVertically',
               lambda v: v, reverse=lambda v: v),
    AliasEntry('enterMovesDownAfterEdit', 'enterNavigatesVerticallyAfterEdit',
               lambda v: v, reverse=lambda v: v),
    AliasEntry('rowDeselection', 'suppressRowDeselection',
               lambda v: not v, reverse=lambda v: not v),
    AliasEntry('enableCellChangeFlash', 'cellFlashDuration',
               lambda v: 500 if v else 0, reverse=lambda v: bool(v)),
    AliasEntry('getRowNodeId', 'getRowId', _wrap_row_node_id),
    AliasEntry('showToolPanel', 'sideBar',
               lambda v: 'columns' if v else False, reverse=_is_side_bar_enabled),

    # Export parameter objects
    AliasEntry('exporterCsvFilename', 'defaultCsvExportParams',
               lambda v: {'fileName': v}, _MERGE,
               lambda p: _field(p, 'fileName', None)),
    AliasEntry('exporterExcelFilename', 'defaultExcelExportParams',
               lambda v: {'fileName': v}, _MERGE,
               lambda p: _field(p, 'fileName', None)),
)

ALIAS_TABLE: Dict[str, AliasEntry] = {entry.legacy_name: entry for entry in ALIAS_ENTRIES}

# Canonical structured keys that still accept a legacy value shape.
SHAPE_NORMALIZERS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    'rowSelection': normalize_row_selection,
    'cellSelection': normalize_cell_selection,
}


def is_legacy_name(name: str) -> bool:
    return name in ALIAS_TABLE


def resolve_alias(name: str, value: Any) -> ResolvedOption:
    """Resolve one raw option to its canonical name, value and merge strategy.

    Unknown names resolve to themselves with replace semantics.

    Args:
        name: Raw option name (legacy or canonical)
        value: Raw option value

    Returns:
        ResolvedOption with the canonical name/value and how to accumulate it
    """
    entry = ALIAS_TABLE.get(name)
    if entry is not None:
        return entry.resolve(value)

    shape_normalizer = SHAPE_NORMALIZERS.get(name)
    if shape_normalizer is not None:
        return ResolvedOption(name, shape_normalizer(value), MergeStrategy.MERGE_INTO)

    if kind_of(name) is OptionKind.STRUCTURED and isinstance(value, dict):
        return ResolvedOption(name, dict(value), MergeStrategy.MERGE_INTO)

    return ResolvedOption(name, value, MergeStrategy.REPLACE)


def legacy_view(bag: Dict[str, Any]) -> Dict[str, Any]:
    """Present a canonical bag in legacy flag form (dialog fields).

    Only aliases with a reverse transform and whose canonical key is present
    are emitted.
    """
    view: Dict[str, Any] = {}
    for entry in ALIAS_ENTRIES:
        if entry.reverse is None or entry.canonical_name not in bag:
            continue
        view[entry.legacy_name] = entry.reverse(bag[entry.canonical_name])
    return view


def verify_schema() -> None:
    """Check the alias table and category mapping against the canonical schema.

    Raises:
        SchemaError: if an alias targets an unknown key, a merge alias targets a
            non-structured key, a legacy name shadows a canonical one, or a
            canonical key lacks a valid category.
    """
    problems = []
    for name, spec in CANONICAL_OPTIONS.items():
        if not isinstance(spec.category, ApplyCategory):
            problems.append(f"{name}: no apply category")
        if spec.kind is OptionKind.STRUCTURED and spec.has_default and not isinstance(spec.default, dict):
            problems.append(f"{name}: structured option with non-dict default")
    for entry in ALIAS_ENTRIES:
        spec = CANONICAL_OPTIONS.get(entry.canonical_name)
        if spec is None:
            problems.append(f"{entry.legacy_name}: targets unknown option {entry.canonical_name}")
            continue
        if entry.legacy_name in CANONICAL_OPTIONS:
            problems.append(f"{entry.legacy_name}: legacy name shadows a canonical option")
        if entry.merge_strategy is MergeStrategy.MERGE_INTO and spec.kind is not OptionKind.STRUCTURED:
            problems.append(f"{entry.legacy_name}: merges into non-structured {entry.canonical_name}")
    if len(ALIAS_TABLE) != len(ALIAS_ENTRIES):
        problems.append("duplicate legacy names in alias table")
    for name in SHAPE_NORMALIZERS:
        if kind_of(name) is not OptionKind.STRUCTURED:
            problems.append(f"{name}: shape normalizer on non-structured option")
    if problems:
        raise SchemaError("; ".join(problems))


verify_schema()
