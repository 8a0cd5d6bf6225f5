"""
Canonical grid option schema.

Single source of truth for every canonical option the engine understands:
its value kind, the batch category it is applied in, its engine default and
whether it can only be set at construction time. The applier derives its
category partition from this table, so a key cannot be added without also
being categorized.
"""

import copy
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Dict, FrozenSet, Optional

logger = logging.getLogger(__name__)


class OptionKind(Enum):
    """Value shape of a canonical option; drives merge dispatch."""
    SCALAR = "scalar"  # plain values, lists and dicts that replace wholesale
    STRUCTURED = "structured"  # dict with independent sub-fields, shallow-merged
    FUNCTION = "function"  # callable, never persisted


class ApplyCategory(Enum):
    """Batch a canonical option is applied in, in application order."""
    SPECIAL = "special"
    NO_REFRESH = "no_refresh"
    LAYOUT = "layout"
    COLUMNS = "columns"
    DATA = "data"
    SELECTION = "selection"
    GROUPING = "grouping"
    EDITING = "editing"
    OTHER = "other"


_NO_DEFAULT = object()


@dataclass(frozen=True)
class OptionSpec:
    """Schema entry for one canonical option."""
    category: ApplyCategory
    kind: OptionKind = OptionKind.SCALAR
    default: Any = _NO_DEFAULT
    init_only: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not _NO_DEFAULT


def _opt(category: ApplyCategory, default: Any = _NO_DEFAULT, *,
         kind: OptionKind = OptionKind.SCALAR, init_only: bool = False) -> OptionSpec:
    return OptionSpec(category=category, kind=kind, default=default, init_only=init_only)


_S = ApplyCategory.SPECIAL
_N = ApplyCategory.NO_REFRESH
_L = ApplyCategory.LAYOUT
_C = ApplyCategory.COLUMNS
_D = ApplyCategory.DATA
_SEL = ApplyCategory.SELECTION
_G = ApplyCategory.GROUPING
_E = ApplyCategory.EDITING
_O = ApplyCategory.OTHER

CANONICAL_OPTIONS: Dict[str, OptionSpec] = {
    # Special handling (multi-step)
    'defaultColDef': _opt(_S, {
        'sortable': True,
        'resizable': True,
        'filter': True,
        'editable': False,
        'flex': 1,
        'minWidth': 100,
        'enableValue': True,
        'enableRowGroup': True,
        'enablePivot': True,
        'sortingOrder': ['asc', 'desc', None],
        'verticalAlign': 'middle',
    }),
    'sideBar': _opt(_S, False),
    'statusBar': _opt(_S, {'statusPanels': []}),
    'theme': _opt(_S),

    # No refresh needed
    'animateRows': _opt(_N, True),
    'suppressNoRowsOverlay': _opt(_N, False),
    'loading': _opt(_N, False),
    'quickFilterText': _opt(_N, ''),

    # Layout
    'rowHeight': _opt(_L, 30),
    'headerHeight': _opt(_L, 40),
    'floatingFiltersHeight': _opt(_L),
    'pivotHeaderHeight': _opt(_L, 56),
    'pivotGroupHeaderHeight': _opt(_L),
    'groupHeaderHeight': _opt(_L),
    'domLayout': _opt(_L, 'normal'),

    # Column behaviour
    'suppressMovableColumns': _opt(_C, False),
    'suppressColumnMoveAnimation': _opt(_C, False),
    'suppressAutoSize': _opt(_C, False, init_only=True),
    'suppressFieldDotNotation': _opt(_C, False),
    'suppressDragLeaveHidesColumns': _opt(_C, False),
    'autoSizePadding': _opt(_C, 4),
    'skipHeaderOnAutoSize': _opt(_C, False),

    # Data handling
    'rowBuffer': _opt(_D, 20),
    'valueCache': _opt(_D, False, init_only=True),
    'cellFlashDuration': _opt(_D),
    'getRowId': _opt(_D, kind=OptionKind.FUNCTION),

    # Selection
    'rowSelection': _opt(_SEL, {
        'mode': 'multiRow',
        'enableSelectionWithoutKeys': False,
        'enableClickSelection': True,
        'copySelectedRows': True,
    }, kind=OptionKind.STRUCTURED),
    'cellSelection': _opt(_SEL, {'enabled': False}, kind=OptionKind.STRUCTURED),
    'suppressRowDeselection': _opt(_SEL, False),

    # Grouping
    'groupDisplayType': _opt(_G, 'groupRows'),
    'groupDefaultExpanded': _opt(_G, 0),
    'groupHideOpenParents': _opt(_G, False),
    'groupHideParentOfSingleChild': _opt(_G, False),
    'pivotMode': _opt(_G, False),
    'rowGroupPanelShow': _opt(_G, 'never'),
    'pivotPanelShow': _opt(_G, 'never', init_only=True),

    # Editing
    'editType': _opt(_E, 'fullRow'),
    'readOnlyEdit': _opt(_E, False),
    'singleClickEdit': _opt(_E, False),
    'suppressClickEdit': _opt(_E, False),
    'enterNavigatesVertically': _opt(_E, False),
    'enterNavigatesVerticallyAfterEdit': _opt(_E, False),
    'stopEditingWhenCellsLoseFocus': _opt(_E, False, init_only=True),
    'undoRedoCellEditing': _opt(_E, False, init_only=True),
    'undoRedoCellEditingLimit': _opt(_E, 10, init_only=True),

    # Everything else
    'rowModelType': _opt(_O, 'clientSide', init_only=True),
    'multiSortKey': _opt(_O, 'ctrl'),
    'accentedSort': _opt(_O, False),
    'suppressMultiSort': _opt(_O, False),
    'unSortIcon': _opt(_O, False),
    'enableAdvancedFilter': _opt(_O, False),
    'cacheQuickFilter': _opt(_O, False, init_only=True),
    'excludeChildrenWhenTreeDataFiltering': _opt(_O, False),
    'pagination': _opt(_O, False),
    'paginationAutoPageSize': _opt(_O, False),
    'paginationPageSize': _opt(_O, 100),
    'paginationPageSizeSelector': _opt(_O, True, init_only=True),
    'suppressPaginationPanel': _opt(_O, False),
    'rowClass': _opt(_O, ''),
    'rowClassRules': _opt(_O, {}),
    'suppressMenuHide': _opt(_O, False),
    'suppressRowHoverHighlight': _opt(_O, False),
    'enableCellTextSelection': _opt(_O, True),
    'suppressCopySingleCellRanges': _opt(_O, False),
    'copyHeadersToClipboard': _opt(_O, False),
    'clipboardDelimiter': _opt(_O, '\t'),
    'defaultCsvExportParams': _opt(_O, {}, kind=OptionKind.STRUCTURED),
    'defaultExcelExportParams': _opt(_O, {}, kind=OptionKind.STRUCTURED),
    'suppressContextMenu': _opt(_O, False),
    'enableCharts': _opt(_O, False),
    'masterDetail': _opt(_O, False),
    'suppressAggFuncInHeader': _opt(_O, False),
    'alwaysShowHorizontalScroll': _opt(_O, False),
    'alwaysShowVerticalScroll': _opt(_O, False),
    'suppressScrollOnNewData': _opt(_O, False),
    'suppressColumnVirtualisation': _opt(_O, False),
    'suppressRowVirtualisation': _opt(_O, False),
}

# Properties that belong on a column definition, never at grid level.
COLUMN_DEF_PROPERTIES: FrozenSet[str] = frozenset({
    'sortable', 'resizable', 'filter', 'editable', 'flex', 'minWidth', 'maxWidth',
    'enableValue', 'enableRowGroup', 'enablePivot', 'sortingOrder',
    'checkboxSelection', 'headerCheckboxSelection', 'cellStyle',
    'cellEditor', 'cellRenderer',
})

# UI-only alignment enums the dialog stores inside defaultColDef.
ALIGNMENT_KEYS: FrozenSet[str] = frozenset({'verticalAlign', 'horizontalAlign'})

# Sub-fields of the rowSelection object; stray copies at grid level are noise.
ROW_SELECTION_PROPERTIES: FrozenSet[str] = frozenset({
    'mode', 'enableSelectionWithoutKeys', 'enableClickSelection', 'checkboxes',
    'groupSelects', 'copySelectedRows', 'enableDeselection', 'enableMultiSelectWithClick',
})

# Top-level sections of the settings dialog, flattened one level by the normalizer.
DIALOG_SECTIONS: FrozenSet[str] = frozenset({
    'basic', 'selection', 'appearance', 'styling', 'sorting', 'pagination',
    'grouping', 'editing', 'data', 'clipboard', 'columns', 'defaults', 'sizing',
    'advanced', 'ui', 'localization',
})

# Live options read back by the extractor; everything else comes from the
# controller's canonical bag.
EXTRACT_OPTION_ALLOW_LIST = (
    'animateRows',
    'rowSelection',
    'cellSelection',
    'suppressMovableColumns',
    'statusBar',
)


def is_canonical(name: str) -> bool:
    return name in CANONICAL_OPTIONS


def get_spec(name: str) -> Optional[OptionSpec]:
    return CANONICAL_OPTIONS.get(name)


def category_of(name: str) -> Optional[ApplyCategory]:
    """Apply category for a canonical key, None for unknown keys."""
    spec = CANONICAL_OPTIONS.get(name)
    return spec.category if spec else None


def kind_of(name: str) -> OptionKind:
    """Value kind for a key; unknown keys are treated as scalars."""
    spec = CANONICAL_OPTIONS.get(name)
    return spec.kind if spec else OptionKind.SCALAR


def is_init_only(name: str) -> bool:
    spec = CANONICAL_OPTIONS.get(name)
    return bool(spec and spec.init_only)


def init_only_keys() -> FrozenSet[str]:
    return frozenset(k for k, spec in CANONICAL_OPTIONS.items() if spec.init_only)


def default_options() -> Dict[str, Any]:
    """Fresh deep copy of every canonical default."""
    return {
        name: copy.deepcopy(spec.default)
        for name, spec in CANONICAL_OPTIONS.items()
        if spec.has_default
    }
