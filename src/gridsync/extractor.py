"""
State extractor: reads transient view state off a live grid.

Each facet is read independently. A facet whose capability is missing is
simply omitted; a facet whose read raises is logged, recorded in
``extract_errors`` and omitted, and the remaining facets are still read.

Most live options are not read back at all: the controller already holds the
canonical bag. Only the short allow-list in ``EXTRACT_OPTION_ALLOW_LIST`` is
captured, into the ``grid_options`` facet.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from gridsync.grid import has_capability, is_grid_alive
from gridsync.schema import EXTRACT_OPTION_ALLOW_LIST
from gridsync.snapshot_model import TransientViewState

logger = logging.getLogger(__name__)

SERVER_SIDE_ROW_MODEL = 'serverSide'


def _column_id(entry: Dict[str, Any]) -> Optional[str]:
    return entry.get('colId') if isinstance(entry, dict) else None


class StateExtractor:
    """Captures a ``TransientViewState`` from a live grid.

    Example:
        >>> extractor = StateExtractor()
        >>> state = extractor.extract(grid)
        >>> extractor.extract_errors   # facet -> message for failed reads
        {}
    """

    def __init__(self, option_allow_list: Tuple[str, ...] = EXTRACT_OPTION_ALLOW_LIST):
        self.option_allow_list = option_allow_list
        self.extract_errors: Dict[str, str] = {}

    def extract(self, grid: Any) -> TransientViewState:
        """Read every facet the grid supports.

        Args:
            grid: Live grid engine instance

        Returns:
            TransientViewState with one field per captured facet; an empty
            state when the grid is detached.
        """
        self.extract_errors = {}
        if not is_grid_alive(grid):
            logger.debug("Skipping extract: grid is not alive")
            return TransientViewState()

        readers: List[Tuple[str, Callable[[Any], Any]]] = [
            ('column_state', self._read_column_state),
            ('column_group_state', self._read_column_group_state),
            ('column_sizing_state', self._read_column_sizing_state),
            ('sort_model', self._read_sort_model),
            ('row_group_state', self._read_row_group_state),
            ('filter_model', self._read_filter_model),
            ('advanced_filter_model', self._read_advanced_filter_model),
            ('side_bar_state', self._read_side_bar_state),
            ('pagination_state', self._read_pagination_state),
            ('scroll_position', self._read_scroll_position),
            ('focused_cell', self._read_focused_cell),
            ('selection_state', self._read_selection_state),
            ('range_selection_state', self._read_range_selection_state),
            ('grid_options', self._read_grid_options),
        ]

        facets: Dict[str, Any] = {}
        for name, reader in readers:
            try:
                value = reader(grid)
            except Exception as e:
                logger.warning(f"Failed to extract {name}: {e}")
                self.extract_errors[name] = str(e)
                continue
            if value is not None:
                facets[name] = value

        logger.debug(f"Extracted facets: {sorted(facets)}")
        return TransientViewState(**facets)

    # ========== COLUMN LAYOUT ==========

    def _read_column_state(self, grid: Any) -> Optional[List[Dict[str, Any]]]:
        """Column order, width, visibility, pinning, sort, aggregation, pivot and grouping.

        Rendered width wins over the width in the layout state when they
        disagree; the engine does not always keep the two in sync.
        """
        raw = grid.get_column_state()
        if not raw:
            return None
        state = [dict(entry) for entry in raw]
        if not has_capability(grid, 'get_column'):
            return state

        for entry in state:
            col_id = _column_id(entry)
            if col_id is None:
                continue
            try:
                self._reconcile_column(grid, col_id, entry)
            except Exception as e:
                # Keep the unreconciled entry for this column
                logger.debug(f"Could not reconcile column '{col_id}': {e}")
        return state

    def _reconcile_column(self, grid: Any, col_id: str, entry: Dict[str, Any]) -> None:
        column = grid.get_column(col_id)
        if column is None:
            return
        actual_width = column.get_actual_width()
        if actual_width and actual_width != entry.get('width'):
            entry['width'] = actual_width
        flex = column.get_flex()
        if flex is not None:
            entry['flex'] = flex
        entry['hide'] = not column.is_visible()
        agg_func = column.get_agg_func()
        if agg_func and isinstance(agg_func, str):
            entry['aggFunc'] = agg_func

    def _read_column_group_state(self, grid: Any) -> Optional[List[Dict[str, Any]]]:
        if not has_capability(grid, 'get_column_group_state'):
            return None
        return copy.deepcopy(grid.get_column_group_state()) or None

    def _read_column_sizing_state(self, grid: Any) -> Optional[Dict[str, Any]]:
        """Explicit widths and positive flex values per column."""
        if not has_capability(grid, 'get_column'):
            return None
        widths: Dict[str, float] = {}
        flexes: Dict[str, float] = {}
        for entry in grid.get_column_state() or []:
            col_id = _column_id(entry)
            if col_id is None:
                continue
            column = grid.get_column(col_id)
            if column is None:
                continue
            width = column.get_actual_width()
            if width is not None:
                widths[col_id] = width
            flex = column.get_flex()
            if flex is not None and flex > 0:
                flexes[col_id] = flex

        sizing: Dict[str, Any] = {}
        if widths:
            sizing['columnWidths'] = widths
        if flexes:
            sizing['columnFlex'] = flexes
        return sizing or None

    def _read_sort_model(self, grid: Any) -> Optional[List[Dict[str, Any]]]:
        """Sorted columns in sort-priority order."""
        sorted_columns = [
            {'colId': entry['colId'], 'sort': entry['sort'], 'sortIndex': entry.get('sortIndex')}
            for entry in grid.get_column_state() or []
            if _column_id(entry) and entry.get('sort')
        ]
        if not sorted_columns:
            return None
        sorted_columns.sort(key=lambda item: item['sortIndex'] or 0)
        return sorted_columns

    def _read_row_group_state(self, grid: Any) -> Optional[Dict[str, Any]]:
        if not has_capability(grid, 'get_row_group_columns'):
            return None
        grouped = list(grid.get_row_group_columns() or [])
        if not grouped:
            return None
        expanded: List[Any] = []
        if has_capability(grid, 'get_expanded_group_keys'):
            expanded = list(grid.get_expanded_group_keys() or [])
        return {'groupedColumns': grouped, 'expandedGroups': expanded}

    # ========== FILTERS ==========

    def _read_filter_model(self, grid: Any) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(grid.get_filter_model()) or None

    def _read_advanced_filter_model(self, grid: Any) -> Optional[Dict[str, Any]]:
        if not has_capability(grid, 'get_advanced_filter_model'):
            return None
        return copy.deepcopy(grid.get_advanced_filter_model()) or None

    # ========== PANELS AND PAGINATION ==========

    def _read_side_bar_state(self, grid: Any) -> Optional[Dict[str, Any]]:
        if not has_capability(grid, 'is_side_bar_visible'):
            return None
        visible = grid.is_side_bar_visible()
        if visible is None:
            return None
        opened_panel = None
        if has_capability(grid, 'get_opened_tool_panel'):
            opened_panel = grid.get_opened_tool_panel()
        return {'visible': bool(visible), 'openedPanel': opened_panel}

    def _read_pagination_state(self, grid: Any) -> Optional[Dict[str, Any]]:
        if not has_capability(grid, 'pagination_get_page_size'):
            return None
        state: Dict[str, Any] = {'pageSize': grid.pagination_get_page_size()}
        if has_capability(grid, 'pagination_get_current_page'):
            state['currentPage'] = grid.pagination_get_current_page()
        if has_capability(grid, 'pagination_get_total_pages'):
            state['totalPages'] = grid.pagination_get_total_pages()
        return state

    # ========== VIEWPORT ==========

    def _read_scroll_position(self, grid: Any) -> Optional[Dict[str, Any]]:
        if not has_capability(grid, 'get_scroll_position'):
            return None
        position = grid.get_scroll_position()
        if not position:
            return None
        return {'left': position.get('left') or 0, 'top': position.get('top') or 0}

    def _read_focused_cell(self, grid: Any) -> Optional[Dict[str, Any]]:
        if not has_capability(grid, 'get_focused_cell'):
            return None
        cell = grid.get_focused_cell()
        if not cell:
            return None
        return {'rowIndex': cell.get('rowIndex'), 'colId': cell.get('colId')}

    # ========== SELECTION ==========

    def _read_selection_state(self, grid: Any) -> Optional[Dict[str, Any]]:
        """Row selection, read through the server path for server-side row models."""
        if (grid.get_option('rowModelType') == SERVER_SIDE_ROW_MODEL
                and has_capability(grid, 'get_server_side_selection_state')):
            server_state = grid.get_server_side_selection_state()
            if not server_state:
                return None
            return {'serverSideSelection': copy.deepcopy(server_state)}

        selected = list(grid.get_selected_row_ids() or [])
        if not selected:
            return None
        return {'selectedRowIds': selected}

    def _read_range_selection_state(self, grid: Any) -> Optional[List[Dict[str, Any]]]:
        if not has_capability(grid, 'get_cell_ranges'):
            return None
        ranges = grid.get_cell_ranges() or []
        result = [
            {
                'startRow': cell_range.get('startRow'),
                'endRow': cell_range.get('endRow'),
                'columns': list(cell_range.get('columns') or []),
            }
            for cell_range in ranges
        ]
        return result or None

    # ========== OPTIONS ==========

    def _read_grid_options(self, grid: Any) -> Optional[Dict[str, Any]]:
        """Allow-listed live options. A failing key is skipped, not the facet."""
        options: Dict[str, Any] = {}
        for key in self.option_allow_list:
            try:
                value = grid.get_option(key)
            except Exception as e:
                logger.debug(f"Could not read option '{key}': {e}")
                continue
            if value is not None and not callable(value):
                options[key] = copy.deepcopy(value)
        return options or None
