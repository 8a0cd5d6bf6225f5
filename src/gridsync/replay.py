"""
Transient view state replay.

Replaying transient state is distinct from option replay: it restores what the
user did to the current data rather than how the grid is configured. It runs
in phases because the engine lays out columns and loads rows asynchronously:

1. ``replay_layout``: column order/visibility/sort (widths stripped), then
   explicit widths, column groups, filters, row grouping, pagination, side
   bar and row selection.
2. ``replay_viewport``: after a further delay, explicit widths are re-asserted
   (a layout pass may have overridden them), then cell ranges, scroll offsets
   and the focused cell.

Every facet is isolated: a failure is recorded as an ``OptionError`` keyed by
the facet name and the next facet is still replayed.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from gridsync.errors import OptionError
from gridsync.extractor import SERVER_SIDE_ROW_MODEL
from gridsync.grid import has_capability, is_grid_alive
from gridsync.snapshot_model import TransientViewState

logger = logging.getLogger(__name__)

_WIDTH_KEYS = ('width', 'actualWidth', 'flex')


def column_state_without_widths(column_state: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Column state entries with width and flex removed."""
    return [
        {k: v for k, v in entry.items() if k not in _WIDTH_KEYS}
        for entry in column_state
        if isinstance(entry, dict)
    ]


def collect_widths(state: TransientViewState) -> Dict[str, float]:
    """Explicit column widths from column state, filled in from the sizing facet.

    Column state wins when both carry a width for the same column.
    """
    widths: Dict[str, float] = {}
    for entry in state.column_state or []:
        if not isinstance(entry, dict) or not entry.get('colId'):
            continue
        width = entry.get('actualWidth') or entry.get('width')
        if width and width > 0:
            widths[entry['colId']] = width

    sizing = state.column_sizing_state or {}
    for col_id, width in (sizing.get('columnWidths') or {}).items():
        if col_id not in widths and width and width > 0:
            widths[col_id] = width
    return widths


class TransientStateReplayer:
    """Restores a ``TransientViewState`` onto a live grid."""

    def replay_layout(self, grid: Any, state: TransientViewState) -> List[OptionError]:
        """First phase: structural layout, filters, grouping, panels and selection."""
        steps = [
            ('columnState', state.column_state is not None, lambda: self._replay_column_state(grid, state)),
            ('sortModel', state.column_state is None and state.sort_model is not None,
             lambda: self._replay_sort_model(grid, state.sort_model)),
            ('columnGroupState', state.column_group_state is not None,
             lambda: self._replay_column_group_state(grid, state.column_group_state)),
            ('filterModel', state.filter_model is not None,
             lambda: grid.set_filter_model(state.filter_model)),
            ('advancedFilterModel', state.advanced_filter_model is not None,
             lambda: self._replay_advanced_filter(grid, state.advanced_filter_model)),
            ('rowGroupState', state.row_group_state is not None,
             lambda: self._replay_row_group_state(grid, state.row_group_state)),
            ('paginationState', state.pagination_state is not None,
             lambda: self._replay_pagination(grid, state.pagination_state)),
            ('sideBarState', state.side_bar_state is not None,
             lambda: self._replay_side_bar(grid, state.side_bar_state)),
            ('selectionState', state.selection_state is not None,
             lambda: self._replay_selection(grid, state.selection_state)),
        ]
        return self._run_steps(grid, 'layout', steps)

    def replay_viewport(self, grid: Any, state: TransientViewState) -> List[OptionError]:
        """Second phase: width re-assertion, cell ranges, scroll and focus."""
        steps = [
            ('columnWidths', True, lambda: self.reassert_widths(grid, state)),
            ('rangeSelectionState', bool(state.range_selection_state),
             lambda: self._replay_ranges(grid, state.range_selection_state)),
            ('scrollPosition', state.scroll_position is not None,
             lambda: self._replay_scroll(grid, state.scroll_position)),
            ('focusedCell', state.focused_cell is not None,
             lambda: self._replay_focus(grid, state.focused_cell)),
        ]
        return self._run_steps(grid, 'viewport', steps)

    def reassert_widths(self, grid: Any, state: TransientViewState) -> int:
        """Apply explicit widths again. Returns how many columns were sized."""
        widths = collect_widths(state)
        if widths:
            grid.set_column_widths(widths)
            logger.debug(f"Applied explicit widths to {len(widths)} column(s)")
        return len(widths)

    def _run_steps(self, grid: Any, phase: str,
                   steps: List[Tuple[str, bool, Callable[[], Any]]]) -> List[OptionError]:
        errors: List[OptionError] = []
        if not is_grid_alive(grid):
            logger.debug(f"Skipping {phase} replay: grid is not alive")
            return errors
        for facet, present, action in steps:
            if not present:
                continue
            try:
                action()
            except Exception as e:
                logger.warning(f"Failed to replay {facet}: {e}")
                errors.append(OptionError(facet, phase, str(e)))
        return errors

    # ========== LAYOUT ==========

    def _replay_column_state(self, grid: Any, state: TransientViewState) -> None:
        """Order, visibility and sort first, then explicit widths.

        If the engine rejects the stripped state, the full state is tried once
        before giving up.
        """
        column_state = state.column_state or []
        try:
            grid.apply_column_state(
                column_state_without_widths(column_state),
                apply_order=True,
                default_state={'sort': None},
            )
            self.reassert_widths(grid, state)
        except Exception as e:
            logger.warning(f"Column state rejected, retrying with full state: {e}")
            grid.apply_column_state(column_state, apply_order=True, default_state={'sort': None})

    def _replay_sort_model(self, grid: Any, sort_model: List[Dict[str, Any]]) -> None:
        grid.apply_column_state(
            [
                {'colId': item['colId'], 'sort': item.get('sort'), 'sortIndex': item.get('sortIndex')}
                for item in sort_model
                if isinstance(item, dict) and item.get('colId')
            ],
            apply_order=False,
            default_state={'sort': None},
        )

    def _replay_column_group_state(self, grid: Any, group_state: List[Dict[str, Any]]) -> None:
        if has_capability(grid, 'set_column_group_state'):
            grid.set_column_group_state(group_state)

    def _replay_advanced_filter(self, grid: Any, model: Dict[str, Any]) -> None:
        if has_capability(grid, 'set_advanced_filter_model'):
            grid.set_advanced_filter_model(model)

    def _replay_row_group_state(self, grid: Any, row_group_state: Dict[str, Any]) -> None:
        """Grouped columns ride on column state; only expansion is restored here."""
        expanded = row_group_state.get('expandedGroups')
        if expanded and has_capability(grid, 'set_expanded_group_keys'):
            grid.set_expanded_group_keys(list(expanded))

    def _replay_pagination(self, grid: Any, pagination: Dict[str, Any]) -> None:
        page_size = pagination.get('pageSize')
        if page_size:
            grid.set_option('paginationPageSize', page_size)
        current_page = pagination.get('currentPage')
        if current_page is not None and has_capability(grid, 'pagination_go_to_page'):
            grid.pagination_go_to_page(current_page)

    def _replay_side_bar(self, grid: Any, side_bar: Dict[str, Any]) -> None:
        visible = side_bar.get('visible')
        if visible is None:
            return
        if visible:
            if has_capability(grid, 'open_tool_panel'):
                grid.open_tool_panel(side_bar.get('openedPanel') or 'columns')
        elif has_capability(grid, 'close_tool_panel'):
            grid.close_tool_panel()

    def _replay_selection(self, grid: Any, selection: Dict[str, Any]) -> None:
        server_state = selection.get('serverSideSelection')
        if (server_state is not None
                and grid.get_option('rowModelType') == SERVER_SIDE_ROW_MODEL
                and has_capability(grid, 'set_server_side_selection_state')):
            grid.set_server_side_selection_state(server_state)
            return
        row_ids = selection.get('selectedRowIds')
        if row_ids:
            grid.select_rows(list(row_ids))

    # ========== VIEWPORT ==========

    def _replay_ranges(self, grid: Any, ranges: List[Dict[str, Any]]) -> None:
        if not (has_capability(grid, 'clear_cell_ranges') and has_capability(grid, 'add_cell_range')):
            return
        grid.clear_cell_ranges()
        for cell_range in ranges:
            grid.add_cell_range({
                'rowStartIndex': cell_range.get('startRow'),
                'rowEndIndex': cell_range.get('endRow'),
                'columns': list(cell_range.get('columns') or []),
            })

    def _replay_scroll(self, grid: Any, position: Dict[str, Any]) -> None:
        if has_capability(grid, 'set_scroll_position'):
            grid.set_scroll_position(position.get('left') or 0, position.get('top') or 0)

    def _replay_focus(self, grid: Any, cell: Dict[str, Any]) -> None:
        if has_capability(grid, 'set_focused_cell') and cell.get('rowIndex') is not None:
            grid.set_focused_cell(cell['rowIndex'], cell.get('colId'))


def schedule_replay(
    scheduler: Any,
    grid: Any,
    state: TransientViewState,
    settle_delay: float,
    width_reassert_delay: float,
    guard: Callable[[], bool],
    on_errors: Optional[Callable[[List[OptionError]], None]] = None,
    replayer: Optional[TransientStateReplayer] = None,
) -> None:
    """Queue both replay phases on the scheduler.

    Args:
        scheduler: TaskScheduler the phases are queued on
        grid: Live grid the state is replayed onto
        state: Transient state to restore
        settle_delay: Seconds before the layout phase
        width_reassert_delay: Seconds between the layout and viewport phases
        guard: Liveness check evaluated before each phase
        on_errors: Receives the facet errors of each phase
        replayer: Replayer to use (a fresh one by default)
    """
    replayer = replayer or TransientStateReplayer()
    if not state.captured_facets():
        logger.debug("No transient view state to replay")
        return

    def _report(errors: List[OptionError]) -> None:
        if errors and on_errors is not None:
            on_errors(errors)

    def _viewport_phase() -> None:
        _report(replayer.replay_viewport(grid, state))

    def _layout_phase() -> None:
        _report(replayer.replay_layout(grid, state))
        scheduler.after(width_reassert_delay, _viewport_phase, label='replay-viewport', guard=guard)

    scheduler.after(settle_delay, _layout_phase, label='replay-layout', guard=guard)
