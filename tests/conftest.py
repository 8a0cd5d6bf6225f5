"""Pytest configuration and shared fixtures."""
import copy
from typing import Any, Dict, List, Optional

import pytest

from gridsync import config as config_module
from gridsync.config import SyncConfig, set_sync_config
from gridsync.controller import SettingsController
from gridsync.profile_store import InMemoryProfileStore


class FakeColumn:
    """Column handle with a rendered width that can drift from the layout state."""

    def __init__(self, col_id: str, actual_width: Optional[float] = None, flex: Optional[float] = None,
                 visible: bool = True, agg_func: Any = None):
        self.col_id = col_id
        self.actual_width = actual_width
        self.flex = flex
        self.visible = visible
        self.agg_func = agg_func

    def get_actual_width(self):
        return self.actual_width

    def get_flex(self):
        return self.flex

    def is_visible(self):
        return self.visible

    def get_agg_func(self):
        return self.agg_func


class MinimalGrid:
    """Grid with only the required engine methods (no optional capabilities)."""

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        self.options: Dict[str, Any] = dict(options or {})
        self.alive = True
        self.events: List[tuple] = []
        self.set_calls: List[tuple] = []
        self.update_calls: List[Dict[str, Any]] = []
        self.rejected: Dict[str, str] = {}
        self.column_state: List[Dict[str, Any]] = []
        self.applied_column_states: List[Dict[str, Any]] = []
        self.width_calls: List[Dict[str, float]] = []
        self.filter_model: Dict[str, Any] = {}
        self.selected: List[str] = []
        self.header_refreshes = 0
        self.cell_refreshes: List[Dict[str, bool]] = []

    def is_alive(self):
        return self.alive

    def get_option(self, key):
        return self.options.get(key)

    def set_option(self, key, value):
        if key in self.rejected:
            raise ValueError(self.rejected[key])
        self.events.append(('set', key))
        self.set_calls.append((key, value))
        self.options[key] = value

    def update_options(self, options):
        for key in options:
            if key in self.rejected:
                raise ValueError(self.rejected[key])
        self.events.append(('update', tuple(options)))
        self.update_calls.append(dict(options))
        self.options.update(options)

    def get_column_state(self):
        return copy.deepcopy(self.column_state)

    def apply_column_state(self, state, apply_order=True, default_state=None):
        self.events.append(('apply_column_state',))
        self.applied_column_states.append({
            'state': copy.deepcopy(state),
            'apply_order': apply_order,
            'default_state': default_state,
        })
        by_id = {entry['colId']: entry for entry in self.column_state}
        for entry in state:
            by_id.setdefault(entry['colId'], {'colId': entry['colId']}).update(entry)
        if apply_order:
            ordered = [by_id.pop(entry['colId']) for entry in state if entry['colId'] in by_id]
            self.column_state = ordered + list(by_id.values())

    def set_column_widths(self, widths):
        self.events.append(('set_column_widths',))
        self.width_calls.append(dict(widths))
        for entry in self.column_state:
            if entry['colId'] in widths:
                entry['width'] = widths[entry['colId']]

    def get_filter_model(self):
        return copy.deepcopy(self.filter_model)

    def set_filter_model(self, model):
        self.filter_model = copy.deepcopy(model or {})

    def get_selected_row_ids(self):
        return list(self.selected)

    def select_rows(self, row_ids):
        self.selected = list(row_ids)

    def refresh_header(self):
        self.header_refreshes += 1

    def refresh_cells(self, force=False, suppress_flash=True):
        self.cell_refreshes.append({'force': force, 'suppress_flash': suppress_flash})


class FakeGrid(MinimalGrid):
    """Grid exposing every optional capability, recording what was written."""

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        super().__init__(options)
        self.column_state = [
            {'colId': 'athlete', 'width': 200, 'hide': False, 'pinned': 'left', 'sort': None},
            {'colId': 'age', 'width': 100, 'hide': False, 'pinned': None, 'sort': 'desc', 'sortIndex': 0},
            {'colId': 'country', 'width': 150, 'hide': False, 'pinned': None, 'sort': None},
        ]
        self.columns = {
            'athlete': FakeColumn('athlete', actual_width=200),
            'age': FakeColumn('age', actual_width=100, agg_func='avg'),
            'country': FakeColumn('country', actual_width=150, flex=1),
        }
        self.column_group_state: List[Dict[str, Any]] = []
        self.advanced_filter_model: Optional[Dict[str, Any]] = None
        self.row_group_columns: List[str] = []
        self.expanded_group_keys: List[str] = []
        self.server_side_selection: Optional[Dict[str, Any]] = None
        self.cell_ranges: List[Dict[str, Any]] = []
        self.side_bar_visible = False
        self.opened_tool_panel: Optional[str] = None
        self.page_size = 100
        self.current_page = 0
        self.total_pages = 1
        self.scroll_position = {'left': 0, 'top': 0}
        self.focused_cell: Optional[Dict[str, Any]] = None

    # Transactions
    def start_update_transaction(self):
        self.events.append(('start',))

    def complete_update_transaction(self):
        self.events.append(('complete',))

    # Columns
    def get_column(self, col_id):
        return self.columns.get(col_id)

    def set_column_widths(self, widths):
        super().set_column_widths(widths)
        for col_id, width in widths.items():
            if col_id in self.columns:
                self.columns[col_id].actual_width = width

    def get_column_group_state(self):
        return copy.deepcopy(self.column_group_state)

    def set_column_group_state(self, state):
        self.column_group_state = copy.deepcopy(state)

    # Filters
    def get_advanced_filter_model(self):
        return copy.deepcopy(self.advanced_filter_model)

    def set_advanced_filter_model(self, model):
        self.advanced_filter_model = copy.deepcopy(model)

    # Grouping
    def get_row_group_columns(self):
        return list(self.row_group_columns)

    def get_expanded_group_keys(self):
        return list(self.expanded_group_keys)

    def set_expanded_group_keys(self, keys):
        self.expanded_group_keys = list(keys)

    # Selection
    def get_server_side_selection_state(self):
        return copy.deepcopy(self.server_side_selection)

    def set_server_side_selection_state(self, state):
        self.server_side_selection = copy.deepcopy(state)

    def get_cell_ranges(self):
        return copy.deepcopy(self.cell_ranges)

    def clear_cell_ranges(self):
        self.cell_ranges = []

    def add_cell_range(self, params):
        self.cell_ranges.append({
            'startRow': params['rowStartIndex'],
            'endRow': params['rowEndIndex'],
            'columns': list(params['columns']),
        })

    # Side bar
    def is_side_bar_visible(self):
        return self.side_bar_visible

    def get_opened_tool_panel(self):
        return self.opened_tool_panel

    def open_tool_panel(self, panel_id):
        self.side_bar_visible = True
        self.opened_tool_panel = panel_id

    def close_tool_panel(self):
        self.opened_tool_panel = None

    # Pagination
    def pagination_get_page_size(self):
        return self.page_size

    def pagination_get_current_page(self):
        return self.current_page

    def pagination_get_total_pages(self):
        return self.total_pages

    def pagination_go_to_page(self, page):
        self.current_page = page

    # Viewport
    def get_scroll_position(self):
        return dict(self.scroll_position)

    def set_scroll_position(self, left, top):
        self.scroll_position = {'left': left, 'top': top}

    def get_focused_cell(self):
        return copy.deepcopy(self.focused_cell)

    def set_focused_cell(self, row_index, col_id):
        self.focused_cell = {'rowIndex': row_index, 'colId': col_id}


@pytest.fixture(autouse=True)
def fast_sync_config():
    """Install zero-delay timings for every test and restore the original after."""
    original = config_module._sync_config
    set_sync_config(SyncConfig(frame_delay=0, settle_delay=0, width_reassert_delay=0))
    yield
    set_sync_config(original)


@pytest.fixture
def grid():
    return FakeGrid()


@pytest.fixture
def minimal_grid():
    return MinimalGrid()


@pytest.fixture
def store():
    return InMemoryProfileStore()


@pytest.fixture
def controller(store):
    return SettingsController(store=store)
