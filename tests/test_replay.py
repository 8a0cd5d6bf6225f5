"""Tests for transient view state replay."""
import pytest

from gridsync.replay import (
    TransientStateReplayer,
    collect_widths,
    column_state_without_widths,
    schedule_replay,
)
from gridsync.scheduler import TaskScheduler
from gridsync.snapshot_model import TransientViewState


SAVED_COLUMNS = [
    {'colId': 'country', 'width': 180, 'flex': None, 'hide': False, 'sort': 'asc', 'sortIndex': 0},
    {'colId': 'athlete', 'width': 240, 'hide': False, 'sort': None},
    {'colId': 'age', 'width': 90, 'hide': True, 'sort': None},
]


def test_widths_are_stripped_from_column_state():
    stripped = column_state_without_widths(SAVED_COLUMNS)
    assert all('width' not in entry and 'flex' not in entry for entry in stripped)
    assert stripped[0] == {'colId': 'country', 'hide': False, 'sort': 'asc', 'sortIndex': 0}


def test_collect_widths_prefers_column_state_over_sizing():
    state = TransientViewState(
        column_state=[{'colId': 'a', 'width': 100}, {'colId': 'b', 'width': 0}],
        column_sizing_state={'columnWidths': {'a': 300, 'b': 120, 'c': 75}},
    )
    assert collect_widths(state) == {'a': 100, 'b': 120, 'c': 75}


def test_layout_replay_restores_order_then_widths(grid):
    state = TransientViewState(column_state=SAVED_COLUMNS)
    errors = TransientStateReplayer().replay_layout(grid, state)

    assert errors == []
    assert grid.events == [('apply_column_state',), ('set_column_widths',)]
    applied = grid.applied_column_states[0]
    assert applied['apply_order'] is True
    assert applied['default_state'] == {'sort': None}
    assert all('width' not in entry for entry in applied['state'])
    assert [entry['colId'] for entry in grid.column_state] == ['country', 'athlete', 'age']
    assert grid.width_calls == [{'country': 180, 'athlete': 240, 'age': 90}]


def test_layout_replay_restores_filters_grouping_pagination_and_selection(grid):
    state = TransientViewState(
        filter_model={'age': {'type': 'lessThan', 'filter': 40}},
        advanced_filter_model={'filterType': 'join', 'conditions': []},
        column_group_state=[{'groupId': 'medals', 'open': True}],
        row_group_state={'groupedColumns': ['country'], 'expandedGroups': ['Norway', 'Kenya']},
        pagination_state={'pageSize': 50, 'currentPage': 3},
        side_bar_state={'visible': True, 'openedPanel': 'filters'},
        selection_state={'selectedRowIds': ['r2']},
    )
    errors = TransientStateReplayer().replay_layout(grid, state)

    assert errors == []
    assert grid.filter_model == {'age': {'type': 'lessThan', 'filter': 40}}
    assert grid.advanced_filter_model == {'filterType': 'join', 'conditions': []}
    assert grid.column_group_state == [{'groupId': 'medals', 'open': True}]
    assert grid.expanded_group_keys == ['Norway', 'Kenya']
    assert grid.options['paginationPageSize'] == 50
    assert grid.current_page == 3
    assert grid.opened_tool_panel == 'filters'
    assert grid.selected == ['r2']


def test_sort_model_applies_when_column_state_missing(grid):
    state = TransientViewState(sort_model=[{'colId': 'athlete', 'sort': 'asc', 'sortIndex': 0}])
    TransientStateReplayer().replay_layout(grid, state)
    applied = grid.applied_column_states[0]
    assert applied['apply_order'] is False
    assert applied['state'] == [{'colId': 'athlete', 'sort': 'asc', 'sortIndex': 0}]


def test_hidden_side_bar_closes_tool_panel(grid):
    grid.open_tool_panel('columns')
    TransientStateReplayer().replay_layout(grid, TransientViewState(side_bar_state={'visible': False}))
    assert grid.opened_tool_panel is None


def test_server_side_selection_replays_through_server_path(grid):
    grid.options['rowModelType'] = 'serverSide'
    state = TransientViewState(selection_state={'serverSideSelection': {'selectAll': True, 'toggledNodes': []}})
    TransientStateReplayer().replay_layout(grid, state)
    assert grid.server_side_selection == {'selectAll': True, 'toggledNodes': []}
    assert grid.selected == []


def test_failing_facet_is_recorded_and_others_continue(grid):
    def broken_set_filter_model(model):
        raise ValueError("unknown filter type")

    grid.set_filter_model = broken_set_filter_model
    state = TransientViewState(
        filter_model={'age': {'type': 'bogus'}},
        selection_state={'selectedRowIds': ['r9']},
    )
    errors = TransientStateReplayer().replay_layout(grid, state)
    assert [(error.key, error.category) for error in errors] == [('filterModel', 'layout')]
    assert grid.selected == ['r9']


def test_viewport_replay_restores_ranges_scroll_and_focus(grid):
    grid.cell_ranges = [{'startRow': 9, 'endRow': 9, 'columns': ['athlete']}]
    state = TransientViewState(
        column_state=SAVED_COLUMNS,
        range_selection_state=[{'startRow': 1, 'endRow': 5, 'columns': ['age', 'country']}],
        scroll_position={'left': 40, 'top': 800},
        focused_cell={'rowIndex': 5, 'colId': 'age'},
    )
    errors = TransientStateReplayer().replay_viewport(grid, state)

    assert errors == []
    assert grid.width_calls == [{'country': 180, 'athlete': 240, 'age': 90}]
    assert grid.cell_ranges == [{'startRow': 1, 'endRow': 5, 'columns': ['age', 'country']}]
    assert grid.scroll_position == {'left': 40, 'top': 800}
    assert grid.focused_cell == {'rowIndex': 5, 'colId': 'age'}


def test_replay_on_minimal_grid_skips_missing_capabilities(minimal_grid):
    state = TransientViewState(
        column_group_state=[{'groupId': 'g'}],
        side_bar_state={'visible': True},
        scroll_position={'left': 1, 'top': 2},
        focused_cell={'rowIndex': 0, 'colId': 'a'},
    )
    replayer = TransientStateReplayer()
    assert replayer.replay_layout(minimal_grid, state) == []
    assert replayer.replay_viewport(minimal_grid, state) == []


def test_detached_grid_is_not_touched(grid):
    grid.alive = False
    errors = TransientStateReplayer().replay_layout(grid, TransientViewState(column_state=SAVED_COLUMNS))
    assert errors == []
    assert grid.applied_column_states == []


@pytest.mark.asyncio
async def test_scheduled_replay_runs_both_phases_in_order(grid):
    scheduler = TaskScheduler(frame_delay=0)
    state = TransientViewState(column_state=SAVED_COLUMNS, scroll_position={'left': 0, 'top': 120})
    schedule_replay(scheduler, grid, state, 0, 0, guard=grid.is_alive)

    assert grid.applied_column_states == []
    await scheduler.wait_idle()

    assert grid.events == [('apply_column_state',), ('set_column_widths',), ('set_column_widths',)]
    assert grid.scroll_position == {'left': 0, 'top': 120}


@pytest.mark.asyncio
async def test_scheduled_replay_stops_when_guard_fails(grid):
    scheduler = TaskScheduler(frame_delay=0)
    alive = {'value': True}
    schedule_replay(scheduler, grid, TransientViewState(column_state=SAVED_COLUMNS), 0, 0,
                    guard=lambda: alive['value'])
    alive['value'] = False
    await scheduler.wait_idle()
    assert grid.applied_column_states == []
