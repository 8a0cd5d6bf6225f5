"""Tests for transient view state extraction."""
from gridsync.extractor import StateExtractor


def test_extracts_every_supported_facet(grid):
    grid.filter_model = {'country': {'filterType': 'set', 'values': ['Norway']}}
    grid.selected = ['r1', 'r7']
    grid.cell_ranges = [{'startRow': 0, 'endRow': 4, 'columns': ['age']}]
    grid.side_bar_visible = True
    grid.opened_tool_panel = 'filters'
    grid.scroll_position = {'left': 12, 'top': 340}
    grid.focused_cell = {'rowIndex': 3, 'colId': 'age'}
    grid.row_group_columns = ['country']
    grid.expanded_group_keys = ['Norway']
    grid.options.update({'animateRows': False, 'rowSelection': {'mode': 'singleRow'}})

    state = StateExtractor().extract(grid)

    assert [entry['colId'] for entry in state.column_state] == ['athlete', 'age', 'country']
    assert state.sort_model == [{'colId': 'age', 'sort': 'desc', 'sortIndex': 0}]
    assert state.filter_model == grid.filter_model
    assert state.selection_state == {'selectedRowIds': ['r1', 'r7']}
    assert state.range_selection_state == [{'startRow': 0, 'endRow': 4, 'columns': ['age']}]
    assert state.side_bar_state == {'visible': True, 'openedPanel': 'filters'}
    assert state.pagination_state == {'pageSize': 100, 'currentPage': 0, 'totalPages': 1}
    assert state.scroll_position == {'left': 12, 'top': 340}
    assert state.focused_cell == {'rowIndex': 3, 'colId': 'age'}
    assert state.row_group_state == {'groupedColumns': ['country'], 'expandedGroups': ['Norway']}
    assert state.grid_options == {'animateRows': False, 'rowSelection': {'mode': 'singleRow'}}


def test_rendered_width_wins_over_layout_width(grid):
    grid.columns['athlete'].actual_width = 260
    state = StateExtractor().extract(grid)
    athlete = state.column_state[0]
    assert athlete['width'] == 260
    assert state.column_sizing_state['columnWidths']['athlete'] == 260


def test_column_state_is_enriched_from_column_handles(grid):
    grid.columns['country'].visible = False
    state = StateExtractor().extract(grid)
    by_id = {entry['colId']: entry for entry in state.column_state}
    assert by_id['country']['hide'] is True
    assert by_id['country']['flex'] == 1
    assert by_id['age']['aggFunc'] == 'avg'
    assert state.column_sizing_state['columnFlex'] == {'country': 1}


def test_empty_facets_are_omitted(grid):
    state = StateExtractor().extract(grid)
    assert state.filter_model is None
    assert state.selection_state is None
    assert state.range_selection_state is None
    assert state.focused_cell is None
    assert state.row_group_state is None
    assert state.advanced_filter_model is None


def test_failing_facet_does_not_abort_the_others(grid):
    def broken_filter_model():
        raise RuntimeError("filter service not ready")

    grid.get_filter_model = broken_filter_model
    grid.selected = ['r1']

    extractor = StateExtractor()
    state = extractor.extract(grid)

    assert state.filter_model is None
    assert extractor.extract_errors == {'filter_model': 'filter service not ready'}
    assert state.selection_state == {'selectedRowIds': ['r1']}
    assert state.column_state is not None


def test_failing_column_handle_keeps_layout_entry(grid):
    def broken_get_column(col_id):
        raise RuntimeError("column destroyed")

    grid.get_column = broken_get_column
    state = StateExtractor().extract(grid)
    assert state.column_state[0]['width'] == 200


def test_server_side_selection_uses_server_path(grid):
    grid.options['rowModelType'] = 'serverSide'
    grid.server_side_selection = {'selectAll': False, 'toggledNodes': ['a', 'b']}
    grid.selected = ['ignored']
    state = StateExtractor().extract(grid)
    assert state.selection_state == {'serverSideSelection': {'selectAll': False, 'toggledNodes': ['a', 'b']}}


def test_missing_capabilities_omit_their_facets(minimal_grid):
    minimal_grid.column_state = [{'colId': 'a', 'width': 80, 'sort': None}]
    minimal_grid.selected = ['1']
    extractor = StateExtractor()
    state = extractor.extract(minimal_grid)
    assert state.captured_facets() == ['column_state', 'selection_state']
    assert extractor.extract_errors == {}


def test_detached_grid_yields_empty_state(grid):
    grid.alive = False
    assert StateExtractor().extract(grid).captured_facets() == []


def test_grid_options_skip_callables_and_unset_values(grid):
    grid.options['statusBar'] = lambda: None
    state = StateExtractor(option_allow_list=('statusBar', 'animateRows')).extract(grid)
    assert state.grid_options is None
