"""Tests for structural comparison and delta computation."""
from gridsync.cell_style import make_cell_style
from gridsync.comparison import compute_delta, structurally_equal


def test_dict_key_order_is_ignored():
    assert structurally_equal({'a': 1, 'b': {'c': 2, 'd': 3}}, {'b': {'d': 3, 'c': 2}, 'a': 1})


def test_lists_and_tuples_compare_elementwise():
    assert structurally_equal(['asc', 'desc', None], ('asc', 'desc', None))
    assert not structurally_equal(['asc', 'desc'], ['desc', 'asc'])


def test_booleans_do_not_equal_integers():
    assert not structurally_equal(True, 1)
    assert not structurally_equal(0, False)
    assert structurally_equal(False, False)


def test_synthesized_styles_compare_behaviourally():
    assert structurally_equal({'cellStyle': make_cell_style('top', None)},
                              {'cellStyle': make_cell_style('top', None)})
    assert not structurally_equal(make_cell_style('top', None), make_cell_style('bottom', None))


def test_delta_contains_exactly_the_changed_keys():
    baseline = {'rowHeight': 30, 'rowSelection': {'mode': 'multiRow'}, 'animateRows': True}
    current = {'rowHeight': 30, 'rowSelection': {'mode': 'singleRow'}, 'animateRows': True}
    assert compute_delta(current, baseline) == {'rowSelection'}


def test_delta_counts_one_sided_keys():
    assert compute_delta({'a': 1, 'b': 2}, {'a': 1, 'c': 3}) == {'b', 'c'}


def test_delta_of_equal_bags_is_empty():
    bag = {'defaultColDef': {'flex': 1, 'sortingOrder': ['asc', 'desc', None]}}
    assert compute_delta(bag, {'defaultColDef': {'sortingOrder': ['asc', 'desc', None], 'flex': 1}}) == set()
