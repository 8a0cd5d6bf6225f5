"""Tests for profile store backends."""
import json

import pytest

from gridsync.profile_store import InMemoryProfileStore, JsonFileProfileStore


def test_in_memory_store_isolates_stored_values():
    store = InMemoryProfileStore()
    data = {'viewConfiguration': {'rowHeight': 22}}
    store.set('compact', data)
    data['viewConfiguration']['rowHeight'] = 99

    loaded = store.get('compact')
    assert loaded == {'viewConfiguration': {'rowHeight': 22}}
    loaded['viewConfiguration']['rowHeight'] = 50
    assert store.get('compact')['viewConfiguration']['rowHeight'] == 22


def test_in_memory_store_lists_and_deletes():
    store = InMemoryProfileStore({'a': {}, 'b': {}})
    assert store.list() == ['a', 'b']
    assert store.delete('a') is True
    assert store.delete('a') is False
    assert store.get('a') is None
    assert store.list() == ['b']


def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / 'profiles' / 'grid.json'
    store = JsonFileProfileStore(str(path))
    store.set('wide', {'viewConfiguration': {'rowHeight': 40}})
    store.set('compact', {'viewConfiguration': {'rowHeight': 20}})
    store.delete('wide')

    reopened = JsonFileProfileStore(str(path))
    assert reopened.list() == ['compact']
    assert reopened.get('compact') == {'viewConfiguration': {'rowHeight': 20}}
    assert json.loads(path.read_text()) == {'compact': {'viewConfiguration': {'rowHeight': 20}}}


def test_json_store_starts_empty_without_file(tmp_path):
    store = JsonFileProfileStore(str(tmp_path / 'missing.json'))
    assert store.list() == []
    assert store.get('anything') is None


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_json_store_ignores_unreadable_file(tmp_path, content):
    path = tmp_path / 'grid.json'
    path.write_text(content)
    store = JsonFileProfileStore(str(path))
    assert store.list() == []

    store.set('fresh', {'toolbarState': {}})
    assert json.loads(path.read_text()) == {'fresh': {'toolbarState': {}}}


def test_json_store_rejects_unserializable_values(tmp_path):
    store = JsonFileProfileStore(str(tmp_path / 'grid.json'))
    with pytest.raises(TypeError):
        store.set('bad', {'cellStyle': object()})
    assert store.get('bad') is None
