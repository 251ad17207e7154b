import json
import random

import pytest

from recent_locations import JsonFileStorage, RecentLocationsStore


@pytest.fixture
def storage(tmp_path):
    return JsonFileStorage(str(tmp_path / 'storage.json'))


def test_record_trace_moves_duplicates_to_front_and_caps(storage):
    store = RecentLocationsStore(storage)
    snapshots = [store.record(label) for label in ['A', 'B', 'A', 'C', 'D', 'E', 'F']]

    assert snapshots == [
        ['A'],
        ['B', 'A'],
        ['A', 'B'],
        ['C', 'A', 'B'],
        ['D', 'C', 'A', 'B'],
        ['E', 'D', 'C', 'A', 'B'],
        ['F', 'E', 'D', 'C', 'A'],
    ]


def test_list_is_bounded_and_unique_after_any_sequence(storage):
    rng = random.Random(7)
    store = RecentLocationsStore(storage)
    for _ in range(300):
        store.record(rng.choice(['Leeds', 'York', 'Hull', 'Bath', 'Ely', 'Wells', 'Ripon', 'M1 1AE']))
        assert len(store.items) <= 5
        assert len(set(store.items)) == len(store.items)


def test_persists_across_instances(storage):
    RecentLocationsStore(storage).record('Leeds')
    RecentLocationsStore(storage).record('SW1A 1AA')

    assert RecentLocationsStore(storage).items == ['SW1A 1AA', 'Leeds']
    assert json.loads(storage.get_item('recentLocations')) == ['SW1A 1AA', 'Leeds']


def test_malformed_json_is_discarded(storage):
    storage.set_item('recentLocations', '{not json')

    assert RecentLocationsStore(storage).items == []


def test_non_list_data_is_discarded(storage):
    storage.set_item('recentLocations', json.dumps({'Leeds': 1}))

    assert RecentLocationsStore(storage).items == []


def test_load_cleans_oversized_persisted_list(storage):
    storage.set_item('recentLocations', json.dumps(['A', 'B', 'A', 3, 'C', 'D', 'E', 'F', 'G']))

    assert RecentLocationsStore(storage).items == ['A', 'B', 'C', 'D', 'E']


def test_corrupt_storage_file_reads_as_empty(tmp_path):
    path = tmp_path / 'storage.json'
    path.write_text('garbage')

    assert RecentLocationsStore(JsonFileStorage(str(path))).items == []


def test_blank_labels_are_ignored(storage):
    store = RecentLocationsStore(storage)
    store.record('Leeds')
    store.record('   ')
    store.record('')

    assert store.items == ['Leeds']


def test_clear(storage):
    store = RecentLocationsStore(storage)
    store.record('Leeds')
    store.clear()

    assert store.items == []
    assert storage.get_item('recentLocations') is None
