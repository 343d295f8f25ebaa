import json
import math
import threading

import pytest

from wmap.analysis.config import StoreConfig
from wmap.errors import InvalidLocation
from wmap.storage.store import ClusterStore
from wmap.utils.validate import NetworkObservation

from conftest import T0, MemoryBacking, obs


def test_example_scenario(store):
    first = store.ingest(40.0, -75.0, [obs("AA:BB", "Home", -50, 2412, "WPA2-PSK")])
    assert first.ok and first.created and first.cluster_id == 1

    second = store.ingest(40.0001, -75.0001, [obs("AA:BB", "Home", -45, 2412, "WPA2-PSK")])
    assert second.cluster_id == 1
    assert not second.created
    assert (second.added, second.updated) == (0, 1)
    assert store.network_count() == 1
    rec = store.snapshot().clusters[0].networks[0]
    assert rec.rssi == -45

    third = store.ingest(41.0, -76.0, [obs("AA:BB", "Home", -80, 2412, "WPA2-PSK"), obs("CC:DD")])
    assert third.created and third.cluster_id == 2
    assert store.cluster_count() == 2
    # identity is per cluster, so AA:BB counts once in each
    assert store.network_count() == 3


def test_far_sample_creates_cluster_at_its_location(store):
    store.ingest(40.0, -75.0, [obs("AA")])
    outcome = store.ingest(40.001, -75.0, [obs("BB")])  # ~111 m away
    assert outcome.created
    c2 = store.snapshot().clusters[1]
    assert (c2.lat, c2.lon) == (40.001, -75.0)


def test_anchor_never_moves(store, clock):
    store.ingest(40.0, -75.0, [obs("AA")])
    clock.advance(10)
    store.ingest(40.0002, -75.0, [obs("BB")])  # ~22 m, inside the 30 m radius
    snap = store.snapshot()
    assert len(snap.clusters) == 1
    c = snap.clusters[0]
    assert (c.lat, c.lon) == (40.0, -75.0)
    assert c.created_ts == T0
    assert c.updated_ts == T0 + 10


def test_repeat_bssid_overwrites_and_keeps_first_seen(store, clock):
    store.ingest(40.0, -75.0, [obs("aa:bb", "Old", -70, 2412, "[WPA-PSK]")])
    clock.advance(60)
    store.ingest(40.0, -75.0, [obs("AA:BB", "New", -40, 5180, "[WEP]")])
    snap = store.snapshot()
    networks = snap.clusters[0].networks
    assert len(networks) == 1
    n = networks[0]
    assert (n.bssid, n.ssid, n.rssi, n.frequency, n.security.value) == ("AA:BB", "New", -40, 5180, "WEP")
    assert n.first_seen == T0
    assert n.last_seen == T0 + 60


def test_duplicate_bssid_within_one_scan(store):
    outcome = store.ingest(40.0, -75.0, [obs("AA", rssi=-50), obs("aa", rssi=-55)])
    assert (outcome.added, outcome.updated) == (1, 1)
    assert store.network_count() == 1
    assert store.snapshot().clusters[0].networks[0].rssi == -55


def test_network_count_is_sum_over_clusters(store):
    store.ingest(10.0, 10.0, [obs("A"), obs("B"), obs("C")])
    store.ingest(20.0, 20.0, [obs("A"), obs("D")])
    store.ingest(10.0, 10.0, [obs("B"), obs("E")])
    snap = store.snapshot()
    assert store.network_count() == sum(len(c.networks) for c in snap.clusters) == 6


def test_empty_observations_is_a_no_op(store, backing):
    outcome = store.ingest(40.0, -75.0, [])
    assert outcome.ok
    assert outcome.cluster_id is None
    assert store.cluster_count() == 0
    assert not store.dirty
    assert backing.writes == 0

    store.ingest(40.0, -75.0, [obs("AA")])
    before = store.export_snapshot()
    store.ingest(40.0, -75.0, [])
    assert store.export_snapshot() == before


@pytest.mark.parametrize(
    "lat,lon",
    [(float("nan"), 0.0), (0.0, float("nan")), (91.0, 0.0), (-90.5, 0.0), (0.0, 180.5), (float("inf"), 0.0)],
)
def test_invalid_location_is_rejected_without_mutation(store, backing, lat, lon):
    outcome = store.ingest(lat, lon, [obs("AA")])
    assert isinstance(outcome.error, InvalidLocation)
    assert not outcome.ok
    assert outcome.cluster_id is None
    assert store.cluster_count() == 0
    assert backing.writes == 0
    with pytest.raises(InvalidLocation):
        outcome.raise_for_error()


def test_accepts_models_and_mappings(store):
    model = NetworkObservation(bssid="aa", rssi=-40, frequency=2412)
    store.ingest(1.0, 1.0, [model, obs("bb")])
    assert [n.bssid for n in store.snapshot().clusters[0].networks] == ["AA", "BB"]


def test_export_is_ordered_and_deterministic(store):
    store.ingest(5.0, 5.0, [obs("CC"), obs("AA"), obs("BB")])
    store.ingest(-5.0, -5.0, [obs("ZZ")])
    text = store.export_snapshot()
    assert text == store.export_snapshot()
    assert text.endswith("\n")

    doc = json.loads(text)
    assert doc["version"] == 1
    assert [c["id"] for c in doc["clusters"]] == [1, 2]
    assert [n["bssid"] for n in doc["clusters"][0]["networks"]] == ["AA", "BB", "CC"]
    assert set(doc["clusters"][0]["networks"][0]) == {
        "bssid", "ssid", "rssi", "frequency", "security", "first_seen", "last_seen",
    }


def test_export_load_round_trip(store, clock):
    store.ingest(40.0, -75.0, [obs("AA:BB", "Home", -50, 2412, "WPA2-PSK"), obs("CC", None, -90, 5745, "")])
    clock.advance(5)
    store.ingest(41.123456789, -76.987654321, [obs("EE", "Café ☕", -66, 2462, "[WEP]")])
    exported = store.export_snapshot()

    other = ClusterStore(MemoryBacking(exported), StoreConfig(), clock=clock)
    loaded = other.load()
    assert loaded.ok
    assert (loaded.clusters, loaded.networks) == (2, 3)
    assert other.network_count() == store.network_count()
    assert other.export_snapshot() == exported


def test_ids_continue_after_load(store, clock):
    store.ingest(1.0, 1.0, [obs("A")])
    store.ingest(2.0, 2.0, [obs("B")])
    other = ClusterStore(MemoryBacking(store.export_snapshot()), StoreConfig(), clock=clock)
    other.load()
    outcome = other.ingest(3.0, 3.0, [obs("C")])
    assert outcome.cluster_id == 3


def test_security_counts(store):
    store.ingest(1.0, 1.0, [obs("A", capabilities="[WPA2]"), obs("B", capabilities="[WEP]")])
    store.ingest(2.0, 2.0, [obs("A", capabilities="[WPA2]"), obs("C", capabilities="")])
    assert store.security_counts() == [("WPA2", 2), ("Open", 1), ("WEP", 1)]


def test_radius_is_configurable(backing, clock):
    wide = ClusterStore(backing, StoreConfig(radius_m=200.0), clock=clock)
    wide.ingest(40.0, -75.0, [obs("A")])
    assert not wide.ingest(40.001, -75.0, [obs("B")]).created

    narrow = ClusterStore(MemoryBacking(), StoreConfig.walking(), clock=clock)
    narrow.ingest(40.0, -75.0, [obs("A")])
    assert narrow.ingest(40.0002, -75.0, [obs("B")]).created  # ~22 m > 20 m


def test_config_rejects_bad_radius():
    with pytest.raises(ValueError):
        StoreConfig(radius_m=0)
    with pytest.raises(ValueError):
        StoreConfig(radius_m=math.nan)


def test_readers_never_see_partial_ingest(clock):
    store = ClusterStore(MemoryBacking(), StoreConfig(autoflush=False), clock=clock)
    per_sample = 40
    n_samples = 60
    seen_sizes = set()
    done = threading.Event()

    def writer():
        for i in range(n_samples):
            store.ingest(i * 0.01, 0.0, [obs(f"{i}:{j}") for j in range(per_sample)])
        done.set()

    def reader():
        while not done.is_set():
            for c in store.snapshot().clusters:
                seen_sizes.add(len(c.networks))
            store.network_count()

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert seen_sizes <= {per_sample}
    assert store.network_count() == per_sample * n_samples


def test_concurrent_ingests_get_unique_ids(store):
    n_threads, per_thread = 8, 25

    def worker(k):
        for j in range(per_thread):
            i = k * per_thread + j
            store.ingest(i * 0.01, 0.0, [obs(f"N{i}")])

    threads = [threading.Thread(target=worker, args=(k,)) for k in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    ids = [c.id for c in store.snapshot().clusters]
    assert ids == list(range(1, n_threads * per_thread + 1))
    assert store.network_count() == n_threads * per_thread
