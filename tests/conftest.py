import pytest

from wmap.analysis.config import StoreConfig
from wmap.errors import BackingError
from wmap.storage.store import ClusterStore

T0 = 1_700_000_000


class MemoryBacking:
    """Backing that keeps the snapshot text in memory; can be told to fail."""

    def __init__(self, text=None):
        self.text = text
        self.fail_writes = False
        self.writes = 0

    def read(self):
        return self.text

    def write(self, text):
        if self.fail_writes:
            raise BackingError("disk full")
        self.text = text
        self.writes += 1


class FakeClock:
    def __init__(self, t=T0):
        self.t = t

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


def obs(bssid, ssid="net", rssi=-60, frequency=2412, capabilities="[WPA2-PSK-CCMP][ESS]"):
    return {
        "bssid": bssid,
        "ssid": ssid,
        "rssi": rssi,
        "frequency": frequency,
        "capabilities": capabilities,
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backing():
    return MemoryBacking()


@pytest.fixture
def store(backing, clock):
    return ClusterStore(backing, StoreConfig(), clock=clock)
