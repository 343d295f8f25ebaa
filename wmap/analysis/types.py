# wmap/analysis/types.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Tuple


class Security(str, Enum):
    """
    Access-control category derived from a network's capability string.
    """
    OPEN = "Open"
    WEP = "WEP"
    WPA = "WPA"
    WPA2 = "WPA2"


@dataclass
class NetworkRecord:
    """
    Latest known state of one BSSID inside a cluster.

    Parameters
    ----------
    bssid : str
        Normalized hardware identifier; unique within the parent cluster.
    ssid : str
        Last-seen network name (empty for hidden networks).
    rssi : int
        Last-seen signal strength in dBm.
    frequency : int
        Last-seen channel frequency in MHz.
    security : Security
        Classification derived from the last-seen capability string.
    first_seen : int
        Timestamp of the first sighting (seconds since epoch).
    last_seen : int
        Timestamp of the latest sighting (seconds since epoch).
    """
    bssid: str
    ssid: str
    rssi: int
    frequency: int
    security: Security
    first_seen: int
    last_seen: int


@dataclass
class Cluster:
    """
    Location-anchored group of network records.

    Parameters
    ----------
    id : int
        Store-assigned identifier, increasing in creation order.
    anchor : Tuple[float, float]
        (lat, lon) of the sample that created the cluster. Never moves.
    created_ts : int
        Creation timestamp (seconds since epoch).
    updated_ts : int
        Timestamp of the latest ingest folded into this cluster.
    networks : Dict[str, NetworkRecord]
        Records keyed by bssid.
    """
    id: int
    anchor: Tuple[float, float]
    created_ts: int
    updated_ts: int
    networks: Dict[str, NetworkRecord] = field(default_factory=dict)
