"""
Fold scan observations into a cluster, one record per BSSID.
"""

from wmap.analysis.types import Cluster, NetworkRecord, Security
from wmap.utils.validate import NetworkObservation

# Checked in this order; the first token found wins. "WPA" is a substring of
# "WPA2", so WPA2 has to come before it.
SECURITY_TOKENS: tuple[tuple[str, Security], ...] = (
    ("WEP", Security.WEP),
    ("WPA2", Security.WPA2),
    ("WPA", Security.WPA),
)


def classify_security(capabilities: str) -> Security:
    """
    Derive the security class from a capability string such as
    "[WPA2-PSK-CCMP][ESS]". Unknown or empty strings are Open.
    """
    for token, security in SECURITY_TOKENS:
        if token in capabilities:
            return security
    return Security.OPEN


def merge_observation(cluster: Cluster, obs: NetworkObservation, now: int) -> bool:
    """
    Insert or overwrite the record for `obs.bssid` in `cluster`.

    The latest observation always wins for name, signal, frequency and
    security; first_seen is kept from the original sighting.

    Returns
    -------
    bool
        True if a new record was inserted, False if one was updated.
    """
    security = classify_security(obs.capabilities)
    record = cluster.networks.get(obs.bssid)
    if record is None:
        cluster.networks[obs.bssid] = NetworkRecord(
            bssid=obs.bssid,
            ssid=obs.ssid,
            rssi=obs.rssi,
            frequency=obs.frequency,
            security=security,
            first_seen=now,
            last_seen=now,
        )
        return True

    record.ssid = obs.ssid
    record.rssi = obs.rssi
    record.frequency = obs.frequency
    record.security = security
    record.last_seen = now
    return False
