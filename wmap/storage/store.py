"""
Cluster store: groups (location, scan) samples into location clusters.

Each sample is matched to the nearest cluster anchor within the proximity
radius (or starts a new cluster), then every observed network is folded into
that cluster keyed by BSSID. The whole cluster set round-trips through a
snapshot backing as the same JSON text `export_snapshot()` produces.
"""

from __future__ import annotations
import copy
import threading
import time
from collections import Counter
from typing import Any, Callable, Iterable, Mapping

from pydantic import ValidationError

from wmap.analysis.config import StoreConfig
from wmap.analysis.matcher import nearest_cluster
from wmap.analysis.merger import merge_observation
from wmap.analysis.types import Cluster, NetworkRecord
from wmap.errors import (
    BackingError,
    CorruptPersistedState,
    FlushOutcome,
    IngestOutcome,
    InvalidLocation,
    LoadOutcome,
    PersistenceWriteFailed,
)
from wmap.storage.backing import SnapshotBacking
from wmap.utils.geo import is_valid_coordinate
from wmap.utils.log import get_logger
from wmap.utils.validate import ClusterEntry, NetworkEntry, NetworkObservation, Snapshot

logger = get_logger(__name__)


def serialize_snapshot(snapshot: Snapshot) -> str:
    """
    Deterministic JSON text for a snapshot.
    """
    return snapshot.model_dump_json(indent=2) + "\n"


class ClusterStore:
    """
    Owns the set of clusters; all reads and writes go through one lock.
    """

    def __init__(
        self,
        backing: SnapshotBacking,
        cfg: StoreConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backing = backing
        self.cfg = cfg or StoreConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._clusters: dict[int, Cluster] = {}
        self._next_id = 1
        self._network_count = 0
        self._dirty = False

    @property
    def dirty(self) -> bool:
        """True if there are ingests not yet written to the backing."""
        with self._lock:
            return self._dirty

    # ------------------------------------------------------------------
    # mutation

    def ingest(
        self,
        lat: float,
        lon: float,
        observations: Iterable[NetworkObservation | Mapping[str, Any]],
    ) -> IngestOutcome:
        """
        Fold one scan taken at (lat, lon) into the store.

        Parameters
        ----------
        lat, lon
            Position of the sample in decimal degrees.
        observations
            Networks seen in the scan, as models or plain mappings.

        Returns
        -------
        IngestOutcome
            Target cluster and counts. `error` is InvalidLocation if the
            position was rejected (nothing changed), or PersistenceWriteFailed
            if the autoflush failed (the change is kept in memory).
        """
        if not is_valid_coordinate(lat, lon):
            logger.warning("Rejected sample at invalid location (%r, %r)", lat, lon)
            return IngestOutcome(error=InvalidLocation(lat, lon))

        obs = [
            o if isinstance(o, NetworkObservation) else NetworkObservation.model_validate(o)
            for o in observations
        ]
        if not obs:
            return IngestOutcome()

        point = (float(lat), float(lon))
        with self._lock:
            now = int(self._clock())
            anchors = ((c.id, c.anchor) for c in self._clusters.values())
            cid = nearest_cluster(point, anchors, self.cfg.radius_m)
            created = cid is None

            # merge into a working copy, then swap it in
            if created:
                target = Cluster(id=self._next_id, anchor=point, created_ts=now, updated_ts=now)
            else:
                target = copy.deepcopy(self._clusters[cid])

            added = updated = 0
            for o in obs:
                if merge_observation(target, o, now):
                    added += 1
                else:
                    updated += 1
            target.updated_ts = now

            self._clusters[target.id] = target
            if created:
                self._next_id += 1
            self._network_count += added
            self._dirty = True

            outcome = IngestOutcome(
                cluster_id=target.id, created=created, added=added, updated=updated,
            )
            if self.cfg.autoflush:
                flushed = self._flush_locked()
                outcome.error = flushed.error
                outcome.flushed = flushed.ok

        if created:
            logger.info(
                "Created cluster %d at (%.6f, %.6f) with %d networks",
                target.id, point[0], point[1], added,
            )
        else:
            logger.debug("Cluster %d: %d added, %d updated", target.id, added, updated)
        return outcome

    # ------------------------------------------------------------------
    # reads

    def network_count(self) -> int:
        """
        Distinct BSSIDs summed over clusters; a network seen at two
        locations counts twice.
        """
        with self._lock:
            return self._network_count

    def cluster_count(self) -> int:
        with self._lock:
            return len(self._clusters)

    def security_counts(self) -> list[tuple[str, int]]:
        """
        Number of records per security class, most common first.
        """
        with self._lock:
            counts = Counter(
                r.security.value
                for c in self._clusters.values()
                for r in c.networks.values()
            )
        return sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))

    def snapshot(self) -> Snapshot:
        """
        Point-in-time copy of every cluster, ordered by id then bssid.
        """
        with self._lock:
            return self._snapshot_locked()

    def export_snapshot(self) -> str:
        """
        Deterministic JSON export; equal states give byte-identical text.
        """
        return serialize_snapshot(self.snapshot())

    def _snapshot_locked(self) -> Snapshot:
        clusters = []
        for cid in sorted(self._clusters):
            c = self._clusters[cid]
            clusters.append(
                ClusterEntry(
                    id=c.id,
                    lat=c.anchor[0],
                    lon=c.anchor[1],
                    created_ts=c.created_ts,
                    updated_ts=c.updated_ts,
                    networks=[
                        NetworkEntry(
                            bssid=r.bssid,
                            ssid=r.ssid,
                            rssi=r.rssi,
                            frequency=r.frequency,
                            security=r.security,
                            first_seen=r.first_seen,
                            last_seen=r.last_seen,
                        )
                        for _, r in sorted(c.networks.items())
                    ],
                )
            )
        return Snapshot(clusters=clusters)

    # ------------------------------------------------------------------
    # lifecycle

    def load(self) -> LoadOutcome:
        """
        Replace in-memory state with what the backing holds.

        Unreadable or unparseable data is logged and the store starts empty;
        the failure is returned as CorruptPersistedState, never raised.
        """
        with self._lock:
            self._reset_locked()
            try:
                text = self.backing.read()
            except BackingError as e:
                return self._corrupt_locked(str(e))
            if text is None:
                logger.info("No persisted state in %r, starting empty", self.backing)
                return LoadOutcome()
            try:
                snap = Snapshot.model_validate_json(text)
            except ValidationError as e:
                return self._corrupt_locked(f"{e.error_count()} validation errors: {e}")

            for entry in sorted(snap.clusters, key=lambda c: c.id):
                self._clusters[entry.id] = Cluster(
                    id=entry.id,
                    anchor=(entry.lat, entry.lon),
                    created_ts=entry.created_ts,
                    updated_ts=entry.updated_ts,
                    networks={
                        n.bssid: NetworkRecord(
                            bssid=n.bssid,
                            ssid=n.ssid,
                            rssi=n.rssi,
                            frequency=n.frequency,
                            security=n.security,
                            first_seen=n.first_seen,
                            last_seen=n.last_seen,
                        )
                        for n in entry.networks
                    },
                )
            self._next_id = max(self._clusters, default=0) + 1
            self._network_count = sum(len(c.networks) for c in self._clusters.values())
            outcome = LoadOutcome(clusters=len(self._clusters), networks=self._network_count)

        logger.info(
            "Loaded %d clusters, %d networks from %r",
            outcome.clusters, outcome.networks, self.backing,
        )
        return outcome

    def flush(self) -> FlushOutcome:
        """
        Write the current state to the backing.
        """
        with self._lock:
            return self._flush_locked()

    def _flush_locked(self) -> FlushOutcome:
        text = serialize_snapshot(self._snapshot_locked())
        try:
            self.backing.write(text)
        except BackingError as e:
            logger.warning("Flush to %r failed: %s", self.backing, e)
            return FlushOutcome(error=PersistenceWriteFailed(str(e)))
        self._dirty = False
        return FlushOutcome(bytes_written=len(text.encode("utf-8")))

    def _reset_locked(self) -> None:
        self._clusters = {}
        self._next_id = 1
        self._network_count = 0
        self._dirty = False

    def _corrupt_locked(self, reason: str) -> LoadOutcome:
        logger.error("Persisted state in %r is corrupt, starting empty: %s", self.backing, reason)
        return LoadOutcome(error=CorruptPersistedState(reason))
