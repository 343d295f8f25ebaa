# wmap/errors.py

"""
Error kinds and operation outcomes for the cluster store.

Store operations report failures through outcome objects rather than raising,
so a host polling loop can keep running. Callers that want exceptions call
`raise_for_error()` on the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass


class ClusterStoreError(Exception):
    """Base class for every cluster store failure."""


class InvalidLocation(ClusterStoreError):
    """Coordinate is NaN, infinite, or outside WGS84 ranges."""

    def __init__(self, lat: float, lon: float) -> None:
        super().__init__(f"invalid location: lat={lat!r}, lon={lon!r}")
        self.lat = lat
        self.lon = lon


class CorruptPersistedState(ClusterStoreError):
    """Backing data could not be read or parsed at load time."""


class PersistenceWriteFailed(ClusterStoreError):
    """The backing could not durably write the current state."""


class BackingError(Exception):
    """
    Raised by a snapshot backing when its medium fails (I/O, SQLite).

    The store translates it into `CorruptPersistedState` on read and
    `PersistenceWriteFailed` on write.
    """


@dataclass
class Outcome:
    """
    Result of a store operation.

    Attributes
    ----------
    error
        The failure, or None on success.
    """
    error: ClusterStoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


@dataclass
class IngestOutcome(Outcome):
    """
    Result of `ClusterStore.ingest`.

    Attributes
    ----------
    cluster_id
        Cluster the sample was folded into; None when nothing was ingested.
    created
        True if the sample started a new cluster.
    added
        Number of records inserted.
    updated
        Number of existing records overwritten.
    flushed
        True if the change was written to the backing as part of this call.
    """
    cluster_id: int | None = None
    created: bool = False
    added: int = 0
    updated: int = 0
    flushed: bool = False


@dataclass
class LoadOutcome(Outcome):
    """Result of `ClusterStore.load`."""
    clusters: int = 0
    networks: int = 0


@dataclass
class FlushOutcome(Outcome):
    """Result of `ClusterStore.flush`."""
    bytes_written: int = 0
