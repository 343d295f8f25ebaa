# wmap/analysis/config.py

from dataclasses import dataclass

@dataclass
class StoreConfig:
    """
    Configuration for the cluster store.

    Attributes
    ----------
    radius_m
        Proximity radius (m): a sample within this great-circle distance of a
        cluster anchor joins that cluster.
    autoflush
        Write the snapshot to the backing after every mutating ingest. When
        False, ingests only mark the store dirty and the caller flushes.
    """
    radius_m:   float = 30.0
    autoflush:  bool  = True

    def __post_init__(self) -> None:
        if not self.radius_m > 0:
            raise ValueError(f"radius_m must be positive, got {self.radius_m!r}")

    @classmethod
    def walking(cls, **overrides):
        """Preset for pedestrian mode (tight radius)."""
        return cls(**{"radius_m": 20.0, **overrides})

    @classmethod
    def driving(cls, **overrides):
        """Preset for vehicle mode (GPS fixes are sparser at speed)."""
        return cls(**{"radius_m": 100.0, **overrides})
