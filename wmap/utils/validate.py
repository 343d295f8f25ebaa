"""
Pydantic schemas to validate scan input and the exported snapshot.
"""

from typing import Annotated, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from wmap.analysis.types import Security

SNAPSHOT_VERSION = 1

Latitude = Annotated[float, Field(ge=-90.0, le=90.0, allow_inf_nan=False)]
Longitude = Annotated[float, Field(ge=-180.0, le=180.0, allow_inf_nan=False)]


def normalize_bssid(value: str) -> str:
    """
    Canonical form of a hardware identifier: trimmed, upper-case.
    """
    value = value.strip().upper()
    if not value:
        raise ValueError("bssid must not be empty")
    return value


class NetworkObservation(BaseModel):
    """
    Normalized record for a single network seen in one scan.
    """
    bssid: str
    ssid: str = ""
    rssi: int
    frequency: int
    capabilities: str = ""

    @field_validator("bssid")
    @classmethod
    def _bssid(cls, v: str) -> str:
        return normalize_bssid(v)

    @field_validator("ssid", "capabilities", mode="before")
    @classmethod
    def _hidden_as_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else v

class ScanSample(BaseModel):
    """
    One (location, scan) pair handed over by the polling collaborator.

    Coordinates are left unchecked here; the store rejects bad ones.
    """
    lat: float
    lon: float
    networks: list[NetworkObservation] = Field(default_factory=list)

class NetworkEntry(BaseModel):
    """
    Exported record for a single network within a cluster.
    """
    bssid: str
    ssid: str
    rssi: int
    frequency: int
    security: Security
    first_seen: int
    last_seen: int

    @field_validator("bssid")
    @classmethod
    def _bssid(cls, v: str) -> str:
        return normalize_bssid(v)

class ClusterEntry(BaseModel):
    """
    Exported record for a single cluster and its networks.
    """
    id: int = Field(ge=1)
    lat: Latitude
    lon: Longitude
    created_ts: int
    updated_ts: int
    networks: list[NetworkEntry] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_bssids(self) -> "ClusterEntry":
        seen: set[str] = set()
        for n in self.networks:
            if n.bssid in seen:
                raise ValueError(f"cluster {self.id}: duplicate bssid {n.bssid}")
            seen.add(n.bssid)
        return self

class Snapshot(BaseModel):
    """
    Complete, ordered export of the cluster store.
    """
    version: Literal[1] = SNAPSHOT_VERSION
    clusters: list[ClusterEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> "Snapshot":
        ids = [c.id for c in self.clusters]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate cluster id")
        return self
