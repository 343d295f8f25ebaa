"""
Proximity matching: pick the cluster a new fix belongs to.
"""

from __future__ import annotations
import math
from typing import Iterable, Tuple

from wmap.utils.geo import haversine


def nearest_cluster(
    point: Tuple[float, float],
    anchors: Iterable[Tuple[int, Tuple[float, float]]],
    radius_m: float,
) -> int | None:
    """
    Return the id of the cluster whose anchor is nearest to `point` and within
    `radius_m`, or None if no anchor qualifies (caller creates a new cluster).

    Parameters
    ----------
    point
        (lat, lon) of the new sample.
    anchors
        (cluster_id, (lat, lon)) pairs, in any order.
    radius_m
        Proximity radius in metres (inclusive).

    Returns
    -------
    int | None
        Matching cluster id. Equal distances resolve to the smaller id.
    """
    best_id: int | None = None
    best_d = math.inf
    for cid, anchor in anchors:
        d = haversine(anchor, point)
        if d > radius_m:
            continue
        if d < best_d or (d == best_d and best_id is not None and cid < best_id):
            best_id, best_d = cid, d
    return best_id
