"""
Purpose: Congestion scoring for a single route.
What it does:

For each speed interval:

segment_length = end_index - start_index   (clamped to the route, degenerate skipped)

visual_weight += segment_length * 1.5  for SLOW

visual_weight += segment_length * 2.0  for TRAFFIC_JAM

ratio = visual_weight / Σ segment_length

Bands on p = round(ratio * 100), first match wins:

  no intervals with length  -> NO_DATA
  p > 25                    -> HEAVY
  p > 15                    -> MODERATE
  p > 5 or slow+jam > 3     -> LIGHT
  otherwise                 -> NONE

Rule: Pure function, never raises. Overlapping intervals are summed as-is.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable

from .models import CongestionClass, SpeedClass, SpeedInterval

SPEED_WEIGHTS: Dict[SpeedClass, float] = {
    SpeedClass.NORMAL: 0.0,
    SpeedClass.SLOW: 1.5,
    SpeedClass.JAM: 2.0,
}

HEAVY_PERCENT = 25
MODERATE_PERCENT = 15
LIGHT_PERCENT = 5
LIGHT_INCIDENT_COUNT = 3


@dataclass(frozen=True)
class TrafficScore:
    congestion_class: CongestionClass
    congestion_ratio: float  # clamped to [0, 1]
    slow_count: int
    jam_count: int
    percent: int = 0  # rounded, unclamped visual percentage used for banding

    @property
    def has_data(self) -> bool:
        return self.congestion_class is not CongestionClass.NO_DATA


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def classify(percent: int, slow_count: int, jam_count: int) -> CongestionClass:
    if percent > HEAVY_PERCENT:
        return CongestionClass.HEAVY
    if percent > MODERATE_PERCENT:
        return CongestionClass.MODERATE
    if percent > LIGHT_PERCENT or (slow_count + jam_count) > LIGHT_INCIDENT_COUNT:
        return CongestionClass.LIGHT
    return CongestionClass.NONE


def score(intervals: Iterable[SpeedInterval], route_length: int) -> TrafficScore:
    """
    Score a route's speed intervals.

    Args:
        intervals: speed intervals in route order
        route_length: number of points in the route; interval ends are clamped to it

    Returns:
        TrafficScore with class, clamped ratio and slow/jam tallies.
    """
    route_length = max(route_length, 0)
    slow_count = 0
    jam_count = 0
    total_length = 0
    visual_weight = 0.0

    for interval in intervals:
        #counts are plain tallies, independent of the segment length
        if interval.speed_class is SpeedClass.SLOW:
            slow_count += 1
        elif interval.speed_class is SpeedClass.JAM:
            jam_count += 1

        start = min(max(interval.start_index, 0), route_length)
        end = min(max(interval.end_index, 0), route_length)
        segment_length = end - start
        if segment_length <= 0:
            continue

        total_length += segment_length
        visual_weight += segment_length * SPEED_WEIGHTS.get(interval.speed_class, 0.0)

    if total_length == 0:
        return TrafficScore(CongestionClass.NO_DATA, 0.0, slow_count, jam_count, 0)

    ratio = visual_weight / total_length
    percent = round_half_up(ratio * 100)

    return TrafficScore(
        congestion_class=classify(percent, slow_count, jam_count),
        congestion_ratio=min(ratio, 1.0),
        slow_count=slow_count,
        jam_count=jam_count,
        percent=percent,
    )
