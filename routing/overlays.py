#Purpose: Derive map overlay geometry from a RouteSet.
#The renderer (external) draws whatever this returns; nothing here is mutated
#in place, the whole list is recomputed after every ranking or selection change.

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import Coordinate, RouteSet, SpeedClass


@dataclass(frozen=True)
class OverlayLine:
    """
    One polyline to draw.
    speed_class is None for the base line of a route.
    """
    route_index: int
    points: Tuple[Coordinate, ...]
    selected: bool
    speed_class: Optional[SpeedClass] = None
    start_index: int = 0

    @property
    def overlay_id(self) -> str:
        if self.speed_class is None:
            return f"route_{self.route_index}_base"
        return f"route_{self.route_index}_traffic_{self.speed_class.value}_{self.start_index}"


def build_overlays(route_set: RouteSet) -> List[OverlayLine]:
    """
    Base line per candidate plus one line per SLOW / TRAFFIC_JAM interval.
    NORMAL stretches are already covered by the base line.
    """
    lines: List[OverlayLine] = []

    for index, candidate in enumerate(route_set.candidates):
        selected = index == route_set.selected_index
        lines.append(OverlayLine(route_index=index, points=candidate.points, selected=selected))

        for interval in candidate.intervals:
            if interval.speed_class is SpeedClass.NORMAL:
                continue
            end = min(interval.end_index, len(candidate.points))
            if interval.start_index >= end:
                continue
            lines.append(
                OverlayLine(
                    route_index=index,
                    points=candidate.points[interval.start_index:end],
                    selected=selected,
                    speed_class=interval.speed_class,
                    start_index=interval.start_index,
                )
            )

    # selected route draws last so it sits on top
    lines.sort(key=lambda line: (line.selected, line.speed_class is not None))
    return lines
