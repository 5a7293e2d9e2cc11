"""
Purpose: Traffic re-evaluation policy for an active route.
What it does:

Stores the tunable thresholds for deciding when to re-fetch directions:

MOVED_FAR_METERS = 500
CONGESTED_REFRESH = 1 minute  (HEAVY / MODERATE traffic, or slower than 20 km/h)
ROUTINE_REFRESH = 5 minutes
PERIODIC_CHECK = 2 minutes  (timer cadence when no position update arrives)

and evaluates them. Congested or slow trips change faster, so they get the
tighter cadence; free-flowing trips are refreshed conservatively.

Rule: Pure decision. The caller resets its last-update timestamp when it starts
the fetch, not when the fetch finishes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import FrozenSet

from routing.models import CongestionClass


class RefreshReason(str, Enum):
    MOVED_FAR = "moved_far"
    CONGESTED_INTERVAL_ELAPSED = "congested_interval_elapsed"
    ROUTINE_INTERVAL_ELAPSED = "routine_interval_elapsed"
    NOT_DUE = "not_due"


@dataclass(frozen=True)
class RefreshDecision:
    should_refresh: bool
    reason: RefreshReason


@dataclass(frozen=True)
class RefreshPolicy:
    """
    Central configuration for live traffic refreshes.
    """

    # --- Movement trigger ---
    # Past this distance the old route geometry is likely stale.
    moved_far_meters: float = 500.0

    # --- Time triggers ---
    congested_refresh_seconds: int = 60
    routine_refresh_seconds: int = 300

    # Below this speed the trip counts as congested even if the route says otherwise.
    slow_speed_kph: float = 20.0

    congested_classes: FrozenSet[CongestionClass] = field(
        default_factory=lambda: frozenset({CongestionClass.HEAVY, CongestionClass.MODERATE})
    )

    # --- Timer ---
    # How often the session re-checks the policy without a position update.
    periodic_check_seconds: int = 120

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.moved_far_meters <= 0:
            raise ValueError("moved_far_meters must be > 0")

        if self.congested_refresh_seconds <= 0 or self.routine_refresh_seconds <= 0:
            raise ValueError("refresh intervals must be > 0")

        if self.congested_refresh_seconds > self.routine_refresh_seconds:
            raise ValueError("congested_refresh_seconds must be <= routine_refresh_seconds")

        if self.slow_speed_kph < 0:
            raise ValueError("slow_speed_kph must be >= 0")

        if self.periodic_check_seconds <= 0:
            raise ValueError("periodic_check_seconds must be > 0")

    def is_congested(self, congestion_class: CongestionClass, last_known_speed_kph: float) -> bool:
        return congestion_class in self.congested_classes or last_known_speed_kph < self.slow_speed_kph

    def threshold(self, congestion_class: CongestionClass, last_known_speed_kph: float) -> timedelta:
        if self.is_congested(congestion_class, last_known_speed_kph):
            return timedelta(seconds=self.congested_refresh_seconds)
        return timedelta(seconds=self.routine_refresh_seconds)


def default_refresh_policy() -> RefreshPolicy:
    """
    Convenience factory for the default policy.
    """
    p = RefreshPolicy()
    p.validate()
    return p


def should_refresh(last_update: datetime,
                   congestion_class: CongestionClass,
                   last_known_speed_kph: float,
                   distance_moved_meters: float,
                   now: datetime,
                   policy: RefreshPolicy = None) -> RefreshDecision:
    """
    Decide whether the active route should be re-fetched.

    Any trigger is enough:
    - the agent moved further than policy.moved_far_meters
    - time since last_update exceeds the congestion-dependent threshold
    """
    policy = policy or default_refresh_policy()

    if distance_moved_meters > policy.moved_far_meters:
        return RefreshDecision(True, RefreshReason.MOVED_FAR)

    elapsed = now - last_update
    congested = policy.is_congested(congestion_class, last_known_speed_kph)
    if elapsed > policy.threshold(congestion_class, last_known_speed_kph):
        reason = RefreshReason.CONGESTED_INTERVAL_ELAPSED if congested else RefreshReason.ROUTINE_INTERVAL_ELAPSED
        return RefreshDecision(True, reason)

    return RefreshDecision(False, RefreshReason.NOT_DUE)
