"""
Navigation domain package.

Public API:
- Refresh policy: RefreshPolicy, should_refresh, RefreshDecision
- Tracking: LiveTracker, TrackingSample, AgentState, CameraDirective
- Session: NavigationSession, PermissionDeniedError, PositionUnavailableError
- History: RecentList, SavedPlaces, InMemoryStore
"""

from .policy import RefreshDecision, RefreshPolicy, RefreshReason, default_refresh_policy, should_refresh
from .tracker import AgentState, CameraDirective, LiveTracker, TrackerSettings, TrackingSample
from .session import FetchTicket, NavigationSession, PermissionDeniedError, PositionUnavailableError
from .history import (
    InMemoryStore,
    RecentDestination,
    RecentList,
    RecentSearch,
    SavedPlaces,
    recent_destinations,
    recent_searches,
)

__all__ = [
    "RefreshDecision",
    "RefreshPolicy",
    "RefreshReason",
    "default_refresh_policy",
    "should_refresh",
    "AgentState",
    "CameraDirective",
    "LiveTracker",
    "TrackerSettings",
    "TrackingSample",
    "FetchTicket",
    "NavigationSession",
    "PermissionDeniedError",
    "PositionUnavailableError",
    "InMemoryStore",
    "RecentDestination",
    "RecentList",
    "RecentSearch",
    "SavedPlaces",
    "recent_destinations",
    "recent_searches",
]
