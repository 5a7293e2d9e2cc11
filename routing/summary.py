"""
Purpose: Human-readable route status lines.
What it does:
Formats distance, duration, ETA and congestion for the selected route so the
status panel (an external collaborator) only has to display strings.

Rule: Formatting only; every time-dependent helper takes `now` explicitly.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from .models import CongestionClass, RouteCandidate

CONGESTION_TITLES = {
    CongestionClass.HEAVY: "Heavy Traffic",
    CongestionClass.MODERATE: "Moderate Traffic",
    CongestionClass.LIGHT: "Light Traffic",
    CongestionClass.NONE: "No traffic",
    CongestionClass.NO_DATA: "No traffic data",
}


def format_distance(meters: int) -> str:
    if meters < 1000:
        return f"{meters}m"
    return f"{meters / 1000:.1f} km"


def format_duration(seconds: int) -> str:
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_clock(moment: datetime) -> str:
    hour = moment.hour % 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{12 if hour == 0 else hour}:{moment.minute:02d} {suffix}"


def format_day_prefix(moment: datetime, now: datetime) -> str:
    if moment.date() == now.date():
        return "Today"
    if moment.date() == (now + timedelta(days=1)).date():
        return "Tomorrow"
    return f"{moment.month}/{moment.day}"


def format_eta(now: datetime, duration_seconds: int) -> str:
    eta = now + timedelta(seconds=duration_seconds)
    return f"{format_day_prefix(eta, now)} {format_clock(eta)}"


def format_time_ago(then: datetime, now: datetime) -> str:
    elapsed = now - then
    if elapsed < timedelta(minutes=1):
        return "Just now"
    if elapsed < timedelta(hours=1):
        return f"{int(elapsed.total_seconds() // 60)} min ago"
    if elapsed < timedelta(days=1):
        return f"{int(elapsed.total_seconds() // 3600)} hr ago"
    if elapsed < timedelta(days=7):
        return f"{elapsed.days} days ago"
    return f"{elapsed.days // 7} weeks ago"


def congestion_label(congestion_class: CongestionClass,
                     percent: int,
                     slow_count: int,
                     jam_count: int) -> str:
    """
    One- or two-line traffic description.
    Heavy / moderate include the congested percentage; every class with data
    gets a slow/jam tally line.
    """
    title = CONGESTION_TITLES[congestion_class]
    if congestion_class is CongestionClass.NO_DATA:
        return title
    if congestion_class in (CongestionClass.HEAVY, CongestionClass.MODERATE):
        title = f"{title} ({percent}% congested)"
    return f"{title}\nSlow: {slow_count} | Jams: {jam_count}"


def route_status(candidate: RouteCandidate, now: datetime) -> str:
    """Multi-line status block for the selected route."""
    traffic = congestion_label(
        candidate.congestion_class,
        candidate.congestion_percent,
        candidate.slow_count,
        candidate.jam_count,
    )
    return (
        f"{candidate.label}\n"
        f"Distance: {format_distance(candidate.distance_meters)}\n"
        f"Duration: {format_duration(candidate.duration_seconds)}\n"
        f"ETA: {format_eta(now, candidate.duration_seconds)}\n"
        f"{traffic}"
    )
