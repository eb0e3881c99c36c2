"""
Member dashboard figures.

Pure functions over model rows (anything with the same attributes works).
``now`` is always passed in as a naive UTC datetime so results are
reproducible.
"""

import math
from datetime import datetime

SECONDS_PER_DAY = 24 * 60 * 60
NO_UPCOMING_CLASSES = "No upcoming classes"
NO_UPCOMING_SESSIONS = "No upcoming sessions"


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_hm(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def is_same_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()


def compute_progress(start: datetime, end: datetime, now: datetime) -> int:
    """Percent of the start..end window already elapsed, clamped to 0..100."""
    if now <= start:
        return 0
    if now >= end:
        return 100
    elapsed = (now - start).total_seconds()
    total = (end - start).total_seconds()
    return _round_half_up(elapsed / total * 100)


def days_remaining(end: datetime, now: datetime) -> int:
    """Whole days from the start of today until ``end``, rounded up, never negative."""
    seconds = (end - _start_of_day(now)).total_seconds()
    return max(0, math.ceil(seconds / SECONDS_PER_DAY))


def membership_summary(user_subscription, subscription, now: datetime) -> dict:
    return {
        "type": subscription.type.value,
        "expires_in": days_remaining(user_subscription.end_date, now),
        "progress": compute_progress(
            user_subscription.start_date, user_subscription.end_date, now
        ),
    }


def _instructor_name(group_class) -> str:
    instructor = getattr(group_class, "instructor", None)
    user = getattr(instructor, "user", None)
    return user.name if user is not None else ""


def today_group_classes(classes, now: datetime) -> list:
    todays = sorted(
        (c for c in classes if is_same_day(c.start_time, now)),
        key=lambda c: c.start_time,
    )
    return [
        {
            "time": format_hm(c.start_time),
            "name": c.name,
            "instructor": _instructor_name(c),
            "spots": c.current_enrollment,
            "max_spots": c.max_capacity,
        }
        for c in todays
    ]


def enrolled_classes(classes, member_id) -> list:
    return [c for c in classes if any(m.id == member_id for m in c.members)]


def _next_after(items, when, now):
    upcoming = [item for item in items if when(item) > now]
    return min(upcoming, key=when) if upcoming else None


def group_classes_summary(classes, now: datetime) -> dict:
    """Summary card over the classes a member is enrolled in."""
    next_class = _next_after(classes, lambda c: c.start_time, now)
    return {
        "enrolled": sum(1 for c in classes if is_same_day(c.start_time, now)),
        "next_class": (
            format_hm(next_class.start_time) if next_class else NO_UPCOMING_CLASSES
        ),
    }


def personal_training_summary(sessions, now: datetime) -> dict:
    """Summary card over one person's PT sessions."""
    next_session = _next_after(sessions, lambda s: s.session_time, now)
    return {
        "booked": sum(1 for s in sessions if is_same_day(s.session_time, now)),
        "next_session": (
            format_hm(next_session.session_time)
            if next_session
            else NO_UPCOMING_SESSIONS
        ),
    }


def today_schedule(sessions, now: datetime) -> list:
    todays = sorted(
        (s for s in sessions if is_same_day(s.session_time, now)),
        key=lambda s: s.session_time,
    )
    return [
        {
            "time": format_hm(s.session_time),
            "activity": "Personal Training",
            "type": "personal",
        }
        for s in todays
    ]
