import re
from typing import Optional

from sleepwell.core.sleep_routine import SleepRoutine

MINUTES_PER_DAY = 24 * 60

_TWELVE_HOUR = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(AM|PM)$")
_TWENTY_FOUR_HOUR = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time_to_minutes(value: Optional[str]) -> Optional[int]:
    """Minutes after midnight for "10:30 PM", "10pm" or "22:30"; None when unparseable."""
    if not value:
        return None
    cleaned = value.strip().upper()

    match = _TWELVE_HOUR.match(cleaned)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        if not 1 <= hours <= 12 or minutes > 59:
            return None
        if hours == 12:
            hours = 0 if match.group(3) == "AM" else 12
        elif match.group(3) == "PM":
            hours += 12
        return hours * 60 + minutes

    match = _TWENTY_FOUR_HOUR.match(cleaned)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        if hours > 23 or minutes > 59:
            return None
        return hours * 60 + minutes
    return None


def sleep_duration_minutes(bedtime: Optional[str], wake_time: Optional[str]) -> Optional[int]:
    bed = parse_time_to_minutes(bedtime)
    wake = parse_time_to_minutes(wake_time)
    if bed is None or wake is None:
        return None
    diff = wake - bed
    return diff if diff >= 0 else diff + MINUTES_PER_DAY


def format_duration(minutes: Optional[int]) -> str:
    if minutes is None or minutes <= 0:
        return "00:00"
    hours_part, minutes_part = divmod(minutes, 60)
    if minutes_part == 0:
        return f"{hours_part}h"
    if hours_part == 0:
        return f"{minutes_part}m"
    return f"{hours_part}h {minutes_part}m"


def _join_names(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return f"{', '.join(names[:-1])}, and {names[-1]}"


def format_handoff_message(routine: SleepRoutine) -> str:
    """First chat message sent on behalf of a guest who finished onboarding."""
    bedtime = routine["night"]["bedtime"]
    wake_time = routine["morning"]["wake_time"]
    activities = [item["item_name"] for item in routine["night"]["pre_bed"]]

    parts = ["Please create a draft routine with these items:"]
    if bedtime and wake_time:
        parts.append(f"Bedtime: {bedtime}, Wake time: {wake_time}")
    elif bedtime:
        parts.append(f"Bedtime: {bedtime}")
    elif wake_time:
        parts.append(f"Wake time: {wake_time}")

    if activities:
        parts.append(f"Pre-bed activities: {_join_names(activities)}")
    return " ".join(parts)
