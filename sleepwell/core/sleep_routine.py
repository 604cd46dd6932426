import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger("uvicorn.error")

SleepRoutineItem = dict[str, Any]
SleepRoutine = dict[str, Any]

VALID_ITEM_TYPES = ("exercise", "food", "supplement", "activity", "rest", "other")
VALID_HABIT_CLASSIFICATIONS = ("good", "bad", "neutral")

DEFAULT_ITEM_TYPE = "activity"
DEFAULT_HABIT_CLASSIFICATION = "neutral"

NUMERIC_FIELDS = ("duration_minutes", "sets", "reps", "weight_kg", "distance_km", "calories")
TEXT_FIELDS = ("serving_size", "notes")

# Persisted key order of a normalized item.
ITEM_FIELDS = (
    "item_name",
    "item_type",
    "habit_classification",
    *NUMERIC_FIELDS,
    *TEXT_FIELDS,
    "item_order",
    "is_optional",
)

MISSING_BEDTIME = "Add a bedtime"
MISSING_WAKE_TIME = "Add a wake-up time"
MISSING_PRE_BED = "Add at least one pre-bed activity"


class SleepRoutineItemNotFound(LookupError):
    def __init__(self, item_name: str) -> None:
        super().__init__(f"Item not found: {item_name}")
        self.item_name = item_name


@dataclass(frozen=True)
class SleepRoutineProgress:
    has_bedtime: bool
    has_wake_time: bool
    pre_bed_count: int
    is_complete: bool
    missing: list[str] = field(default_factory=list)
    sleep_routine: Optional[SleepRoutine] = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _positive_int(value: Any, fallback: int) -> int:
    if _is_number(value) and value > 0:
        return int(math.floor(value))
    return fallback


def _non_negative_number(value: Any) -> Optional[float]:
    if _is_number(value) and value >= 0:
        return value
    return None


def _clean_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    return None


def _choice(value: Any, allowed: tuple[str, ...], fallback: str) -> str:
    if isinstance(value, str) and value in allowed:
        return value
    return fallback


def _ordered(item: SleepRoutineItem, item_order: int) -> SleepRoutineItem:
    ordered = {key: item[key] for key in ITEM_FIELDS if key in item}
    ordered["item_order"] = item_order
    return ordered


def _sanitize_item(raw_item: Any, fallback_order: int) -> Optional[SleepRoutineItem]:
    if not isinstance(raw_item, dict):
        return None
    item_name = _clean_text(raw_item.get("item_name"))
    if not item_name:
        return None

    item: SleepRoutineItem = {
        "item_name": item_name,
        "item_type": _choice(raw_item.get("item_type"), VALID_ITEM_TYPES, DEFAULT_ITEM_TYPE),
        "habit_classification": _choice(
            raw_item.get("habit_classification"), VALID_HABIT_CLASSIFICATIONS, DEFAULT_HABIT_CLASSIFICATION
        ),
    }
    for key in NUMERIC_FIELDS:
        number = _non_negative_number(raw_item.get(key))
        if number is not None:
            item[key] = number
    for key in TEXT_FIELDS:
        text = _clean_text(raw_item.get(key))
        if text is not None:
            item[key] = text
    item["item_order"] = _positive_int(raw_item.get("item_order"), fallback_order)
    is_optional = raw_item.get("is_optional")
    item["is_optional"] = is_optional if isinstance(is_optional, bool) else False
    return item


def _sort_key(item: SleepRoutineItem) -> tuple[int, str, str]:
    name = item["item_name"]
    # Case-only ties put lowercase first, as locale collation does.
    return item["item_order"], name.casefold(), name.swapcase()


def normalize_items(raw_items: Any = None) -> list[SleepRoutineItem]:
    """Coerce untrusted pre-bed items into a densely ordered list.

    Items without a usable ``item_name`` are dropped. Survivors are sorted by
    their given (or positional) order, ties broken by name, and renumbered
    1..N. Normalizing an already normalized list returns an equal list.
    """
    if not isinstance(raw_items, (list, tuple)):
        return []

    sanitized = []
    for position, raw_item in enumerate(raw_items, start=1):
        item = _sanitize_item(raw_item, position)
        if item is not None:
            sanitized.append(item)

    dropped = len(raw_items) - len(sanitized)
    if dropped:
        logger.debug("sleep_routine_items_dropped dropped=%s kept=%s", dropped, len(sanitized))

    sanitized.sort(key=_sort_key)
    return [_ordered(item, index) for index, item in enumerate(sanitized, start=1)]


def ensure_shape(raw: Any = None) -> SleepRoutine:
    """Coerce any stored or extracted value into a fully populated routine."""
    source = raw if isinstance(raw, dict) else {}
    night = source.get("night") if isinstance(source.get("night"), dict) else {}
    morning = source.get("morning") if isinstance(source.get("morning"), dict) else {}
    return {
        "night": {
            "bedtime": _clean_text(night.get("bedtime")),
            "pre_bed": normalize_items(night.get("pre_bed")),
        },
        "morning": {
            "wake_time": _clean_text(morning.get("wake_time")),
        },
    }


def calculate_progress(routine: SleepRoutine) -> SleepRoutineProgress:
    night = routine.get("night") or {}
    morning = routine.get("morning") or {}

    has_bedtime = _clean_text(night.get("bedtime")) is not None
    has_wake_time = _clean_text(morning.get("wake_time")) is not None
    pre_bed = night.get("pre_bed")
    pre_bed_count = len(pre_bed) if isinstance(pre_bed, list) else 0

    missing = []
    if not has_bedtime:
        missing.append(MISSING_BEDTIME)
    if not has_wake_time:
        missing.append(MISSING_WAKE_TIME)
    if not pre_bed_count:
        missing.append(MISSING_PRE_BED)

    return SleepRoutineProgress(
        has_bedtime=has_bedtime,
        has_wake_time=has_wake_time,
        pre_bed_count=pre_bed_count,
        is_complete=has_bedtime and has_wake_time and pre_bed_count > 0,
        missing=missing,
        sleep_routine=routine,
    )


def merge_items(existing: Any = None, incoming: Any = None) -> list[SleepRoutineItem]:
    """Apply incoming items on top of existing ones, matching names case-insensitively.

    A matched item takes every incoming field but keeps its position; new
    items are appended after the existing ones. Existing items are never
    removed by a merge.
    """
    normalized_existing = normalize_items(existing)
    if not isinstance(incoming, (list, tuple)) or not incoming:
        return normalized_existing

    by_key: dict[str, SleepRoutineItem] = {}
    for item in normalized_existing:
        by_key[item["item_name"].lower()] = dict(item)

    next_order = len(normalized_existing) + 1
    for item in normalize_items(incoming):
        key = item["item_name"].lower()
        current = by_key.get(key)
        if current is not None:
            by_key[key] = {**current, **item, "item_order": current["item_order"]}
        else:
            by_key[key] = {**item, "item_order": next_order}
            next_order += 1

    merged = sorted(by_key.values(), key=lambda item: item["item_order"])
    return [_ordered(item, index) for index, item in enumerate(merged, start=1)]


def _updated_time(incoming: dict[str, Any], key: str, current: Optional[str]) -> Optional[str]:
    value = incoming.get(key)
    if isinstance(value, str):
        return value.strip()
    return current


def apply_update(existing: Any, update: Any) -> SleepRoutine:
    """Apply a partial routine update (bedtime, wake time, pre-bed items) to stored data."""
    routine = ensure_shape(existing)
    if not isinstance(update, dict):
        return routine

    night = routine["night"]
    morning = routine["morning"]

    incoming_night = update.get("night")
    if isinstance(incoming_night, dict):
        night = {
            "bedtime": _updated_time(incoming_night, "bedtime", night["bedtime"]),
            "pre_bed": (
                merge_items(night["pre_bed"], incoming_night["pre_bed"])
                if incoming_night.get("pre_bed") is not None
                else night["pre_bed"]
            ),
        }

    incoming_morning = update.get("morning")
    if isinstance(incoming_morning, dict):
        morning = {"wake_time": _updated_time(incoming_morning, "wake_time", morning["wake_time"])}

    return ensure_shape({"night": night, "morning": morning})


def remove_item(routine: Any, item_name: str) -> SleepRoutine:
    shaped = ensure_shape(routine)
    items = shaped["night"]["pre_bed"]
    index = next((i for i, item in enumerate(items) if item["item_name"] == item_name), None)
    if index is None:
        raise SleepRoutineItemNotFound(item_name)

    remaining = items[:index] + items[index + 1 :]
    shaped["night"]["pre_bed"] = normalize_items(remaining)
    return shaped


def summarize_progress(progress: SleepRoutineProgress) -> tuple[str, list[str]]:
    if progress.is_complete:
        summary = "Sleep routine onboarding complete!"
    else:
        summary = "Sleep routine needs attention"
    return summary, progress.missing[:3]


def count_routine_entries(routine: SleepRoutine) -> int:
    night = routine["night"]
    return (
        (1 if night["bedtime"] else 0)
        + (1 if routine["morning"]["wake_time"] else 0)
        + len(night["pre_bed"])
    )
