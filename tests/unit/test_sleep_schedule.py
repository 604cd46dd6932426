import pytest

from sleepwell.core.sleep_routine import ensure_shape
from sleepwell.core.sleep_schedule import (
    format_duration,
    format_handoff_message,
    parse_time_to_minutes,
    sleep_duration_minutes,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("12:15 AM", 15),
        ("12 PM", 720),
        ("10 pm", 1320),
        ("10:30PM", 1350),
        (" 6:05 am ", 365),
        ("22:30", 1350),
        ("07:00", 420),
        ("bedtime", None),
        ("25:00", None),
        ("13 PM", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_time_to_minutes(value, expected) -> None:
    assert parse_time_to_minutes(value) == expected


def test_sleep_duration_wraps_midnight() -> None:
    assert sleep_duration_minutes("10:30 PM", "6:30 AM") == 480
    assert sleep_duration_minutes("23:00", "07:15") == 495


def test_sleep_duration_same_day() -> None:
    assert sleep_duration_minutes("1:00 AM", "9:00 AM") == 480


def test_sleep_duration_unparseable_side() -> None:
    assert sleep_duration_minutes("late", "07:00") is None
    assert sleep_duration_minutes("23:00", None) is None


@pytest.mark.parametrize(
    ("minutes", "expected"),
    [(None, "00:00"), (0, "00:00"), (480, "8h"), (45, "45m"), (450, "7h 30m")],
)
def test_format_duration(minutes, expected) -> None:
    assert format_duration(minutes) == expected


def test_handoff_message_full_routine() -> None:
    routine = ensure_shape(
        {
            "night": {
                "bedtime": "10:30 PM",
                "pre_bed": [{"item_name": "Meditate"}, {"item_name": "Brush teeth"}, {"item_name": "Read"}],
            },
            "morning": {"wake_time": "6:30 AM"},
        }
    )
    assert format_handoff_message(routine) == (
        "Please create a draft routine with these items: "
        "Bedtime: 10:30 PM, Wake time: 6:30 AM "
        "Pre-bed activities: Meditate, Brush teeth, and Read"
    )


def test_handoff_message_partial_routine() -> None:
    routine = ensure_shape(
        {"night": {"pre_bed": [{"item_name": "Tea"}, {"item_name": "Stretch"}]}, "morning": {"wake_time": "07:00"}}
    )
    assert format_handoff_message(routine) == (
        "Please create a draft routine with these items: Wake time: 07:00 Pre-bed activities: Tea and Stretch"
    )


def test_handoff_message_empty_routine() -> None:
    assert format_handoff_message(ensure_shape()) == "Please create a draft routine with these items:"
