from __future__ import annotations

from datetime import date, datetime

import pytest

from docsona.scheduling import Appointment, available_slots

NOW = datetime(2099, 1, 1, 8, 0)
DAY = date(2099, 1, 10)


def _booked(time_of_day: str, *, duration: int = 30, provider_ref: str = "provider-1") -> Appointment:
    return Appointment.create(
        patient_ref="patient-1",
        provider_ref=provider_ref,
        calendar_date=DAY,
        time_of_day=time_of_day,
        duration_minutes=duration,
        reason="Consultation",
        location="Room 1",
        now=NOW,
    )


def test_empty_day_has_sixteen_half_hour_slots() -> None:
    slots = list(available_slots("provider-1", DAY, [], now=NOW))
    assert len(slots) == 16
    assert slots[0] == "09:00 AM"
    assert slots[-1] == "04:30 PM"
    assert "12:00 PM" in slots


def test_overlapping_appointment_blocks_every_touched_slot() -> None:
    booked = [_booked("10:15 AM", duration=45)]
    slots = list(available_slots("provider-1", DAY, booked, now=NOW))
    assert "10:00 AM" not in slots
    assert "10:30 AM" not in slots
    assert "09:30 AM" in slots
    assert "11:00 AM" in slots
    assert len(slots) == 14


def test_other_providers_and_terminal_appointments_do_not_block() -> None:
    cancelled = _booked("09:00 AM").cancel(cancelled_by="patient", reason=None, now=NOW)
    other = _booked("09:30 AM", provider_ref="provider-2")
    slots = list(available_slots("provider-1", DAY, [cancelled, other], now=NOW))
    assert slots[:2] == ["09:00 AM", "09:30 AM"]


def test_longer_duration_checks_the_whole_interval() -> None:
    booked = [_booked("11:00 AM")]
    slots = list(available_slots("provider-1", DAY, booked, now=NOW, duration_minutes=60))
    assert "10:30 AM" not in slots
    assert "10:00 AM" in slots
    assert "11:30 AM" in slots


def test_past_date_yields_nothing() -> None:
    assert list(available_slots("provider-1", date(2098, 12, 31), [], now=NOW)) == []


def test_slots_already_passed_today_are_skipped() -> None:
    slots = list(available_slots("provider-1", date(2099, 1, 1), [], now=datetime(2099, 1, 1, 12, 10)))
    assert slots[0] == "12:30 PM"


def test_sequence_is_restartable() -> None:
    sequence = available_slots("provider-1", DAY, [_booked("01:00 PM")], now=NOW)
    assert list(sequence) == list(sequence)
    iterator = iter(sequence)
    assert next(iterator) == "09:00 AM"
    assert next(iter(sequence)) == "09:00 AM"


def test_custom_window_and_granularity() -> None:
    slots = list(
        available_slots(
            "provider-1",
            DAY,
            [],
            now=NOW,
            window_start="08:00 AM",
            window_end="10:00 AM",
            granularity_minutes=15,
        )
    )
    assert slots == [
        "08:00 AM",
        "08:15 AM",
        "08:30 AM",
        "08:45 AM",
        "09:00 AM",
        "09:15 AM",
        "09:30 AM",
        "09:45 AM",
    ]


def test_zero_duration_is_rejected() -> None:
    with pytest.raises(ValueError):
        available_slots("provider-1", DAY, [], now=NOW, duration_minutes=0)
