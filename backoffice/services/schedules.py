"""
Weekly staff schedules and appointment slots.

A week is seven :class:`DaySchedule` records indexed by ``day_of_week``
(0 = Sunday).  Rules are only checked when a week is saved; while the
week is being edited it may be in any state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from backoffice.exceptions import ScheduleValidationError

logger = logging.getLogger(__name__)

DAY_NAMES = ('Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')
DAY_NAMES_SHORT = ('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')
DEFAULT_SLOT_MINUTES = 30
MONDAY = 1
WEEKDAYS = range(1, 6)

TimeLike = Union[str, time]


@dataclass
class DaySchedule:
    day_of_week: int
    is_available: bool = False
    start_time: str = '09:00'
    end_time: str = '17:00'
    slot_duration: int = DEFAULT_SLOT_MINUTES
    break_start: Optional[str] = None
    break_end: Optional[str] = None
    notes: Optional[str] = None

    @property
    def has_break(self) -> bool:
        return bool(self.break_start and self.break_end)


@dataclass(frozen=True)
class ScheduleViolation:
    day_index: int
    reason: str

    @property
    def message(self) -> str:
        return f'{DAY_NAMES[self.day_index]}: {self.reason}'


def time_to_minutes(value: TimeLike) -> int:
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    hours, minutes = value.split(':')[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def hhmm(value: Optional[TimeLike]) -> Optional[str]:
    """Normalise a stored or submitted time to ``HH:MM``; blanks become None."""
    if value is None or value == '':
        return None
    if isinstance(value, time):
        return value.strftime('%H:%M')
    return value[:5]


def default_week() -> List[DaySchedule]:
    return [DaySchedule(day_of_week=i) for i in range(7)]


def validate_day(day: DaySchedule) -> Optional[str]:
    if not day.is_available:
        return None
    if time_to_minutes(day.start_time) >= time_to_minutes(day.end_time):
        return 'start must be before end'
    if bool(day.break_start) != bool(day.break_end):
        return 'incomplete break time'
    if day.has_break:
        start, end = time_to_minutes(day.break_start), time_to_minutes(day.break_end)
        if start >= end:
            return 'invalid break time'
        if start < time_to_minutes(day.start_time) or end > time_to_minutes(day.end_time):
            return 'break outside working hours'
    return None


def validate_week(days: Iterable[DaySchedule]) -> Optional[ScheduleViolation]:
    """Return the first violation found, or None when the week can be saved."""
    for day in days:
        reason = validate_day(day)
        if reason:
            return ScheduleViolation(day.day_of_week, reason)
    return None


def apply_monday_to_weekdays(days: Sequence[DaySchedule]) -> List[DaySchedule]:
    """Copy Monday's hours onto Monday to Friday.

    Every weekday comes back available, even when Monday itself is not;
    the copied hours are whatever Monday currently holds.
    """
    monday = next((d for d in days if d.day_of_week == MONDAY), None)
    if monday is None:
        return list(days)
    return [
        replace(
            day,
            is_available=True,
            start_time=monday.start_time,
            end_time=monday.end_time,
            slot_duration=monday.slot_duration,
            break_start=monday.break_start,
            break_end=monday.break_end,
        ) if day.day_of_week in WEEKDAYS else day
        for day in days
    ]


def day_from_row(row: Dict[str, Any]) -> DaySchedule:
    day = DaySchedule(
        day_of_week=row['day_of_week'],
        is_available=row['is_available'],
        start_time=hhmm(row['start_time']),
        end_time=hhmm(row['end_time']),
        slot_duration=row.get('slot_duration') or DEFAULT_SLOT_MINUTES,
        break_start=hhmm(row.get('break_start')),
        break_end=hhmm(row.get('break_end')),
        notes=row.get('notes'),
    )
    # a break stored back to front is dropped rather than shown
    if day.has_break and time_to_minutes(day.break_start) >= time_to_minutes(day.break_end):
        day.break_start = day.break_end = None
    return day


def load_week(store, staff_id: int, staff_type: str) -> List[DaySchedule]:
    week = default_week()
    rows = store.fetch_rows('staff_schedules', {'staff_id': staff_id, 'staff_type': staff_type}, order=['day_of_week'])
    for row in rows:
        week[row['day_of_week']] = day_from_row(row)
    return week


def save_week(store, staff_id: int, staff_type: str, days: Sequence[DaySchedule]) -> List[Dict[str, Any]]:
    """Replace the stored week of ``staff_id`` with the available ``days``."""
    violation = validate_week(days)
    if violation:
        raise ScheduleValidationError(violation)
    rows = [
        {
            'staff_id': staff_id,
            'staff_type': staff_type,
            'day_of_week': day.day_of_week,
            'start_time': day.start_time,
            'end_time': day.end_time,
            'slot_duration': day.slot_duration or DEFAULT_SLOT_MINUTES,
            'is_available': True,
            'break_start': day.break_start or None,
            'break_end': day.break_end or None,
            'notes': day.notes or None,
        }
        for day in days
        if day.is_available and day.start_time and day.end_time
    ]
    with store.atomic():
        for old in store.fetch_rows('staff_schedules', {'staff_id': staff_id, 'staff_type': staff_type}):
            store.delete_row('staff_schedules', old['id'])
        saved = store.insert_rows('staff_schedules', rows)
    logger.info('saved %d working day(s) for %s %s', len(saved), staff_type, staff_id)
    return saved


def day_of_week(day: date) -> int:
    return (day.weekday() + 1) % 7


def in_break(minutes: int, day: DaySchedule) -> bool:
    if not day.has_break:
        return False
    return time_to_minutes(day.break_start) <= minutes < time_to_minutes(day.break_end)


def generate_time_slots(day: DaySchedule) -> List[str]:
    start, end = time_to_minutes(day.start_time), time_to_minutes(day.end_time)
    step = day.slot_duration or DEFAULT_SLOT_MINUTES
    return [minutes_to_time(t) for t in range(start, end - step + 1, step) if not in_break(t, day)]


def _working_day(store, doctor_id: int, on: date) -> Optional[DaySchedule]:
    rows = store.fetch_rows('staff_schedules', {
        'staff_id': doctor_id,
        'staff_type': 'doctor',
        'day_of_week': day_of_week(on),
        'is_available': True,
    }, limit=1)
    return day_from_row(rows[0]) if rows else None


def booked_slots(store, doctor_id: int, on: date) -> List[str]:
    rows = store.fetch_rows('appointments', {'doctor_id': doctor_id, 'appointment_date': on})
    return [hhmm(r['appointment_time']) for r in rows if r['status'] != 'cancelled']


def available_time_slots(store, doctor_id: int, on: date) -> List[Dict[str, Any]]:
    day = _working_day(store, doctor_id, on)
    if day is None:
        return [{'time': '', 'available': False, 'reason': f'Doctor is not available on {DAY_NAMES[day_of_week(on)]}s'}]
    slots = generate_time_slots(day)
    if not slots:
        return [{'time': '', 'available': False, 'reason': 'No time slots available for this day'}]
    booked = set(booked_slots(store, doctor_id, on))
    return [
        {'time': t, 'available': t not in booked, 'reason': 'Already booked' if t in booked else None}
        for t in slots
    ]


def is_time_slot_available(store, doctor_id: int, on: date, at: TimeLike) -> Dict[str, Any]:
    day = _working_day(store, doctor_id, on)
    if day is None:
        return {'available': False, 'reason': f'Doctor is not available on {DAY_NAMES[day_of_week(on)]}s'}
    minutes = time_to_minutes(at)
    if minutes < time_to_minutes(day.start_time) or minutes >= time_to_minutes(day.end_time):
        return {'available': False, 'reason': f'Outside working hours ({day.start_time} - {day.end_time})'}
    if in_break(minutes, day):
        return {'available': False, 'reason': f'Break time ({day.break_start} - {day.break_end})'}
    if hhmm(at) in booked_slots(store, doctor_id, on):
        return {'available': False, 'reason': 'Time slot already booked'}
    return {'available': True, 'reason': None}


def working_days_summary(days: Iterable[DaySchedule]) -> str:
    names = [DAY_NAMES_SHORT[d.day_of_week] for d in days if d.is_available]
    return ', '.join(names) or 'No schedule set'
