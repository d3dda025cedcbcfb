"""
Hard and soft constraint predicates shared by the fitness function, the
mutation/repair operators and the conflict analyzer.

Occupancy is tracked with tuple keys:
    room    -> (room_id, time_slot_id, day)
    faculty -> (faculty_id, time_slot_id, day)
    cohort  -> (year_level, block_number, time_slot_id, day)
    subject -> (subject_id, time_slot_id, day)
"""
from collections import Counter
from datetime import time
from typing import Iterable, Optional

from .model import FacultyPreference, Cohort


def time_period(start: Optional[time]) -> Optional[str]:
    if start is None:
        return None
    return "morning" if start.hour < 12 else "afternoon"


def violates_day_off(pref: Optional[FacultyPreference], day: str, period: Optional[str]) -> bool:
    if pref is None or pref.day_off is None or day.lower() != pref.day_off:
        return False
    if pref.day_off_time == "wholeday":
        return True
    return period == pref.day_off_time


def violates_time_period(pref: Optional[FacultyPreference], period: Optional[str]) -> bool:
    if pref is None or pref.preferred_period is None or period is None:
        return False
    return period != pref.preferred_period


def capacity_shortfall(capacity: int, expected_students: int) -> bool:
    return capacity < expected_students


def room_type_mismatch(is_lab: bool, room_type: str) -> bool:
    return is_lab and room_type == "lecture"


class OccupancyView:
    """Counters of who sits where, per (time slot, day)."""

    def __init__(self):
        self.rooms: Counter = Counter()
        self.faculty: Counter = Counter()
        self.cohorts: Counter = Counter()
        self.subjects: Counter = Counter()

    def place(
        self,
        room_id: Optional[int],
        time_slot_id: int,
        days: Iterable[str],
        faculty_id: Optional[int],
        cohort: Cohort,
        subject_id: Optional[int] = None,
        delta: int = 1,
    ) -> None:
        for day in days:
            if room_id is not None:
                _bump(self.rooms, (room_id, time_slot_id, day), delta)
            if faculty_id is not None:
                _bump(self.faculty, (faculty_id, time_slot_id, day), delta)
            _bump(self.cohorts, (cohort[0], cohort[1], time_slot_id, day), delta)
            if subject_id is not None:
                _bump(self.subjects, (subject_id, time_slot_id, day), delta)

    def room_count(self, room_id, time_slot_id, day) -> int:
        return self.rooms.get((room_id, time_slot_id, day), 0)

    def faculty_count(self, faculty_id, time_slot_id, day) -> int:
        if faculty_id is None:
            return 0
        return self.faculty.get((faculty_id, time_slot_id, day), 0)

    def cohort_count(self, cohort: Cohort, time_slot_id, day) -> int:
        return self.cohorts.get((cohort[0], cohort[1], time_slot_id, day), 0)

    def subject_count(self, subject_id, time_slot_id, day) -> int:
        return self.subjects.get((subject_id, time_slot_id, day), 0)


def _bump(counter: Counter, key, delta: int) -> None:
    value = counter.get(key, 0) + delta
    if value > 0:
        counter[key] = value
    else:
        counter.pop(key, None)


def count_placement_conflicts(
    view: OccupancyView,
    room_id: int,
    time_slot_id: int,
    days: Iterable[str],
    period: Optional[str],
    faculty_id: Optional[int],
    cohort: Cohort,
    pref: Optional[FacultyPreference],
    subject_id: Optional[int] = None,
    occupied_above: int = 0,
) -> int:
    """
    Number of hard overlaps and soft preference violations a placement has
    against ``view``. Use ``occupied_above=0`` when the placement is not in
    the view yet and ``occupied_above=1`` when it is already counted there.
    """
    conflicts = 0
    for day in days:
        if view.room_count(room_id, time_slot_id, day) > occupied_above:
            conflicts += 1
        if view.faculty_count(faculty_id, time_slot_id, day) > occupied_above:
            conflicts += 1
        if view.cohort_count(cohort, time_slot_id, day) > occupied_above:
            conflicts += 1
        if subject_id is not None and view.subject_count(subject_id, time_slot_id, day) > occupied_above:
            conflicts += 1
        if faculty_id is not None:
            if violates_day_off(pref, day, period):
                conflicts += 1
            if violates_time_period(pref, period):
                conflicts += 1
    return conflicts
