from datetime import time

from timetable_ga.config import SolverConfig
from timetable_ga.model import (
    FacultyPreference,
    Gene,
    ProblemSnapshot,
    Room,
    Section,
    TimeSlot,
)


def make_section(id, subject_id=None, code=None, year=1, block=1, students=30, lec=3, lab=0, faculty=None, **kw):
    return Section(
        id=id,
        subject_id=subject_id if subject_id is not None else 100 + id,
        subject_code=code or f"SUB{id}",
        year_level=year,
        block_number=block,
        expected_students=students,
        lecture_hours=lec,
        lab_hours=lab,
        faculty_id=faculty,
        **kw,
    )


def make_room(id, capacity=50, room_type="lecture", **kw):
    return Room(id=id, name=f"R{id}", capacity=capacity, room_type=room_type, **kw)


def make_slot(id, day_group="MW", start=(8, 0), **kw):
    # 90-minute slot
    minutes = start[0] * 60 + start[1] + 90
    end = time(minutes // 60, minutes % 60)
    return TimeSlot(id=id, day_group=day_group, start_time=time(*start), end_time=end, **kw)


def make_snapshot(sections, rooms, slots, prefs=(), rules=(), valid_faculty=None, **kw):
    if valid_faculty is None:
        valid_faculty = {s.faculty_id for s in sections if s.faculty_id is not None}
    return ProblemSnapshot(
        sections=tuple(sections),
        rooms=tuple(rooms),
        time_slots=tuple(slots),
        faculty_preferences={p.faculty_id: p for p in prefs},
        room_rules=tuple(rules),
        valid_faculty_ids=frozenset(valid_faculty),
        **kw,
    )


def small_config(**overrides):
    params = dict(population_size=10, generations=10, elite_count=2, seed=7)
    params.update(overrides)
    return SolverConfig(**params)


def gene_at(section_id, room_id, slot, is_lab=False, hours=3):
    return Gene(
        section_id=section_id,
        room_id=room_id,
        time_slot_id=slot.id,
        day_group=slot.day_group,
        days=slot.days,
        is_lab=is_lab,
        session_hours=hours,
    )


def day_off(faculty_id, day, when="wholeday"):
    return FacultyPreference(faculty_id=faculty_id, day_off=day, day_off_time=when)
