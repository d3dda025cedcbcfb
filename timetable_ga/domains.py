# timetable_ga/domains.py
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .config import SolverConfig, DAY_GROUP_ORDER, PAIRED_DAY_GROUPS
from .constraints import time_period
from .exceptions import SolverInputError
from .model import (
    Cohort,
    FacultyPreference,
    GeneKey,
    ProblemSnapshot,
    Room,
    RoomAssignmentRule,
    Section,
    TimeSlot,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSpec:
    section_id: int
    is_lab: bool
    hours: int

    @property
    def key(self) -> GeneKey:
        return (self.section_id, self.is_lab)


@dataclass(frozen=True)
class DomainCache:
    """
    Flat lookups for one solve. Everything the search needs is resolved
    here so the inner loops only do dict/tuple reads.
    """
    sections: Tuple[Section, ...]
    sections_by_id: Dict[int, Section]
    rooms: Tuple[Room, ...]
    rooms_by_id: Dict[int, Room]
    room_ids: Tuple[int, ...]
    lecture_room_ids: Tuple[int, ...]
    lab_room_ids: Tuple[int, ...]
    time_slots: Tuple[TimeSlot, ...]
    slots_by_id: Dict[int, TimeSlot]
    slot_periods: Dict[int, Optional[str]]
    paired_slots: Tuple[TimeSlot, ...]
    single_day_slots: Tuple[TimeSlot, ...]
    preferences: Dict[int, FacultyPreference]
    room_rules: Dict[str, RoomAssignmentRule]
    sessions: Tuple[SessionSpec, ...]
    session_order: Dict[GeneKey, int]
    eligible_rooms: Dict[GeneKey, Tuple[int, ...]]
    placement_rooms: Dict[GeneKey, Tuple[int, ...]]
    max_entries_per_day_group: Dict[str, int]
    included_day_groups: Tuple[str, ...]

    def cohort(self, section_id: int) -> Cohort:
        return self.sections_by_id[section_id].cohort

    def preference(self, faculty_id: Optional[int]) -> Optional[FacultyPreference]:
        if faculty_id is None:
            return None
        return self.preferences.get(faculty_id)

    def type_room_ids(self, is_lab: bool) -> Tuple[int, ...]:
        ids = self.lab_room_ids if is_lab else self.lecture_room_ids
        return ids or self.room_ids


def select_rooms(snapshot: ProblemSnapshot) -> List[Room]:
    """Rooms of the configuration if it names any, else every active room."""
    if snapshot.available_room_ids:
        rooms = [r for r in snapshot.rooms if r.id in snapshot.available_room_ids]
    else:
        rooms = list(snapshot.rooms)
    rooms = [r for r in rooms if r.is_active and r.is_available]
    return sorted(rooms, key=lambda r: r.priority)


def select_time_slots(snapshot: ProblemSnapshot, day_groups) -> List[TimeSlot]:
    slots = [t for t in snapshot.time_slots if t.is_active and t.day_group in day_groups]
    return sorted(slots, key=lambda t: t.priority)


def valid_room_ids(
    section: Section,
    is_lab: bool,
    type_rooms: Tuple[int, ...],
    rules: Dict[str, RoomAssignmentRule],
) -> Tuple[int, ...]:
    """Type-filtered rooms narrowed by the section's category rule, priority rooms first."""
    rule = rules.get(section.category) if section.category else None
    if rule is None:
        return type_rooms
    allowed = set(rule.allowed_room_ids)
    filtered = [rid for rid in type_rooms if rid in allowed]
    if not filtered:
        return type_rooms
    priority = set(rule.priority_room_ids)
    first = [rid for rid in filtered if rid in priority]
    rest = [rid for rid in filtered if rid not in priority]
    return tuple(first + rest)


def _max_entries_per_day_group(slots: List[TimeSlot], n_rooms: int, cfg: SolverConfig) -> Dict[str, int]:
    counts = {g: 0 for g in DAY_GROUP_ORDER}
    for slot in slots:
        counts[slot.day_group] += 1
    limits = {}
    for group, n_slots in counts.items():
        if group in PAIRED_DAY_GROUPS:
            limits[group] = max(
                int(math.floor(n_slots * n_rooms * cfg.paired_group_load)),
                cfg.min_paired_group_entries,
            )
        else:
            limits[group] = max(
                int(math.floor(n_slots * n_rooms * cfg.single_day_group_load)),
                cfg.min_single_day_group_entries,
            )
    return limits


def build_domain_cache(snapshot: ProblemSnapshot, cfg: SolverConfig) -> DomainCache:
    if not cfg.included_day_groups:
        raise SolverInputError("No day groups selected")

    sections = [s for s in snapshot.sections if s.is_active]
    if not sections:
        raise SolverInputError("No active sections to schedule")

    rooms = select_rooms(snapshot)
    if not rooms:
        raise SolverInputError("No active and available rooms")

    slots = select_time_slots(snapshot, cfg.included_day_groups)
    if not slots:
        raise SolverInputError(
            f"No active time slots for day groups {', '.join(cfg.included_day_groups)}"
        )

    sessions: List[SessionSpec] = []
    for s in sections:
        if s.lecture_hours > 0:
            sessions.append(SessionSpec(s.id, False, s.lecture_hours))
        if s.lab_hours > 0:
            sessions.append(SessionSpec(s.id, True, s.lab_hours))
    if not sessions:
        raise SolverInputError("No section has lecture or lab hours")

    rooms_by_id = {r.id: r for r in rooms}
    room_ids = tuple(r.id for r in rooms)
    lecture_ids = tuple(r.id for r in rooms if r.room_type == "lecture")
    lab_ids = tuple(r.id for r in rooms if r.room_type in ("laboratory", "hybrid"))
    rules = {r.category: r for r in snapshot.room_rules if r.category and r.allowed_room_ids}

    sections_by_id = {s.id: s for s in sections}
    eligible: Dict[GeneKey, Tuple[int, ...]] = {}
    placement: Dict[GeneKey, Tuple[int, ...]] = {}
    for spec in sessions:
        section = sections_by_id[spec.section_id]
        type_rooms = (lab_ids if spec.is_lab else lecture_ids) or room_ids
        candidates = valid_room_ids(section, spec.is_lab, type_rooms, rules)
        eligible[spec.key] = candidates
        big_enough = tuple(
            rid for rid in candidates if rooms_by_id[rid].capacity >= section.expected_students
        )
        placement[spec.key] = big_enough or candidates

    cache = DomainCache(
        sections=tuple(sections),
        sections_by_id=sections_by_id,
        rooms=tuple(rooms),
        rooms_by_id=rooms_by_id,
        room_ids=room_ids,
        lecture_room_ids=lecture_ids,
        lab_room_ids=lab_ids,
        time_slots=tuple(slots),
        slots_by_id={t.id: t for t in slots},
        slot_periods={t.id: time_period(t.start_time) for t in slots},
        paired_slots=tuple(t for t in slots if t.day_group in PAIRED_DAY_GROUPS),
        single_day_slots=tuple(t for t in slots if t.day_group not in PAIRED_DAY_GROUPS),
        preferences=dict(snapshot.faculty_preferences),
        room_rules=rules,
        sessions=tuple(sessions),
        session_order={spec.key: i for i, spec in enumerate(sessions)},
        eligible_rooms=eligible,
        placement_rooms=placement,
        max_entries_per_day_group=_max_entries_per_day_group(slots, len(rooms), cfg),
        included_day_groups=tuple(cfg.included_day_groups),
    )
    logger.info(
        "Domain cache: %d sections, %d sessions, %d rooms, %d time slots",
        len(sections), len(sessions), len(rooms), len(slots),
    )
    return cache
