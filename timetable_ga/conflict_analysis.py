"""
Conflict reasons for schedule entries.

Two entry points:

* ``analyze_single`` checks one proposed placement against persisted
  entries (manual moves, change requests). A non-empty result is a rejection.
* ``analyze_schedule`` reviews a whole in-memory schedule and maps every
  conflicting entry id to its reasons.

The capacity and room-type rules come from ``constraints`` so the GA fitness
and this module judge entries the same way.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Protocol

from .constraints import capacity_shortfall, room_type_mismatch
from .model import Room, ScheduleEntry, Section

logger = logging.getLogger(__name__)

UNKNOWN_SUBJECT = "Unknown"


@dataclass(frozen=True)
class LoadedEntry:
    """A schedule entry with its section and room already resolved."""
    entry: ScheduleEntry
    section: Optional[Section] = None
    room: Optional[Room] = None

    @property
    def subject_code(self) -> str:
        return self.section.subject_code if self.section else UNKNOWN_SUBJECT


class EntryStore(Protocol):
    def entries_at(self, schedule_id: str, day: str, time_slot_id: int) -> Iterable[ScheduleEntry]:
        ...

    def section(self, section_id: int) -> Optional[Section]:
        ...

    def faculty_name(self, faculty_id: int) -> Optional[str]:
        ...


def load_entries(
    entries: Iterable[ScheduleEntry],
    sections_by_id: Mapping[int, Section],
    rooms_by_id: Mapping[int, Room],
) -> List[LoadedEntry]:
    return [
        LoadedEntry(
            entry=e,
            section=sections_by_id.get(e.section_id),
            room=rooms_by_id.get(e.room_id) if e.room_id is not None else None,
        )
        for e in entries
    ]


def _subject_code(store: EntryStore, entry: ScheduleEntry) -> str:
    section = store.section(entry.section_id)
    return section.subject_code if section else UNKNOWN_SUBJECT


def analyze_single(
    store: EntryStore,
    schedule_id: str,
    day: str,
    time_slot_id: int,
    room_id: Optional[int],
    excluding_entry_id: Optional[int],
    faculty_id: Optional[int],
    section_id: Optional[int] = None,
) -> List[str]:
    """
    Reasons why the placement (day, slot, room, faculty, section) clashes
    with what is already stored for the schedule.
    """
    day = day.lower()
    others = [
        e for e in store.entries_at(schedule_id, day, time_slot_id)
        if excluding_entry_id is None or e.id != excluding_entry_id
    ]
    reasons: List[str] = []

    if room_id is not None:
        occupant = next((e for e in others if e.room_id == room_id), None)
        if occupant is not None:
            teacher = store.faculty_name(occupant.faculty_id) if occupant.faculty_id else None
            reasons.append(f"Room is occupied by {_subject_code(store, occupant)} ({teacher or 'TBA'})")

    if faculty_id is not None:
        busy = next((e for e in others if e.faculty_id == faculty_id), None)
        if busy is not None:
            reasons.append(f"Faculty is already teaching {_subject_code(store, busy)} at this time")

    if section_id is not None:
        section = store.section(section_id)
        if section is not None:
            for e in others:
                other = store.section(e.section_id)
                if other is not None and other.cohort == section.cohort:
                    reasons.append(f"Students (Block {section.block_number}) have {other.subject_code}")
                    break

    return reasons


def _add(conflicts: Dict[int, List[str]], entry_id: int, reasons: Iterable[str]) -> None:
    current = conflicts.setdefault(entry_id, [])
    for reason in reasons:
        if reason not in current:
            current.append(reason)


def _flag_shared(conflicts: Dict[int, List[str]], group: List[LoadedEntry], prefix: str) -> None:
    if len(group) < 2:
        return
    for item in group:
        _add(
            conflicts,
            item.entry.id,
            [f"{prefix} {o.subject_code}" for o in group if o.entry.id != item.entry.id],
        )


def analyze_schedule(entries: Iterable[LoadedEntry]) -> Dict[int, List[str]]:
    """Map entry id -> distinct conflict reasons for every entry that has any."""
    entries = list(entries)
    conflicts: Dict[int, List[str]] = {}

    by_slot: Dict[tuple, List[LoadedEntry]] = defaultdict(list)
    for item in entries:
        by_slot[(item.entry.day.lower(), item.entry.time_slot_id)].append(item)

    for slot_entries in by_slot.values():
        by_room: Dict[int, List[LoadedEntry]] = defaultdict(list)
        by_faculty: Dict[int, List[LoadedEntry]] = defaultdict(list)
        by_cohort: Dict[tuple, List[LoadedEntry]] = defaultdict(list)
        for item in slot_entries:
            if item.entry.room_id is not None:
                by_room[item.entry.room_id].append(item)
            if item.entry.faculty_id is not None:
                by_faculty[item.entry.faculty_id].append(item)
            if item.section is not None:
                by_cohort[item.section.cohort].append(item)

        for group in by_room.values():
            _flag_shared(conflicts, group, "Room shared with")
        for group in by_faculty.values():
            _flag_shared(conflicts, group, "Faculty also teaching")
        for group in by_cohort.values():
            _flag_shared(conflicts, group, "Block students also have")

    for item in entries:
        if item.room is None or item.section is None:
            continue
        if capacity_shortfall(item.room.capacity, item.section.expected_students):
            _add(
                conflicts,
                item.entry.id,
                [f"Room capacity ({item.room.capacity}) too small for {item.section.expected_students} students"],
            )
        if room_type_mismatch(item.entry.is_lab, item.room.room_type):
            _add(conflicts, item.entry.id, ["Lab subject assigned to Lecture room"])

    if conflicts:
        logger.debug("%d of %d entries have conflicts", len(conflicts), len(entries))
    return conflicts
