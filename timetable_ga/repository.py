# timetable_ga/repository.py
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .conflict_analysis import LoadedEntry, load_entries
from .model import Room, Schedule, ScheduleEntry, Section


class InMemoryScheduleRepository:
    """
    Minimal storage collaborator: keeps saved schedules and answers the
    lookups the conflict analyzer needs. Callers serialize check-then-save
    per schedule.
    """

    def __init__(
        self,
        sections: Iterable[Section],
        rooms: Iterable[Room],
        faculty_names: Optional[Mapping[int, str]] = None,
    ):
        self.sections: Dict[int, Section] = {s.id: s for s in sections}
        self.rooms: Dict[int, Room] = {r.id: r for r in rooms}
        self.faculty_names: Dict[int, str] = dict(faculty_names or {})
        self.schedules: Dict[str, Schedule] = {}
        self._by_slot: Dict[Tuple[str, str, int], List[ScheduleEntry]] = defaultdict(list)

    def save(self, schedule: Schedule) -> Schedule:
        if schedule.id in self.schedules:
            raise ValueError(f"Schedule {schedule.id} is already stored")
        self.schedules[schedule.id] = schedule
        for entry in schedule.entries:
            self._by_slot[(schedule.id, entry.day.lower(), entry.time_slot_id)].append(entry)
        return schedule

    def entries_at(self, schedule_id: str, day: str, time_slot_id: int) -> List[ScheduleEntry]:
        return list(self._by_slot.get((schedule_id, day.lower(), time_slot_id), []))

    def section(self, section_id: int) -> Optional[Section]:
        return self.sections.get(section_id)

    def faculty_name(self, faculty_id: int) -> Optional[str]:
        return self.faculty_names.get(faculty_id)

    def loaded_entries(self, schedule_id: str) -> List[LoadedEntry]:
        return load_entries(self.schedules[schedule_id].entries, self.sections, self.rooms)
