# timetable_ga/model.py
from dataclasses import dataclass, field
from datetime import time
from typing import Dict, FrozenSet, List, Optional, Tuple

from .config import DAY_GROUP_DAYS

ROOM_TYPES = ("lecture", "laboratory", "hybrid")
DAY_OFF_TIMES = ("wholeday", "morning", "afternoon")
TIME_PERIODS = ("morning", "afternoon")

GeneKey = Tuple[int, bool]  # (section id, is lab)
Cohort = Tuple[int, int]    # (year level, block number)


@dataclass(frozen=True)
class Section:
    id: int
    subject_id: int
    subject_code: str
    year_level: int
    block_number: int = 1
    expected_students: int = 40
    lecture_hours: int = 0
    lab_hours: int = 0
    faculty_id: Optional[int] = None
    preferred_lecture_room_id: Optional[int] = None
    preferred_lab_room_id: Optional[int] = None
    category: Optional[str] = None
    is_active: bool = True

    @property
    def cohort(self) -> Cohort:
        return (self.year_level, self.block_number)


@dataclass(frozen=True)
class Room:
    id: int
    name: str
    capacity: int
    room_type: str = "lecture"
    priority: int = 0
    is_active: bool = True
    is_available: bool = True

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError(f"Room {self.name} must hold at least one student")
        if self.room_type not in ROOM_TYPES:
            raise ValueError(f"Unknown room type {self.room_type!r} for room {self.name}")


@dataclass(frozen=True)
class TimeSlot:
    id: int
    day_group: str
    start_time: time
    end_time: Optional[time] = None
    priority: int = 0
    name: str = ""
    is_active: bool = True

    def __post_init__(self):
        if self.day_group not in DAY_GROUP_DAYS:
            raise ValueError(f"Unknown day group {self.day_group!r} for slot {self.id}")

    @property
    def days(self) -> Tuple[str, ...]:
        return DAY_GROUP_DAYS[self.day_group]


@dataclass(frozen=True)
class FacultyPreference:
    faculty_id: int
    day_off: Optional[str] = None
    day_off_time: str = "wholeday"
    preferred_period: Optional[str] = None

    def __post_init__(self):
        day_off = self.day_off.strip().lower() if self.day_off else None
        off_time = (self.day_off_time or "").strip().lower().replace(" ", "")
        if off_time not in DAY_OFF_TIMES:
            off_time = "wholeday"
        period = self.preferred_period.strip().lower() if self.preferred_period else None
        if period not in TIME_PERIODS:
            period = None
        object.__setattr__(self, "day_off", day_off or None)
        object.__setattr__(self, "day_off_time", off_time)
        object.__setattr__(self, "preferred_period", period)


@dataclass(frozen=True)
class RoomAssignmentRule:
    category: str
    allowed_room_ids: Tuple[int, ...]
    priority_room_ids: Tuple[int, ...] = ()
    faculty_specialization: Optional[str] = None


@dataclass(frozen=True)
class Gene:
    # One gene = one session (lecture or lab) of one section.
    section_id: int
    room_id: int
    time_slot_id: int
    day_group: str
    days: Tuple[str, ...]
    is_lab: bool
    session_hours: int

    @property
    def key(self) -> GeneKey:
        return (self.section_id, self.is_lab)


@dataclass
class Chromosome:
    genes: List[Gene]
    fitness: Optional[int] = None

    def copy(self) -> "Chromosome":
        return Chromosome(genes=list(self.genes), fitness=self.fitness)


@dataclass(frozen=True)
class ProblemSnapshot:
    """Read-only input for one solve, as supplied by the data collaborators."""
    sections: Tuple[Section, ...]
    rooms: Tuple[Room, ...]
    time_slots: Tuple[TimeSlot, ...]
    faculty_preferences: Dict[int, FacultyPreference] = field(default_factory=dict)
    room_rules: Tuple[RoomAssignmentRule, ...] = ()
    available_room_ids: Optional[FrozenSet[int]] = None
    valid_faculty_ids: FrozenSet[int] = frozenset()
    faculty_names: Dict[int, str] = field(default_factory=dict)


@dataclass
class ScheduleEntry:
    id: int
    schedule_id: str
    section_id: int
    room_id: Optional[int]
    time_slot_id: int
    faculty_id: Optional[int]
    day: str
    is_lab: bool
    custom_start_time: Optional[time] = None
    custom_end_time: Optional[time] = None
    session_group_id: str = ""
    slots_span: int = 1


@dataclass
class Schedule:
    id: str
    name: str
    fitness_score: int
    generation: int
    metadata: dict
    status: str = "draft"
    created_by: Optional[int] = None
    entries: List[ScheduleEntry] = field(default_factory=list)
