"""
Turns a finished chromosome into a Schedule with one entry per
(gene, calendar day).

Session times use fixed standard lengths, not the configured subject hours:

* MW/TTH lecture: 60 minutes each day, from the slot start.
* MW/TTH lab: the slot's own times (no override).
* FRI/SAT/SUN lecture: 120 minutes, lab: 180 minutes, continuous. The number
  of slots spanned assumes 90-minute slots separated by 5-minute breaks.
"""
import logging
import math
import uuid
from datetime import date, datetime, time, timedelta
from typing import Collection, List, Optional, Set, Tuple

from .config import (
    PAIRED_DAY_GROUPS,
    PAIRED_LECTURE_MINUTES,
    SINGLE_DAY_LAB_MINUTES,
    SINGLE_DAY_LECTURE_MINUTES,
    SLOT_BREAK_MINUTES,
    SLOT_MINUTES,
)
from .domains import DomainCache
from .exceptions import MaterializationError
from .model import Chromosome, Gene, Schedule, ScheduleEntry, TimeSlot

logger = logging.getLogger(__name__)


def _add_minutes(start: time, minutes: int) -> time:
    return (datetime.combine(date(2000, 1, 1), start) + timedelta(minutes=minutes)).time()


def slots_spanned(minutes: int) -> int:
    if minutes <= SLOT_MINUTES:
        return 1
    return 1 + int(math.ceil((minutes - SLOT_MINUTES) / (SLOT_MINUTES + SLOT_BREAK_MINUTES)))


def custom_time(slot: TimeSlot, day_group: str, is_lab: bool) -> Tuple[Optional[time], Optional[time], int]:
    """(start, end, slots_span) for a session; (None, None, 1) keeps the slot defaults."""
    if day_group in PAIRED_DAY_GROUPS:
        if is_lab:
            return None, None, 1
        return slot.start_time, _add_minutes(slot.start_time, PAIRED_LECTURE_MINUTES), 1

    minutes = SINGLE_DAY_LAB_MINUTES if is_lab else SINGLE_DAY_LECTURE_MINUTES
    return slot.start_time, _add_minutes(slot.start_time, minutes), slots_spanned(minutes)


def deduplicate(genes: List[Gene]) -> List[Gene]:
    """Keep the first gene per (section, session kind)."""
    seen = set()
    unique = []
    for gene in genes:
        if gene.key in seen:
            continue
        seen.add(gene.key)
        unique.append(gene)
    return unique


def materialize(
    chrom: Chromosome,
    cache: DomainCache,
    valid_faculty_ids: Collection[int],
    fitness: int,
    generations: int,
    metadata: Optional[dict] = None,
    created_by: Optional[int] = None,
    name: Optional[str] = None,
    schedule_id: Optional[str] = None,
) -> Schedule:
    """
    Build the Schedule aggregate. Conflicts never fail the call: a repeated
    (room, slot, day) gets a null room and an unassigned faculty becomes TBA.
    Missing section, room or slot data raises MaterializationError.
    """
    schedule_id = schedule_id or uuid.uuid4().hex
    genes = deduplicate(chrom.genes)
    if len(genes) != len(chrom.genes):
        logger.warning("Dropped %d duplicate genes before materializing", len(chrom.genes) - len(genes))

    entries: List[ScheduleEntry] = []
    occupied: Set[Tuple[int, int, str]] = set()
    null_rooms = 0
    tba = 0

    for gene in genes:
        section = cache.sections_by_id.get(gene.section_id)
        if section is None:
            raise MaterializationError(f"Section {gene.section_id} is not in the solve cache")
        slot = cache.slots_by_id.get(gene.time_slot_id)
        if slot is None:
            raise MaterializationError(f"Time slot {gene.time_slot_id} is not in the solve cache")
        if gene.room_id not in cache.rooms_by_id:
            raise MaterializationError(f"Room {gene.room_id} is not in the solve cache")

        faculty_id = section.faculty_id if section.faculty_id in valid_faculty_ids else None
        if faculty_id is None:
            tba += 1

        start, end, span = custom_time(slot, gene.day_group, gene.is_lab)
        session_group_id = str(uuid.uuid4())

        for day in gene.days:
            room_id: Optional[int] = gene.room_id
            key = (gene.room_id, gene.time_slot_id, day)
            if key in occupied:
                room_id = None
                null_rooms += 1
            else:
                occupied.add(key)

            entries.append(
                ScheduleEntry(
                    id=len(entries) + 1,
                    schedule_id=schedule_id,
                    section_id=gene.section_id,
                    room_id=room_id,
                    time_slot_id=gene.time_slot_id,
                    faculty_id=faculty_id,
                    day=day,
                    is_lab=gene.is_lab,
                    custom_start_time=start,
                    custom_end_time=end,
                    session_group_id=session_group_id,
                    slots_span=span,
                )
            )

    if null_rooms:
        logger.warning("%d entries lost their room to a (room, slot, day) collision", null_rooms)
    if tba:
        logger.warning("%d sessions have no valid faculty and are TBA", tba)
    logger.info("Materialized %d entries from %d genes", len(entries), len(genes))

    return Schedule(
        id=schedule_id,
        name=name or f"Schedule - {datetime.now():%Y-%m-%d %H:%M}",
        fitness_score=fitness,
        generation=generations,
        metadata=dict(metadata or {}),
        created_by=created_by,
        entries=entries,
    )
