# timetable_ga/evaluation.py
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from .config import SolverConfig
from .constraints import (
    capacity_shortfall,
    room_type_mismatch,
    violates_day_off,
    violates_time_period,
)
from .domains import DomainCache
from .model import Chromosome


@dataclass
class EvaluationResult:
    fitness: int
    room_conflicts: int = 0
    faculty_conflicts: int = 0
    cohort_conflicts: int = 0
    block_conflicts: int = 0
    capacity_mismatches: int = 0
    room_type_mismatches: int = 0
    day_off_violations: int = 0
    time_period_violations: int = 0
    invalid_genes: int = 0
    violations: List[str] = field(default_factory=list)

    @property
    def hard_conflicts(self) -> int:
        return (
            self.room_conflicts
            + self.faculty_conflicts
            + self.cohort_conflicts
            + self.block_conflicts
            + self.capacity_mismatches
            + self.room_type_mismatches
        )


def evaluate(chrom: Chromosome, cache: DomainCache, cfg: SolverConfig) -> EvaluationResult:
    """
    Score a chromosome. 0 means no violation at all; every hard conflict and
    violated preference subtracts its weight. Room, faculty and cohort
    overlaps on Friday weigh ``cfg.friday_multiplier`` times more.
    """
    w = cfg.fitness_weights
    res = EvaluationResult(fitness=0)
    fitness = 0

    room_slots: Set[Tuple[int, int, str]] = set()
    faculty_slots: Set[Tuple[int, int, str]] = set()
    cohort_slots: Set[Tuple[int, int, int, str]] = set()
    subject_slots: Dict[Tuple[int, int, str], int] = {}

    for gene in chrom.genes:
        section = cache.sections_by_id.get(gene.section_id)
        room = cache.rooms_by_id.get(gene.room_id)
        slot = cache.slots_by_id.get(gene.time_slot_id)
        if section is None or room is None or slot is None:
            fitness += w["invalid_gene"]
            res.invalid_genes += 1
            res.violations.append(f"Gene {gene.key} refers to unknown data")
            continue

        multiplier = cfg.friday_multiplier if gene.day_group == "FRI" else 1.0
        faculty_id = section.faculty_id
        pref = cache.preference(faculty_id)
        period = cache.slot_periods.get(slot.id)
        slot_id = slot.id

        for day in gene.days:
            room_key = (room.id, slot_id, day)
            if room_key in room_slots:
                fitness += int(w["room_conflict"] * multiplier)
                res.room_conflicts += 1
                res.violations.append(f"Room {room.name} double-booked on {day} slot {slot_id}")
            room_slots.add(room_key)

            cohort_key = (section.year_level, section.block_number, slot_id, day)
            if cohort_key in cohort_slots:
                fitness += int(w["year_level_conflict"] * multiplier)
                res.cohort_conflicts += 1
                res.violations.append(
                    f"Year {section.year_level} block {section.block_number} double-booked on {day} slot {slot_id}"
                )
            cohort_slots.add(cohort_key)

            if faculty_id is not None:
                faculty_key = (faculty_id, slot_id, day)
                if faculty_key in faculty_slots:
                    fitness += int(w["faculty_conflict"] * multiplier)
                    res.faculty_conflicts += 1
                    res.violations.append(f"Faculty {faculty_id} double-booked on {day} slot {slot_id}")
                faculty_slots.add(faculty_key)

                if violates_day_off(pref, day, period):
                    fitness += w["faculty_day_off"]
                    res.day_off_violations += 1
                    res.violations.append(f"Faculty {faculty_id} teaches {section.subject_code} on day off {day}")
                if violates_time_period(pref, period):
                    fitness += w["faculty_time_period"]
                    res.time_period_violations += 1
                    res.violations.append(
                        f"Faculty {faculty_id} teaches {section.subject_code} outside preferred {pref.preferred_period}"
                    )

            # Same base subject, different block, same time.
            subject_key = (section.subject_id, slot_id, day)
            previous = subject_slots.get(subject_key)
            if previous is not None and previous != section.id:
                fitness += w["block_conflict"]
                res.block_conflicts += 1
                res.violations.append(f"{section.subject_code} blocks overlap on {day} slot {slot_id}")
            subject_slots[subject_key] = section.id

        if capacity_shortfall(room.capacity, section.expected_students):
            fitness += w["capacity_mismatch"]
            res.capacity_mismatches += 1
            res.violations.append(
                f"Room {room.name} ({room.capacity}) too small for {section.subject_code} ({section.expected_students})"
            )
        if room_type_mismatch(gene.is_lab, room.room_type):
            fitness += w["room_type_mismatch"]
            res.room_type_mismatches += 1
            res.violations.append(f"Lab of {section.subject_code} placed in lecture room {room.name}")

    res.fitness = fitness
    chrom.fitness = fitness
    return res
