# timetable_ga/initial_population.py
import random
from typing import Dict, List, Optional

from .config import DAY_GROUP_ORDER, PAIRED_DAY_GROUPS
from .constraints import OccupancyView, count_placement_conflicts
from .domains import DomainCache, SessionSpec
from .model import Chromosome, Gene, TimeSlot


def _day_group_rank(cache: DomainCache, load: Dict[str, int]) -> List[str]:
    """Paired groups before single-day ones; within each, least loaded first."""
    order = {g: i for i, g in enumerate(DAY_GROUP_ORDER)}
    paired = [g for g in cache.included_day_groups if g in PAIRED_DAY_GROUPS]
    single = [g for g in cache.included_day_groups if g not in PAIRED_DAY_GROUPS]
    paired.sort(key=lambda g: (load[g], order[g]))
    single.sort(key=lambda g: (load[g], order[g]))
    return paired + single


def _balanced_slots(cache: DomainCache, load: Dict[str, int], rng: random.Random) -> List[TimeSlot]:
    buckets: Dict[str, List[TimeSlot]] = {g: [] for g in DAY_GROUP_ORDER}
    for slot in cache.time_slots:
        if load[slot.day_group] < cache.max_entries_per_day_group[slot.day_group]:
            buckets[slot.day_group].append(slot)

    slots: List[TimeSlot] = []
    for group in _day_group_rank(cache, load):
        rng.shuffle(buckets[group])
        slots.extend(buckets[group])

    # Every group at capacity: fall back to all slots.
    if not slots:
        slots = list(cache.time_slots)
        rng.shuffle(slots)
    return slots


def _make_gene(spec: SessionSpec, room_id: int, slot: TimeSlot) -> Gene:
    return Gene(
        section_id=spec.section_id,
        room_id=room_id,
        time_slot_id=slot.id,
        day_group=slot.day_group,
        days=slot.days,
        is_lab=spec.is_lab,
        session_hours=spec.hours,
    )


def place_gene(view: OccupancyView, gene: Gene, cache: DomainCache, delta: int = 1) -> None:
    section = cache.sections_by_id[gene.section_id]
    view.place(
        gene.room_id,
        gene.time_slot_id,
        gene.days,
        section.faculty_id,
        section.cohort,
        section.subject_id,
        delta=delta,
    )


def find_free_slot_balanced(
    spec: SessionSpec,
    cache: DomainCache,
    view: OccupancyView,
    load: Dict[str, int],
    rng: random.Random,
) -> Gene:
    section = cache.sections_by_id[spec.section_id]
    pref = cache.preference(section.faculty_id)
    preferred = section.preferred_lab_room_id if spec.is_lab else section.preferred_lecture_room_id

    rooms = list(cache.placement_rooms[spec.key])
    if preferred is not None and preferred in rooms:
        rooms.remove(preferred)
        rooms.insert(0, preferred)
    else:
        rng.shuffle(rooms)

    for slot in _balanced_slots(cache, load, rng):
        period = cache.slot_periods[slot.id]
        for room_id in rooms:
            conflicts = count_placement_conflicts(
                view, room_id, slot.id, slot.days, period, section.faculty_id, section.cohort, pref,
                section.subject_id,
            )
            if conflicts == 0:
                gene = _make_gene(spec, room_id, slot)
                place_gene(view, gene, cache)
                return gene

    return find_least_conflicting(spec, cache, view)


def find_least_conflicting(spec: SessionSpec, cache: DomainCache, view: OccupancyView) -> Gene:
    """Minimal-conflict placement when nothing is free. MW/TTH win ties over single-day groups."""
    section = cache.sections_by_id[spec.section_id]
    pref = cache.preference(section.faculty_id)

    best: Optional[Gene] = None
    best_conflicts = None
    best_single_day = True
    for slot in cache.paired_slots + cache.single_day_slots:
        single_day = slot.day_group not in PAIRED_DAY_GROUPS
        period = cache.slot_periods[slot.id]
        for room_id in cache.eligible_rooms[spec.key]:
            conflicts = count_placement_conflicts(
                view, room_id, slot.id, slot.days, period, section.faculty_id, section.cohort, pref,
                section.subject_id,
            )
            better = (
                best_conflicts is None
                or conflicts < best_conflicts
                or (conflicts == best_conflicts and not single_day and best_single_day)
            )
            if better:
                best = _make_gene(spec, room_id, slot)
                best_conflicts = conflicts
                best_single_day = single_day

    place_gene(view, best, cache)
    return best


def build_greedy_chromosome(cache: DomainCache, rng: random.Random) -> Chromosome:
    """
    Place sections one by one (random order) into the first conflict-free
    room/slot, filling the least loaded day-group first.
    """
    view = OccupancyView()
    load = {g: 0 for g in DAY_GROUP_ORDER}

    section_ids = [s.id for s in cache.sections]
    rng.shuffle(section_ids)
    specs_by_section: Dict[int, List[SessionSpec]] = {}
    for spec in cache.sessions:
        specs_by_section.setdefault(spec.section_id, []).append(spec)

    genes: List[Gene] = []
    for section_id in section_ids:
        for spec in specs_by_section.get(section_id, []):
            gene = find_free_slot_balanced(spec, cache, view, load, rng)
            genes.append(gene)
            load[gene.day_group] += 1

    # Positional crossover lines genes up by session.
    genes.sort(key=lambda g: cache.session_order[g.key])
    return Chromosome(genes=genes)


def build_initial_population(cache: DomainCache, pop_size: int, rng: random.Random) -> List[Chromosome]:
    return [build_greedy_chromosome(cache, rng) for _ in range(pop_size)]
