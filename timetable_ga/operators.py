import random
from dataclasses import replace
from typing import List, Optional, Sequence, Set, Tuple

from .config import PAIRED_DAY_GROUPS, SolverConfig
from .constraints import (
    OccupancyView,
    capacity_shortfall,
    count_placement_conflicts,
    room_type_mismatch,
)
from .domains import DomainCache
from .initial_population import place_gene
from .model import Chromosome, Gene, GeneKey, TimeSlot

# Sentinel score for genes whose section is not in the cache.
UNKNOWN_SECTION_CONFLICTS = 99


def build_view(genes: Sequence[Gene], cache: DomainCache) -> OccupancyView:
    view = OccupancyView()
    for g in genes:
        if g.section_id in cache.sections_by_id:
            place_gene(view, g, cache)
    return view


def gene_conflicts(gene: Gene, view: OccupancyView, cache: DomainCache, occupied_above: int = 0) -> int:
    """Overlaps, preference violations and room-fit problems of one gene."""
    section = cache.sections_by_id.get(gene.section_id)
    if section is None:
        return UNKNOWN_SECTION_CONFLICTS
    conflicts = count_placement_conflicts(
        view,
        gene.room_id,
        gene.time_slot_id,
        gene.days,
        cache.slot_periods.get(gene.time_slot_id),
        section.faculty_id,
        section.cohort,
        cache.preference(section.faculty_id),
        section.subject_id,
        occupied_above=occupied_above,
    )
    room = cache.rooms_by_id.get(gene.room_id)
    if room is None:
        return conflicts + 1
    if capacity_shortfall(room.capacity, section.expected_students):
        conflicts += 1
    if room_type_mismatch(gene.is_lab, room.room_type):
        conflicts += 1
    return conflicts


def gene_in_conflict(gene: Gene, view: OccupancyView, cache: DomainCache) -> bool:
    # The gene itself is already counted in the view.
    return gene_conflicts(gene, view, cache, occupied_above=1) > 0


def tournament_select(
    population: List[Chromosome],
    scores: Sequence[int],
    size: int,
    rng: random.Random,
) -> Chromosome:
    contenders = rng.sample(range(len(population)), min(size, len(population)))
    best = max(contenders, key=lambda i: scores[i])
    return population[best]


def uniform_crossover(p1: Chromosome, p2: Chromosome, rng: random.Random) -> Tuple[Chromosome, Chromosome]:
    """
    Per-position coin flip between the parents. A child never takes two
    genes for the same (section, session kind); whatever is still missing
    afterwards is copied from the other parent.
    """
    g1, g2 = p1.genes, p2.genes
    length = max(len(g1), len(g2))
    if length < 2:
        return p1.copy(), p2.copy()

    child1: List[Gene] = []
    child2: List[Gene] = []
    used1: Set[GeneKey] = set()
    used2: Set[GeneKey] = set()

    def take(child, used, gene):
        if gene is not None and gene.key not in used:
            child.append(gene)
            used.add(gene.key)

    for i in range(length):
        a = g1[i] if i < len(g1) else None
        b = g2[i] if i < len(g2) else None
        if rng.random() < 0.5:
            take(child1, used1, a)
            take(child2, used2, b)
        else:
            take(child1, used1, b)
            take(child2, used2, a)

    for gene in g2:
        take(child1, used1, gene)
    for gene in g1:
        take(child2, used2, gene)

    return Chromosome(genes=child1), Chromosome(genes=child2)


def _random_slot(cache: DomainCache, cfg: SolverConfig, rng: random.Random) -> TimeSlot:
    if rng.random() < cfg.non_friday_bias and cache.paired_slots:
        return rng.choice(cache.paired_slots)
    if cache.single_day_slots:
        return rng.choice(cache.single_day_slots)
    return rng.choice(cache.time_slots)


def mutate_gene(
    gene: Gene,
    view: OccupancyView,
    cache: DomainCache,
    cfg: SolverConfig,
    attempts: int,
    rng: random.Random,
) -> Gene:
    """
    Try random room/slot moves and keep the one with the fewest conflicts.
    ``view`` must contain ``gene``; it contains the returned gene afterwards.
    """
    if gene.section_id not in cache.sections_by_id:
        return gene
    place_gene(view, gene, cache, delta=-1)

    rooms = cache.eligible_rooms.get(gene.key) or cache.type_room_ids(gene.is_lab)
    best: Optional[Gene] = None
    best_conflicts = None
    best_single_day = True

    for _ in range(attempts):
        candidate = gene
        kind = rng.randint(1, 10)
        # 1-4 room only, 5-8 slot only, 9-10 both
        if kind <= 4 or kind > 8:
            candidate = replace(candidate, room_id=rng.choice(rooms))
        if kind > 4:
            slot = _random_slot(cache, cfg, rng)
            candidate = replace(
                candidate, time_slot_id=slot.id, day_group=slot.day_group, days=slot.days
            )

        conflicts = gene_conflicts(candidate, view, cache)
        if conflicts == 0:
            place_gene(view, candidate, cache)
            return candidate

        single_day = candidate.day_group not in PAIRED_DAY_GROUPS
        if (
            best_conflicts is None
            or conflicts < best_conflicts
            or (conflicts == best_conflicts and not single_day and best_single_day)
        ):
            best, best_conflicts, best_single_day = candidate, conflicts, single_day

    if best is None:
        best = gene
    place_gene(view, best, cache)
    return best


def mutate(chrom: Chromosome, cache: DomainCache, cfg: SolverConfig, rate: float, rng: random.Random) -> Chromosome:
    """Conflicting genes mutate at a boosted rate, the rest at ``rate``."""
    genes = list(chrom.genes)
    view = build_view(genes, cache)

    conflicting, normal = [], []
    for i, g in enumerate(genes):
        (conflicting if gene_in_conflict(g, view, cache) else normal).append(i)

    conflict_rate = min(cfg.conflict_mutation_cap, rate * cfg.conflict_mutation_multiplier)
    for i in conflicting:
        if rng.random() < conflict_rate:
            genes[i] = mutate_gene(genes[i], view, cache, cfg, cfg.conflict_mutation_attempts, rng)
    for i in normal:
        if rng.random() < rate:
            genes[i] = mutate_gene(genes[i], view, cache, cfg, cfg.normal_mutation_attempts, rng)

    return Chromosome(genes=genes)


def find_best_alternative(gene: Gene, view: OccupancyView, cache: DomainCache) -> Gene:
    """Scan every slot/room for the least conflicting spot. ``view`` must not contain ``gene``."""
    if gene.section_id not in cache.sections_by_id:
        return gene
    rooms = cache.eligible_rooms.get(gene.key) or cache.type_room_ids(gene.is_lab)

    best = gene
    best_conflicts = None
    best_single_day = True
    for slot in cache.paired_slots + cache.single_day_slots:
        single_day = slot.day_group not in PAIRED_DAY_GROUPS
        for room_id in rooms:
            candidate = replace(
                gene, room_id=room_id, time_slot_id=slot.id, day_group=slot.day_group, days=slot.days
            )
            conflicts = gene_conflicts(candidate, view, cache)
            if conflicts == 0:
                return candidate
            if (
                best_conflicts is None
                or conflicts < best_conflicts
                or (conflicts == best_conflicts and not single_day and best_single_day)
            ):
                best, best_conflicts, best_single_day = candidate, conflicts, single_day
    return best


def repair_chromosome(chrom: Chromosome, cache: DomainCache, cfg: SolverConfig) -> Tuple[Chromosome, int]:
    """
    Greedy repair: move every conflicting gene to its best alternative until
    nothing conflicts or ``cfg.repair_iterations`` passes are spent.
    Returns the repaired chromosome and the number of passes made.
    """
    genes = list(chrom.genes)
    view = build_view(genes, cache)

    passes = 0
    for _ in range(cfg.repair_iterations):
        passes += 1
        changed = False
        for i, gene in enumerate(genes):
            if gene.section_id not in cache.sections_by_id:
                continue
            if not gene_in_conflict(gene, view, cache):
                continue
            changed = True
            place_gene(view, gene, cache, delta=-1)
            genes[i] = find_best_alternative(gene, view, cache)
            place_gene(view, genes[i], cache)
        if not changed:
            break

    return Chromosome(genes=genes), passes
