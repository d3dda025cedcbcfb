"""
High level entry point: snapshot in, materialized Schedule out.

Run it from a background worker; the solve is CPU bound and single threaded.
"""
import logging
from typing import Callable, Optional, Tuple

from .config import SolverConfig
from .domains import build_domain_cache
from .exceptions import SolveCancelled
from .ga import GeneticSolver, ProgressSink, SolveResult, SolverState
from .materializer import materialize
from .model import ProblemSnapshot, Schedule

logger = logging.getLogger(__name__)


def generate_schedule(
    snapshot: ProblemSnapshot,
    cfg: Optional[SolverConfig] = None,
    progress: Optional[ProgressSink] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    created_by: Optional[int] = None,
) -> Tuple[Schedule, SolveResult]:
    cfg = cfg or SolverConfig()
    cache = build_domain_cache(snapshot, cfg)

    result = GeneticSolver(cache, cfg, progress=progress).solve(should_stop=should_stop)
    if result.termination is SolverState.CANCELLED:
        raise SolveCancelled(f"Solve cancelled after {result.generations} generations")

    metadata = cfg.parameters()
    metadata["mutation_rate"] = result.history[-1]["mutation_rate"] if result.history else cfg.mutation_rate
    metadata["termination"] = result.termination.value
    metadata["repaired"] = result.repaired
    metadata["generation_stats"] = result.history[-cfg.stats_kept:]

    schedule = materialize(
        result.best,
        cache,
        snapshot.valid_faculty_ids,
        fitness=result.fitness,
        generations=result.generations,
        metadata=metadata,
        created_by=created_by,
    )
    logger.info("Schedule %s: fitness=%d, %d entries", schedule.id, schedule.fitness_score, len(schedule.entries))
    return schedule, result
