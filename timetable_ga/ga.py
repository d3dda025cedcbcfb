import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np

from .config import SolverConfig
from .domains import DomainCache
from .evaluation import evaluate
from .initial_population import build_greedy_chromosome, build_initial_population
from .model import Chromosome
from .operators import mutate, repair_chromosome, tournament_select, uniform_crossover

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, int, int], None]


class SolverState(str, Enum):
    INITIALIZING = "initializing"
    EVOLVING = "evolving"
    PERFECT_SCORE = "perfect_score"
    TARGET_REACHED = "target_reached"
    CONVERGED = "converged"
    BUDGET_EXHAUSTED = "budget_exhausted"
    CANCELLED = "cancelled"
    REPAIRING = "repairing"
    DONE = "done"


@dataclass
class SolveResult:
    best: Chromosome
    fitness: int
    generations: int
    termination: SolverState
    repaired: bool = False
    history: List[Dict] = field(default_factory=list)


class GeneticSolver:
    """
    One solve over one cache snapshot. Build a new solver for every run;
    nothing is shared between instances.
    """

    def __init__(
        self,
        cache: DomainCache,
        cfg: SolverConfig,
        progress: Optional[ProgressSink] = None,
        rng: Optional[random.Random] = None,
    ):
        self.cache = cache
        self.cfg = cfg
        self.progress = progress
        self.rng = rng or random.Random(cfg.seed)
        self.state = SolverState.INITIALIZING
        self.mutation_rate = cfg.mutation_rate
        self.stagnation = 0
        self.history: List[Dict] = []

    def _score(self, population: List[Chromosome]) -> np.ndarray:
        return np.array([evaluate(ind, self.cache, self.cfg).fitness for ind in population], dtype=np.int64)

    def _report(self, generation: int, best_fitness: int) -> None:
        if self.progress is None:
            return
        try:
            self.progress(generation, self.cfg.generations, best_fitness)
        except Exception:
            logger.warning("Progress sink failed at generation %d", generation, exc_info=True)

    def inject_diversity(self, population: List[Chromosome], scores: np.ndarray) -> None:
        """Replace the worst share of the population with fresh greedy chromosomes."""
        count = int(math.ceil(len(population) * self.cfg.diversity_fraction))
        worst = np.argsort(scores, kind="stable")[:count]
        for idx in worst:
            fresh = build_greedy_chromosome(self.cache, self.rng)
            scores[idx] = evaluate(fresh, self.cache, self.cfg).fitness
            population[idx] = fresh
        logger.debug("Injected %d fresh chromosomes (stagnation=%d)", count, self.stagnation)

    def next_generation(self, population: List[Chromosome], scores: np.ndarray) -> List[Chromosome]:
        cfg = self.cfg
        order = np.argsort(-scores, kind="stable")
        new_pop = [population[i].copy() for i in order[: min(cfg.elite_count, len(population))]]

        while len(new_pop) < cfg.population_size:
            p1 = tournament_select(population, scores, cfg.tournament_size, self.rng)
            p2 = tournament_select(population, scores, cfg.tournament_size, self.rng)
            if self.rng.random() < cfg.crossover_rate:
                c1, c2 = uniform_crossover(p1, p2, self.rng)
            else:
                c1, c2 = p1.copy(), p2.copy()
            new_pop.append(mutate(c1, self.cache, cfg, self.mutation_rate, self.rng))
            if len(new_pop) < cfg.population_size:
                new_pop.append(mutate(c2, self.cache, cfg, self.mutation_rate, self.rng))
        return new_pop

    def _should_stop(self, best_fitness: int) -> Optional[SolverState]:
        cfg = self.cfg
        if best_fitness >= 0:
            return SolverState.PERFECT_SCORE
        if cfg.target_fitness_min is not None and best_fitness >= cfg.target_fitness_min:
            return SolverState.TARGET_REACHED
        # An unmet target keeps the search going until the budget runs out.
        if self.stagnation > cfg.convergence_threshold and cfg.target_fitness_min is None:
            return SolverState.CONVERGED
        return None

    def solve(self, should_stop: Optional[Callable[[], bool]] = None) -> SolveResult:
        if self.state is not SolverState.INITIALIZING:
            raise RuntimeError("GeneticSolver instances are single-use")
        cfg = self.cfg
        logger.info(
            "GA start: population=%d generations=%d mutation=%.2f",
            cfg.population_size, cfg.generations, cfg.mutation_rate,
        )

        population = build_initial_population(self.cache, cfg.population_size, self.rng)
        self.state = SolverState.EVOLVING

        best: Optional[Chromosome] = None
        best_fitness: Optional[int] = None
        termination = SolverState.BUDGET_EXHAUSTED
        generation = 0

        for generation in range(1, cfg.generations + 1):
            if should_stop is not None and should_stop():
                termination = SolverState.CANCELLED
                generation -= 1
                break

            scores = self._score(population)
            top = int(np.argmax(scores))
            current_best = int(scores[top])

            if best_fitness is None or current_best > best_fitness:
                best_fitness = current_best
                best = population[top].copy()
                self.stagnation = 0
                if self.mutation_rate != cfg.mutation_rate:
                    logger.debug("New best %d, mutation rate back to %.2f", best_fitness, cfg.mutation_rate)
                self.mutation_rate = cfg.mutation_rate
            else:
                self.stagnation += 1

            if self.stagnation > cfg.stagnation_threshold:
                if self.mutation_rate < cfg.max_adaptive_mutation:
                    self.mutation_rate = min(cfg.max_adaptive_mutation, self.mutation_rate + cfg.mutation_step)
                if self.stagnation % cfg.diversity_interval == 0:
                    self.inject_diversity(population, scores)

            self.history.append(
                {
                    "generation": generation,
                    "best_fitness": int(scores.max()),
                    "avg_fitness": float(scores.mean()),
                    "worst_fitness": int(scores.min()),
                    "mutation_rate": self.mutation_rate,
                }
            )
            self._report(generation, best_fitness)

            if generation % 5 == 0 or generation == 1:
                logger.info(
                    "Gen %d: best=%d avg=%.1f stagnation=%d",
                    generation, best_fitness, float(scores.mean()), self.stagnation,
                )

            stop = self._should_stop(best_fitness)
            if stop is not None:
                termination = stop
                break

            if generation < cfg.generations:
                population = self.next_generation(population, scores)

        if best is None:
            # Cancelled before the first evaluation.
            best = population[0]
            best_fitness = evaluate(best, self.cache, cfg).fitness

        self.state = termination
        repaired = False
        if best_fitness < 0 and termination is not SolverState.CANCELLED:
            self.state = SolverState.REPAIRING
            candidate, passes = repair_chromosome(best, self.cache, cfg)
            repaired_fitness = evaluate(candidate, self.cache, cfg).fitness
            logger.info("Repair: %d -> %d after %d passes", best_fitness, repaired_fitness, passes)
            if repaired_fitness >= best_fitness:
                best, best_fitness = candidate, repaired_fitness
                repaired = True

        best.fitness = best_fitness
        self.state = SolverState.DONE
        logger.info("GA done: %s after %d generations, fitness=%d", termination.value, generation, best_fitness)
        return SolveResult(
            best=best,
            fitness=best_fitness,
            generations=generation,
            termination=termination,
            repaired=repaired,
            history=self.history,
        )
