"""
Solver configuration.

Parameters can be loaded from YAML so a run is reproducible. Values are
clamped to the same ranges the scheduling screen accepts.
"""
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .exceptions import ConfigError


DAY_GROUP_DAYS: Dict[str, Tuple[str, ...]] = {
    "MW": ("monday", "wednesday"),
    "TTH": ("tuesday", "thursday"),
    "FRI": ("friday",),
    "SAT": ("saturday",),
    "SUN": ("sunday",),
}

# Order in which the greedy constructor fills day-groups.
DAY_GROUP_ORDER: Tuple[str, ...] = ("MW", "TTH", "FRI", "SAT", "SUN")
PAIRED_DAY_GROUPS = frozenset({"MW", "TTH"})

DEFAULT_FITNESS_WEIGHTS: Dict[str, int] = {
    "room_conflict": -100,
    "faculty_conflict": -100,
    "year_level_conflict": -100,
    "block_conflict": -50,
    "capacity_mismatch": -30,
    "room_type_mismatch": -40,
    "faculty_day_off": -100,
    "faculty_time_period": -50,
    "invalid_gene": -50,
}

# Standard session lengths, independent of the configured subject hours.
PAIRED_LECTURE_MINUTES = 60
SINGLE_DAY_LECTURE_MINUTES = 120
SINGLE_DAY_LAB_MINUTES = 180
SLOT_MINUTES = 90
SLOT_BREAK_MINUTES = 5


def _clamp(value, low, high):
    return max(low, min(high, value))


@dataclass
class SolverConfig:
    # Genetic algorithm
    population_size: int = 200
    generations: int = 150
    mutation_rate: float = 0.25
    crossover_rate: float = 0.8
    elite_count: int = 6
    tournament_size: int = 4
    target_fitness_min: Optional[int] = None
    target_fitness_max: Optional[int] = None
    included_day_groups: List[str] = field(default_factory=lambda: ["MW", "TTH", "FRI"])
    seed: Optional[int] = None

    # Adaptive control
    stagnation_threshold: int = 6
    convergence_threshold: int = 12
    diversity_interval: int = 5
    diversity_fraction: float = 0.25
    mutation_step: float = 0.05
    max_adaptive_mutation: float = 0.4
    conflict_mutation_multiplier: float = 3.0
    conflict_mutation_cap: float = 0.9
    conflict_mutation_attempts: int = 40
    normal_mutation_attempts: int = 20
    non_friday_bias: float = 0.7
    repair_iterations: int = 20

    # Fitness
    friday_multiplier: float = 1.5
    fitness_weights: Dict[str, int] = field(default_factory=lambda: DEFAULT_FITNESS_WEIGHTS.copy())

    # Load balancing
    paired_group_load: float = 0.8
    single_day_group_load: float = 0.6
    min_paired_group_entries: int = 10
    min_single_day_group_entries: int = 5

    # Metadata
    stats_kept: int = 10

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolverConfig":
        merged = asdict(cls())
        for k, v in data.items():
            if k not in merged:
                continue
            if k == "fitness_weights" and isinstance(v, dict):
                weights = DEFAULT_FITNESS_WEIGHTS.copy()
                weights.update({str(name): int(w) for name, w in v.items()})
                v = weights
            merged[k] = v
        return cls(**merged)

    def __post_init__(self):
        self.population_size = _clamp(int(self.population_size), 10, 200)
        self.generations = _clamp(int(self.generations), 10, 500)
        self.mutation_rate = _clamp(float(self.mutation_rate), 0.01, 0.5)
        self.crossover_rate = _clamp(float(self.crossover_rate), 0.1, 1.0)
        self.elite_count = _clamp(int(self.elite_count), 1, 20)
        self.tournament_size = _clamp(int(self.tournament_size), 2, 10)

        if self.target_fitness_min is not None:
            self.target_fitness_min = int(self.target_fitness_min)
        if self.target_fitness_max is not None:
            self.target_fitness_max = int(self.target_fitness_max)
        if (
            self.target_fitness_min is not None
            and self.target_fitness_max is not None
            and self.target_fitness_min > self.target_fitness_max
        ):
            raise ConfigError(
                f"target_fitness_min ({self.target_fitness_min}) is above "
                f"target_fitness_max ({self.target_fitness_max})"
            )

        groups = [str(g).strip().upper() for g in self.included_day_groups]
        unknown = [g for g in groups if g not in DAY_GROUP_DAYS]
        if unknown:
            raise ConfigError(f"Unknown day groups: {', '.join(unknown)}")
        # Keep the canonical MW -> SUN order and drop repeats.
        self.included_day_groups = [g for g in DAY_GROUP_ORDER if g in groups]

    def parameters(self) -> Dict[str, Any]:
        """Parameters recorded in the schedule metadata."""
        return {
            "population_size": self.population_size,
            "max_generations": self.generations,
            "mutation_rate": self.mutation_rate,
            "crossover_rate": self.crossover_rate,
            "elite_count": self.elite_count,
            "tournament_size": self.tournament_size,
            "target_fitness_min": self.target_fitness_min,
            "target_fitness_max": self.target_fitness_max,
            "included_days": list(self.included_day_groups),
        }


def _load_yaml(path: Path) -> Any:
    if not path.exists():
        return {}
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def load_config(path: str = "config.yaml") -> SolverConfig:
    data = _load_yaml(Path(path))
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return SolverConfig.from_dict(data)
