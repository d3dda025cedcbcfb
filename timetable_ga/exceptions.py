class SchedulingError(Exception):
    """Base class for errors raised by the timetable engine."""


class ConfigError(SchedulingError, ValueError):
    """Solver parameters are invalid."""


class SolverInputError(SchedulingError, ValueError):
    """The problem snapshot leaves nothing to search (no sections, rooms or slots)."""


class MaterializationError(SchedulingError):
    """A gene refers to a section, room or time slot missing from the cache."""


class SolveCancelled(SchedulingError):
    """The caller asked the solver to stop between generations."""
