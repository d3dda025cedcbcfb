import unittest

from timetable_ga.conflict_analysis import analyze_schedule
from timetable_ga.domains import build_domain_cache
from timetable_ga.evaluation import evaluate
from timetable_ga.exceptions import SolveCancelled
from timetable_ga.ga import GeneticSolver, SolverState
from timetable_ga.repository import InMemoryScheduleRepository
from timetable_ga.scheduler import generate_schedule

from fixtures import day_off, make_room, make_section, make_slot, make_snapshot, small_config


def _single_slot_clash():
    # Two courses of the same block, one room, one slot: the clash cannot be avoided.
    sections = [make_section(1, code="CS101"), make_section(2, code="MATH101")]
    return make_snapshot(sections, [make_room(1)], [make_slot(1, "MW")])


class SolverTests(unittest.TestCase):
    def test_single_section_is_perfect(self):
        snap = make_snapshot([make_section(1, faculty=7)], [make_room(1)], [make_slot(1, "MW")])
        cfg = small_config(included_day_groups=["MW"])
        result = GeneticSolver(build_domain_cache(snap, cfg), cfg).solve()
        self.assertEqual(result.fitness, 0)
        self.assertEqual(result.termination, SolverState.PERFECT_SCORE)
        self.assertEqual(result.generations, 1)
        self.assertEqual(len(result.best.genes), 1)
        self.assertFalse(result.repaired)

    def test_unavoidable_clash_converges(self):
        snap = _single_slot_clash()
        cfg = small_config(generations=50, included_day_groups=["MW"])
        result = GeneticSolver(build_domain_cache(snap, cfg), cfg).solve()
        self.assertEqual(result.fitness, -400)
        self.assertEqual(result.termination, SolverState.CONVERGED)
        self.assertEqual(result.generations, 14)
        self.assertEqual(len(result.history), 14)
        self.assertAlmostEqual(result.history[-1]["mutation_rate"], 0.4)

    def test_unmet_target_runs_full_budget(self):
        cfg = small_config(generations=20, target_fitness_min=-100, included_day_groups=["MW"])
        result = GeneticSolver(build_domain_cache(_single_slot_clash(), cfg), cfg).solve()
        self.assertEqual(result.termination, SolverState.BUDGET_EXHAUSTED)
        self.assertEqual(result.generations, 20)

    def test_target_reached(self):
        cfg = small_config(target_fitness_min=-1000, included_day_groups=["MW"])
        result = GeneticSolver(build_domain_cache(_single_slot_clash(), cfg), cfg).solve()
        self.assertEqual(result.termination, SolverState.TARGET_REACHED)
        self.assertEqual(result.generations, 1)

    def test_day_off_without_alternative(self):
        snap = make_snapshot([make_section(1, faculty=7)], [make_room(1)],
                             [make_slot(1, "MW"), make_slot(2, "TTH")], [day_off(7, "Monday")])
        cfg = small_config(included_day_groups=["MW"])
        cache = build_domain_cache(snap, cfg)
        result = GeneticSolver(cache, cfg).solve()
        self.assertEqual(result.fitness, -100)
        self.assertEqual(evaluate(result.best, cache, cfg).day_off_violations, 1)

    def test_day_off_with_alternative(self):
        snap = make_snapshot([make_section(1, faculty=7)], [make_room(1)],
                             [make_slot(1, "MW"), make_slot(2, "TTH")], [day_off(7, "Monday")])
        cfg = small_config(included_day_groups=["MW", "TTH"])
        result = GeneticSolver(build_domain_cache(snap, cfg), cfg).solve()
        self.assertEqual(result.fitness, 0)
        self.assertEqual(result.best.genes[0].day_group, "TTH")

    def test_progress_sink_failure_is_ignored(self):
        calls = []

        def sink(generation, budget, best):
            calls.append((generation, budget, best))
            raise RuntimeError("sink down")

        cfg = small_config(generations=12, target_fitness_min=-100, included_day_groups=["MW"])
        result = GeneticSolver(build_domain_cache(_single_slot_clash(), cfg), cfg, progress=sink).solve()
        self.assertEqual(result.generations, 12)
        self.assertEqual([c[0] for c in calls], list(range(1, 13)))
        self.assertTrue(all(c[1] == 12 and c[2] == -400 for c in calls))

    def test_solver_is_single_use(self):
        snap = make_snapshot([make_section(1)], [make_room(1)], [make_slot(1, "MW")])
        cfg = small_config()
        solver = GeneticSolver(build_domain_cache(snap, cfg), cfg)
        solver.solve()
        with self.assertRaises(RuntimeError):
            solver.solve()

    def test_cancel_before_first_generation(self):
        cfg = small_config(included_day_groups=["MW"])
        result = GeneticSolver(build_domain_cache(_single_slot_clash(), cfg), cfg).solve(should_stop=lambda: True)
        self.assertEqual(result.termination, SolverState.CANCELLED)
        self.assertEqual(result.generations, 0)
        self.assertFalse(result.repaired)

    def test_same_seed_same_result(self):
        snap = make_snapshot(
            [make_section(i, year=i % 3 + 1, faculty=i % 2 + 1) for i in range(1, 7)],
            [make_room(1), make_room(2)],
            [make_slot(1, "MW"), make_slot(2, "TTH"), make_slot(3, "FRI")],
        )
        cfg = small_config(seed=99)
        a = GeneticSolver(build_domain_cache(snap, cfg), cfg).solve()
        b = GeneticSolver(build_domain_cache(snap, cfg), cfg).solve()
        self.assertEqual(a.best.genes, b.best.genes)
        self.assertEqual(a.fitness, b.fitness)


class GenerateScheduleTests(unittest.TestCase):
    def test_paired_lecture_schedule(self):
        snap = make_snapshot([make_section(1, faculty=7)], [make_room(1)], [make_slot(1, "MW")])
        schedule, result = generate_schedule(snap, small_config(included_day_groups=["MW"]), created_by=3)
        self.assertEqual(schedule.fitness_score, 0)
        self.assertEqual(schedule.generation, 1)
        self.assertEqual(schedule.created_by, 3)
        self.assertEqual(schedule.status, "draft")
        self.assertEqual([e.day for e in schedule.entries], ["monday", "wednesday"])
        self.assertEqual(schedule.metadata["termination"], "perfect_score")
        self.assertEqual(schedule.metadata["population_size"], 10)
        self.assertEqual(schedule.metadata["included_days"], ["MW"])
        self.assertEqual(len(schedule.metadata["generation_stats"]), 1)

    def test_clash_reported_by_analyzer(self):
        snap = _single_slot_clash()
        schedule, result = generate_schedule(snap, small_config(included_day_groups=["MW"]))
        self.assertLess(schedule.fitness_score, 0)
        self.assertTrue(result.repaired)
        self.assertEqual(len(schedule.metadata["generation_stats"]), 10)

        # The second session loses its room, the block clash stays visible.
        self.assertEqual(sum(1 for e in schedule.entries if e.room_id is None), 2)
        repo = InMemoryScheduleRepository(snap.sections, snap.rooms)
        repo.save(schedule)
        conflicts = analyze_schedule(repo.loaded_entries(schedule.id))
        reasons = [r for rs in conflicts.values() for r in rs]
        self.assertIn("Block students also have CS101", reasons)
        self.assertIn("Block students also have MATH101", reasons)

    def test_cancel_raises(self):
        with self.assertRaises(SolveCancelled):
            generate_schedule(_single_slot_clash(), small_config(), should_stop=lambda: True)

    def test_perfect_schedule_has_no_reported_conflicts(self):
        sections = [make_section(i, year=(i - 1) // 2 + 1, faculty=i % 4 + 1, lab=1 if i % 2 else 0) for i in range(1, 9)]
        rooms = [make_room(1), make_room(2), make_room(3),
                 make_room(4, room_type="laboratory"), make_room(5, room_type="hybrid")]
        slots = [make_slot(i, group, start=(8 + 2 * n, 0))
                 for i, (group, n) in enumerate([("MW", 0), ("MW", 1), ("MW", 2), ("TTH", 0), ("TTH", 1),
                                                 ("TTH", 2), ("FRI", 0), ("FRI", 1)], start=1)]
        snap = make_snapshot(sections, rooms, slots)
        schedule, result = generate_schedule(snap, small_config(generations=40))
        self.assertEqual(result.fitness, 0)
        repo = InMemoryScheduleRepository(snap.sections, snap.rooms)
        repo.save(schedule)
        self.assertEqual(analyze_schedule(repo.loaded_entries(schedule.id)), {})


if __name__ == "__main__":
    unittest.main()
