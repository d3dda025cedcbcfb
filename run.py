import argparse
import logging
import time
from pathlib import Path
from typing import Dict, List

import pandas as pd

from timetable_ga.config import load_config
from timetable_ga.conflict_analysis import analyze_schedule
from timetable_ga.data_loader import build_snapshot, load_data
from timetable_ga.model import ProblemSnapshot, Schedule
from timetable_ga.repository import InMemoryScheduleRepository
from timetable_ga.scheduler import generate_schedule


def _fmt(t):
    return t.strftime("%H:%M") if t is not None else ""


def schedule_to_dataframe(schedule: Schedule, snapshot: ProblemSnapshot, conflicts: Dict[int, List[str]]) -> pd.DataFrame:
    sections = {s.id: s for s in snapshot.sections}
    rooms = {r.id: r for r in snapshot.rooms}
    slots = {t.id: t for t in snapshot.time_slots}
    data = []
    for e in schedule.entries:
        section = sections[e.section_id]
        slot = slots[e.time_slot_id]
        data.append(
            {
                "Entry": e.id,
                "Subject": section.subject_code,
                "Year": section.year_level,
                "Block": section.block_number,
                "Type": "LAB" if e.is_lab else "LEC",
                "Faculty": snapshot.faculty_names.get(e.faculty_id, "TBA") if e.faculty_id else "TBA",
                "Room": rooms[e.room_id].name if e.room_id is not None else "",
                "Day": e.day.capitalize(),
                "Start": _fmt(e.custom_start_time or slot.start_time),
                "End": _fmt(e.custom_end_time or slot.end_time),
                "Slots": e.slots_span,
                "Session": e.session_group_id,
                "Conflicts": "; ".join(conflicts.get(e.id, [])),
            }
        )
    return pd.DataFrame(data)


def print_progress(generation: int, budget: int, best: int) -> None:
    if generation % 10 == 0 or generation == budget:
        print(f"Gen {generation}/{budget}: best fitness={best}")


def main():
    parser = argparse.ArgumentParser(description="Build a room/time timetable with the genetic algorithm")
    parser.add_argument("--config", default="config.yaml", help="Path to the solver configuration")
    parser.add_argument("--data_dir", default="data", help="Directory with the input CSV files")
    parser.add_argument("--out_dir", default="outputs", help="Directory for the result CSV files")
    parser.add_argument("--verbose", action="store_true", help="Log every generation summary")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config(args.config)

    print("Loading data...")
    snapshot = build_snapshot(load_data(args.data_dir))

    print(f"Generations: {cfg.generations} | Population: {cfg.population_size} | Days: {', '.join(cfg.included_day_groups)}")
    start = time.perf_counter()
    schedule, result = generate_schedule(snapshot, cfg, progress=print_progress)
    elapsed = time.perf_counter() - start

    repo = InMemoryScheduleRepository(snapshot.sections, snapshot.rooms, snapshot.faculty_names)
    repo.save(schedule)
    conflicts = analyze_schedule(repo.loaded_entries(schedule.id))

    print("\n--- BEST SCHEDULE ---")
    print(
        f"Fitness: {result.fitness} | Generations: {result.generations} | "
        f"Stop: {result.termination.value} | Repaired: {result.repaired} | Time: {elapsed:.2f}s"
    )
    print(f"Entries: {len(schedule.entries)} | Entries with conflicts: {len(conflicts)}")

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    schedule_to_dataframe(schedule, snapshot, conflicts).to_csv(out_dir / "schedule.csv", index=False)
    pd.DataFrame(
        [{"entry": eid, "reason": reason} for eid, reasons in conflicts.items() for reason in reasons],
        columns=["entry", "reason"],
    ).to_csv(out_dir / "conflicts.csv", index=False)
    if result.history:
        pd.DataFrame(result.history).to_csv(out_dir / "history.csv", index=False)
    metrics = {
        "fitness": result.fitness,
        "generations_ran": result.generations,
        "termination": result.termination.value,
        "repaired": result.repaired,
        "entries": len(schedule.entries),
        "conflicting_entries": len(conflicts),
        "time_sec": elapsed,
    }
    pd.DataFrame([metrics]).to_csv(out_dir / "metrics.csv", index=False)
    print(f"Results written to {out_dir}/schedule.csv and {out_dir}/conflicts.csv")


if __name__ == "__main__":
    main()
