# timetable_ga/data_loader.py
from dataclasses import dataclass
from datetime import datetime, time
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import pandas as pd

from .model import (
    FacultyPreference,
    ProblemSnapshot,
    Room,
    RoomAssignmentRule,
    Section,
    TimeSlot,
)


@dataclass(frozen=True)
class DataBundle:
    sections: pd.DataFrame
    rooms: pd.DataFrame
    time_slots: pd.DataFrame
    faculty: pd.DataFrame
    room_rules: pd.DataFrame


def load_data(data_dir: str) -> DataBundle:
    base = Path(data_dir)
    rules_path = base / "room_rules.csv"
    rules = (
        pd.read_csv(rules_path, dtype={"allowed_room_ids": str, "priority_room_ids": str})
        if rules_path.exists()
        else pd.DataFrame(columns=["category", "allowed_room_ids", "priority_room_ids", "faculty_specialization"])
    )
    return DataBundle(
        sections=pd.read_csv(base / "sections.csv"),
        rooms=pd.read_csv(base / "rooms.csv"),
        time_slots=pd.read_csv(base / "time_slots.csv", dtype={"start_time": str, "end_time": str}),
        faculty=pd.read_csv(base / "faculty.csv"),
        room_rules=rules,
    )


def _opt(value: Any) -> Optional[Any]:
    return None if pd.isna(value) else value


def _opt_int(value: Any) -> Optional[int]:
    value = _opt(value)
    return None if value is None else int(value)


def _opt_str(value: Any) -> Optional[str]:
    value = _opt(value)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(value: Any, default: bool = True) -> bool:
    value = _opt(value)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


def _parse_time(value: Any) -> Optional[time]:
    text = _opt_str(value)
    if text is None:
        return None
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised time {text!r}")


def _required_time(value: Any, slot_id: Any) -> time:
    parsed = _parse_time(value)
    if parsed is None:
        raise ValueError(f"Time slot {slot_id} has no start time")
    return parsed


def _id_list(value: Any) -> Tuple[int, ...]:
    text = _opt_str(value)
    if text is None:
        return ()
    return tuple(int(part) for part in text.split(";") if part.strip())


def _rows(df: pd.DataFrame) -> Iterable[dict]:
    return df.to_dict(orient="records")


def build_snapshot(bundle: DataBundle, available_room_ids: Optional[Iterable[int]] = None) -> ProblemSnapshot:
    sections = tuple(
        Section(
            id=int(r["id"]),
            subject_id=int(r["subject_id"]),
            subject_code=str(r["subject_code"]),
            year_level=int(r["year_level"]),
            block_number=_opt_int(r.get("block_number")) or 1,
            expected_students=_opt_int(r.get("expected_students")) or 40,
            lecture_hours=_opt_int(r.get("lecture_hours")) or 0,
            lab_hours=_opt_int(r.get("lab_hours")) or 0,
            faculty_id=_opt_int(r.get("faculty_id")),
            preferred_lecture_room_id=_opt_int(r.get("preferred_lecture_room_id")),
            preferred_lab_room_id=_opt_int(r.get("preferred_lab_room_id")),
            category=_opt_str(r.get("category")),
            is_active=_flag(r.get("is_active")),
        )
        for r in _rows(bundle.sections)
    )
    rooms = tuple(
        Room(
            id=int(r["id"]),
            name=str(r["name"]),
            capacity=int(r["capacity"]),
            room_type=(_opt_str(r.get("room_type")) or "lecture").lower(),
            priority=_opt_int(r.get("priority")) or 0,
            is_active=_flag(r.get("is_active")),
            is_available=_flag(r.get("is_available")),
        )
        for r in _rows(bundle.rooms)
    )
    time_slots = tuple(
        TimeSlot(
            id=int(r["id"]),
            day_group=str(r["day_group"]).strip().upper(),
            start_time=_required_time(r["start_time"], r["id"]),
            end_time=_parse_time(r.get("end_time")),
            priority=_opt_int(r.get("priority")) or 0,
            name=_opt_str(r.get("name")) or "",
            is_active=_flag(r.get("is_active")),
        )
        for r in _rows(bundle.time_slots)
    )

    preferences = {}
    names = {}
    assigned = set()
    for r in _rows(bundle.faculty):
        fid = int(r["faculty_id"])
        names[fid] = _opt_str(r.get("name")) or f"Faculty {fid}"
        if _flag(r.get("assigned")):
            assigned.add(fid)
        if _opt(r.get("day_off")) is not None or _opt(r.get("preferred_period")) is not None:
            preferences[fid] = FacultyPreference(
                faculty_id=fid,
                day_off=_opt_str(r.get("day_off")),
                day_off_time=_opt_str(r.get("day_off_time")) or "wholeday",
                preferred_period=_opt_str(r.get("preferred_period")),
            )

    rules = tuple(
        RoomAssignmentRule(
            category=str(r["category"]).strip(),
            allowed_room_ids=_id_list(r.get("allowed_room_ids")),
            priority_room_ids=_id_list(r.get("priority_room_ids")),
            faculty_specialization=_opt_str(r.get("faculty_specialization")),
        )
        for r in _rows(bundle.room_rules)
        if _opt_str(r.get("category"))
    )

    return ProblemSnapshot(
        sections=sections,
        rooms=rooms,
        time_slots=time_slots,
        faculty_preferences=preferences,
        room_rules=rules,
        available_room_ids=frozenset(available_room_ids) if available_room_ids else None,
        valid_faculty_ids=frozenset(assigned),
        faculty_names=names,
    )
