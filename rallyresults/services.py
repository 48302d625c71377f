from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from rallyresults.models import Rally, RallyEntry
from rallyresults.parser import MalformedRowError, parse_csv
from rallyresults.rules import (
    CarResults,
    DriverResults,
    Entry,
    GroupResults,
    PositionResult,
    RallyData,
    Stage,
    build_rally,
    stage_catalog,
)


logger = logging.getLogger(__name__)


def get_rally_or_404(db: Session, name: str) -> Rally:
    rally = db.scalar(select(Rally).where(Rally.name == name))
    if not rally:
        raise HTTPException(status_code=404, detail="Rally not found")
    return rally


def _entry_row(rally_id: int, row_index: int, entry: Entry) -> RallyEntry:
    return RallyEntry(
        rally_id=rally_id,
        row_index=row_index,
        stage_number=entry.stage_number,
        stage_name=entry.stage_name,
        user_name=entry.user_name,
        group_name=entry.group,
        car=entry.car,
        stage_time=str(entry.stage_time),
        super_rally=entry.super_rally,
        finished=entry.finished,
        comment=entry.comment,
    )


def _entry(row: RallyEntry) -> Entry:
    return Entry(
        stage_number=row.stage_number,
        stage_name=row.stage_name,
        user_name=row.user_name,
        group=row.group_name,
        car=row.car,
        stage_time=Decimal(row.stage_time),
        super_rally=row.super_rally,
        finished=row.finished,
        comment=row.comment,
    )


def store_rally(db: Session, name: str, entries: List[Entry]) -> Rally:
    """Store entries under name, replacing any rally already stored with it."""
    name = name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Rally name must not be blank")
    existing = db.scalar(select(Rally).where(Rally.name == name))
    if existing:
        db.delete(existing)
        db.flush()

    rally = Rally(name=name)
    db.add(rally)
    db.flush()
    for idx, entry in enumerate(entries):
        db.add(_entry_row(rally.id, idx, entry))
    db.flush()
    db.refresh(rally)
    logger.info("Stored rally %s with %d entries", name, len(entries))
    return rally


def import_rally(db: Session, name: str, csv_text: str) -> Rally:
    try:
        entries = parse_csv(csv_text)
    except MalformedRowError as exc:
        logger.warning("Rejected export for rally %s: %s", name, exc)
        raise HTTPException(status_code=400, detail=f"Malformed rally export: {exc}") from exc
    return store_rally(db, name, entries)


def rally_entries(db: Session, rally: Rally) -> List[Entry]:
    rows = db.scalars(
        select(RallyEntry).where(RallyEntry.rally_id == rally.id).order_by(RallyEntry.row_index.asc())
    ).all()
    return [_entry(row) for row in rows]


def rally_summary(db: Session, rally: Rally) -> dict[str, Any]:
    entries = rally_entries(db, rally)
    return {
        "name": rally.name,
        "stage_count": len(stage_catalog(entries)),
        "driver_count": len({e.user_name for e in entries}),
        "entry_count": len(entries),
    }


def list_rallies(db: Session) -> list[dict[str, Any]]:
    rows = db.scalars(select(Rally).order_by(Rally.name.asc())).all()
    return [rally_summary(db, rally) for rally in rows]


def delete_rally(db: Session, name: str) -> None:
    rally = get_rally_or_404(db, name)
    db.delete(rally)
    logger.info("Deleted rally %s", name)


def load_rally(db: Session, name: str) -> RallyData:
    rally = get_rally_or_404(db, name)
    return build_rally(rally.name, rally_entries(db, rally))


def stage_payload(stage: Stage) -> dict[str, Any]:
    return {"number": stage.number, "name": stage.name}


def position_payload(result: PositionResult) -> dict[str, Any]:
    return {
        "stage_number": result.stage_number,
        "user_name": result.user_name,
        "stage_position": result.stage_position,
        "overall_position": result.overall_position,
        "stage_time": float(result.stage_time),
        "overall_time": float(result.overall_time),
        "super_rally": result.super_rally,
        "rally_finished": result.rally_finished,
        "comment": result.comment,
    }


def driver_payload(driver: DriverResults) -> dict[str, Any]:
    return {"name": driver.name, "results": [position_payload(r) for r in driver.results]}


def group_payload(group: GroupResults) -> dict[str, Any]:
    return {"group": group.group, "results": [driver_payload(d) for d in group.results]}


def car_payload(car: CarResults) -> dict[str, Any]:
    return {
        "car": car.car,
        "group": car.group,
        "results": [driver_payload(d) for d in car.results],
    }


def rally_payload(data: RallyData) -> dict[str, Any]:
    return {
        "name": data.name,
        "stages": [stage_payload(s) for s in data.stages],
        "all_results": [driver_payload(d) for d in data.all_results],
        "group_results": [group_payload(g) for g in data.group_results],
        "car_results": [car_payload(c) for c in data.car_results],
    }


def group_results(db: Session, name: str, group: str) -> dict[str, Any]:
    data = load_rally(db, name)
    for item in data.group_results:
        if item.group == group:
            return group_payload(item)
    raise HTTPException(status_code=404, detail="Group not found")


def car_results(db: Session, name: str, group: str, car: str) -> dict[str, Any]:
    data = load_rally(db, name)
    for item in data.car_results:
        if item.group == group and item.car == car:
            return car_payload(item)
    raise HTTPException(status_code=404, detail="Car not found")
