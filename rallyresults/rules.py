from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple


logger = logging.getLogger(__name__)

Ranked = Dict["Stage", List["PositionResult"]]


@dataclass(frozen=True)
class Entry:
    stage_number: int
    stage_name: str
    user_name: str
    group: str
    car: str
    stage_time: Decimal
    super_rally: bool
    finished: bool
    comment: str


@dataclass(frozen=True)
class Stage:
    number: int
    name: str


@dataclass(frozen=True)
class TimeResult:
    stage_number: int
    stage_name: str
    user_name: str
    stage_time: Decimal
    overall_time: Decimal
    super_rally: bool
    finished: bool
    comment: str

    @property
    def stage(self) -> Stage:
        return Stage(self.stage_number, self.stage_name)


@dataclass(frozen=True)
class PositionResult:
    stage_number: int
    user_name: str
    stage_position: int
    overall_position: int
    stage_time: Decimal
    overall_time: Decimal
    super_rally: bool
    rally_finished: bool
    comment: str


@dataclass(frozen=True)
class DriverResults:
    name: str
    results: List[PositionResult]


@dataclass(frozen=True)
class GroupResults:
    group: str
    results: List[DriverResults]


@dataclass(frozen=True)
class CarResults:
    car: str
    group: str
    results: List[DriverResults]


@dataclass(frozen=True)
class RallyData:
    name: str
    stages: List[Stage]
    all_results: List[DriverResults]
    group_results: List[GroupResults]
    car_results: List[CarResults]


def stage_catalog(entries: Iterable[Entry]) -> List[Stage]:
    """
    Distinct stages in order of first appearance, then sorted by number.
    The sort is stable, so two names sharing a number keep input order.
    """
    distinct = dict.fromkeys(Stage(e.stage_number, e.stage_name) for e in entries)
    return sorted(distinct, key=lambda stage: stage.number)


def overall_times(entries: Iterable[Entry]) -> List[TimeResult]:
    """
    Running per-driver total of stage times.
    Each driver's rows are summed in the order they appear; missed stages
    and super rally re-entries add whatever time they carry (possibly zero).
    Output keeps input order.
    """
    totals: dict[str, Decimal] = defaultdict(Decimal)
    timed: List[TimeResult] = []
    for e in entries:
        totals[e.user_name] += e.stage_time
        timed.append(
            TimeResult(
                stage_number=e.stage_number,
                stage_name=e.stage_name,
                user_name=e.user_name,
                stage_time=e.stage_time,
                overall_time=totals[e.user_name],
                super_rally=e.super_rally,
                finished=e.finished,
                comment=e.comment,
            )
        )
    return timed


def retired_drivers(timed: Iterable[TimeResult]) -> set[str]:
    """Drivers with at least one unfinished stage anywhere in the rally."""
    return {r.user_name for r in timed if not r.finished}


def _positions(results: Sequence[TimeResult], key) -> List[int]:
    order = sorted(range(len(results)), key=lambda idx: key(results[idx]))
    positions = [0] * len(results)
    for position, idx in enumerate(order, start=1):
        positions[idx] = position
    return positions


def rank(entries: Sequence[Entry]) -> Ranked:
    """
    Stage and overall positions for every stage finisher.
    Non-finishers of a stage get no result for it. Each stage's list is
    ordered by overall position.
    """
    timed = overall_times(entries)
    # Computed once over the whole rally before any stage is ranked.
    retired = retired_drivers(timed)

    by_stage: dict[Stage, List[TimeResult]] = defaultdict(list)
    for result in timed:
        by_stage[result.stage].append(result)

    ranked: Ranked = {}
    for stage in sorted(by_stage, key=lambda s: s.number):
        finishers = [r for r in by_stage[stage] if r.finished]
        stage_positions = _positions(finishers, key=lambda r: r.stage_time)
        overall_positions = _positions(finishers, key=lambda r: r.overall_time)
        rows = [
            PositionResult(
                stage_number=r.stage_number,
                user_name=r.user_name,
                stage_position=stage_pos,
                overall_position=overall_pos,
                stage_time=r.stage_time,
                overall_time=r.overall_time,
                super_rally=r.super_rally,
                rally_finished=r.user_name not in retired,
                comment=r.comment,
            )
            for r, stage_pos, overall_pos in zip(finishers, stage_positions, overall_positions)
        ]
        rows.sort(key=lambda row: row.overall_position)
        ranked[stage] = rows
    return ranked


def project_by_driver(ranked: Mapping[Stage, Sequence[PositionResult]]) -> List[DriverResults]:
    """
    Re-key stage results by driver.
    Stage results are sorted by stage number, drivers by name.
    """
    per_driver: dict[str, List[PositionResult]] = defaultdict(list)
    for results in ranked.values():
        for r in results:
            per_driver[r.user_name].append(r)

    return [
        DriverResults(name, sorted(per_driver[name], key=lambda r: r.stage_number))
        for name in sorted(per_driver)
    ]


def driver_results(entries: Sequence[Entry]) -> List[DriverResults]:
    return project_by_driver(rank(entries))


def _partition(entries: Iterable[Entry], key) -> Dict[object, List[Entry]]:
    parts: dict[object, List[Entry]] = defaultdict(list)
    for e in entries:
        parts[key(e)].append(e)
    return parts


def build_rally(name: str, entries: Sequence[Entry]) -> RallyData:
    """
    Overall, per-group and per-car standings for one rally.
    Every partition is ranked on its own entries only, so group and car
    positions are relative to that subset.
    """
    entries = list(entries)

    by_group = _partition(entries, key=lambda e: e.group)
    group_results = [
        GroupResults(group, driver_results(by_group[group]))
        for group in sorted(by_group)
    ]

    by_car: Dict[Tuple[str, str], List[Entry]] = _partition(entries, key=lambda e: (e.group, e.car))
    car_results = [
        CarResults(car, group, driver_results(by_car[(group, car)]))
        for group, car in sorted(by_car)
    ]

    data = RallyData(
        name=name,
        stages=stage_catalog(entries),
        all_results=driver_results(entries),
        group_results=group_results,
        car_results=car_results,
    )
    logger.debug(
        "Built rally %s: %d stages, %d drivers, %d groups, %d cars",
        name,
        len(data.stages),
        len(data.all_results),
        len(group_results),
        len(car_results),
    )
    return data
