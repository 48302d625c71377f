from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class RallyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    csv: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Rally name must not be blank")
        return value


class RallySummaryOut(BaseModel):
    name: str
    stage_count: int
    driver_count: int
    entry_count: int


class StageOut(BaseModel):
    number: int
    name: str


class PositionResultOut(BaseModel):
    stage_number: int
    user_name: str
    stage_position: int
    overall_position: int
    stage_time: float
    overall_time: float
    super_rally: bool
    rally_finished: bool
    comment: str


class DriverResultsOut(BaseModel):
    name: str
    results: list[PositionResultOut]


class GroupResultsOut(BaseModel):
    group: str
    results: list[DriverResultsOut]


class CarResultsOut(BaseModel):
    car: str
    group: str
    results: list[DriverResultsOut]


class RallyDataOut(BaseModel):
    name: str
    stages: list[StageOut]
    all_results: list[DriverResultsOut]
    group_results: list[GroupResultsOut]
    car_results: list[CarResultsOut]
