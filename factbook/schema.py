# factbook/schema.py
# facts テーブルの列定義。列名の文字列はここにだけ書く。
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

import pandas as pd

from factbook.errors import ColumnNotFoundError

ID = "id"
CODE = "code"
NAME = "name"
AREA = "area"
AREA_LAND = "area_land"
AREA_WATER = "area_water"
POPULATION = "population"
POPULATION_GROWTH = "population_growth"
BIRTH_RATE = "birth_rate"
DEATH_RATE = "death_rate"
MIGRATION_RATE = "migration_rate"
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"

FACT_COLUMNS = (
    ID, CODE, NAME, AREA, AREA_LAND, AREA_WATER, POPULATION, POPULATION_GROWTH,
    BIRTH_RATE, DEATH_RATE, MIGRATION_RATE, CREATED_AT, UPDATED_AT,
)
ANALYZED_COLUMNS = (POPULATION, POPULATION_GROWTH, BIRTH_RATE, DEATH_RATE, MIGRATION_RATE)
HISTOGRAM_COLUMNS = (POPULATION, POPULATION_GROWTH, BIRTH_RATE, DEATH_RATE)
REQUIRED_COLUMNS = (ID, CODE, NAME, AREA_LAND, AREA_WATER) + ANALYZED_COLUMNS

# INT32_MIN: upstream uses it for "no population data"
POPULATION_SENTINEL = -2147483648
AGGREGATE_NAMES = ("World",)


def validate_columns(df: pd.DataFrame, required: tuple[str, ...] = REQUIRED_COLUMNS) -> pd.DataFrame:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ColumnNotFoundError(missing)
    return df


def _opt_float(v: Any) -> float | None:
    if v is None or pd.isna(v):
        return None
    return float(v)


def _opt_str(v: Any) -> str | None:
    if v is None or pd.isna(v):
        return None
    return str(v)


@dataclass(frozen=True)
class Record:
    id: int
    code: str
    name: str
    area: float | None
    area_land: float | None
    area_water: float | None
    population: float | None
    population_growth: float | None
    birth_rate: float | None
    death_rate: float | None
    migration_rate: float | None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Record":
        """Build a Record from one table row; missing numbers become None."""
        return cls(
            id=int(row[ID]),
            code=str(row[CODE]),
            name=str(row[NAME]),
            area=_opt_float(row.get(AREA)),
            area_land=_opt_float(row.get(AREA_LAND)),
            area_water=_opt_float(row.get(AREA_WATER)),
            population=_opt_float(row.get(POPULATION)),
            population_growth=_opt_float(row.get(POPULATION_GROWTH)),
            birth_rate=_opt_float(row.get(BIRTH_RATE)),
            death_rate=_opt_float(row.get(DEATH_RATE)),
            migration_rate=_opt_float(row.get(MIGRATION_RATE)),
            created_at=_opt_str(row.get(CREATED_AT)),
            updated_at=_opt_str(row.get(UPDATED_AT)),
        )


RECORD_FIELDS = tuple(f.name for f in fields(Record))


def to_records(df: pd.DataFrame) -> list[Record]:
    validate_columns(df, (ID, CODE, NAME))
    return [Record.from_row(row) for row in df.to_dict(orient="records")]
