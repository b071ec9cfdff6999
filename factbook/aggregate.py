from __future__ import annotations

import operator
from typing import Iterable

import pandas as pd

from factbook.errors import NonNumericValueError, ZeroDenominatorError
from factbook.schema import ANALYZED_COLUMNS, AREA_LAND, AREA_WATER, NAME, POPULATION, validate_columns

OPS = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


def _numeric(df: pd.DataFrame, column: str) -> pd.Series:
    s = df[column]
    if not pd.api.types.is_numeric_dtype(s):
        raise NonNumericValueError(column, s.dropna().head().tolist())
    return s


def summary_stats(df: pd.DataFrame, columns: Iterable[str] = ANALYZED_COLUMNS) -> pd.DataFrame:
    """min / max per column, indexed by column name. NaN is ignored."""
    columns = list(columns)
    validate_columns(df, tuple(columns))
    rows = {}
    for col in columns:
        s = _numeric(df, col)
        rows[col] = {"min": s.min(), "max": s.max()}
    out = pd.DataFrame.from_dict(rows, orient="index", columns=["min", "max"])
    out.index.name = "column"
    return out


def filter_by_threshold(df: pd.DataFrame, column: str, op: str, value: float) -> pd.DataFrame:
    if op not in OPS:
        raise ValueError(f"op must be one of {sorted(OPS)}")
    validate_columns(df, (NAME, column))
    s = _numeric(df, column)
    mask = OPS[op](s, value) & s.notna()
    return df.loc[mask, [NAME, column]].reset_index(drop=True)


def compare_columns(df: pd.DataFrame, left: str, right: str) -> pd.DataFrame:
    """Rows where ``left`` > ``right`` (ex. death_rate > birth_rate)."""
    validate_columns(df, (NAME, left, right))
    mask = _numeric(df, left) > _numeric(df, right)
    return df.loc[mask, [NAME, left, right]].reset_index(drop=True)


def compute_ratio(
    df: pd.DataFrame,
    numerator: str,
    denominator: str,
    label: str,
    on_zero: str = "exclude",
) -> pd.DataFrame:
    """numerator / denominator per row, sorted descending.

    Rows whose denominator is zero or missing never yield inf: they are left
    out, or raise ZeroDenominatorError when ``on_zero="raise"``. Ties keep
    their input order.
    """
    if on_zero not in {"exclude", "raise"}:
        raise ValueError("on_zero must be 'exclude' or 'raise'")
    validate_columns(df, (NAME, numerator, denominator))
    num = _numeric(df, numerator)
    den = _numeric(df, denominator)
    zero = den == 0
    if on_zero == "raise" and zero.any():
        raise ZeroDenominatorError(denominator, df.loc[zero, NAME].tolist())
    valid = num.notna() & den.notna() & ~zero
    out = pd.DataFrame({NAME: df.loc[valid, NAME], label: num[valid] / den[valid]})
    return out.sort_values(label, ascending=False, kind="stable").reset_index(drop=True)


def compute_density(df: pd.DataFrame, on_zero: str = "exclude") -> pd.DataFrame:
    """People per km2 of land."""
    return compute_ratio(df, POPULATION, AREA_LAND, "density", on_zero=on_zero)


def compute_water_ratio(df: pd.DataFrame, on_zero: str = "exclude") -> pd.DataFrame:
    return compute_ratio(df, AREA_WATER, AREA_LAND, "water_ratio", on_zero=on_zero)


def top_n(ranked: pd.DataFrame, n: int = 10) -> pd.DataFrame:
    if n < 0:
        raise ValueError("n must be >= 0")
    out = ranked.head(n).copy()
    out.index = pd.RangeIndex(1, len(out) + 1, name="rank")
    return out
