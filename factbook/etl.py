from __future__ import annotations

import sqlite3
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import pandas as pd
import matplotlib.pyplot as plt

from factbook.errors import (
    ColumnNotFoundError,
    NonNumericValueError,
    SourceConnectionError,
    TableNotFoundError,
)
from factbook.schema import (
    AGGREGATE_NAMES,
    ANALYZED_COLUMNS,
    CODE,
    NAME,
    POPULATION,
    POPULATION_SENTINEL,
    validate_columns,
)


def _connect(db_path: Path) -> sqlite3.Connection:
    # mode=ro: 存在しないファイルを勝手に作らせない
    path = Path(db_path)
    if not path.is_file():
        raise SourceConnectionError(f"database file not found: {path}")
    try:
        return sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
    except sqlite3.Error as e:
        raise SourceConnectionError(f"cannot open {path}: {e}") from e


def _table_names(conn: sqlite3.Connection) -> list[str]:
    try:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') ORDER BY name"
        ).fetchall()
    except sqlite3.DatabaseError as e:
        raise SourceConnectionError(f"not a readable SQLite database: {e}") from e
    return [r[0] for r in rows]


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


@dataclass
class DataLoader:
    table: str = "facts"
    validate: bool = True

    def list_tables(self, db_path: Path) -> list[str]:
        with closing(_connect(db_path)) as conn:
            return _table_names(conn)

    def load(self, db_path: Path) -> pd.DataFrame:
        with closing(_connect(db_path)) as conn:
            tables = _table_names(conn)
            # SQLite のテーブル名は大文字小文字を区別しない
            matched = [t for t in tables if t.casefold() == self.table.casefold()]
            if not matched:
                raise TableNotFoundError(self.table, tables)
            df = pd.read_sql_query(f"SELECT * FROM {_quote_ident(matched[0])}", conn)
        if self.validate:
            validate_columns(df)
        return df


@dataclass
class Normalizer:
    """Cast wide integer columns to float64 so plotting and division behave.

    Populations stay below 2**53, so the cast is exact.
    """
    columns: tuple[str, ...] = (POPULATION,)

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        out = df.copy()
        for col in self.columns:
            if col not in out.columns:
                raise ColumnNotFoundError([col])
            s = out[col]
            if pd.api.types.is_object_dtype(s) or pd.api.types.is_string_dtype(s):
                # 空文字は欠損扱い
                s = s.map(lambda v: None if isinstance(v, str) and not v.strip() else v)
            conv = pd.to_numeric(s, errors="coerce")
            bad = s[conv.isna() & s.notna()]
            if len(bad) > 0:
                raise NonNumericValueError(col, bad.tolist())
            out[col] = conv.astype("float64")
        return out


@dataclass
class AnomalyFilter:
    """Drop non-countries and incomplete rows.

    Keeps a row only when population > 0, the row is not an aggregate
    pseudo-record (World), and none of ``required`` is missing.

    exclude_by="name" matches ``aggregate_names`` against name/code and is a
    fixed point: clean(clean(df)) == clean(df). exclude_by="max" drops the
    row holding the largest population, which is what the old notebook did;
    applied twice it also drops the largest real country.
    """
    required: tuple[str, ...] = ANALYZED_COLUMNS
    exclude_by: str = "name"
    aggregate_names: tuple[str, ...] = AGGREGATE_NAMES

    def __post_init__(self) -> None:
        if self.exclude_by not in {"name", "max"}:
            raise ValueError("exclude_by must be 'name' or 'max'")

    def _aggregate_mask(self, df: pd.DataFrame) -> pd.Series:
        if self.exclude_by == "max":
            pop = df[POPULATION]
            return pop.notna() & (pop == pop.max())
        keys = {n.strip().casefold() for n in self.aggregate_names}
        by_name = df[NAME].astype(str).str.strip().str.casefold().isin(keys)
        by_code = df[CODE].astype(str).str.strip().str.casefold().isin(keys)
        return by_name | by_code

    def _check(self, df: pd.DataFrame) -> None:
        validate_columns(df, (NAME, CODE, POPULATION) + tuple(self.required))

    def keep_mask(self, df: pd.DataFrame) -> pd.Series:
        self._check(df)
        complete = df[list(self.required)].notna().all(axis=1)
        return (df[POPULATION] > 0) & ~self._aggregate_mask(df) & complete

    def clean(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.loc[self.keep_mask(df)].reset_index(drop=True)

    def explain(self, df: pd.DataFrame) -> pd.DataFrame:
        """One row per dropped record with the first matching reason."""
        dropped = ~self.keep_mask(df)
        pop = df[POPULATION]
        reasons = pd.Series(None, index=df.index, dtype="object")
        rules = [
            ("sentinel", pop == POPULATION_SENTINEL),
            ("negative", pop < 0),
            ("zero", pop == 0),
            ("aggregate", self._aggregate_mask(df)),
        ]
        for label, mask in rules:
            reasons = reasons.mask(reasons.isna() & mask, label)

        missing = df[list(self.required)].isna()
        for idx in missing.index[(missing.any(axis=1) & reasons.isna()).to_numpy()]:
            row = missing.loc[idx]
            reasons.loc[idx] = "missing:" + ",".join(row[row].index)
        # population が NaN で required に含まれていない場合
        reasons = reasons.mask(reasons.isna() & dropped, f"missing:{POPULATION}")

        out = df.loc[dropped, [NAME, POPULATION]].copy()
        out["reason"] = reasons[dropped]
        return out.reset_index(drop=True)


def axis_label(column: str) -> str:
    return column.replace("_", " ").title()


@dataclass
class Plotter:
    bins: int = 10
    dpi: int = 100

    def plot_histograms(self, df: pd.DataFrame, columns: Iterable[str], out_dir: Path) -> list[Path]:
        columns = list(columns)
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ColumnNotFoundError(missing)
        out_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for col in columns:
            plt.figure()
            ax = df[col].dropna().hist(bins=self.bins)
            ax.set_xlabel(axis_label(col))
            ax.set_ylabel("Count")
            ax.set_title(f"Distribution of {axis_label(col)}")
            path = out_dir / f"hist_{col}.png"
            plt.savefig(path, dpi=self.dpi)
            plt.close()
            paths.append(path)
        return paths

    def show(self, df: pd.DataFrame, columns: Iterable[str]) -> None:
        columns = list(columns)
        fig, axes = plt.subplots(1, len(columns), figsize=(4 * len(columns), 4), squeeze=False)
        for ax, col in zip(axes[0], columns):
            df[col].dropna().hist(bins=self.bins, ax=ax)
            ax.set_xlabel(axis_label(col))
        fig.tight_layout()
        plt.show()
