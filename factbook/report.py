from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from datetime import datetime as dt
from pathlib import Path

import pandas as pd

from factbook.aggregate import (
    compare_columns,
    compute_density,
    compute_water_ratio,
    filter_by_threshold,
    summary_stats,
    top_n,
)
from factbook.errors import FactbookError
from factbook.etl import AnomalyFilter, DataLoader, Normalizer, Plotter
from factbook.schema import ANALYZED_COLUMNS, BIRTH_RATE, DEATH_RATE, HISTOGRAM_COLUMNS, Record, to_records

DEFAULT_DB = Path("data/factbook.db")
DEFAULT_TABLE = "facts"
DEFAULT_OUT_DIR = Path("artifacts")

OP_NAMES = {">": "gt", ">=": "ge", "<": "lt", "<=": "le", "==": "eq", "!=": "ne"}


@dataclass
class ReportConfig:
    db_path: Path = DEFAULT_DB
    table: str = DEFAULT_TABLE
    out_dir: Path = DEFAULT_OUT_DIR
    threshold_column: str = DEATH_RATE
    threshold_op: str = ">"
    threshold_value: float = 12.0
    top: int = 10
    bins: int = 10
    exclude_by: str = "name"
    write_csv: bool = True
    verbose: bool = False


@dataclass
class ReportResult:
    raw: pd.DataFrame
    clean: pd.DataFrame
    dropped: pd.DataFrame
    stats: pd.DataFrame
    threshold_hits: pd.DataFrame
    density: pd.DataFrame
    water_ratio: pd.DataFrame
    shrinking: pd.DataFrame
    records: list[Record] = field(default_factory=list)
    figures: list[Path] = field(default_factory=list)
    digest: str = ""


def render_table(ranked: pd.DataFrame, n: int = 10) -> str:
    """Top-n rows as fixed-width text, rank starting at 1."""
    top = top_n(ranked, n)
    if top.empty:
        return "(no rows)"
    return top.to_string(float_format=lambda v: f"{v:,.2f}")


def threshold_filename(column: str, op: str, value: float) -> str:
    return f"{column}_{OP_NAMES[op]}_{value:g}.csv"


def _write_csv(df: pd.DataFrame, path: Path, index: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=index)
    print(f"[report] wrote {path}")


def build_digest(cfg: ReportConfig, result: ReportResult) -> str:
    counts = result.dropped["reason"].str.split(":").str[0].value_counts()
    dropped_str = ", ".join(f"{k}={v}" for k, v in counts.items()) or "none"
    hits = result.threshold_hits
    hits_str = hits.to_string(index=False) if not hits.empty else "(no rows)"
    shrinking = result.shrinking
    shrinking_str = shrinking.to_string(index=False) if not shrinking.empty else "(no rows)"
    largest = max(result.records, key=lambda r: r.population, default=None)
    largest_str = f"{largest.name} ({largest.population:,.0f})" if largest else "none"
    return (
        "=== FACTBOOK REPORT ===\n"
        f"when      : {dt.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"db        : {cfg.db_path} (table={cfg.table})\n"
        f"out       : {cfg.out_dir}\n"
        f"rows      : raw={len(result.raw)} -> clean={len(result.clean)} (dropped={len(result.dropped)})\n"
        f"dropped   : {dropped_str}\n"
        f"largest   : {largest_str}\n"
        f"figures   : {len(result.figures)}\n"
        "--- summary stats ---\n"
        f"{result.stats.to_string()}\n"
        f"--- {cfg.threshold_column} {cfg.threshold_op} {cfg.threshold_value:g} (n={len(hits)}) ---\n"
        f"{hits_str}\n"
        f"--- death rate exceeds birth rate (n={len(shrinking)}) ---\n"
        f"{shrinking_str}\n"
        f"--- top {cfg.top} population density ---\n"
        f"{render_table(result.density, cfg.top)}\n"
        f"--- top {cfg.top} water / land ratio ---\n"
        f"{render_table(result.water_ratio, cfg.top)}\n"
    )


def run_report(cfg: ReportConfig) -> ReportResult:
    """Load -> normalize -> filter -> aggregate -> render. Any FactbookError aborts the run."""
    loader = DataLoader(table=cfg.table)
    normalizer = Normalizer()
    anomaly_filter = AnomalyFilter(exclude_by=cfg.exclude_by)
    plotter = Plotter(bins=cfg.bins)

    if cfg.verbose: print(f"[1/5] Load: {cfg.db_path} (table={cfg.table})")
    raw = loader.load(cfg.db_path)

    if cfg.verbose: print("[2/5] Normalize population -> float64")
    df = normalizer.transform(raw)

    if cfg.verbose: print(f"[3/5] Filter anomalies (exclude_by={cfg.exclude_by})")
    dropped = anomaly_filter.explain(df)
    clean = anomaly_filter.clean(df)
    records = to_records(clean)

    if cfg.verbose: print(f"[4/5] Aggregate ({len(clean)} rows)")
    stats = summary_stats(clean, ANALYZED_COLUMNS)
    hits = filter_by_threshold(clean, cfg.threshold_column, cfg.threshold_op, cfg.threshold_value)
    density = compute_density(clean)
    water = compute_water_ratio(clean)
    shrinking = compare_columns(clean, DEATH_RATE, BIRTH_RATE)

    if cfg.write_csv:
        _write_csv(stats, cfg.out_dir / "summary_stats.csv", index=True)
        _write_csv(hits, cfg.out_dir / threshold_filename(cfg.threshold_column, cfg.threshold_op, cfg.threshold_value))
        _write_csv(density, cfg.out_dir / "density.csv")
        _write_csv(water, cfg.out_dir / "water_ratio.csv")
        _write_csv(shrinking, cfg.out_dir / "death_exceeds_birth.csv")
        _write_csv(dropped, cfg.out_dir / "dropped_rows.csv")

    if cfg.verbose: print(f"[5/5] Figures -> {cfg.out_dir}")
    figures = plotter.plot_histograms(clean, HISTOGRAM_COLUMNS, cfg.out_dir)

    result = ReportResult(
        raw=raw,
        clean=clean,
        dropped=dropped,
        stats=stats,
        threshold_hits=hits,
        density=density,
        water_ratio=water,
        shrinking=shrinking,
        records=records,
        figures=figures,
    )
    result.digest = build_digest(cfg, result)
    return result


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="CIA factbook descriptive statistics report")
    ap.add_argument("--db", dest="db_path", type=Path, default=DEFAULT_DB, help="SQLite ファイル")
    ap.add_argument("--table", default=DEFAULT_TABLE, help="読み込むテーブル名")
    ap.add_argument("--out-dir", dest="out_dir", type=Path, default=DEFAULT_OUT_DIR, help="図とCSVの保存先")
    ap.add_argument("--column", dest="threshold_column", default=DEATH_RATE, help="しきい値で絞る列")
    ap.add_argument("--op", dest="threshold_op", choices=sorted(OP_NAMES), default=">")
    ap.add_argument("--threshold", dest="threshold_value", type=float, default=12.0)
    ap.add_argument("--top", type=int, default=10, help="ランキング表の件数")
    ap.add_argument("--bins", type=int, default=10)
    ap.add_argument("--exclude-by", dest="exclude_by", choices=["name", "max"], default="name",
                    help="World 行の除外方法（name: 名前で / max: 最大人口の行）")
    ap.add_argument("--no-csv", dest="write_csv", action="store_false")
    ap.add_argument("--verbose", action="store_true", help="途中経過を表示")
    ap.add_argument("--show", action="store_true", help="図を画面に表示")
    ap.add_argument("--report", type=Path, default=None, help="実行レポートを保存する先（.txt推奨）")
    args = ap.parse_args(argv)

    cfg = ReportConfig(
        db_path=args.db_path,
        table=args.table,
        out_dir=args.out_dir,
        threshold_column=args.threshold_column,
        threshold_op=args.threshold_op,
        threshold_value=args.threshold_value,
        top=args.top,
        bins=args.bins,
        exclude_by=args.exclude_by,
        write_csv=args.write_csv,
        verbose=args.verbose,
    )

    try:
        result = run_report(cfg)
    except FactbookError as e:
        print(f"[error] {e}", file=sys.stderr)
        raise SystemExit(1) from e

    print(result.digest)

    if args.report is not None:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        with open(args.report, "w", encoding="utf-8") as f:
            f.write(result.digest)
        print(f"[report] wrote {args.report}")

    if args.show:
        Plotter(bins=cfg.bins).show(result.clean, HISTOGRAM_COLUMNS)

    print(f"Done: {len(result.figures)} figures in {cfg.out_dir}")


if __name__ == "__main__":
    main()
