import pytest

from factbook.aggregate import compute_density
from factbook.report import ReportConfig, main, render_table, run_report, threshold_filename


def test_threshold_filename():
    assert threshold_filename("death_rate", ">", 12.0) == "death_rate_gt_12.csv"
    assert threshold_filename("birth_rate", "<=", 7.5) == "birth_rate_le_7.5.csv"


def test_render_table(clean_facts):
    text = render_table(compute_density(clean_facts), 2)
    lines = text.splitlines()
    assert "Macau" in lines[-2] and "21,396.18" in lines[-2]
    assert "Monaco" in lines[-1]
    assert "Hong Kong" not in text


def test_render_empty_table(clean_facts):
    assert render_table(compute_density(clean_facts.iloc[0:0])) == "(no rows)"


def test_run_report_writes_outputs(facts_db, tmp_path):
    out_dir = tmp_path / "artifacts"
    result = run_report(ReportConfig(db_path=facts_db, out_dir=out_dir))
    assert len(result.raw) == 14
    assert len(result.clean) == 9
    assert len(result.dropped) == 5
    assert result.threshold_hits["name"].tolist() == ["Afghanistan", "Bulgaria", "Russia"]
    assert result.density["name"].iloc[0] == "Macau"
    for name in ["summary_stats.csv", "death_rate_gt_12.csv", "density.csv",
                 "water_ratio.csv", "death_exceeds_birth.csv", "dropped_rows.csv"]:
        assert (out_dir / name).exists(), name
    assert sorted(p.name for p in result.figures) == [
        "hist_birth_rate.png", "hist_death_rate.png",
        "hist_population.png", "hist_population_growth.png",
    ]
    assert "rows      : raw=14 -> clean=9 (dropped=5)" in result.digest
    assert "sentinel=2" in result.digest
    assert "--- top 10 population density ---" in result.digest


def test_run_report_without_csv(facts_db, tmp_path):
    out_dir = tmp_path / "out"
    run_report(ReportConfig(db_path=facts_db, out_dir=out_dir, write_csv=False))
    assert not list(out_dir.glob("*.csv"))
    assert len(list(out_dir.glob("*.png"))) == 4


def test_main_prints_digest(facts_db, tmp_path, capsys):
    report = tmp_path / "run.txt"
    main(["--db", str(facts_db), "--out-dir", str(tmp_path / "a"), "--verbose",
          "--report", str(report), "--top", "3"])
    out = capsys.readouterr().out
    assert "[1/5] Load" in out
    assert "=== FACTBOOK REPORT ===" in out
    assert "--- top 3 population density ---" in out
    assert report.read_text(encoding="utf-8").startswith("=== FACTBOOK REPORT ===")


def test_main_missing_db_exits_1(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--db", str(tmp_path / "missing.db"), "--out-dir", str(tmp_path / "a")])
    assert exc.value.code == 1
    assert "[error]" in capsys.readouterr().err


def test_main_unknown_table_exits_1(facts_db, tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--db", str(facts_db), "--table", "nope", "--out-dir", str(tmp_path / "a")])
    assert exc.value.code == 1
    assert "table not found" in capsys.readouterr().err


def test_csv_writes_are_announced_without_verbose(facts_db, tmp_path, capsys):
    out_dir = tmp_path / "quiet"
    run_report(ReportConfig(db_path=facts_db, out_dir=out_dir))
    out = capsys.readouterr().out
    assert f"[report] wrote {out_dir / 'density.csv'}" in out
    assert "[1/5]" not in out


def test_run_report_typed_records(facts_db, tmp_path):
    result = run_report(ReportConfig(db_path=facts_db, out_dir=tmp_path / "r", write_csv=False))
    assert [r.name for r in result.records] == result.clean["name"].tolist()
    assert all(r.population > 0 for r in result.records)
    assert "largest   : China (1,367,485,388)" in result.digest
