import sqlite3
from contextlib import closing

import matplotlib
matplotlib.use("Agg")

import pandas as pd
import pytest

from factbook.etl import AnomalyFilter, DataLoader, Normalizer

CREATE_FACTS = """
CREATE TABLE {table} (
    id INTEGER PRIMARY KEY,
    code VARCHAR(255) NOT NULL,
    name VARCHAR(255) NOT NULL,
    area INTEGER,
    area_land INTEGER,
    area_water INTEGER,
    population INTEGER,
    population_growth FLOAT,
    birth_rate FLOAT,
    death_rate FLOAT,
    migration_rate FLOAT,
    created_at DATETIME,
    updated_at DATETIME
)
"""

TS = "2015-11-01 13:19:49.461734"

# id, code, name, area, area_land, area_water, population, growth, birth, death, migration
FACT_ROWS = [
    (1, "af", "Afghanistan", 652230, 652230, 0, 32564342, 2.32, 38.57, 13.89, 1.51),
    (2, "al", "Albania", 28748, 27398, 1350, 3029278, 0.3, 12.92, 6.58, 3.3),
    (3, "ay", "Antarctica", 14000000, 280000, None, 0, None, None, None, None),
    (4, "xq", "Arctic Ocean", 15558000, None, None, -2147483648, None, None, None, None),
    (5, "zh", "Atlantic Ocean", 76762000, None, None, -2147483648, None, None, None, None),
    (6, "bu", "Bulgaria", 110879, 108489, 2390, 7186893, -0.58, 8.92, 14.44, 0.29),
    (7, "ch", "China", 9596960, 9326410, 270550, 1367485388, 0.45, 12.49, 7.53, 0.44),
    # death_rate exactly on the default threshold
    (8, "en", "Estonia", 45228, 42388, 2840, 1265420, -0.55, 10.51, 12.0, 3.6),
    (9, "vt", "Holy See (Vatican City)", 0, 0, 0, 842, 0.0, None, None, None),
    (10, "hk", "Hong Kong", 1108, 1073, 35, 7141106, 0.38, 9.23, 7.16, 1.68),
    (11, "mc", "Macau", 28, 28, 0, 599093, 0.8, 8.88, 4.46, 3.85),
    (12, "mn", "Monaco", 2, 2, 0, 30535, 0.12, 6.65, 9.24, 3.83),
    (13, "rs", "Russia", 17098242, 16377742, 720500, 142423773, -0.04, 11.6, 13.69, 1.69),
    (14, "xx", "World", 510072000, 148940000, 361132000, 7256490011, 1.08, 18.6, 7.8, None),
]

CLEAN_NAMES = [
    "Afghanistan", "Albania", "Bulgaria", "China", "Estonia",
    "Hong Kong", "Macau", "Monaco", "Russia",
]


def make_db(path, rows=FACT_ROWS, table="facts"):
    with closing(sqlite3.connect(path)) as conn:
        conn.execute(CREATE_FACTS.format(table=table))
        conn.executemany(
            f"INSERT INTO {table} VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [row + (TS, TS) for row in rows],
        )
        conn.commit()
    return path


@pytest.fixture
def facts_db(tmp_path):
    return make_db(tmp_path / "factbook.db")


@pytest.fixture
def raw_facts(facts_db):
    return DataLoader().load(facts_db)


@pytest.fixture
def clean_facts(raw_facts):
    return AnomalyFilter().clean(Normalizer().transform(raw_facts))


def frame(rows, columns=("name", "population", "area_land")):
    return pd.DataFrame(rows, columns=list(columns))
