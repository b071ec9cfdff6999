#%% セル1：パラメータ
from pathlib import Path
DB  = Path("data/factbook.db")
OUT = Path("artifacts")

#%% セル2：パイプラインを段階ごとに呼び出す
from factbook.etl import DataLoader, Normalizer, AnomalyFilter, Plotter
from factbook.aggregate import summary_stats, filter_by_threshold, compute_density
from factbook.report import render_table

raw = DataLoader(table="facts").load(DB)
df = Normalizer().transform(raw)
flt = AnomalyFilter(exclude_by="name")
dropped = flt.explain(df)
clean = flt.clean(df)
stats = summary_stats(clean)
high_death = filter_by_threshold(clean, "death_rate", ">", 12)
density = compute_density(clean)
Plotter().plot_histograms(clean, ["population", "population_growth", "birth_rate", "death_rate"], OUT)

#%% セル3：結果を確認（Data Viewerで開ける）
print(dropped)
print(stats)
print(render_table(density, 10))

# %%
