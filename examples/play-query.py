from keyedtable import EngineConfig, QueryEngine, agg, col, load, select, update
from keyedtable.utils.tabulate import tabulate

engine = QueryEngine(EngineConfig(key_columns=["asset"]))
table = load("data/signals.csv")
engine.build_index(table)

print(tabulate(engine.execute(table, where=col("asset").eq("A"))))
print()
print(tabulate(engine.execute(table, select=select(mean=agg.mean(col("signal"))), by="asset")))
print()
engine.execute(table, select=update(doubled=col("signal") * 2))
print(tabulate(table, show_types=True))
