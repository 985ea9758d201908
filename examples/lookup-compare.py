import sys
import time

import psutil

from keyedtable import QueryEngine, col
from keyedtable.io import CSVLoader

try:
    lookup_type = sys.argv[1]
except IndexError:
    lookup_type = None

if lookup_type not in ("index", "scan"):
    print("Lookup must be index or scan")
    sys.exit(1)

table = CSVLoader("data/ticks.csv", block_size=1024 * 1024, enum_columns=["asset"]).load()
engine = QueryEngine()
where = col("asset").eq("ASSET042") & col("day").eq(100)

proc = psutil.Process()
start = time.time()
if lookup_type == "index":
    engine.build_index(table, ["asset", "day"])
built = time.time()
for _ in range(100):
    engine.execute(table, where=where)
end = time.time()

print(
    "BUILD:",
    round(built - start, 2),
    "QUERIES:",
    round(end - built, 2),
    "MEMORY:",
    proc.memory_full_info().rss // (1024 * 1024),
)
