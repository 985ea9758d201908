import csv
import os
import random
from datetime import datetime, timedelta

if not os.path.exists("data"):
    os.mkdir("data")

if not os.path.exists("data/signals.csv"):
    # Few rows, used by the command line examples.
    with open("data/signals.csv", "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["id", "asset", "signal"])
        writer.writerows([[1, "A", 1.0], [2, "B", 2.0], [3, "A", 3.0], [4, "B", 4.0]])

if not os.path.exists("data/ticks.csv"):
    # Many rows, used to compare index lookups with full scans.
    assets = [f"ASSET{i:03d}" for i in range(500)]
    start_date = datetime(2024, 1, 1)

    with open("data/ticks.csv", "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["id", "asset", "day", "signal", "timestamp"])
        for i in range(1_000_000):
            day = random.randint(0, 365)
            when = start_date + timedelta(days=day, seconds=random.randint(0, 86399))
            writer.writerow(
                [
                    i,
                    random.choice(assets),
                    day,
                    round(random.gauss(0, 1), 4),
                    when.strftime("%Y-%m-%d %H:%M:%S"),
                ]
            )
