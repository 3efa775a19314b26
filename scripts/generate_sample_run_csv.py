from __future__ import annotations

import argparse
import csv
import math
import random
from pathlib import Path

from run_tracker.geo import offset_position

START_LAT = 31.2304000
START_LON = 121.4737000


def generate_fixes(
    *,
    seed: int,
    start_ms: int,
    walk_seconds: int,
    stop_seconds: int,
    speed_mps: float,
) -> list[dict[str, str]]:
    """Generate fake run rows: walk east, stand still with drift, one wild fix, walk north."""

    rng = random.Random(seed)
    rows: list[dict[str, str]] = []
    t_ms = start_ms
    north = 0.0
    east = 0.0

    def _add(n: float, e: float, accuracy: float, speed: float) -> None:
        lat, lon = offset_position(START_LAT, START_LON, n, e)
        rows.append(
            {
                "geoTime": str(t_ms),
                "latitude": f"{lat:.7f}",
                "longitude": f"{lon:.7f}",
                "horizontalAccuracy": f"{accuracy:.1f}",
                "speed": f"{speed:.2f}",
            }
        )

    # Leg 1: walk east at 1 Hz with small noise
    for _ in range(walk_seconds):
        east += speed_mps
        _add(north + rng.gauss(0, 1.0), east + rng.gauss(0, 1.0), rng.choice([3.0, 4.0, 5.0]), speed_mps)
        t_ms += 1000

    # Stop: drift inside a few meters, sparse fixes
    for _ in range(stop_seconds // 5):
        angle = rng.uniform(0, 2 * math.pi)
        r = 4.0 * math.sqrt(rng.random())
        _add(north + r * math.sin(angle), east + r * math.cos(angle), rng.choice([5.0, 8.0, 10.0]), -1.0)
        t_ms += 5000

    # One wild fix far away, then a fix with a lost signal
    _add(north + 400.0, east, 6.0, -1.0)
    t_ms += 1000
    _add(north, east, 120.0, -1.0)
    t_ms += 1000

    # Leg 2: walk north
    for _ in range(walk_seconds):
        north += speed_mps
        _add(north + rng.gauss(0, 1.0), east + rng.gauss(0, 1.0), rng.choice([3.0, 4.0, 5.0]), speed_mps)
        t_ms += 1000

    return rows


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake run CSV for demo/testing (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/run.csv", help="Output CSV path")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument("--start-ms", type=int, default=1_735_689_600_000, help="geoTime of the first fix")
    p.add_argument("--walk-seconds", type=int, default=300, help="Length of each walking leg")
    p.add_argument("--stop-seconds", type=int, default=120, help="Length of the stop in the middle")
    p.add_argument("--speed-mps", type=float, default=1.4, help="Walking speed")
    args = p.parse_args()

    rows = generate_fixes(
        seed=args.seed,
        start_ms=args.start_ms,
        walk_seconds=args.walk_seconds,
        stop_seconds=args.stop_seconds,
        speed_mps=args.speed_mps,
    )
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    fieldnames = ["geoTime", "latitude", "longitude", "horizontalAccuracy", "speed"]
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        w.writerows(rows)

    print(f"Generated: {out_path} (rows={len(rows)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
