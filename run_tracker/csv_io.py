"""Read recorded location exports and write replay traces as CSV."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator, Mapping, Sequence

from run_tracker.models import LocationFix

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("geoTime", "latitude", "longitude", "horizontalAccuracy")

# Exports write -1 for "unknown" in accuracy and speed.
UNKNOWN = -1.0

TRACE_FIELDS = [
    "timestamp_ms",
    "latitude",
    "longitude",
    "accuracy_m",
    "filtered_latitude",
    "filtered_longitude",
    "uncertainty_m",
    "accepted",
    "reject_reason",
    "state",
    "is_moving",
    "distance_m",
]


@dataclass(frozen=True, slots=True)
class CsvSummary:
    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def parse_fix(row: Mapping[str, str]) -> LocationFix:
    """Turn one export row into a LocationFix.

    Raises:
        ValueError: On unparsable numbers or unknown accuracy; such rows are skipped
            by the readers below.
    """

    accuracy = float(row["horizontalAccuracy"])
    if accuracy < 0:
        raise ValueError("horizontalAccuracy 未知（-1）")
    speed = float(row.get("speed") or UNKNOWN)
    return LocationFix(
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        accuracy_m=accuracy,
        timestamp_ms=int(row["geoTime"]),
        speed_mps=None if speed < 0 else speed,
    )


def _open_reader(f: IO[str]) -> csv.DictReader:
    """DictReader over an export, header checked.

    Raises:
        KeyError: If a required column is missing from a non-empty header.
    """

    reader = csv.DictReader(f)
    fieldnames = reader.fieldnames or ()
    missing = [c for c in REQUIRED_COLUMNS if c not in fieldnames]
    if fieldnames and missing:
        raise KeyError(f"CSV缺少必要字段：{', '.join(missing)}. 实际字段：{list(fieldnames)}")
    return reader


def _parse_or_none(row: Mapping[str, str]) -> LocationFix | None:
    try:
        return parse_fix(row)
    except (ValueError, TypeError):
        # 空行/损坏行（字段缺值时 DictReader 会给 None）
        return None


def iter_location_fixes(csv_path: str | Path) -> Iterator[LocationFix]:
    """Stream fixes from an export, silently skipping broken rows.

    Columns: geoTime (ms), latitude/longitude (degrees), horizontalAccuracy
    (meters, -1 = unknown) and an optional speed (m/s, -1 = unknown).

    Raises:
        KeyError: If a required column is missing.
    """

    with Path(csv_path).open("r", encoding="utf-8", newline="") as f:
        for row in _open_reader(f):
            fix = _parse_or_none(row)
            if fix is not None:
                yield fix


def load_location_fixes(csv_path: str | Path) -> tuple[list[LocationFix], CsvSummary]:
    """Load every parsable fix and count the rows that were not.

    Raises:
        KeyError: If a required column is missing.
    """

    fixes: list[LocationFix] = []
    total = 0
    with Path(csv_path).open("r", encoding="utf-8", newline="") as f:
        reader = _open_reader(f)
        fieldnames: Sequence[str] = reader.fieldnames or ()
        for row in reader:
            total += 1
            fix = _parse_or_none(row)
            if fix is not None:
                fixes.append(fix)

    summary = CsvSummary(
        rows_total=total,
        rows_parsed=len(fixes),
        rows_skipped=total - len(fixes),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return fixes, summary


def write_trace_csv(rows: Sequence[Mapping[str, object]], out_path: str | Path) -> None:
    """Write per-fix replay rows; keys outside ``TRACE_FIELDS`` are dropped."""

    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=TRACE_FIELDS, extrasaction="ignore")
        w.writeheader()
        w.writerows(rows)
