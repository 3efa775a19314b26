"""Command-line interface for run_tracker.

Run:
    python -m run_tracker inspect --csv run.csv
    python -m run_tracker replay --csv run.csv --trace trace.csv
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict

from run_tracker.config import TrackerConfig
from run_tracker.csv_io import load_location_fixes, write_trace_csv
from run_tracker.inspect import DEFAULT_GAP_S, Spread, inspect_fixes
from run_tracker.models import DEFAULT_TZ, DistanceUnit
from run_tracker.replay import replay_fixes
from run_tracker.timeutils import dt_from_epoch_ms, format_hhmmss


def _config_from_args(args: argparse.Namespace) -> TrackerConfig:
    timeout_ms = None
    if args.stationary_timeout_seconds is not None:
        timeout_ms = int(args.stationary_timeout_seconds * 1000)
    return TrackerConfig().with_overrides(
        max_accuracy_m=args.max_accuracy_m,
        max_speed_mps=args.max_speed_mps,
        min_moving_speed_mps=args.min_moving_speed_mps,
        noise_floor_m=args.noise_floor_m,
        stationary_noise_floor_m=args.stationary_noise_floor_m,
        stationary_timeout_ms=timeout_ms,
        process_noise_mps=args.process_noise_mps,
        jitter_radius_m=args.jitter_radius_m,
        history_size=args.history_size,
    )


def _fmt_spread(s: Spread, digits: int) -> str:
    return f"count={s.count}, min={s.min:.{digits}f}, median={s.median:.{digits}f}, p95={s.p95:.{digits}f}, max={s.max:.{digits}f}"


def _cmd_inspect(args: argparse.Namespace) -> int:
    fixes, summary = load_location_fixes(args.csv)
    res = inspect_fixes(fixes, max_accuracy_m=args.max_accuracy_m, gap_s=args.gap_seconds)

    print("### CSV字段")
    print(", ".join(summary.fieldnames))
    print(f"total_rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")
    print()

    if res.min_time_ms is not None and res.max_time_ms is not None:
        start = dt_from_epoch_ms(res.min_time_ms, args.tz)
        end = dt_from_epoch_ms(res.max_time_ms, args.tz)
        print(f"### 时间范围（{args.tz}）")
        print(f"{start.isoformat(sep=' ')} ~ {end.isoformat(sep=' ')}，时长 {format_hhmmss(res.duration_s)}")
        print()

    if res.intervals_s is not None:
        print("### 采样间隔（秒）")
        print(_fmt_spread(res.intervals_s, 3))
        print(f"超过 {args.gap_seconds:g}s 的断档={res.gaps}，重复时间戳={res.duplicates_time}")
        print()

    if res.accuracy_m is not None:
        print("### 定位精度（米）")
        print(_fmt_spread(res.accuracy_m, 1))
        print(f"超过上限({args.max_accuracy_m:g}m)={res.above_accuracy_limit}")
        print()

    if args.json:
        payload = asdict(res) | {
            "duration_s": res.duration_s,
            "rows_total": summary.rows_total,
            "rows_skipped": summary.rows_skipped,
            "fieldnames": list(summary.fieldnames),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_replay(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    fixes, _ = load_location_fixes(args.csv)
    unit = DistanceUnit(args.unit)
    result = replay_fixes(fixes, cfg, unit=unit)
    snap = result.snapshot

    print(f"距离={snap.distance_text}，用时={snap.duration_text}，配速={snap.pace_text}")
    print(
        f"样本：accepted={snap.accepted_samples}, rejected={snap.rejected_total}"
        + "".join(f", {reason.value}={count}" for reason, count in sorted(snap.rejected_samples.items()))
    )

    if args.trace:
        write_trace_csv([row.as_row() for row in result.trace], args.trace)
        print(f"已导出：{args.trace}")

    if args.json:
        payload = {
            "state": snap.state.value,
            "distance_m": round(snap.distance_m, 3),
            "elapsed_ms": snap.elapsed_ms,
            "average_speed_mps": round(snap.average_speed_mps, 3),
            "distance_text": snap.distance_text,
            "duration_text": snap.duration_text,
            "pace_text": snap.pace_text,
            "accepted_samples": snap.accepted_samples,
            "rejected_samples": {r.value: n for r, n in snap.rejected_samples.items()},
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _add_policy_args(p: argparse.ArgumentParser) -> None:
    g = p.add_argument_group("过滤参数（不填则用默认值）")
    g.add_argument("--max-accuracy-m", type=float, default=None, help="定位精度上限（米），超过则丢弃")
    g.add_argument("--max-speed-mps", type=float, default=None, help="速度上限（米/秒），超过视为漂移点")
    g.add_argument("--min-moving-speed-mps", type=float, default=None, help="判定为“在移动”的最低速度")
    g.add_argument("--noise-floor-m", type=float, default=None, help="跑步状态下计入距离的最小位移（米）")
    g.add_argument(
        "--stationary-noise-floor-m",
        type=float,
        default=None,
        help="静止状态下恢复计距所需的最小位移（米）",
    )
    g.add_argument(
        "--stationary-timeout-seconds",
        type=float,
        default=None,
        help="持续多少秒未检测到移动后进入静止状态",
    )
    g.add_argument("--process-noise-mps", type=float, default=None, help="滤波器过程噪声（米/秒）")
    g.add_argument("--jitter-radius-m", type=float, default=None, help="抖动三角形判定半径（米）")
    g.add_argument("--history-size", type=int, default=None, help="运动判定窗口大小（样本数）")


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="run_tracker")
    p.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ins = sub.add_parser("inspect", help="分析定位CSV的时间范围/采样间隔/精度分布")
    p_ins.add_argument("--csv", type=str, default="run.csv", help="输入CSV路径")
    p_ins.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 UTC")
    p_ins.add_argument(
        "--max-accuracy-m",
        type=float,
        default=TrackerConfig().max_accuracy_m,
        help="统计精度超过该值的样本数",
    )
    p_ins.add_argument("--gap-seconds", type=float, default=DEFAULT_GAP_S, help="采样间隔超过该值记为断档（秒）")
    p_ins.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_ins.set_defaults(func=_cmd_inspect)

    p_rep = sub.add_parser("replay", help="用记录的定位数据回放一次跑步，输出距离/用时/配速")
    p_rep.add_argument("--csv", type=str, default="run.csv", help="输入CSV路径")
    p_rep.add_argument("--unit", type=str, default="km", choices=[u.value for u in DistanceUnit], help="距离单位")
    p_rep.add_argument("--trace", type=str, default=None, help="逐点回放明细CSV输出路径")
    p_rep.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    _add_policy_args(p_rep)
    p_rep.set_defaults(func=_cmd_replay)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except ValueError as exc:
        parser.error(str(exc))
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
