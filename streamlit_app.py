from __future__ import annotations

from pathlib import Path

import streamlit as st

from run_tracker.config import TrackerConfig
from run_tracker.csv_io import load_location_fixes
from run_tracker.models import DistanceUnit, LocationFix
from run_tracker.replay import ReplayResult, replay_fixes


@st.cache_data(show_spinner=False)
def _load_fixes(path_csv: str, mtime: float) -> list[LocationFix]:
    _ = mtime  # part of cache key so updated files reload automatically
    fixes, _summary = load_location_fixes(path_csv)
    return fixes


def _sidebar_config() -> TrackerConfig:
    defaults = TrackerConfig()
    st.subheader("过滤参数")
    max_accuracy_m = st.number_input("定位精度上限 max_accuracy_m（米）", value=defaults.max_accuracy_m, step=5.0)
    noise_floor_m = st.number_input("计距最小位移 noise_floor_m（米）", value=defaults.noise_floor_m, step=0.5)
    stationary_timeout_s = st.number_input(
        "静止判定时长（秒）", value=defaults.stationary_timeout_ms / 1000.0, step=5.0
    )

    with st.expander("高级参数（通常不用改）", expanded=False):
        max_speed_mps = st.number_input("速度上限 max_speed_mps", value=defaults.max_speed_mps, step=1.0)
        min_moving_speed_mps = st.number_input(
            "移动判定速度 min_moving_speed_mps", value=defaults.min_moving_speed_mps, step=0.05
        )
        stationary_noise_floor_m = st.number_input(
            "静止后恢复位移 stationary_noise_floor_m（米）", value=defaults.stationary_noise_floor_m, step=0.5
        )
        process_noise_mps = st.number_input("过程噪声 process_noise_mps", value=defaults.process_noise_mps, step=0.5)
        jitter_radius_m = st.number_input("抖动半径 jitter_radius_m（米）", value=defaults.jitter_radius_m, step=0.5)

    return defaults.with_overrides(
        max_accuracy_m=float(max_accuracy_m),
        noise_floor_m=float(noise_floor_m),
        stationary_timeout_ms=int(stationary_timeout_s * 1000),
        max_speed_mps=float(max_speed_mps),
        min_moving_speed_mps=float(min_moving_speed_mps),
        stationary_noise_floor_m=float(stationary_noise_floor_m),
        process_noise_mps=float(process_noise_mps),
        jitter_radius_m=float(jitter_radius_m),
    )


def _show_result(result: ReplayResult) -> None:
    snap = result.snapshot

    st.subheader("汇总")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("距离", snap.distance_text)
    c2.metric("用时", snap.duration_text)
    c3.metric("配速", snap.pace_text)
    c4.metric("平均速度", f"{snap.average_speed_mps:.2f} m/s")

    c5, c6 = st.columns(2)
    c5.metric("接受样本", str(snap.accepted_samples))
    c6.metric("拒绝样本", str(snap.rejected_total))
    if snap.rejected_samples:
        st.caption("拒绝原因：" + "，".join(f"{r.value}={n}" for r, n in snap.rejected_samples.items()))

    if result.timeline:
        st.subheader("距离随时间变化")
        st.line_chart(
            {
                "elapsed_s": [ms / 1000.0 for ms, _ in result.timeline],
                "distance_m": [d for _, d in result.timeline],
            },
            x="elapsed_s",
            y="distance_m",
        )

    with st.expander("逐点明细", expanded=False):
        st.dataframe([row.as_row() for row in result.trace], use_container_width=True, height=420)


def main() -> None:
    st.set_page_config(page_title="跑步轨迹回放", layout="wide")
    st.title("跑步轨迹回放：GPS 去噪与计距")

    with st.sidebar:
        st.subheader("数据")
        path_csv = st.text_input("定位 CSV 路径", value="run.csv")
        unit = DistanceUnit(st.selectbox("距离单位", [u.value for u in DistanceUnit]))
        try:
            cfg = _sidebar_config()
        except ValueError as exc:
            st.error(str(exc))
            return

    p = Path(path_csv)
    if not p.exists():
        st.error(f"找不到文件：{path_csv!r}。可以先运行 scripts/generate_sample_run_csv.py 生成示例数据。")
        return

    try:
        fixes = _load_fixes(path_csv, p.stat().st_mtime)
    except KeyError as exc:
        st.exception(exc)
        return

    with st.spinner("正在回放 ..."):
        result = replay_fixes(fixes, cfg, unit=unit)
    _show_result(result)

    st.caption("说明：回放以第一个定位点为开始、最后一个定位点为结束，按每秒一次的模拟时钟推进。")


if __name__ == "__main__":
    main()
