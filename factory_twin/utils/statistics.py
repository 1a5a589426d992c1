"""
工厂统计计算工具
从状态跟踪器的权威状态计算实时统计

功能:
- 零件状态计数（在制/完成/报废）
- 运行中工位数
- 平均节拍（已出站履历）
- 返工率（出现过返工的零件占比）
- 吞吐量（每分钟仿真时间完成零件数）
- 各工位一次通过率
"""

from typing import Dict, Iterable, List

from factory_twin.models.enums import PartStatus, StationStatus
from factory_twin.models.part_model import Part
from factory_twin.models.result_model import FactoryStats, StationYield
from factory_twin.models.station_model import StationState


def calculate_avg_cycle_time(parts: Iterable[Part]) -> float:
    """
    计算平均节拍

    只统计已出站且节拍大于0的履历（跳过加工的记录节拍为0）

    Args:
        parts: 零件集合

    Returns:
        平均节拍（毫秒），无数据返回0
    """
    cycle_times = [
        h.cycle_time_ms
        for p in parts
        for h in p.history
        if h.exited_at is not None and h.cycle_time_ms
    ]
    if not cycle_times:
        return 0.0
    return sum(cycle_times) / len(cycle_times)


def calculate_rework_rate(parts: Iterable[Part]) -> float:
    """
    计算返工率

    Args:
        parts: 零件集合

    Returns:
        出现过返工的零件占比（%）
    """
    parts = list(parts)
    if not parts:
        return 0.0
    reworked = sum(1 for p in parts if p.has_rework())
    return reworked / len(parts) * 100


def calculate_throughput(completed: int, sim_time_ms: float) -> float:
    """
    计算吞吐量

    Args:
        completed: 完成零件数
        sim_time_ms: 已推进的仿真时间

    Returns:
        每分钟完成零件数
    """
    if sim_time_ms <= 0:
        return 0.0
    return completed / (sim_time_ms / 60000)


def calculate_station_yields(stations: Dict[str, StationState]) -> List[StationYield]:
    """
    计算各工位良率（仅统计有出站的工位）

    Args:
        stations: 工位运行态表

    Returns:
        按一次通过率升序排列的良率列表
    """
    yields = [
        StationYield(
            station_id=s.station_id,
            output_count=s.output_count,
            ok_count=s.ok_count,
            nok_count=s.nok_count,
            rework_count=s.rework_count,
        )
        for s in stations.values()
        if s.output_count > 0
    ]
    yields.sort(key=lambda y: (y.first_pass_yield, y.station_id))
    return yields


def calculate_factory_stats(
    parts: Dict[str, Part],
    stations: Dict[str, StationState],
    sim_time_ms: float = 0
) -> FactoryStats:
    """
    计算工厂实时统计

    Args:
        parts: 零件表
        stations: 工位运行态表
        sim_time_ms: 已推进的仿真时间

    Returns:
        工厂统计
    """
    counts = {status: 0 for status in PartStatus}
    for part in parts.values():
        counts[part.status] += 1

    return FactoryStats(
        active_parts=counts[PartStatus.IN_STATION] + counts[PartStatus.IN_TRANSIT],
        completed_parts=counts[PartStatus.COMPLETED],
        scrapped_parts=counts[PartStatus.SCRAPPED],
        running_stations=sum(
            1 for s in stations.values() if s.status == StationStatus.RUNNING
        ),
        total_stations=len(stations),
        avg_cycle_time_ms=calculate_avg_cycle_time(parts.values()),
        rework_rate=calculate_rework_rate(parts.values()),
        throughput_per_min=calculate_throughput(counts[PartStatus.COMPLETED], sim_time_ms),
        station_yields=calculate_station_yields(stations),
    )
