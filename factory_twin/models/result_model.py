"""
统计与运行结果模型

模型:
- StationYield: 单工位一次通过率
- FactoryStats: 工厂实时统计
- SimulationSummary: 一次仿真运行的摘要
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from factory_twin.models.enums import SimulationStatus


@dataclass
class StationYield:
    """
    单工位良率统计

    Attributes:
        station_id: 工位ID
        output_count: 出站总数
        ok_count / nok_count / rework_count: 各结果计数
    """

    station_id: str
    output_count: int = 0
    ok_count: int = 0
    nok_count: int = 0
    rework_count: int = 0

    @property
    def first_pass_yield(self) -> float:
        """一次通过率（无出站时为1）"""
        if self.output_count == 0:
            return 1.0
        return self.ok_count / self.output_count

    def to_dict(self) -> dict:
        return {
            "station_id": self.station_id,
            "output_count": self.output_count,
            "ok_count": self.ok_count,
            "nok_count": self.nok_count,
            "rework_count": self.rework_count,
            "first_pass_yield": self.first_pass_yield,
        }


@dataclass
class FactoryStats:
    """
    工厂实时统计

    Attributes:
        active_parts: 在制零件数
        completed_parts: 完成零件数
        scrapped_parts: 报废零件数
        running_stations: 运行中工位数
        total_stations: 工位总数
        avg_cycle_time_ms: 已出站记录的平均节拍
        rework_rate: 出现过返工的零件占比（%）
        throughput_per_min: 每分钟（仿真时间）完成零件数
        station_yields: 各工位良率
    """

    active_parts: int = 0
    completed_parts: int = 0
    scrapped_parts: int = 0
    running_stations: int = 0
    total_stations: int = 0
    avg_cycle_time_ms: float = 0
    rework_rate: float = 0
    throughput_per_min: float = 0
    station_yields: List[StationYield] = field(default_factory=list)

    @property
    def total_parts(self) -> int:
        return self.active_parts + self.completed_parts + self.scrapped_parts

    @property
    def scrap_rate(self) -> float:
        """报废率（%，按已结束零件计）"""
        finished = self.completed_parts + self.scrapped_parts
        if finished == 0:
            return 0
        return self.scrapped_parts / finished * 100

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            "active_parts": self.active_parts,
            "completed_parts": self.completed_parts,
            "scrapped_parts": self.scrapped_parts,
            "total_parts": self.total_parts,
            "running_stations": self.running_stations,
            "total_stations": self.total_stations,
            "avg_cycle_time_ms": self.avg_cycle_time_ms,
            "rework_rate": self.rework_rate,
            "scrap_rate": self.scrap_rate,
            "throughput_per_min": self.throughput_per_min,
            "station_yields": [s.to_dict() for s in self.station_yields],
        }


@dataclass
class SimulationSummary:
    """
    仿真运行摘要

    Attributes:
        sim_id: 仿真ID
        status: 仿真状态
        sim_time_ms: 已推进的仿真时间
        events_emitted: 发出的事件总数
        events_rejected: 被状态跟踪器拒绝的事件数
        parts_created: 投放零件数
        overrides: 人工放行次数
        stats: 工厂统计
    """

    sim_id: str
    status: SimulationStatus = SimulationStatus.PENDING
    sim_time_ms: float = 0
    events_emitted: int = 0
    events_rejected: int = 0
    parts_created: int = 0
    overrides: int = 0
    stats: FactoryStats = field(default_factory=FactoryStats)
    created_at: str = ""
    stopped_at: Optional[str] = None

    @property
    def sim_time_minutes(self) -> float:
        return self.sim_time_ms / 60000

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            "sim_id": self.sim_id,
            "status": self.status.value,
            "sim_time_ms": self.sim_time_ms,
            "sim_time_minutes": self.sim_time_minutes,
            "events_emitted": self.events_emitted,
            "events_rejected": self.events_rejected,
            "parts_created": self.parts_created,
            "overrides": self.overrides,
            "stats": self.stats.to_dict(),
            "created_at": self.created_at,
            "stopped_at": self.stopped_at,
        }


# Pydantic版本（用于API）
class SimulationSummaryModel(BaseModel):
    """仿真摘要模型（Pydantic）"""
    sim_id: str = Field(description="仿真ID")
    status: str = Field(description="仿真状态")
    sim_time_ms: float = Field(description="仿真时间（毫秒）")
    events_emitted: int = Field(default=0, description="事件总数")
    events_rejected: int = Field(default=0, description="被拒绝事件数")
    parts_created: int = Field(default=0, description="投放零件数")
    overrides: int = Field(default=0, description="人工放行次数")
    created_at: str = Field(default="", description="创建时间")
    stopped_at: Optional[str] = Field(default=None, description="停止时间")
    stats: Optional[Dict[str, Any]] = Field(default=None, description="工厂统计")
