"""
零件模型
定义零件实体及其履历记录

功能:
- 零件生命周期状态
- 工位访问履历（进站/出站/结果/节拍/进度）
- 传感器判定日志
- 传感器停线记录（供人工放行使用）
"""

from typing import List, Optional
from dataclasses import dataclass, field

from factory_twin.models.enums import ExitResult, PartStatus, SensorDecision, SensorType


@dataclass
class PartHistoryEntry:
    """
    工位访问记录

    Attributes:
        station_id: 工位ID
        area / line: 区域与产线
        entered_at: 进站时间
        exited_at: 出站时间（未出站为None）
        result: 出站结果
        cycle_time_ms: 加工节拍（毫秒）
        progress_pct: 加工进度（%）
    """

    station_id: str
    area: str
    line: str
    entered_at: str
    exited_at: Optional[str] = None
    result: Optional[ExitResult] = None
    cycle_time_ms: Optional[float] = None
    progress_pct: float = 0

    @property
    def is_open(self) -> bool:
        """是否尚未出站"""
        return self.exited_at is None

    def to_dict(self) -> dict:
        return {
            "station_id": self.station_id,
            "area": self.area,
            "line": self.line,
            "entered_at": self.entered_at,
            "exited_at": self.exited_at,
            "result": self.result.value if self.result else None,
            "cycle_time_ms": self.cycle_time_ms,
            "progress_pct": self.progress_pct,
        }


@dataclass
class SensorEventRecord:
    """零件经过传感器时的判定记录"""

    sensor_id: str
    sensor_type: SensorType
    decision: SensorDecision
    timestamp: str
    from_station_id: str
    to_station_id: str

    def to_dict(self) -> dict:
        return {
            "sensor_id": self.sensor_id,
            "type": self.sensor_type.value,
            "decision": self.decision.value,
            "timestamp": self.timestamp,
            "from_station_id": self.from_station_id,
            "to_station_id": self.to_station_id,
        }


@dataclass
class PartHalt:
    """零件在传送带上被传感器拦停的位置"""

    sensor_id: Optional[str]
    from_station_id: str
    to_station_id: str
    reason: str
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "sensor_id": self.sensor_id,
            "from_station_id": self.from_station_id,
            "to_station_id": self.to_station_id,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }


@dataclass
class Part:
    """
    零件实体

    completed 与 scrapped 为终态，除人工放行外不再接受任何变更

    Attributes:
        part_id: 唯一零件ID
        created_at: 首次进站时间
        status: 生命周期状态
        current_station: 当前工位（不在工位内为None）
        current_area / current_line: 当前区域与产线
        history: 工位访问履历（按时间顺序）
        sensor_events: 传感器判定日志
        halt: 传感器拦停记录
        override_count: 人工放行次数
    """

    part_id: str
    created_at: str
    status: PartStatus = field(default=PartStatus.IN_STATION)
    current_station: Optional[str] = field(default=None)
    current_area: Optional[str] = field(default=None)
    current_line: Optional[str] = field(default=None)
    history: List[PartHistoryEntry] = field(default_factory=list)
    sensor_events: List[SensorEventRecord] = field(default_factory=list)
    halt: Optional[PartHalt] = field(default=None)
    override_count: int = field(default=0)

    @property
    def is_terminal(self) -> bool:
        """是否处于终态"""
        return self.status.is_terminal

    @property
    def is_active(self) -> bool:
        """是否仍在制"""
        return self.status in (PartStatus.IN_STATION, PartStatus.IN_TRANSIT)

    def find_open_entry(self, station_id: str) -> Optional[PartHistoryEntry]:
        """
        查找指定工位最近一条未出站记录

        从后向前搜索，不假设它是最后一条（多工位事件可能交错到达）

        Args:
            station_id: 工位ID

        Returns:
            未出站记录，不存在返回None
        """
        for entry in reversed(self.history):
            if entry.station_id == station_id and entry.is_open:
                return entry
        return None

    def has_entry(self, station_id: str, entered_at: str) -> bool:
        """是否已存在相同工位、相同进站时间的记录（重复投递检测）"""
        return any(
            h.station_id == station_id and h.entered_at == entered_at
            for h in self.history
        )

    def has_sensor_event(self, sensor_id: str, timestamp: str) -> bool:
        """是否已记录相同传感器、相同时间的判定（重复投递检测）"""
        return any(
            e.sensor_id == sensor_id and e.timestamp == timestamp
            for e in self.sensor_events
        )

    def last_failed_sensor_event(self) -> Optional[SensorEventRecord]:
        """获取最近一次 fail 判定记录"""
        for event in reversed(self.sensor_events):
            if event.decision == SensorDecision.FAIL:
                return event
        return None

    def has_rework(self) -> bool:
        """履历中是否出现过返工"""
        return any(h.result == ExitResult.REWORK for h in self.history)

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            "part_id": self.part_id,
            "created_at": self.created_at,
            "status": self.status.value,
            "current_station": self.current_station,
            "current_area": self.current_area,
            "current_line": self.current_line,
            "history": [h.to_dict() for h in self.history],
            "sensor_events": [e.to_dict() for e in self.sensor_events],
            "halt": self.halt.to_dict() if self.halt else None,
            "override_count": self.override_count,
        }
