"""
工位与传感器运行态模型

功能:
- 工位状态、当前零件、结果计数
- 定长指标历史（环形缓冲）
- 传感器最近一次触发信息
"""

from collections import deque
from datetime import datetime
from typing import Deque, Dict, List, Optional
from dataclasses import dataclass, field

from factory_twin.models.enums import ExitResult, SensorDecision, StationStatus


# 指标ID -> 工位状态上的便捷字段
KNOWN_METRIC_FIELDS = {
    "temperature": "temperature",
    "cycle_time": "cycle_time_ms",
    "output_count": "output_count",
}


@dataclass
class MetricSample:
    """单个指标样本"""

    timestamp: str
    value: float
    unit: str = ""


class MetricHistory:
    """
    指标环形缓冲

    超出容量时淘汰最早的样本，保留顺序与到达顺序一致
    """

    def __init__(self, capacity: int = 60):
        self.capacity = capacity
        self._samples: Deque[MetricSample] = deque(maxlen=capacity)

    def append(self, sample: MetricSample):
        self._samples.append(sample)

    def values(self) -> List[float]:
        return [s.value for s in self._samples]

    def samples(self) -> List[MetricSample]:
        return list(self._samples)

    def latest(self) -> Optional[MetricSample]:
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)


@dataclass
class StationState:
    """
    工位运行态

    current_part_id 仅在 status 为 running 时非空

    Attributes:
        station_id: 工位ID
        status: 运行状态
        current_part_id: 当前加工零件
        output_count: 出站总数
        ok_count / nok_count / rework_count: 结果计数
        temperature / cycle_time_ms: 最新指标值
        latest_metrics: 所有指标的最新值
        metric_history: 指标ID -> 环形缓冲
    """

    station_id: str
    status: StationStatus = field(default=StationStatus.IDLE)
    current_part_id: Optional[str] = field(default=None)
    output_count: int = field(default=0)
    ok_count: int = field(default=0)
    nok_count: int = field(default=0)
    rework_count: int = field(default=0)
    temperature: Optional[float] = field(default=None)
    cycle_time_ms: Optional[float] = field(default=None)
    latest_metrics: Dict[str, float] = field(default_factory=dict)
    metric_history: Dict[str, MetricHistory] = field(default_factory=dict)

    def record_result(self, result: ExitResult, cycle_time_ms: float):
        """
        累加出站结果计数

        Args:
            result: 出站结果
            cycle_time_ms: 加工节拍
        """
        self.output_count += 1
        self.cycle_time_ms = cycle_time_ms
        if result == ExitResult.OK:
            self.ok_count += 1
        elif result == ExitResult.NOK:
            self.nok_count += 1
        elif result == ExitResult.REWORK:
            self.rework_count += 1

    def history_for(self, metric_id: str, capacity: int) -> MetricHistory:
        """获取（必要时创建）指定指标的环形缓冲"""
        if metric_id not in self.metric_history:
            self.metric_history[metric_id] = MetricHistory(capacity)
        return self.metric_history[metric_id]

    def to_dict(self) -> dict:
        return {
            "station_id": self.station_id,
            "status": self.status.value,
            "current_part_id": self.current_part_id,
            "metrics": {
                "output_count": self.output_count,
                "ok_count": self.ok_count,
                "nok_count": self.nok_count,
                "rework_count": self.rework_count,
                "temperature": self.temperature,
                "cycle_time_ms": self.cycle_time_ms,
                **self.latest_metrics,
            },
        }


@dataclass
class SensorState:
    """
    传感器运行态

    is_active 仅用于观测，触发后保持 sensor_active_ms 后自动清除
    """

    sensor_id: str
    last_triggered_at: Optional[str] = field(default=None)
    last_decision: Optional[SensorDecision] = field(default=None)
    last_part_id: Optional[str] = field(default=None)
    is_active: bool = field(default=False)
    active_until: Optional[datetime] = field(default=None)

    def expire(self, now: datetime):
        """高亮时间结束后清除 active 标记"""
        if self.is_active and self.active_until is not None and now >= self.active_until:
            self.is_active = False
            self.active_until = None

    def to_dict(self) -> dict:
        return {
            "sensor_id": self.sensor_id,
            "last_triggered_at": self.last_triggered_at,
            "last_decision": self.last_decision.value if self.last_decision else None,
            "last_part_id": self.last_part_id,
            "is_active": self.is_active,
        }
