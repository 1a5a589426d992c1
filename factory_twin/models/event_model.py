"""
领域事件模型
仿真器与状态跟踪器之间的事件契约

功能:
- 每种事件一个数据类，kind 字段标识事件类型
- 事件携带重放状态转换所需的全部ID与时间戳
- to_payload() 生成线上格式（camelCase 字段）

事件类型:
- PartEnterEvent / PartExitEvent / PartProcessEvent
- StationStatusEvent / MetricEvent
- TransitStartEvent / TransitStopEvent
- SensorTriggerEvent / PartOverrideEvent
"""

from typing import ClassVar, Optional, Union
from dataclasses import dataclass, field

from factory_twin.models.enums import (
    EventType,
    ExitResult,
    SensorDecision,
    SensorType,
    StationStatus,
)


@dataclass
class PartEnterEvent:
    """零件进站"""
    kind: ClassVar[EventType] = EventType.PART_ENTER

    part_id: str
    station_id: str
    area: str
    line: str
    timestamp: str

    def to_payload(self) -> dict:
        return {
            "partId": self.part_id,
            "timestamp": self.timestamp,
            "stationId": self.station_id,
            "area": self.area,
            "line": self.line,
        }


@dataclass
class PartExitEvent:
    """零件出站（携带判定结果与节拍）"""
    kind: ClassVar[EventType] = EventType.PART_EXIT

    part_id: str
    station_id: str
    area: str
    line: str
    result: ExitResult
    cycle_time_ms: float
    timestamp: str

    def to_payload(self) -> dict:
        return {
            "partId": self.part_id,
            "timestamp": self.timestamp,
            "stationId": self.station_id,
            "area": self.area,
            "line": self.line,
            "result": self.result.value,
            "cycleTimeMs": self.cycle_time_ms,
        }


@dataclass
class PartProcessEvent:
    """加工进度上报"""
    kind: ClassVar[EventType] = EventType.PART_PROCESS

    part_id: str
    station_id: str
    progress_pct: float
    timestamp: str

    def to_payload(self) -> dict:
        return {
            "partId": self.part_id,
            "timestamp": self.timestamp,
            "stationId": self.station_id,
            "progressPct": self.progress_pct,
        }


@dataclass
class StationStatusEvent:
    """工位状态变更"""
    kind: ClassVar[EventType] = EventType.STATION_STATUS

    station_id: str
    status: StationStatus
    timestamp: str
    current_part_id: Optional[str] = None

    def to_payload(self) -> dict:
        return {
            "stationId": self.station_id,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "currentPartId": self.current_part_id,
        }


@dataclass
class MetricEvent:
    """工位指标样本"""
    kind: ClassVar[EventType] = EventType.METRIC

    station_id: str
    metric_id: str
    value: float
    timestamp: str
    unit: str = ""

    def to_payload(self) -> dict:
        return {
            "stationId": self.station_id,
            "value": self.value,
            "unit": self.unit,
            "timestamp": self.timestamp,
        }


@dataclass
class TransitStartEvent:
    """零件上传送带"""
    kind: ClassVar[EventType] = EventType.TRANSIT_START

    part_id: str
    from_station_id: str
    to_station_id: str
    transit_time_ms: float
    timestamp: str

    def to_payload(self) -> dict:
        return {
            "partId": self.part_id,
            "fromStationId": self.from_station_id,
            "toStationId": self.to_station_id,
            "transitTimeMs": self.transit_time_ms,
            "timestamp": self.timestamp,
        }


@dataclass
class TransitStopEvent:
    """传送带拦停"""
    kind: ClassVar[EventType] = EventType.TRANSIT_STOP

    part_id: str
    from_station_id: str
    to_station_id: str
    reason: str
    timestamp: str

    def to_payload(self) -> dict:
        return {
            "partId": self.part_id,
            "fromStationId": self.from_station_id,
            "toStationId": self.to_station_id,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }


@dataclass
class SensorTriggerEvent:
    """传感器判定"""
    kind: ClassVar[EventType] = EventType.SENSOR_TRIGGER

    sensor_id: str
    part_id: str
    sensor_type: SensorType
    decision: SensorDecision
    from_station_id: str
    to_station_id: str
    timestamp: str

    def to_payload(self) -> dict:
        return {
            "sensorId": self.sensor_id,
            "partId": self.part_id,
            "type": self.sensor_type.value,
            "decision": self.decision.value,
            "timestamp": self.timestamp,
            "fromStationId": self.from_station_id,
            "toStationId": self.to_station_id,
        }


@dataclass
class PartOverrideEvent:
    """人工放行"""
    kind: ClassVar[EventType] = EventType.PART_OVERRIDE

    part_id: str
    timestamp: str
    from_station_id: Optional[str] = None
    to_station_id: Optional[str] = None
    failed_sensor_id: Optional[str] = None
    operator: str = field(default="operator")

    def to_payload(self) -> dict:
        return {
            "partId": self.part_id,
            "timestamp": self.timestamp,
            "fromStationId": self.from_station_id,
            "toStationId": self.to_station_id,
            "failedSensorId": self.failed_sensor_id,
            "operator": self.operator,
        }


FactoryEvent = Union[
    PartEnterEvent,
    PartExitEvent,
    PartProcessEvent,
    StationStatusEvent,
    MetricEvent,
    TransitStartEvent,
    TransitStopEvent,
    SensorTriggerEvent,
    PartOverrideEvent,
]
