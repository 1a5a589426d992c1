"""
消息编解码工具
领域事件与线上主题/JSON载荷之间的转换

主题格式（factory/{区域}/{产线}/...）:
- {stationId}/part/enter | part/exit | part/process
- {stationId}/status
- {stationId}/metrics/{metricId}
- transit/start | transit/stop
- sensor/{sensorId}/trigger

设计要点:
- 解码失败（JSON无法解析、主题不识别、载荷字段不合法）一律返回None，不抛出
- 载荷校验使用 pydantic 模型（camelCase 别名）
- 人工放行走指令通道，不属于事件主题
- 外部传输适配器（消息代理桥接等）经 SimulationEngine.ingest 接入消息，
  经 SimulationEngine.recent_messages 取出待发布的编码事件；HTTP 入口见 /api/state/{sim_id}/ingest 与 /messages
"""

import json
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from factory_twin.models.layout_model import StationConfig
from factory_twin.models.command_model import COMMAND_MODELS, OperatorCommand
from factory_twin.models.enums import (
    ExitResult,
    SensorDecision,
    SensorType,
    StationStatus,
)
from factory_twin.models.event_model import (
    FactoryEvent,
    MetricEvent,
    PartEnterEvent,
    PartExitEvent,
    PartProcessEvent,
    SensorTriggerEvent,
    StationStatusEvent,
    TransitStartEvent,
    TransitStopEvent,
)


TOPIC_ROOT = "factory"


# ============ 载荷模型 ============

class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _PartEnterPayload(_Payload):
    part_id: str = Field(alias="partId", min_length=1)
    timestamp: str
    station_id: Optional[str] = Field(default=None, alias="stationId")
    area: Optional[str] = None
    line: Optional[str] = None


class _PartExitPayload(_PartEnterPayload):
    result: ExitResult
    cycle_time_ms: float = Field(default=0, alias="cycleTimeMs")


class _PartProcessPayload(_Payload):
    part_id: str = Field(alias="partId", min_length=1)
    timestamp: str
    station_id: Optional[str] = Field(default=None, alias="stationId")
    progress_pct: float = Field(alias="progressPct")


class _StationStatusPayload(_Payload):
    station_id: Optional[str] = Field(default=None, alias="stationId")
    status: StationStatus
    timestamp: str
    current_part_id: Optional[str] = Field(default=None, alias="currentPartId")


class _MetricPayload(_Payload):
    station_id: Optional[str] = Field(default=None, alias="stationId")
    value: float
    unit: str = ""
    timestamp: str


class _TransitStartPayload(_Payload):
    part_id: str = Field(alias="partId", min_length=1)
    from_station_id: str = Field(alias="fromStationId")
    to_station_id: str = Field(alias="toStationId")
    transit_time_ms: float = Field(default=0, alias="transitTimeMs")
    timestamp: str


class _TransitStopPayload(_Payload):
    part_id: str = Field(alias="partId", min_length=1)
    from_station_id: str = Field(alias="fromStationId")
    to_station_id: str = Field(alias="toStationId")
    reason: str = ""
    timestamp: str


class _SensorTriggerPayload(_Payload):
    part_id: str = Field(alias="partId", min_length=1)
    sensor_type: SensorType = Field(alias="type")
    decision: SensorDecision
    timestamp: str
    from_station_id: str = Field(alias="fromStationId")
    to_station_id: str = Field(alias="toStationId")


# ============ 编码 ============

def station_topic(stations: Dict[str, StationConfig], station_id: str, suffix: str) -> Optional[str]:
    """工位主题：factory/{area}/{line}/{stationId}/{suffix}"""
    station = stations.get(station_id)
    if station is None:
        return None
    return f"{TOPIC_ROOT}/{station.area}/{station.line}/{station_id}/{suffix}"


def line_topic(stations: Dict[str, StationConfig], station_id: str, suffix: str) -> Optional[str]:
    """产线主题：factory/{area}/{line}/{suffix}，区域与产线取自指定工位"""
    station = stations.get(station_id)
    if station is None:
        return None
    return f"{TOPIC_ROOT}/{station.area}/{station.line}/{suffix}"


def encode_event(event: FactoryEvent, stations: Dict[str, StationConfig]) -> Optional[Tuple[str, str]]:
    """
    将事件编码为 (主题, JSON载荷)

    Args:
        event: 领域事件
        stations: 工位配置表（提供区域与产线）

    Returns:
        (主题, 载荷)，放行事件（走指令通道）或引用未知工位时返回None
    """
    if isinstance(event, PartEnterEvent):
        topic = station_topic(stations, event.station_id, "part/enter")
    elif isinstance(event, PartExitEvent):
        topic = station_topic(stations, event.station_id, "part/exit")
    elif isinstance(event, PartProcessEvent):
        topic = station_topic(stations, event.station_id, "part/process")
    elif isinstance(event, StationStatusEvent):
        topic = station_topic(stations, event.station_id, "status")
    elif isinstance(event, MetricEvent):
        topic = station_topic(stations, event.station_id, f"metrics/{event.metric_id}")
    elif isinstance(event, TransitStartEvent):
        topic = line_topic(stations, event.from_station_id, "transit/start")
    elif isinstance(event, TransitStopEvent):
        topic = line_topic(stations, event.from_station_id, "transit/stop")
    elif isinstance(event, SensorTriggerEvent):
        topic = line_topic(stations, event.from_station_id, f"sensor/{event.sensor_id}/trigger")
    else:
        return None

    if topic is None:
        return None
    return topic, json.dumps(event.to_payload(), ensure_ascii=False)


# ============ 解码 ============

def _load_payload(payload: Union[str, bytes, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if isinstance(payload, dict):
        return payload
    try:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        data = json.loads(payload)
    except (UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def decode_message(
    topic: str,
    payload: Union[str, bytes, Dict[str, Any]]
) -> Optional[FactoryEvent]:
    """
    将主题与载荷解码为事件

    Args:
        topic: 主题
        payload: JSON载荷（字符串/字节/已解析字典）

    Returns:
        领域事件，无法识别或不合法返回None
    """
    segments = topic.split("/")
    if len(segments) < 5 or segments[0] != TOPIC_ROOT:
        return None

    data = _load_payload(payload)
    if data is None:
        return None

    area, line, segment = segments[1], segments[2], segments[3]
    path = "/".join(segments[4:])

    try:
        if segment == "transit":
            return _decode_transit(path, data)
        if segment == "sensor":
            if len(segments) != 6 or segments[5] != "trigger":
                return None
            return _decode_sensor(segments[4], data)
        return _decode_station(segment, area, line, path, data)
    except ValidationError:
        return None


def _decode_transit(action: str, data: Dict[str, Any]) -> Optional[FactoryEvent]:
    if action == "start":
        p = _TransitStartPayload.model_validate(data)
        return TransitStartEvent(
            part_id=p.part_id,
            from_station_id=p.from_station_id,
            to_station_id=p.to_station_id,
            transit_time_ms=p.transit_time_ms,
            timestamp=p.timestamp,
        )
    if action == "stop":
        p = _TransitStopPayload.model_validate(data)
        return TransitStopEvent(
            part_id=p.part_id,
            from_station_id=p.from_station_id,
            to_station_id=p.to_station_id,
            reason=p.reason,
            timestamp=p.timestamp,
        )
    return None


def _decode_sensor(sensor_id: str, data: Dict[str, Any]) -> FactoryEvent:
    p = _SensorTriggerPayload.model_validate(data)
    return SensorTriggerEvent(
        sensor_id=sensor_id,
        part_id=p.part_id,
        sensor_type=p.sensor_type,
        decision=p.decision,
        from_station_id=p.from_station_id,
        to_station_id=p.to_station_id,
        timestamp=p.timestamp,
    )


def _decode_station(
    station_id: str,
    area: str,
    line: str,
    path: str,
    data: Dict[str, Any]
) -> Optional[FactoryEvent]:
    if path == "part/enter":
        p = _PartEnterPayload.model_validate(data)
        return PartEnterEvent(
            part_id=p.part_id,
            station_id=station_id,
            area=p.area or area,
            line=p.line or line,
            timestamp=p.timestamp,
        )
    if path == "part/exit":
        p = _PartExitPayload.model_validate(data)
        return PartExitEvent(
            part_id=p.part_id,
            station_id=station_id,
            area=p.area or area,
            line=p.line or line,
            result=p.result,
            cycle_time_ms=p.cycle_time_ms,
            timestamp=p.timestamp,
        )
    if path == "part/process":
        p = _PartProcessPayload.model_validate(data)
        return PartProcessEvent(
            part_id=p.part_id,
            station_id=station_id,
            progress_pct=p.progress_pct,
            timestamp=p.timestamp,
        )
    if path == "status":
        p = _StationStatusPayload.model_validate(data)
        return StationStatusEvent(
            station_id=station_id,
            status=p.status,
            timestamp=p.timestamp,
            current_part_id=p.current_part_id,
        )
    if path.startswith("metrics/") and path.count("/") == 1:
        p = _MetricPayload.model_validate(data)
        return MetricEvent(
            station_id=station_id,
            metric_id=path.split("/", 1)[1],
            value=p.value,
            unit=p.unit,
            timestamp=p.timestamp,
        )
    return None


# ============ 指令 ============

def parse_command(data: Union[str, bytes, Dict[str, Any]]) -> Optional[OperatorCommand]:
    """
    解析操作指令

    指令名取 command 字段（兼容 type 字段）

    Args:
        data: 指令JSON或字典

    Returns:
        指令模型，不合法返回None
    """
    body = _load_payload(data)
    if body is None:
        return None
    name = body.get("command", body.get("type"))
    model = COMMAND_MODELS.get(name) if isinstance(name, str) else None
    if model is None:
        return None
    fields = {k: v for k, v in body.items() if k not in ("command", "type")}
    try:
        return model.model_validate(fields)
    except ValidationError:
        return None
