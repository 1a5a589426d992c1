"""
状态跟踪器
消费领域事件流，维护零件/工位/传感器的权威状态

功能:
- 每种事件一个处理函数，返回事件是否被接受
- 终态零件（completed/scrapped）不再接受进站/出站/上传送带
- 重复投递抑制（同一零件同一工位同一时间的进站、同一传感器同一时间的判定）
- 指标环形缓冲（固定容量，淘汰最早样本）
- 快照、零件查询与搜索

设计要点:
- 纯状态归约器，不依赖仿真时钟，可以消费任何等价的外部事件源
- 不假设事件按严格顺序到达：出站时按工位向前搜索未关闭的履历
- 领域输入从不抛出异常，拒绝即返回 False 且不产生任何影响
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from factory_twin.core.topology import TopologyGraph
from factory_twin.models.config_model import SimulatorConfig
from factory_twin.models.enums import (
    EventType,
    PartStatus,
    RouteKind,
    SensorDecision,
    StationStatus,
    TRANSIT_STOP_SENSOR_FAIL,
)
from factory_twin.models.event_model import (
    FactoryEvent,
    MetricEvent,
    PartEnterEvent,
    PartExitEvent,
    PartOverrideEvent,
    PartProcessEvent,
    SensorTriggerEvent,
    StationStatusEvent,
    TransitStartEvent,
    TransitStopEvent,
)
from factory_twin.models.part_model import Part, PartHalt, PartHistoryEntry, SensorEventRecord
from factory_twin.models.station_model import (
    KNOWN_METRIC_FIELDS,
    MetricSample,
    SensorState,
    StationState,
)
from factory_twin.utils.time_converter import parse_timestamp

logger = logging.getLogger(__name__)


class StateTracker:
    """
    状态跟踪器

    持有零件、工位、传感器三张权威状态表
    """

    def __init__(self, topology: TopologyGraph, config: Optional[SimulatorConfig] = None):
        """
        初始化状态跟踪器

        Args:
            topology: 工厂拓扑（提供工位/传感器集合与路由表）
            config: 全局配置（指标保留数量、传感器高亮时长）
        """
        self.topology = topology
        self.config = config or SimulatorConfig()

        self.parts: Dict[str, Part] = {}
        self.stations: Dict[str, StationState] = {
            station_id: StationState(station_id=station_id)
            for station_id in topology.stations
        }
        self.sensors: Dict[str, SensorState] = {
            sensor_id: SensorState(sensor_id=sensor_id)
            for sensor_id in topology.sensors
        }

        # 统计
        self.accepted_count = 0
        self.rejected_count = 0

        self._handlers: Dict[EventType, Callable[[FactoryEvent], bool]] = {
            EventType.PART_ENTER: self.handle_part_enter,
            EventType.PART_EXIT: self.handle_part_exit,
            EventType.PART_PROCESS: self.handle_part_process,
            EventType.STATION_STATUS: self.handle_station_status,
            EventType.METRIC: self.handle_metric,
            EventType.TRANSIT_START: self.handle_transit_start,
            EventType.TRANSIT_STOP: self.handle_transit_stop,
            EventType.SENSOR_TRIGGER: self.handle_sensor_trigger,
            EventType.PART_OVERRIDE: self.handle_part_override,
        }

    def apply(self, event: FactoryEvent) -> bool:
        """
        应用一个事件

        Args:
            event: 领域事件

        Returns:
            事件是否被接受
        """
        accepted = self._handlers[event.kind](event)
        if accepted:
            self.accepted_count += 1
        else:
            self.rejected_count += 1
            logger.debug("Rejected %s: %s", event.kind.value, event)
        return accepted

    # ========== 零件事件 ==========

    def handle_part_enter(self, event: PartEnterEvent) -> bool:
        """零件进站：新零件首次进站时创建"""
        station = self.stations.get(event.station_id)
        if station is None:
            return False

        part = self.parts.get(event.part_id)
        if part is None:
            part = Part(part_id=event.part_id, created_at=event.timestamp)
            self.parts[event.part_id] = part
        elif part.is_terminal:
            return False
        elif part.has_entry(event.station_id, event.timestamp):
            return False

        part.status = PartStatus.IN_STATION
        part.current_station = event.station_id
        part.current_area = event.area
        part.current_line = event.line
        part.history.append(PartHistoryEntry(
            station_id=event.station_id,
            area=event.area,
            line=event.line,
            entered_at=event.timestamp,
        ))

        station.status = StationStatus.RUNNING
        station.current_part_id = event.part_id
        return True

    def handle_part_exit(self, event: PartExitEvent) -> bool:
        """
        零件出站

        关闭该工位最近一条未出站记录，按携带的判定结果更新零件状态
        """
        part = self.parts.get(event.part_id)
        station = self.stations.get(event.station_id)
        if part is None or station is None or part.is_terminal:
            return False

        entry = part.find_open_entry(event.station_id)
        if entry is not None:
            entry.exited_at = event.timestamp
            entry.result = event.result
            entry.cycle_time_ms = event.cycle_time_ms
            entry.progress_pct = 100

        route, _ = self.topology.route_after_exit(event.station_id, event.result)
        if route == RouteKind.SCRAP:
            part.status = PartStatus.SCRAPPED
        elif route == RouteKind.COMPLETE:
            part.status = PartStatus.COMPLETED
        else:
            part.status = PartStatus.IN_TRANSIT
        part.current_station = None

        station.record_result(event.result, event.cycle_time_ms)
        # 乱序到达时工位可能已被下一个零件占用
        if station.current_part_id in (None, event.part_id):
            station.status = StationStatus.IDLE
            station.current_part_id = None
        return True

    def handle_part_process(self, event: PartProcessEvent) -> bool:
        """加工进度"""
        part = self.parts.get(event.part_id)
        if part is None:
            return False
        entry = part.find_open_entry(event.station_id)
        if entry is None:
            return False
        entry.progress_pct = event.progress_pct
        return True

    # ========== 工位事件 ==========

    def handle_station_status(self, event: StationStatusEvent) -> bool:
        """工位状态直接赋值"""
        station = self.stations.get(event.station_id)
        if station is None:
            return False
        station.status = event.status
        station.current_part_id = (
            event.current_part_id if event.status == StationStatus.RUNNING else None
        )
        return True

    def handle_metric(self, event: MetricEvent) -> bool:
        """指标样本写入环形缓冲"""
        station = self.stations.get(event.station_id)
        if station is None:
            return False

        history = station.history_for(event.metric_id, self.config.metric_history_size)
        history.append(MetricSample(
            timestamp=event.timestamp,
            value=event.value,
            unit=event.unit,
        ))
        station.latest_metrics[event.metric_id] = event.value

        field_name = KNOWN_METRIC_FIELDS.get(event.metric_id)
        if field_name == "output_count":
            station.output_count = int(event.value)
        elif field_name is not None:
            setattr(station, field_name, event.value)
        return True

    # ========== 传送带与传感器事件 ==========

    def handle_transit_start(self, event: TransitStartEvent) -> bool:
        """零件上传送带"""
        part = self.parts.get(event.part_id)
        if part is None or part.is_terminal:
            return False
        part.status = PartStatus.IN_TRANSIT
        part.current_station = None
        return True

    def handle_transit_stop(self, event: TransitStopEvent) -> bool:
        """
        传送带拦停

        已报废的零件仍接受（补全拦停记录），已完成的零件拒绝
        """
        part = self.parts.get(event.part_id)
        if part is None or part.status == PartStatus.COMPLETED:
            return False

        part.status = PartStatus.SCRAPPED
        part.current_station = None
        if part.halt is None:
            failed = part.last_failed_sensor_event()
            part.halt = PartHalt(
                sensor_id=failed.sensor_id if failed else None,
                from_station_id=event.from_station_id,
                to_station_id=event.to_station_id,
                reason=event.reason,
                timestamp=event.timestamp,
            )
        else:
            part.halt.reason = event.reason
            part.halt.timestamp = event.timestamp
        return True

    def handle_sensor_trigger(self, event: SensorTriggerEvent) -> bool:
        """
        传感器判定

        fail 判定同时使零件报废并记录拦停位置
        """
        sensor = self.sensors.get(event.sensor_id)
        part = self.parts.get(event.part_id)
        if sensor is None or part is None:
            return False
        if part.status == PartStatus.COMPLETED:
            return False
        if part.has_sensor_event(event.sensor_id, event.timestamp):
            return False

        sensor.last_triggered_at = event.timestamp
        sensor.last_decision = event.decision
        sensor.last_part_id = event.part_id
        sensor.is_active = True
        triggered = parse_timestamp(event.timestamp)
        sensor.active_until = (
            triggered + timedelta(milliseconds=self.config.sensor_active_ms)
            if triggered else None
        )

        part.sensor_events.append(SensorEventRecord(
            sensor_id=event.sensor_id,
            sensor_type=event.sensor_type,
            decision=event.decision,
            timestamp=event.timestamp,
            from_station_id=event.from_station_id,
            to_station_id=event.to_station_id,
        ))

        if event.decision == SensorDecision.FAIL:
            part.status = PartStatus.SCRAPPED
            part.current_station = None
            if part.halt is None:
                part.halt = PartHalt(
                    sensor_id=event.sensor_id,
                    from_station_id=event.from_station_id,
                    to_station_id=event.to_station_id,
                    reason=TRANSIT_STOP_SENSOR_FAIL,
                    timestamp=event.timestamp,
                )
            elif part.halt.sensor_id is None:
                part.halt.sensor_id = event.sensor_id
        return True

    # ========== 人工放行 ==========

    def can_override(self, part_id: str) -> bool:
        """零件是否处于可放行状态（被传感器拦停而报废）"""
        part = self.parts.get(part_id)
        return (
            part is not None
            and part.status == PartStatus.SCRAPPED
            and part.halt is not None
        )

    def override_part(self, part_id: str) -> Optional[Part]:
        """
        放行零件：报废 → 运输中

        Args:
            part_id: 零件ID

        Returns:
            被放行的零件，不可放行返回None
        """
        if not self.can_override(part_id):
            return None
        part = self.parts[part_id]
        part.status = PartStatus.IN_TRANSIT
        part.current_station = None
        part.halt = None
        part.override_count += 1
        return part

    def handle_part_override(self, event: PartOverrideEvent) -> bool:
        return self.override_part(event.part_id) is not None

    # ========== 查询 ==========

    def get_part(self, part_id: str) -> Optional[Part]:
        """获取零件"""
        return self.parts.get(part_id)

    def get_station(self, station_id: str) -> Optional[StationState]:
        return self.stations.get(station_id)

    def get_sensor(self, sensor_id: str, now: Optional[datetime] = None) -> Optional[SensorState]:
        sensor = self.sensors.get(sensor_id)
        if sensor is not None and now is not None:
            sensor.expire(now)
        return sensor

    def search_parts(self, query: str, limit: Optional[int] = None) -> List[Part]:
        """
        按零件ID搜索（大小写不敏感的子串匹配）

        Args:
            query: 搜索关键字
            limit: 结果上限（None 时使用配置值）

        Returns:
            匹配的零件列表
        """
        limit = limit if limit is not None else self.config.search_limit
        q = query.lower()
        matches = []
        for part in self.parts.values():
            if q in part.part_id.lower():
                matches.append(part)
                if len(matches) >= limit:
                    break
        return matches

    def get_metric_history(self, station_id: str, metric_id: str) -> List[MetricSample]:
        """获取指定工位指标的样本（按到达顺序）"""
        station = self.stations.get(station_id)
        if station is None or metric_id not in station.metric_history:
            return []
        return station.metric_history[metric_id].samples()

    def get_parts_by_status(self, status: PartStatus) -> List[Part]:
        return [p for p in self.parts.values() if p.status == status]

    def snapshot(self, now: Optional[datetime] = None) -> dict:
        """
        生成完整状态快照（连接/重连时下发）

        Args:
            now: 当前时间（用于清除过期的传感器高亮）

        Returns:
            包含零件、工位、传感器与布局的字典
        """
        if now is not None:
            for sensor in self.sensors.values():
                sensor.expire(now)
        return {
            "parts": [p.to_dict() for p in self.parts.values()],
            "stations": {k: s.to_dict() for k, s in self.stations.items()},
            "sensors": {k: s.to_dict() for k, s in self.sensors.items()},
            "layout": self.topology.layout.model_dump(mode="json"),
        }
