"""
数据模型包
包含系统中使用的所有数据模型

模块说明:
- enums.py: 枚举定义（PartStatus, StationType, SensorDecision等）
- config_model.py: 全局配置模型
- layout_model.py: 工厂布局模型（工位、传感器、产线）
- part_model.py: 零件与履历模型
- station_model.py: 工位/传感器运行态模型
- event_model.py: 领域事件模型
- command_model.py: 操作指令模型
- result_model.py: 统计与运行摘要模型
"""

from factory_twin.models.enums import (
    PartStatus,
    StationStatus,
    StationType,
    ExitResult,
    SensorType,
    SensorDecision,
    EventType,
    AgentState,
    RouteKind,
    LockSpace,
    SimulationStatus,
    STATION_TYPE_META,
    SENSOR_TYPE_META,
    TRANSIT_STOP_SENSOR_FAIL,
)
from factory_twin.models.config_model import SimulatorConfig, load_config
from factory_twin.models.layout_model import (
    StationConfig,
    SensorConfig,
    LineConfig,
    AreaConfig,
    StationMetricConfig,
    FactoryLayout,
)
from factory_twin.models.part_model import Part, PartHistoryEntry, SensorEventRecord, PartHalt
from factory_twin.models.station_model import StationState, SensorState, MetricSample, MetricHistory
from factory_twin.models.event_model import (
    PartEnterEvent,
    PartExitEvent,
    PartProcessEvent,
    StationStatusEvent,
    MetricEvent,
    TransitStartEvent,
    TransitStopEvent,
    SensorTriggerEvent,
    PartOverrideEvent,
    FactoryEvent,
)
from factory_twin.models.command_model import (
    OverridePartCommand,
    GetPartHistoryCommand,
    SearchPartCommand,
)
from factory_twin.models.result_model import FactoryStats, StationYield, SimulationSummary

__all__ = [
    # 枚举
    "PartStatus",
    "StationStatus",
    "StationType",
    "ExitResult",
    "SensorType",
    "SensorDecision",
    "EventType",
    "AgentState",
    "RouteKind",
    "LockSpace",
    "SimulationStatus",
    "STATION_TYPE_META",
    "SENSOR_TYPE_META",
    "TRANSIT_STOP_SENSOR_FAIL",
    # 配置
    "SimulatorConfig",
    "load_config",
    # 布局
    "StationConfig",
    "SensorConfig",
    "LineConfig",
    "AreaConfig",
    "StationMetricConfig",
    "FactoryLayout",
    # 运行态
    "Part",
    "PartHistoryEntry",
    "SensorEventRecord",
    "PartHalt",
    "StationState",
    "SensorState",
    "MetricSample",
    "MetricHistory",
    # 事件
    "PartEnterEvent",
    "PartExitEvent",
    "PartProcessEvent",
    "StationStatusEvent",
    "MetricEvent",
    "TransitStartEvent",
    "TransitStopEvent",
    "SensorTriggerEvent",
    "PartOverrideEvent",
    "FactoryEvent",
    # 指令
    "OverridePartCommand",
    "GetPartHistoryCommand",
    "SearchPartCommand",
    # 结果
    "FactoryStats",
    "StationYield",
    "SimulationSummary",
]
