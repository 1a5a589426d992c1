"""
枚举定义
包含系统中使用的所有枚举类型

枚举类:
- PartStatus: 零件生命周期状态
- StationStatus: 工位运行状态
- StationType: 工位类型（决定加工时间范围与是否判定质量）
- ExitResult: 出站判定结果
- SensorType: 传感器类型
- SensorDecision: 传感器判定结果
- EventType: 领域事件类型
- AgentState: 零件代理状态机状态
- RouteKind: 出站后的路由去向
- LockSpace: 资源锁命名空间
- SimulationStatus: 仿真状态
"""

from enum import Enum


class PartStatus(str, Enum):
    """
    零件生命周期状态枚举

    Values:
        IN_STATION: 在工位内
        IN_TRANSIT: 在传送带上
        COMPLETED: 已完成（终态）
        SCRAPPED: 已报废（终态）
    """
    IN_STATION = "in_station"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    SCRAPPED = "scrapped"

    @property
    def is_terminal(self) -> bool:
        """是否为终态（终态零件不再接受任何变更）"""
        return self in (PartStatus.COMPLETED, PartStatus.SCRAPPED)


class StationStatus(str, Enum):
    """工位运行状态枚举"""
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"
    OFFLINE = "offline"
    ONLINE = "online"


class StationType(str, Enum):
    """
    工位类型枚举

    Values:
        LOAD: 上料
        MACHINE: 机加工
        BUFFER: 缓存区
        MEASURE: 测量 - 可判定 nok/rework
        INSPECTION: 终检
        PACK: 包装
        MANUAL: 手工工位
    """
    LOAD = "load"
    MACHINE = "machine"
    BUFFER = "buffer"
    MEASURE = "measure"
    INSPECTION = "inspection"
    PACK = "pack"
    MANUAL = "manual"


class ExitResult(str, Enum):
    """出站判定结果枚举"""
    OK = "ok"
    NOK = "nok"
    REWORK = "rework"


class SensorType(str, Enum):
    """
    传感器类型枚举

    Values:
        DATA_CHECK: 数据校验 - 失败时零件报废
        ROUTING: 路由判定 - 失败时零件返回上一工位
        PROCESS_DECISION: 工艺判定 - 失败时下一工位跳过加工
    """
    DATA_CHECK = "data_check"
    ROUTING = "routing"
    PROCESS_DECISION = "process_decision"


class SensorDecision(str, Enum):
    """传感器判定结果枚举"""
    PASS = "pass"
    FAIL = "fail"
    REWORK = "rework"
    SKIP_PROCESS = "skip_process"


class EventType(str, Enum):
    """
    领域事件类型枚举

    仿真器与状态跟踪器之间的事件契约
    """
    PART_ENTER = "part_enter"
    PART_EXIT = "part_exit"
    PART_PROCESS = "part_process"
    STATION_STATUS = "station_status"
    METRIC = "metric"
    TRANSIT_START = "transit_start"
    TRANSIT_STOP = "transit_stop"
    SENSOR_TRIGGER = "sensor_trigger"
    PART_OVERRIDE = "part_override"


class AgentState(str, Enum):
    """
    零件代理状态机状态

    Entering → Processing → ExitEvaluating → Transiting | 终态
    """
    CREATED = "created"
    ENTERING = "entering"
    PROCESSING = "processing"
    EXIT_EVALUATING = "exit_evaluating"
    TRANSITING = "transiting"
    COMPLETED = "completed"
    SCRAPPED = "scrapped"
    DESTROYED = "destroyed"


class RouteKind(str, Enum):
    """出站后的路由去向"""
    SCRAP = "scrap"
    COMPLETE = "complete"
    REWORK = "rework"
    FORWARD = "forward"


class LockSpace(str, Enum):
    """资源锁命名空间（工位与传送带互不冲突）"""
    STATION = "station"
    BELT = "belt"


class SimulationStatus(str, Enum):
    """
    仿真状态枚举

    Values:
        PENDING: 已创建未启动
        RUNNING: 运行中
        STOPPED: 已停止
    """
    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"


# 传送带停止原因
TRANSIT_STOP_SENSOR_FAIL = "sensor_data_check_fail"


# ============ 工位类型元数据 ============

STATION_TYPE_META = {
    StationType.LOAD: {
        "name": "Loading Dock",
        "processing_time": (3000, 6000),
        "color": "#3B82F6",
    },
    StationType.MACHINE: {
        "name": "CNC Machine",
        "processing_time": (8000, 20000),
        "color": "#10B981",
    },
    StationType.BUFFER: {
        "name": "Buffer Zone",
        "processing_time": (2000, 4000),
        "color": "#9CA3AF",
    },
    StationType.MEASURE: {
        "name": "Quality Check",
        "processing_time": (5000, 12000),
        "color": "#F59E0B",
    },
    StationType.INSPECTION: {
        "name": "Final Inspection",
        "processing_time": (4000, 10000),
        "color": "#8B5CF6",
    },
    StationType.PACK: {
        "name": "Packing Station",
        "processing_time": (3000, 8000),
        "color": "#6B7280",
    },
    StationType.MANUAL: {
        "name": "Manual Station",
        "processing_time": (5000, 15000),
        "color": "#EF4444",
    },
}


# ============ 传感器类型元数据 ============

SENSOR_TYPE_META = {
    SensorType.DATA_CHECK: {
        "label": "Data Check",
        "negative_decision": SensorDecision.FAIL,
        "fail_probability": 0.03,
    },
    SensorType.ROUTING: {
        "label": "Routing",
        "negative_decision": SensorDecision.REWORK,
        "fail_probability": 0.06,
    },
    SensorType.PROCESS_DECISION: {
        "label": "Process Decision",
        "negative_decision": SensorDecision.SKIP_PROCESS,
        "fail_probability": 0.10,
    },
}


def get_station_type_info(station_type: StationType) -> dict:
    """
    获取工位类型的详细信息

    Args:
        station_type: 工位类型枚举值

    Returns:
        包含名称、加工时间范围、颜色的字典
    """
    return STATION_TYPE_META.get(station_type, {
        "name": "Unknown",
        "processing_time": (1000, 1000),
        "color": "#000000",
    })
