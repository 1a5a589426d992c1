"""
工厂布局生成器
按固定模板生成区域 × 产线 × 工位的完整布局

功能:
- 生成默认工厂（10个区域，每区域2条产线，每条产线10个工位）
- 测量工位返工目标指向最近的上游机加工工位
- 每段传送带中点放置一个传感器，类型循环分配
- 各工位类型的指标定义

设计要点:
- 工位ID格式: {区域前缀}-{类型}-{产线号}-{序号}
- 传感器ID格式: snsr-{区域前缀}-{产线号}-{段序号}
- 区域集合可参数化，便于测试构造小布局
"""

from typing import Dict, List, Optional, Sequence, Tuple

from factory_twin.models.enums import (
    SENSOR_TYPE_META,
    SensorType,
    StationType,
    get_station_type_info,
)
from factory_twin.models.layout_model import (
    AreaConfig,
    FactoryLayout,
    LineConfig,
    SensorConfig,
    StationConfig,
    StationMetricConfig,
    StationPosition,
)


# (前缀, 名称, 区域ID, 列, 行)
AREA_DEFS: List[Tuple[str, str, str, int, int]] = [
    ("aa", "Assembly A", "assembly-a", 0, 0),
    ("ab", "Assembly B", "assembly-b", 1, 0),
    ("wa", "Welding A", "welding-a", 0, 1),
    ("wb", "Welding B", "welding-b", 1, 1),
    ("ma", "Machining A", "machining-a", 0, 2),
    ("mb", "Machining B", "machining-b", 1, 2),
    ("pa", "Painting A", "painting-a", 0, 3),
    ("pb", "Painting B", "painting-b", 1, 3),
    ("ka", "Packaging A", "packaging-a", 0, 4),
    ("kb", "Packaging B", "packaging-b", 1, 4),
]

LINE_PATTERN: List[StationType] = [
    StationType.LOAD,
    StationType.MACHINE,
    StationType.MACHINE,
    StationType.BUFFER,
    StationType.MEASURE,
    StationType.MACHINE,
    StationType.MACHINE,
    StationType.MEASURE,
    StationType.INSPECTION,
    StationType.PACK,
]

LINES_PER_AREA = 2

SENSOR_TYPE_CYCLE: List[SensorType] = [
    SensorType.DATA_CHECK,
    SensorType.ROUTING,
    SensorType.PROCESS_DECISION,
]

# 平面图坐标
COL_X_START = (60, 860)
COL_X_END = (740, 1540)
ROW_Y_STARTS = (10, 185, 360, 535, 710)
LINE_Y_OFFSETS = (50, 120)

FIRST_DISPLAY_ID = 1001


def _metric(metric_id, label, unit, nominal, warning, base, variance) -> StationMetricConfig:
    return StationMetricConfig(
        metric_id=metric_id,
        label=label,
        unit=unit,
        nominal_min=nominal[0],
        nominal_max=nominal[1],
        warning_min=warning[0],
        warning_max=warning[1],
        base_value=base,
        variance=variance,
    )


STATION_METRIC_CONFIGS: Dict[StationType, List[StationMetricConfig]] = {
    StationType.LOAD: [
        _metric("weight", "Load Weight", "kg", (4.5, 5.5), (4.0, 6.0), 5.0, 0.8),
    ],
    StationType.MACHINE: [
        _metric("vibration", "Vibration", "mm/s", (0, 4.0), (0, 6.0), 2.5, 2.0),
        _metric("power", "Power Draw", "kW", (5.0, 15.0), (3.0, 18.0), 10.0, 5.0),
        _metric("temperature", "Temperature", "°C", (50, 75), (40, 85), 62, 12),
    ],
    StationType.MEASURE: [
        _metric("dimension", "Dimension", "mm", (99.8, 100.2), (99.5, 100.5), 100.0, 0.4),
        _metric("accuracy", "Accuracy", "%", (98.0, 100.0), (95.0, 100.0), 99.2, 2.0),
    ],
    StationType.INSPECTION: [
        _metric("score", "Quality Score", "pts", (85, 100), (70, 100), 92, 10),
        _metric("defects", "Defect Count", "pcs", (0, 2), (0, 5), 1, 2),
    ],
    StationType.MANUAL: [
        _metric("temperature", "Temperature", "°C", (18, 26), (15, 30), 22, 4),
    ],
    StationType.PACK: [
        _metric("weight", "Package Weight", "kg", (9.5, 10.5), (9.0, 11.0), 10.0, 0.7),
    ],
    StationType.BUFFER: [],
}


def get_metric_configs(station_type: StationType) -> List[StationMetricConfig]:
    """获取工位类型的指标定义（无定义返回空列表）"""
    return STATION_METRIC_CONFIGS.get(station_type, [])


def _station_x(col: int, index: int, count: int) -> float:
    span = (COL_X_END[col] - COL_X_START[col]) / max(1, count - 1)
    return round(COL_X_START[col] + index * span)


def _station_y(row: int, line_idx: int) -> float:
    return ROW_Y_STARTS[row % len(ROW_Y_STARTS)] + LINE_Y_OFFSETS[line_idx % len(LINE_Y_OFFSETS)]


def _station_id(prefix: str, station_type: StationType, line_num: int, index: int) -> str:
    return f"{prefix}-{station_type.value}-{line_num}-{index + 1:02d}"


def _rework_target(
    prefix: str,
    pattern: Sequence[StationType],
    line_num: int,
    index: int
) -> Optional[str]:
    """测量工位向上游查找最近的机加工工位"""
    if pattern[index] != StationType.MEASURE:
        return None
    for k in range(index - 1, -1, -1):
        if pattern[k] == StationType.MACHINE:
            return _station_id(prefix, StationType.MACHINE, line_num, k)
    return None


def build_factory_layout(
    area_defs: Optional[Sequence[Tuple[str, str, str, int, int]]] = None,
    pattern: Optional[Sequence[StationType]] = None,
    lines_per_area: int = LINES_PER_AREA
) -> FactoryLayout:
    """
    生成工厂布局

    Args:
        area_defs: 区域定义列表，None 时使用默认10个区域
        pattern: 每条产线的工位类型序列，None 时使用默认模板
        lines_per_area: 每个区域的产线数

    Returns:
        完整的工厂布局
    """
    area_defs = AREA_DEFS if area_defs is None else area_defs
    pattern = LINE_PATTERN if pattern is None else pattern

    stations: Dict[str, StationConfig] = {}
    sensors: List[SensorConfig] = []
    areas: List[AreaConfig] = []
    display_id = FIRST_DISPLAY_ID

    for prefix, area_name, area_id, col, row in area_defs:
        lines = []
        for line_idx in range(lines_per_area):
            line_num = line_idx + 1
            line_id = f"line-{prefix}{line_num}"
            station_ids = [
                _station_id(prefix, station_type, line_num, i)
                for i, station_type in enumerate(pattern)
            ]

            for i, station_type in enumerate(pattern):
                info = get_station_type_info(station_type)
                station_id = station_ids[i]
                stations[station_id] = StationConfig(
                    station_id=station_id,
                    display_id=str(display_id),
                    name=f"{info['name']} {prefix.upper()}-{line_num}-{i + 1:02d}",
                    area=area_id,
                    line=line_id,
                    station_type=station_type,
                    position=StationPosition(
                        x=_station_x(col, i, len(pattern)),
                        y=_station_y(row, line_idx),
                    ),
                    next_stations=[station_ids[i + 1]] if i < len(pattern) - 1 else [],
                    rework_target=_rework_target(prefix, pattern, line_num, i),
                    processing_time=info["processing_time"],
                )
                display_id += 1

            # 相邻工位之间每段传送带一个传感器
            for i in range(len(station_ids) - 1):
                sensor_type = SENSOR_TYPE_CYCLE[i % len(SENSOR_TYPE_CYCLE)]
                from_id = station_ids[i]
                sensors.append(SensorConfig(
                    sensor_id=f"snsr-{prefix}-{line_num}-{i + 1:02d}",
                    display_id=f"S-{stations[from_id].display_id}-A",
                    sensor_type=sensor_type,
                    from_station_id=from_id,
                    to_station_id=station_ids[i + 1],
                    position_on_belt=0.5,
                    fail_probability=SENSOR_TYPE_META[sensor_type]["fail_probability"],
                ))

            lines.append(LineConfig(
                line_id=line_id,
                area=area_id,
                name=f"{area_name} Line {line_num}",
                stations=station_ids,
            ))

        areas.append(AreaConfig(area_id=area_id, name=area_name, lines=lines))

    return FactoryLayout(areas=areas, stations=stations, sensors=sensors)
