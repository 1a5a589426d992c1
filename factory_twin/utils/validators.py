"""
数据验证工具
提供布局与仿真请求的验证功能

功能:
- 工厂布局验证（引用有效性、正向图无环）
- 仿真请求验证（配置 + 布局）
- 产线连通性检查
"""

from typing import Any, Dict, List, Set, Tuple

import networkx as nx

from factory_twin.models.config_model import SimulatorConfig
from factory_twin.models.enums import StationType
from factory_twin.models.layout_model import FactoryLayout


def validate_layout(layout: FactoryLayout) -> Tuple[bool, List[str], List[str]]:
    """
    验证工厂布局

    检查内容:
    - 工位ID与字典键一致、传感器ID唯一
    - 下游工位与返工目标存在
    - 传感器所在传送带的两端工位存在且相连
    - 加工时间范围有效
    - 正向连接无环（返工边允许成环）
    - 产线引用的工位存在

    Args:
        layout: 工厂布局

    Returns:
        (是否有效, 错误列表, 警告列表)
    """
    errors = []
    warnings = []

    if not layout.stations:
        errors.append("布局中没有任何工位")
        return False, errors, warnings

    station_ids: Set[str] = set(layout.stations.keys())

    # 1. 工位ID一致性
    for key, station in layout.stations.items():
        if key != station.station_id:
            errors.append(f"工位键'{key}'与工位ID'{station.station_id}'不一致")

    # 2. 下游与返工目标
    for station in layout.stations.values():
        for next_id in station.next_stations:
            if next_id not in station_ids:
                errors.append(f"工位'{station.station_id}'的下游'{next_id}'不存在")
        if station.rework_target is not None:
            if station.rework_target not in station_ids:
                errors.append(
                    f"工位'{station.station_id}'的返工目标'{station.rework_target}'不存在"
                )
            elif station.station_type != StationType.MEASURE:
                warnings.append(
                    f"非测量工位'{station.station_id}'配置了返工目标，永远不会触发"
                )

    # 3. 加工时间
    for station in layout.stations.values():
        low, high = station.processing_time
        if low < 0 or high < low:
            errors.append(
                f"工位'{station.station_id}'的加工时间范围无效: [{low}, {high}]"
            )
        elif high == 0:
            warnings.append(f"工位'{station.station_id}'的加工时间为0")

    # 4. 传感器
    seen_sensors: Set[str] = set()
    for sensor in layout.sensors:
        if sensor.sensor_id in seen_sensors:
            errors.append(f"重复的传感器ID: {sensor.sensor_id}")
        seen_sensors.add(sensor.sensor_id)

        from_id, to_id = sensor.belt
        if from_id not in station_ids or to_id not in station_ids:
            errors.append(f"传感器'{sensor.sensor_id}'所在传送带引用了不存在的工位")
            continue
        from_station = layout.stations[from_id]
        if to_id not in from_station.next_stations and from_station.rework_target != to_id:
            warnings.append(
                f"传感器'{sensor.sensor_id}'所在传送带 {from_id} -> {to_id} 不是已配置的连接"
            )

    # 5. 正向图无环
    graph = build_forward_graph(layout)
    if not nx.is_directed_acyclic_graph(graph):
        try:
            cycle = nx.find_cycle(graph)
            cycle_str = " -> ".join([f"{u}" for u, v in cycle])
            errors.append(f"正向连接存在环: {cycle_str}")
        except nx.NetworkXNoCycle:
            errors.append("正向连接存在环")

    # 6. 产线
    for line in layout.get_lines():
        if not line.stations:
            warnings.append(f"产线'{line.line_id}'没有工位，不会投放零件")
        for station_id in line.stations:
            if station_id not in station_ids:
                errors.append(f"产线'{line.line_id}'引用的工位'{station_id}'不存在")

    is_valid = len(errors) == 0
    return is_valid, errors, warnings


def build_forward_graph(layout: FactoryLayout) -> nx.DiGraph:
    """构建仅包含正向连接的图（忽略不存在的引用）"""
    graph = nx.DiGraph()
    for station_id in layout.stations:
        graph.add_node(station_id)
    for station in layout.stations.values():
        for next_id in station.next_stations:
            if next_id in layout.stations:
                graph.add_edge(station.station_id, next_id)
    return graph


def validate_simulation_request(
    config: SimulatorConfig,
    layout: FactoryLayout
) -> Tuple[bool, List[str], List[str]]:
    """
    验证仿真请求

    Args:
        config: 全局配置
        layout: 工厂布局

    Returns:
        (是否有效, 错误列表, 警告列表)
    """
    all_errors = []
    all_warnings = []

    config_valid, config_errors, config_warnings = config.validate_config()
    all_errors.extend(config_errors)
    all_warnings.extend(config_warnings)

    layout_valid, layout_errors, layout_warnings = validate_layout(layout)
    all_errors.extend(layout_errors)
    all_warnings.extend(layout_warnings)

    if not layout.get_lines():
        all_warnings.append("布局中没有产线，不会自动投放零件")

    is_valid = len(all_errors) == 0
    return is_valid, all_errors, all_warnings


def check_line_connectivity(layout: FactoryLayout) -> Dict[str, Any]:
    """
    检查产线连通性

    每条产线的末端工位应能从入口工位沿正向连接到达

    Args:
        layout: 工厂布局

    Returns:
        连通性分析结果
    """
    graph = build_forward_graph(layout)
    disconnected = []
    for line in layout.get_lines():
        if len(line.stations) < 2:
            continue
        entry, last = line.stations[0], line.stations[-1]
        if entry not in graph or last not in graph or not nx.has_path(graph, entry, last):
            disconnected.append(line.line_id)

    weak_components = list(nx.weakly_connected_components(graph))
    isolated = [n for n in graph.nodes() if graph.degree(n) == 0]

    return {
        "is_connected": not disconnected,
        "disconnected_lines": disconnected,
        "component_count": len(weak_components),
        "isolated_stations": isolated,
    }
