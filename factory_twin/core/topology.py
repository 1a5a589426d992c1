"""
工厂拓扑图
使用NetworkX构建和管理工位之间的传送带连接

功能:
- 从布局构建有向图（正向边 + 返工边）
- 出站后的路由判定（报废/完成/返工/前进）
- 传送带段上按位置排序的传感器查询
- 产线路线查询
- 拓扑有效性验证（正向图无环）

设计要点:
- 图以工位ID为键，返工边造成的环只是普通数据
- 正向边与返工边用边属性 kind 区分
- 结构错误（引用不存在的工位）在构造时抛出 LayoutError
"""

from typing import Dict, List, Optional, Tuple

import networkx as nx
import numpy as np

from factory_twin.models.enums import ExitResult, RouteKind
from factory_twin.models.layout_model import (
    FactoryLayout,
    LineConfig,
    SensorConfig,
    StationConfig,
)


EDGE_FORWARD = "forward"
EDGE_REWORK = "rework"


class LayoutError(ValueError):
    """布局结构错误"""


class TopologyGraph:
    """
    工厂拓扑图

    使用NetworkX DiGraph管理工位连接关系
    """

    def __init__(self, layout: FactoryLayout):
        """
        初始化拓扑图

        Args:
            layout: 工厂布局

        Raises:
            LayoutError: 下游/返工/传感器引用了不存在的工位
        """
        self.layout = layout
        self.graph = nx.DiGraph()
        self.stations: Dict[str, StationConfig] = dict(layout.stations)
        self.sensors: Dict[str, SensorConfig] = {}
        self._belt_sensors: Dict[Tuple[str, str], List[SensorConfig]] = {}

        self._build_graph()

    def _build_graph(self):
        """从布局构建图"""
        for station_id, station in self.stations.items():
            self.graph.add_node(station_id, data=station)

        for station_id, station in self.stations.items():
            for next_id in station.next_stations:
                if next_id not in self.stations:
                    raise LayoutError(f"工位 {station_id} 的下游 {next_id} 不存在")
                self.graph.add_edge(station_id, next_id, kind=EDGE_FORWARD)
            if station.rework_target:
                if station.rework_target not in self.stations:
                    raise LayoutError(
                        f"工位 {station_id} 的返工目标 {station.rework_target} 不存在"
                    )
                # 正向边优先，返工边不覆盖
                if not self.graph.has_edge(station_id, station.rework_target):
                    self.graph.add_edge(station_id, station.rework_target, kind=EDGE_REWORK)

        for sensor in self.layout.sensors:
            for ref in sensor.belt:
                if ref not in self.stations:
                    raise LayoutError(f"传感器 {sensor.sensor_id} 引用的工位 {ref} 不存在")
            self.sensors[sensor.sensor_id] = sensor
            self._belt_sensors.setdefault(sensor.belt, []).append(sensor)

        for sensors in self._belt_sensors.values():
            sensors.sort(key=lambda s: s.position_on_belt)

    def validate(self) -> Tuple[bool, str]:
        """
        验证拓扑有效性

        检查:
        - 正向图是否无环（返工边允许成环）
        - 是否有入口工位

        Returns:
            (是否有效, 验证消息)
        """
        forward = self.forward_graph()
        if not nx.is_directed_acyclic_graph(forward):
            try:
                cycle = nx.find_cycle(forward)
                cycle_str = " -> ".join([f"{u}" for u, v in cycle])
                return False, f"正向连接存在环: {cycle_str}"
            except nx.NetworkXNoCycle:
                pass
            return False, "正向连接存在环"

        if self.stations and not self.get_entry_stations():
            return False, "没有找到入口工位"

        return True, "验证通过"

    def forward_graph(self) -> nx.DiGraph:
        """仅包含正向边的子图"""
        edges = [
            (u, v) for u, v, kind in self.graph.edges(data="kind")
            if kind == EDGE_FORWARD
        ]
        sub = nx.DiGraph()
        sub.add_nodes_from(self.graph.nodes())
        sub.add_edges_from(edges)
        return sub

    def get_station(self, station_id: str) -> Optional[StationConfig]:
        """获取工位配置"""
        return self.stations.get(station_id)

    def get_sensor(self, sensor_id: str) -> Optional[SensorConfig]:
        """获取传感器配置"""
        return self.sensors.get(sensor_id)

    def has_station(self, station_id: str) -> bool:
        return station_id in self.stations

    def get_downstream(self, station_id: str) -> List[str]:
        """获取下游工位（保持布局中的顺序）"""
        station = self.stations.get(station_id)
        return list(station.next_stations) if station else []

    def get_rework_target(self, station_id: str) -> Optional[str]:
        station = self.stations.get(station_id)
        return station.rework_target if station else None

    def get_entry_stations(self) -> List[str]:
        """获取入口工位（正向入度为0）"""
        forward = self.forward_graph()
        return [n for n in forward.nodes() if forward.in_degree(n) == 0]

    def sensors_on_belt(self, from_station_id: str, to_station_id: str) -> List[SensorConfig]:
        """
        获取传送带段上的传感器

        Args:
            from_station_id: 起点工位
            to_station_id: 终点工位

        Returns:
            按位置升序排列的传感器（无传感器返回空列表）
        """
        return list(self._belt_sensors.get((from_station_id, to_station_id), []))

    def sensors_after(
        self,
        from_station_id: str,
        to_station_id: str,
        sensor_id: Optional[str]
    ) -> List[SensorConfig]:
        """
        获取传送带段上位于指定传感器之后的传感器

        指定传感器不在该段上时返回全部传感器
        """
        sensors = self.sensors_on_belt(from_station_id, to_station_id)
        for i, sensor in enumerate(sensors):
            if sensor.sensor_id == sensor_id:
                return sensors[i + 1:]
        return sensors

    def route_after_exit(
        self,
        station_id: str,
        result: ExitResult,
        rng: Optional[np.random.Generator] = None
    ) -> Tuple[RouteKind, Optional[str]]:
        """
        出站后的路由判定

        - nok → 报废
        - rework 且配置了返工目标 → 返工
        - 无下游工位 → 完成
        - 否则从下游中均匀随机选择一个

        Args:
            station_id: 出站工位
            result: 出站结果
            rng: 随机数生成器（None 时取第一个下游）

        Returns:
            (路由去向, 目标工位ID)
        """
        if result == ExitResult.NOK:
            return RouteKind.SCRAP, None

        rework_target = self.get_rework_target(station_id)
        if result == ExitResult.REWORK and rework_target:
            return RouteKind.REWORK, rework_target

        downstream = self.get_downstream(station_id)
        if not downstream:
            return RouteKind.COMPLETE, None

        if len(downstream) == 1 or rng is None:
            return RouteKind.FORWARD, downstream[0]
        return RouteKind.FORWARD, downstream[int(rng.integers(len(downstream)))]

    def get_lines(self) -> List[LineConfig]:
        """获取所有产线路线"""
        return self.layout.get_lines()

    def get_station_count(self) -> int:
        return len(self.stations)

    def get_sensor_count(self) -> int:
        return len(self.sensors)
