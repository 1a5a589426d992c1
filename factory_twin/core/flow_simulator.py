"""
产线流转仿真器
管理在制零件代理，按节奏投放新零件并发布工位指标

功能:
- 启动时发布所有工位的初始状态（idle）
- 投放进程：低于低水位时快节奏投放，否则慢节奏，不超过在制上限
- 新零件随机分配到一条产线，从产线第一个工位开始
- 指标进程：周期性发布每个工位的类型指标
- 接管人工放行的零件
- 停止时先销毁全部零件代理（释放资源），再停止自身进程

设计要点:
- 投放与指标发布各是一个SimPy进程，停止时中断
- 零件到达终态时通过回调从在制集合移除
"""

import logging
from typing import Dict, Generator, List, Optional

import simpy

from factory_twin.core.context import SimulationContext
from factory_twin.core.part_agent import PartAgent
from factory_twin.models.enums import StationStatus
from factory_twin.models.event_model import MetricEvent, StationStatusEvent
from factory_twin.models.layout_model import LineConfig
from factory_twin.utils.layout_builder import get_metric_configs

logger = logging.getLogger(__name__)


class FlowSimulator:
    """
    产线流转仿真器

    拥有拓扑、锁管理器（经由上下文）和在制零件代理集合
    """

    def __init__(self, ctx: SimulationContext, spawn_enabled: bool = True):
        """
        初始化仿真器

        Args:
            ctx: 仿真上下文
            spawn_enabled: 是否自动投放零件（测试中可关闭后手动投放）
        """
        self.ctx = ctx
        self.env = ctx.env
        self.config = ctx.config
        self.spawn_enabled = spawn_enabled

        self.lines: List[LineConfig] = [
            line for line in ctx.topology.get_lines() if line.stations
        ]
        self.active_parts: Dict[str, PartAgent] = {}
        self.part_counter = 0
        self.running = False

        # 统计
        self.parts_created = 0
        self.parts_finished = 0

        self._spawner: Optional[simpy.Process] = None
        self._publisher: Optional[simpy.Process] = None

    def start(self):
        """启动仿真器"""
        if self.running:
            return
        self.running = True
        logger.info("Starting flow simulator with %d production lines", len(self.lines))

        self.publish_initial_statuses()
        if self.spawn_enabled and self.lines:
            self._spawner = self.env.process(self._spawn_loop())
        self._publisher = self.env.process(self._metrics_loop())

    def stop(self):
        """
        停止仿真器

        先销毁全部零件代理，再中断自身进程
        """
        if not self.running:
            return
        self.running = False

        for agent in list(self.active_parts.values()):
            agent.destroy()
        self.active_parts.clear()

        active = self.env.active_process
        for proc in (self._spawner, self._publisher):
            if proc is not None and proc.is_alive and proc is not active:
                proc.interrupt("stopped")
        self._spawner = None
        self._publisher = None
        logger.info(
            "Flow simulator stopped (created: %d, finished: %d)",
            self.parts_created, self.parts_finished
        )

    def publish_initial_statuses(self):
        """发布所有工位的初始 idle 状态"""
        timestamp = self.ctx.timestamp()
        for station_id in self.ctx.topology.stations:
            self.ctx.bus.emit(StationStatusEvent(
                station_id=station_id,
                status=StationStatus.IDLE,
                timestamp=timestamp,
                current_part_id=None,
            ))

    # ========== 零件投放 ==========

    def next_part_id(self) -> str:
        """生成零件ID：PART-{年份}-{5位序号}"""
        self.part_counter += 1
        year = self.config.clock_start.year
        return f"PART-{year}-{self.part_counter:05d}"

    def next_spawn_delay(self) -> int:
        """
        下一次投放的间隔

        在制数低于低水位时使用快节奏，否则使用慢节奏
        """
        if len(self.active_parts) < self.config.low_water_parts:
            low, high = self.config.spawn_fast_range_ms
        else:
            low, high = self.config.spawn_slow_range_ms
        return self.ctx.randint(low, high)

    def _spawn_loop(self) -> Generator:
        """投放进程"""
        try:
            while self.running:
                yield self.env.timeout(self.next_spawn_delay())
                if self.running and len(self.active_parts) < self.config.max_active_parts:
                    self.create_part()
        except simpy.Interrupt:
            pass

    def create_part(self, line: Optional[LineConfig] = None) -> PartAgent:
        """
        创建新零件并从产线入口开始流转

        Args:
            line: 指定产线，None 时随机选择

        Returns:
            零件代理
        """
        if line is None:
            line = self.lines[int(self.ctx.rng.integers(len(self.lines)))]
        part_id = self.next_part_id()
        logger.info("Creating %s on %s (%s)", part_id, line.line_id, line.area)

        agent = PartAgent(self.ctx, part_id, on_finish=self._on_part_finished)
        self.active_parts[part_id] = agent
        self.parts_created += 1
        agent.start(line.stations[0])
        return agent

    def adopt_override(
        self,
        part_id: str,
        from_station_id: str,
        to_station_id: str,
        failed_sensor_id: Optional[str] = None
    ) -> PartAgent:
        """
        接管人工放行的零件，从拦停位置恢复流转

        Args:
            part_id: 零件ID
            from_station_id / to_station_id: 拦停所在传送带
            failed_sensor_id: 判定失败的传感器

        Returns:
            强制模式的零件代理
        """
        previous = self.active_parts.pop(part_id, None)
        if previous is not None:
            previous.destroy()

        agent = PartAgent(self.ctx, part_id, on_finish=self._on_part_finished, forced=True)
        self.active_parts[part_id] = agent
        agent.resume(from_station_id, to_station_id, failed_sensor_id)
        return agent

    def _on_part_finished(self, agent: PartAgent):
        if self.active_parts.get(agent.part_id) is agent:
            del self.active_parts[agent.part_id]
        self.parts_finished += 1
        logger.info(
            "%s %s (active: %d)",
            agent.part_id, agent.state.value, len(self.active_parts)
        )

    # ========== 指标发布 ==========

    def _metrics_loop(self) -> Generator:
        """指标发布进程"""
        try:
            while self.running:
                yield self.env.timeout(self.config.metrics_interval_ms)
                self.publish_metrics()
        except simpy.Interrupt:
            pass

    def publish_metrics(self):
        """
        发布每个工位的类型指标

        值 = base + (u - 0.5) × variance，保留一位小数
        """
        timestamp = self.ctx.timestamp()
        for station_id, station in self.ctx.topology.stations.items():
            for metric in get_metric_configs(station.station_type):
                value = metric.base_value + (self.ctx.rng.random() - 0.5) * metric.variance
                self.ctx.bus.emit(MetricEvent(
                    station_id=station_id,
                    metric_id=metric.metric_id,
                    value=round(value, 1),
                    unit=metric.unit,
                    timestamp=timestamp,
                ))

    def get_active_count(self) -> int:
        """获取在制零件数"""
        return len(self.active_parts)
