"""
仿真引擎主控
SimPy离散事件仿真的核心控制器

功能:
- 按配置与布局构造仿真上下文（环境、拓扑、锁、事件总线）
- 组装仿真器、状态跟踪器与人工放行编排器
- 按需推进仿真时钟
- 操作指令入口（放行、履历查询、搜索）
- 外部消息接入（主题/载荷解码后经事件总线归约）与近期事件的线上编码
- 快照、统计与运行摘要

设计要点:
- 状态跟踪器订阅事件总线，所有事件都经过它归约
- 仿真时钟单位为毫秒，可多次 advance 交替执行指令
- 停止时先停仿真器（销毁零件代理），再标记状态
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, List, Optional, Tuple, Union

import numpy as np

from factory_twin.core.context import SimulationContext
from factory_twin.core.flow_simulator import FlowSimulator
from factory_twin.core.override_orchestrator import OverrideOrchestrator
from factory_twin.core.state_tracker import StateTracker
from factory_twin.models.command_model import (
    GetPartHistoryCommand,
    OperatorCommand,
    OverridePartCommand,
    SearchPartCommand,
)
from factory_twin.models.config_model import SimulatorConfig
from factory_twin.models.enums import SimulationStatus
from factory_twin.models.layout_model import FactoryLayout
from factory_twin.models.part_model import Part
from factory_twin.models.result_model import FactoryStats, SimulationSummary
from factory_twin.models.station_model import MetricSample
from factory_twin.utils.layout_builder import build_factory_layout
from factory_twin.utils.message_codec import decode_message, encode_event
from factory_twin.utils.statistics import calculate_factory_stats
from factory_twin.utils.time_converter import format_duration_ms

logger = logging.getLogger(__name__)


class SimulationEngine:
    """
    仿真引擎主控

    负责协调整个仿真过程，包括：
    - 初始化仿真上下文和组件
    - 推进仿真时钟
    - 处理操作指令
    - 结果收集和统计
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        layout: Optional[FactoryLayout] = None,
        spawn_enabled: bool = True,
        rng: Optional[np.random.Generator] = None
    ):
        """
        初始化仿真引擎

        Args:
            config: 全局配置（None 使用默认配置）
            layout: 工厂布局（None 使用默认工厂）
            spawn_enabled: 是否自动投放零件
            rng: 随机数生成器（None 时按 random_seed 创建）
        """
        self.config = config or SimulatorConfig()
        self.layout = layout or build_factory_layout()
        self.sim_id = str(uuid.uuid4())
        self.status = SimulationStatus.PENDING
        self.created_at = datetime.now().isoformat()
        self.stopped_at: Optional[str] = None

        # 仿真组件
        self.ctx = SimulationContext.create(self.config, self.layout, rng=rng)
        self.tracker = StateTracker(self.ctx.topology, self.config)
        self.ctx.bus.subscribe_all(self.tracker.apply)
        self.simulator = FlowSimulator(self.ctx, spawn_enabled=spawn_enabled)
        self.orchestrator = OverrideOrchestrator(self.ctx, self.tracker, self.simulator)

    @property
    def env(self):
        return self.ctx.env

    @property
    def bus(self):
        return self.ctx.bus

    @property
    def now_ms(self) -> float:
        """当前仿真时间（毫秒）"""
        return self.ctx.env.now

    @property
    def now_datetime(self) -> datetime:
        """当前仿真时间对应的日历时间"""
        return self.config.clock_start + timedelta(milliseconds=self.ctx.env.now)

    # ========== 生命周期 ==========

    def start(self) -> Tuple[bool, str]:
        """
        启动仿真

        Returns:
            (是否启动, 消息)
        """
        if self.status == SimulationStatus.RUNNING:
            return True, "仿真已在运行"
        if self.status == SimulationStatus.STOPPED:
            return False, "仿真已停止，不能重新启动"

        valid, msg = self.ctx.topology.validate()
        if not valid:
            return False, msg

        self.simulator.start()
        self.status = SimulationStatus.RUNNING
        logger.info(
            "Simulation %s started (%d stations, %d sensors)",
            self.sim_id,
            self.ctx.topology.get_station_count(),
            self.ctx.topology.get_sensor_count(),
        )
        return True, "仿真已启动"

    def advance(self, duration_ms: float) -> float:
        """
        推进仿真时钟

        Args:
            duration_ms: 推进时长（毫秒）

        Returns:
            推进后的仿真时间
        """
        if self.status != SimulationStatus.RUNNING or duration_ms <= 0:
            return self.ctx.env.now
        self.ctx.env.run(until=self.ctx.env.now + duration_ms)
        return self.ctx.env.now

    def run(self, until_ms: float) -> SimulationSummary:
        """
        启动并运行到指定时刻后停止

        Args:
            until_ms: 目标仿真时刻（毫秒）

        Returns:
            运行摘要
        """
        self.start()
        self.advance(until_ms - self.ctx.env.now)
        self.shutdown()
        return self.summary()

    def shutdown(self):
        """停止仿真：销毁全部零件代理并停止后台进程"""
        if self.status == SimulationStatus.STOPPED:
            return
        self.simulator.stop()
        self.status = SimulationStatus.STOPPED
        self.stopped_at = datetime.now().isoformat()
        logger.info(
            "Simulation %s stopped after %s of simulated time",
            self.sim_id,
            format_duration_ms(self.ctx.env.now),
        )

    # ========== 指令 ==========

    def override_part(self, command: OverridePartCommand) -> Optional[Part]:
        """
        人工放行

        Args:
            command: 放行指令

        Returns:
            被放行的零件，不满足放行条件返回None
        """
        if self.status != SimulationStatus.RUNNING:
            return None
        agent = self.orchestrator.handle(command)
        if agent is None:
            return None
        return self.tracker.get_part(command.part_id)

    def get_part_history(self, part_id: str) -> Optional[Part]:
        """查询零件履历"""
        return self.tracker.get_part(part_id)

    def search_part(self, query: str) -> List[Part]:
        """按零件ID子串搜索"""
        return self.tracker.search_parts(query)

    def execute(self, command: OperatorCommand) -> Any:
        """
        执行操作指令

        Args:
            command: 任一指令模型

        Returns:
            放行/履历查询返回零件字典（或None），搜索返回零件字典列表
        """
        if isinstance(command, OverridePartCommand):
            part = self.override_part(command)
        elif isinstance(command, GetPartHistoryCommand):
            part = self.get_part_history(command.part_id)
        elif isinstance(command, SearchPartCommand):
            return [p.to_dict() for p in self.search_part(command.query)]
        else:
            raise ValueError(f"未知指令: {command!r}")
        return part.to_dict() if part else None

    # ========== 线上消息 ==========

    def ingest(self, topic: str, payload: Union[str, bytes, dict]) -> Optional[bool]:
        """
        接入一条外部消息

        解码后经事件总线发布，由状态跟踪器归约并记入事件日志

        Args:
            topic: 主题
            payload: JSON载荷

        Returns:
            事件是否被接受，消息无法解码返回None
        """
        event = decode_message(topic, payload)
        if event is None:
            logger.debug("Malformed message on %s", topic)
            return None
        return self.bus.emit(event)

    def recent_messages(self, limit: int = 100) -> List[Tuple[str, str]]:
        """
        将事件日志末尾的事件编码为 (主题, 载荷)

        放行事件不属于事件主题，跳过
        """
        encoded = (encode_event(e, self.layout.stations) for e in self.bus.get_all_events()[-limit:])
        return [m for m in encoded if m is not None]

    # ========== 查询与统计 ==========

    def snapshot(self) -> dict:
        """完整状态快照"""
        return self.tracker.snapshot(now=self.now_datetime)

    def stats(self) -> FactoryStats:
        """工厂实时统计"""
        return calculate_factory_stats(
            self.tracker.parts,
            self.tracker.stations,
            self.ctx.env.now
        )

    def get_metric_history(self, station_id: str, metric_id: str) -> List[MetricSample]:
        return self.tracker.get_metric_history(station_id, metric_id)

    def summary(self) -> SimulationSummary:
        """
        运行摘要

        Returns:
            仿真运行摘要
        """
        return SimulationSummary(
            sim_id=self.sim_id,
            status=self.status,
            sim_time_ms=self.ctx.env.now,
            events_emitted=self.ctx.bus.total_emitted,
            events_rejected=self.tracker.rejected_count,
            parts_created=self.simulator.parts_created,
            overrides=self.orchestrator.override_count,
            stats=self.stats(),
            created_at=self.created_at,
            stopped_at=self.stopped_at,
        )
