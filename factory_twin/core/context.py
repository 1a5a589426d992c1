"""
仿真上下文
一次仿真运行共享的全部组件，按引用传递给各个组件

设计要点:
- 替代全局可变状态：工位/锁/事件总线都挂在上下文上
- 仿真开始时构造，停止时整体丢弃
"""

from dataclasses import dataclass

import numpy as np
import simpy

from factory_twin.core.event_collector import EventCollector
from factory_twin.core.lock_manager import ResourceLockManager
from factory_twin.core.sensor_evaluator import SensorEvaluator
from factory_twin.core.topology import TopologyGraph
from factory_twin.models.config_model import SimulatorConfig
from factory_twin.models.layout_model import FactoryLayout
from factory_twin.utils.time_converter import ms_to_timestamp


@dataclass
class SimulationContext:
    """
    仿真上下文

    Attributes:
        env: SimPy环境（时钟单位毫秒）
        config: 全局配置
        topology: 工厂拓扑图
        locks: 资源锁管理器
        evaluator: 传感器判定器
        bus: 事件总线
        rng: 共享随机数生成器
    """

    env: simpy.Environment
    config: SimulatorConfig
    topology: TopologyGraph
    locks: ResourceLockManager
    evaluator: SensorEvaluator
    bus: EventCollector
    rng: np.random.Generator

    @classmethod
    def create(
        cls,
        config: SimulatorConfig,
        layout: FactoryLayout,
        env: simpy.Environment = None,
        rng: np.random.Generator = None
    ) -> "SimulationContext":
        """
        按配置与布局构造上下文

        Args:
            config: 全局配置
            layout: 工厂布局
            env: SimPy环境（None 时新建）
            rng: 随机数生成器（None 时按 random_seed 新建）

        Returns:
            仿真上下文
        """
        env = env if env is not None else simpy.Environment()
        rng = rng if rng is not None else np.random.default_rng(config.random_seed)
        return cls(
            env=env,
            config=config,
            topology=TopologyGraph(layout),
            locks=ResourceLockManager(env, config.lock_poll_ms),
            evaluator=SensorEvaluator(rng),
            bus=EventCollector(max_events=config.event_log_size),
            rng=rng,
        )

    def timestamp(self) -> str:
        """当前仿真时刻的ISO时间戳"""
        return ms_to_timestamp(self.env.now, self.config.clock_start)

    def randint(self, low: int, high: int) -> int:
        """闭区间 [low, high] 上的均匀整数"""
        return int(self.rng.integers(low, high + 1))
