"""
核心仿真模块包
包含SimPy仿真引擎的核心组件

模块说明:
- simulation_engine.py: 仿真引擎主控（组装与推进）
- context.py: 仿真上下文（共享组件）
- lock_manager.py: 工位/传送带资源锁
- sensor_evaluator.py: 传感器判定
- topology.py: 工厂拓扑图（NetworkX）
- part_agent.py: 零件代理状态机
- flow_simulator.py: 零件投放与指标发布
- state_tracker.py: 权威状态归约
- override_orchestrator.py: 人工放行编排
- event_collector.py: 事件总线
"""

from factory_twin.core.event_collector import EventCollector
from factory_twin.core.lock_manager import ResourceLockManager, belt_key
from factory_twin.core.sensor_evaluator import SensorEvaluator
from factory_twin.core.topology import TopologyGraph, LayoutError
from factory_twin.core.context import SimulationContext
from factory_twin.core.part_agent import PartAgent
from factory_twin.core.flow_simulator import FlowSimulator
from factory_twin.core.state_tracker import StateTracker
from factory_twin.core.override_orchestrator import OverrideOrchestrator
from factory_twin.core.simulation_engine import SimulationEngine

__all__ = [
    "EventCollector",
    "ResourceLockManager",
    "belt_key",
    "SensorEvaluator",
    "TopologyGraph",
    "LayoutError",
    "SimulationContext",
    "PartAgent",
    "FlowSimulator",
    "StateTracker",
    "OverrideOrchestrator",
    "SimulationEngine",
]
