"""
API模块包
包含所有REST API端点的定义

模块说明:
- simulation.py: 仿真控制接口（同时持有仿真实例存储）
- parts.py: 零件指令接口
- state.py: 状态查询接口
- config.py: 配置管理接口
"""

from factory_twin.api import simulation, parts, state, config

__all__ = ["simulation", "parts", "state", "config"]
