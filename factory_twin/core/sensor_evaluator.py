"""
传感器判定器
根据传感器的失败概率与类型给出判定结果

设计要点:
- 每次判定只抽取一个均匀分布样本
- 样本小于失败概率时，判定结果由传感器类型决定
- 无内部状态，注入同一种子的随机数生成器即可复现
"""

from typing import Optional

import numpy as np

from factory_twin.models.enums import SensorDecision, SensorType
from factory_twin.models.layout_model import SensorConfig


def negative_decision(sensor_type: SensorType) -> SensorDecision:
    """
    传感器类型对应的负面判定

    Args:
        sensor_type: 传感器类型

    Returns:
        data_check → fail, routing → rework, process_decision → skip_process
    """
    if sensor_type == SensorType.DATA_CHECK:
        return SensorDecision.FAIL
    elif sensor_type == SensorType.ROUTING:
        return SensorDecision.REWORK
    elif sensor_type == SensorType.PROCESS_DECISION:
        return SensorDecision.SKIP_PROCESS
    raise ValueError(f"未知传感器类型: {sensor_type}")


class SensorEvaluator:
    """传感器判定器"""

    def __init__(self, rng: Optional[np.random.Generator] = None):
        """
        Args:
            rng: 随机数生成器（测试时注入固定种子）
        """
        self.rng = rng if rng is not None else np.random.default_rng()

    def evaluate(self, sensor: SensorConfig) -> SensorDecision:
        """
        对一个传感器做出判定

        Args:
            sensor: 传感器配置

        Returns:
            判定结果
        """
        if self.rng.random() < sensor.fail_probability:
            return negative_decision(sensor.sensor_type)
        return SensorDecision.PASS
