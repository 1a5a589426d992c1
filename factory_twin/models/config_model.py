"""
全局配置模型
定义仿真系统的全局配置参数

配置项:
- 资源锁轮询间隔
- 加工进度上报参数
- 传送带与传感器时序
- 测量工位判定阈值
- 零件投放节奏
- 指标发布与保留
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, computed_field


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default_config.yaml"


class SimulatorConfig(BaseModel):
    """
    全局配置模型

    所有时间字段单位均为毫秒（SimPy 时钟单位）

    Attributes:
        lock_poll_ms: 资源被占用时的重试间隔
        progress_tick_ms: 加工进度上报周期
        transit_time_range_ms: 传送带运输时长范围 [min, max]
        standard_transit_ms: 人工放行后使用的标准运输时长
        nok_threshold: 测量工位 nok 概率
        rework_threshold: 测量工位 nok+rework 累计概率
        low_water_parts: 在制零件低水位
        max_active_parts: 在制零件上限
        metric_history_size: 每个工位每个指标保留的样本数
        event_log_size: 事件总线保留的最近事件数
        random_seed: 随机种子（None为随机）
        clock_start: 仿真零点对应的日历时间
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "lock_poll_ms": 500,
                "progress_tick_ms": 2000,
                "transit_time_range_ms": [3000, 6000],
                "nok_threshold": 0.03,
                "rework_threshold": 0.15,
                "max_active_parts": 10,
                "random_seed": 42,
            }
        },
    )

    # 资源锁
    lock_poll_ms: float = Field(
        default=500,
        gt=0,
        description="资源占用时的轮询间隔（毫秒）"
    )

    # 加工阶段
    progress_tick_ms: float = Field(
        default=2000,
        gt=0,
        description="加工进度上报周期（毫秒）"
    )
    progress_cap_pct: float = Field(
        default=99,
        ge=0,
        lt=100,
        description="出站前进度上限（%）"
    )
    progress_jitter_pct: float = Field(
        default=5,
        ge=0,
        description="每次进度上报的随机抖动上限（%）"
    )
    skip_process_delay_ms: float = Field(
        default=500,
        ge=0,
        description="跳过加工时的出站延时（毫秒）"
    )

    # 传送带
    transit_time_range_ms: Tuple[int, int] = Field(
        default=(3000, 6000),
        description="运输时长范围（毫秒）"
    )
    min_sensor_delay_ms: float = Field(
        default=100,
        ge=0,
        description="到达下一个传感器的最小延时（毫秒）"
    )
    min_remaining_transit_ms: float = Field(
        default=200,
        ge=0,
        description="最后一个传感器之后的最小剩余运输时长（毫秒）"
    )
    standard_transit_ms: float = Field(
        default=4500,
        gt=0,
        description="人工放行后的标准运输时长（毫秒）"
    )

    # 测量工位判定
    nok_threshold: float = Field(
        default=0.03,
        ge=0,
        le=1,
        description="nok 概率"
    )
    rework_threshold: float = Field(
        default=0.15,
        ge=0,
        le=1,
        description="nok + rework 累计概率"
    )

    # 零件投放
    spawn_fast_range_ms: Tuple[int, int] = Field(
        default=(3000, 6000),
        description="低于低水位时的投放间隔（毫秒）"
    )
    spawn_slow_range_ms: Tuple[int, int] = Field(
        default=(8000, 15000),
        description="高于低水位时的投放间隔（毫秒）"
    )
    low_water_parts: int = Field(
        default=5,
        ge=0,
        description="在制零件低水位"
    )
    max_active_parts: int = Field(
        default=10,
        ge=1,
        description="在制零件上限"
    )

    # 指标与观测
    metrics_interval_ms: float = Field(
        default=5000,
        gt=0,
        description="工位指标发布周期（毫秒）"
    )
    metric_history_size: int = Field(
        default=60,
        ge=1,
        description="每个指标保留的样本数"
    )
    sensor_active_ms: float = Field(
        default=2000,
        ge=0,
        description="传感器触发后的高亮时长（毫秒）"
    )
    search_limit: int = Field(
        default=20,
        ge=1,
        description="零件搜索结果上限"
    )
    event_log_size: int = Field(
        default=10000,
        ge=1,
        description="事件总线保留的最近事件数"
    )

    random_seed: Optional[int] = Field(
        default=None,
        description="随机种子（用于复现结果，None为随机）"
    )
    clock_start: datetime = Field(
        default=datetime(2026, 1, 1, 8, 0, 0),
        description="仿真零点对应的日历时间"
    )

    @computed_field
    @property
    def rework_band(self) -> float:
        """
        rework 判定区间宽度

        Returns:
            rework_threshold - nok_threshold
        """
        return max(0.0, self.rework_threshold - self.nok_threshold)

    def validate_config(self) -> tuple:
        """
        验证配置有效性

        Returns:
            (是否有效, 错误列表, 警告列表)
        """
        errors = []
        warnings = []

        for name in ("transit_time_range_ms", "spawn_fast_range_ms", "spawn_slow_range_ms"):
            low, high = getattr(self, name)
            if low < 0 or high < low:
                errors.append(f"{name} 范围无效: [{low}, {high}]")

        if self.rework_threshold < self.nok_threshold:
            errors.append("rework_threshold 不能小于 nok_threshold")

        if self.low_water_parts > self.max_active_parts:
            warnings.append("低水位大于在制上限，投放将始终使用慢节奏")

        if self.lock_poll_ms > self.transit_time_range_ms[0]:
            warnings.append("轮询间隔大于最短运输时长，可能导致传送带利用率偏低")

        return len(errors) == 0, errors, warnings


def load_config(path: Optional[Union[str, Path]] = None) -> SimulatorConfig:
    """
    从YAML文件加载配置

    Args:
        path: 配置文件路径，None 时读取包内默认配置

    Returns:
        配置对象（文件不存在时返回默认配置）
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return SimulatorConfig()

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return SimulatorConfig(**data)
