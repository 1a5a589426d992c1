"""
工具函数包
提供各种辅助功能

模块说明:
- layout_builder.py: 工厂布局生成与工位指标定义
- time_converter.py: 时间转换工具
- statistics.py: 工厂统计计算
- validators.py: 数据验证工具
- message_codec.py: 事件主题/载荷编解码
"""

from factory_twin.utils.layout_builder import (
    build_factory_layout,
    get_metric_configs,
    STATION_METRIC_CONFIGS,
    AREA_DEFS,
    LINE_PATTERN,
)

from factory_twin.utils.time_converter import (
    ms_to_timestamp,
    parse_timestamp,
    format_duration_ms,
)

from factory_twin.utils.statistics import (
    calculate_factory_stats,
    calculate_avg_cycle_time,
    calculate_rework_rate,
    calculate_throughput,
    calculate_station_yields,
)

from factory_twin.utils.validators import (
    validate_layout,
    validate_simulation_request,
    check_line_connectivity,
)

from factory_twin.utils.message_codec import (
    encode_event,
    decode_message,
    parse_command,
)

__all__ = [
    # 布局
    "build_factory_layout",
    "get_metric_configs",
    "STATION_METRIC_CONFIGS",
    "AREA_DEFS",
    "LINE_PATTERN",
    # 时间转换
    "ms_to_timestamp",
    "parse_timestamp",
    "format_duration_ms",
    # 统计
    "calculate_factory_stats",
    "calculate_avg_cycle_time",
    "calculate_rework_rate",
    "calculate_throughput",
    "calculate_station_yields",
    # 验证
    "validate_layout",
    "validate_simulation_request",
    "check_line_connectivity",
    # 编解码
    "encode_event",
    "decode_message",
    "parse_command",
]
