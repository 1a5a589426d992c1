"""
时间转换工具
提供仿真时间（毫秒）与日历时间的相互转换

功能:
- 仿真毫秒 → ISO-8601 时间戳（毫秒精度）及其解析
- 时长格式化
"""

from datetime import datetime, timedelta
from typing import Optional


def ms_to_timestamp(ms: float, clock_start: datetime) -> str:
    """
    将仿真毫秒转换为ISO-8601时间戳

    Args:
        ms: 仿真时间（毫秒，即 env.now）
        clock_start: 仿真零点对应的日历时间

    Returns:
        毫秒精度的时间戳字符串

    Example:
        >>> ms_to_timestamp(1500, datetime(2026, 1, 1, 8))
        '2026-01-01T08:00:01.500'
    """
    moment = clock_start + timedelta(milliseconds=ms)
    return moment.isoformat(timespec="milliseconds")


def parse_timestamp(timestamp: str) -> Optional[datetime]:
    """
    解析ISO-8601时间戳

    Args:
        timestamp: 时间戳字符串（允许结尾的 Z）

    Returns:
        datetime对象，解析失败返回None
    """
    if not timestamp:
        return None
    text = timestamp[:-1] if timestamp.endswith("Z") else timestamp
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_duration_ms(ms: float) -> str:
    """
    格式化时长

    Example:
        >>> format_duration_ms(750)
        '750ms'
        >>> format_duration_ms(12500)
        '12.5s'
        >>> format_duration_ms(185000)
        '3m 5s'
    """
    if ms < 1000:
        return f"{ms:.0f}ms"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    rest = int(seconds % 60)
    return f"{minutes}m {rest}s"
