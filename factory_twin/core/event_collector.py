"""
事件收集器
进程内事件总线，承接仿真器发出的全部领域事件

功能:
- 发布事件并按类型分发给订阅者
- 保存最近的事件日志（定长，超出容量淘汰最早的事件）
- 事件筛选和查询
- 统计计算

设计要点:
- 订阅者返回 False 表示事件被拒绝，计入拒绝统计
- 分发顺序：先类型订阅者，后全局订阅者，均按注册顺序
"""

from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from factory_twin.models.enums import EventType
from factory_twin.models.event_model import FactoryEvent


EventHandler = Callable[[FactoryEvent], Optional[bool]]


class EventCollector:
    """
    事件收集器

    收集仿真过程中的所有领域事件
    提供订阅、查询和统计功能
    """

    def __init__(self, keep_log: bool = True, max_events: Optional[int] = 10000):
        """
        初始化事件收集器

        Args:
            keep_log: 是否保存事件日志
            max_events: 日志容量（None 为不限）
        """
        self.max_events = max_events
        self.events: Deque[FactoryEvent] = deque(maxlen=max_events)
        self.keep_log = keep_log
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._catch_all: List[EventHandler] = []

        # 统计计数器
        self.total_emitted = 0
        self.total_rejected = 0
        self.type_counts: Dict[EventType, int] = {t: 0 for t in EventType}

    def subscribe(self, event_type: EventType, handler: EventHandler):
        """
        订阅指定类型事件

        Args:
            event_type: 事件类型
            handler: 处理函数
        """
        self._handlers.setdefault(event_type, []).append(handler)

    def subscribe_all(self, handler: EventHandler):
        """订阅所有事件"""
        self._catch_all.append(handler)

    def emit(self, event: FactoryEvent) -> bool:
        """
        发布事件

        Args:
            event: 领域事件

        Returns:
            是否所有订阅者都接受了事件
        """
        self.total_emitted += 1
        self.type_counts[event.kind] += 1
        if self.keep_log:
            self.events.append(event)

        accepted = True
        for handler in self._handlers.get(event.kind, []) + self._catch_all:
            if handler(event) is False:
                accepted = False
        if not accepted:
            self.total_rejected += 1
        return accepted

    def get_all_events(self) -> List[FactoryEvent]:
        """获取日志中保留的事件（按发布顺序）"""
        return list(self.events)

    def get_events_by_type(self, event_type: EventType) -> List[FactoryEvent]:
        """
        获取指定类型的事件

        Args:
            event_type: 事件类型

        Returns:
            该类型的所有事件
        """
        return [e for e in self.events if e.kind == event_type]

    def get_events_by_part(self, part_id: str) -> List[FactoryEvent]:
        """
        获取指定零件的事件

        Args:
            part_id: 零件ID

        Returns:
            该零件的所有事件（按发布顺序）
        """
        return [e for e in self.events if getattr(e, "part_id", None) == part_id]

    def get_events_by_station(self, station_id: str) -> List[FactoryEvent]:
        """获取指定工位的事件"""
        return [e for e in self.events if getattr(e, "station_id", None) == station_id]

    def get_event_count(self) -> int:
        """获取事件总数"""
        return self.total_emitted

    def get_event_type_counts(self) -> Dict[str, int]:
        """
        获取各类型事件数量统计

        Returns:
            事件类型 -> 数量 映射
        """
        return {t.value: n for t, n in self.type_counts.items()}

    def clear(self):
        """清空所有事件"""
        self.events = deque(maxlen=self.max_events)
        self.total_emitted = 0
        self.total_rejected = 0
        self.type_counts = {t: 0 for t in EventType}

    def get_summary(self) -> Dict[str, Any]:
        """
        获取事件汇总

        Returns:
            汇总信息字典
        """
        return {
            "total_events": self.total_emitted,
            "rejected_events": self.total_rejected,
            "event_type_counts": self.get_event_type_counts(),
        }
