"""
资源锁管理器
管理工位与传送带段的独占占用

功能:
- try_acquire / release 基础原语
- acquire 生成器：被占用时按固定间隔轮询重试
- 按持有者批量释放（零件销毁时使用）
- 占用状态查询

设计要点:
- 工位与传送带是两个独立的键空间
- 不排队、不保证公平：资源空闲后第一个观察到的轮询者获胜
- 释放必须匹配当前持有者，错误的释放不会影响他人
- 无获取超时，无法获得资源的零件会无限重试
"""

import logging
from typing import Dict, Generator, List, Optional, Tuple

import simpy

from factory_twin.models.enums import LockSpace

logger = logging.getLogger(__name__)


LockKey = Tuple[LockSpace, str]


def belt_key(from_station_id: str, to_station_id: str) -> str:
    """传送带段的锁键（有方向）"""
    return f"{from_station_id}->{to_station_id}"


class ResourceLockManager:
    """
    资源锁管理器

    每个键最多一个持有者（零件ID）
    """

    def __init__(self, env: simpy.Environment, poll_interval: float = 500):
        """
        初始化资源锁管理器

        Args:
            env: SimPy环境
            poll_interval: 资源被占用时的重试间隔（毫秒）
        """
        self.env = env
        self.poll_interval = poll_interval
        self._holders: Dict[LockKey, str] = {}

        # 统计
        self.acquire_count = 0
        self.wait_count = 0

    def try_acquire(self, space: LockSpace, key: str, holder_id: str) -> bool:
        """
        尝试获取锁

        同一持有者重复获取视为成功

        Args:
            space: 键空间（工位/传送带）
            key: 资源键
            holder_id: 持有者ID

        Returns:
            是否获取成功
        """
        current = self._holders.get((space, key))
        if current is not None and current != holder_id:
            return False
        if current is None:
            self._holders[(space, key)] = holder_id
            self.acquire_count += 1
        return True

    def release(self, space: LockSpace, key: str, holder_id: str) -> bool:
        """
        释放锁

        Args:
            space: 键空间
            key: 资源键
            holder_id: 持有者ID（必须与当前持有者一致）

        Returns:
            是否确实释放了锁
        """
        if self._holders.get((space, key)) != holder_id:
            return False
        del self._holders[(space, key)]
        return True

    def acquire(self, space: LockSpace, key: str, holder_id: str) -> Generator:
        """
        阻塞获取锁（轮询直到成功）

        Args:
            space: 键空间
            key: 资源键
            holder_id: 持有者ID

        Yields:
            轮询等待的SimPy超时事件
        """
        waited = False
        while not self.try_acquire(space, key, holder_id):
            if not waited:
                waited = True
                self.wait_count += 1
                logger.debug(
                    "%s waiting for %s %s (held by %s)",
                    holder_id, space.value, key, self.holder_of(space, key)
                )
            yield self.env.timeout(self.poll_interval)

    def release_all(self, holder_id: str) -> List[LockKey]:
        """
        释放持有者占用的全部锁

        Args:
            holder_id: 持有者ID

        Returns:
            被释放的锁键列表
        """
        keys = [k for k, h in self._holders.items() if h == holder_id]
        for k in keys:
            del self._holders[k]
        return keys

    def holder_of(self, space: LockSpace, key: str) -> Optional[str]:
        """获取当前持有者（空闲返回None）"""
        return self._holders.get((space, key))

    def is_locked(self, space: LockSpace, key: str) -> bool:
        return (space, key) in self._holders

    def held_by(self, holder_id: str) -> List[LockKey]:
        """获取持有者当前占用的锁"""
        return [k for k, h in self._holders.items() if h == holder_id]

    def locked_count(self, space: Optional[LockSpace] = None) -> int:
        """当前被占用的锁数量"""
        if space is None:
            return len(self._holders)
        return sum(1 for s, _ in self._holders if s == space)
