"""
人工放行编排器
操作员放行被传感器拦停的零件后，驱动其走完剩余路线

执行流程:
1. 通过状态跟踪器确认零件处于拦停报废状态，否则不做任何事
2. 推导拦停位置（指令携带 > 拦停记录 > 最近一次 fail 判定）
3. 发布放行事件，零件转为运输中
4. 交给仿真器以强制模式恢复：补发剩余传感器 pass，
   标准运输时长到达终点，之后每个工位出站一律 ok
5. 路线走完后零件正常完成
"""

import logging
from typing import Optional, Tuple

from factory_twin.core.context import SimulationContext
from factory_twin.core.flow_simulator import FlowSimulator
from factory_twin.core.part_agent import PartAgent
from factory_twin.core.state_tracker import StateTracker
from factory_twin.models.command_model import OverridePartCommand
from factory_twin.models.event_model import PartOverrideEvent
from factory_twin.models.part_model import Part

logger = logging.getLogger(__name__)


class OverrideOrchestrator:
    """人工放行编排器"""

    def __init__(
        self,
        ctx: SimulationContext,
        tracker: StateTracker,
        simulator: FlowSimulator
    ):
        """
        Args:
            ctx: 仿真上下文
            tracker: 状态跟踪器（放行前的状态校验）
            simulator: 仿真器（接管恢复后的零件）
        """
        self.ctx = ctx
        self.tracker = tracker
        self.simulator = simulator
        self.override_count = 0

    def resolve_halt(
        self,
        part: Part,
        command: OverridePartCommand
    ) -> Optional[Tuple[str, str, Optional[str]]]:
        """
        推导拦停位置

        Args:
            part: 零件
            command: 放行指令

        Returns:
            (起点, 终点, 失败传感器)，无法推导返回None
        """
        failed = part.last_failed_sensor_event()
        halt = part.halt

        sensor_id = command.failed_sensor_id
        if sensor_id is None:
            if halt is not None and halt.sensor_id:
                sensor_id = halt.sensor_id
            elif failed is not None:
                sensor_id = failed.sensor_id
        if sensor_id is None:
            return None

        from_id = command.from_station_id
        to_id = command.to_station_id
        if from_id is None or to_id is None:
            sensor = self.ctx.topology.get_sensor(sensor_id)
            if halt is not None:
                from_id, to_id = halt.from_station_id, halt.to_station_id
            elif sensor is not None:
                from_id, to_id = sensor.belt
            else:
                return None

        if not (self.ctx.topology.has_station(from_id) and self.ctx.topology.has_station(to_id)):
            return None
        return from_id, to_id, sensor_id

    def handle(self, command: OverridePartCommand) -> Optional[PartAgent]:
        """
        处理放行指令

        Args:
            command: 放行指令

        Returns:
            接管零件的代理，不满足放行条件返回None
        """
        part_id = command.part_id
        if not self.tracker.can_override(part_id):
            logger.info("Override ignored for %s: part is not halted", part_id)
            return None

        location = self.resolve_halt(self.tracker.get_part(part_id), command)
        if location is None:
            logger.info("Override ignored for %s: halt location unknown", part_id)
            return None
        from_id, to_id, sensor_id = location

        accepted = self.ctx.bus.emit(PartOverrideEvent(
            part_id=part_id,
            timestamp=self.ctx.timestamp(),
            from_station_id=from_id,
            to_station_id=to_id,
            failed_sensor_id=sensor_id,
        ))
        if not accepted:
            return None

        self.override_count += 1
        logger.info(
            "Override %s: resuming %s -> %s after %s",
            part_id, from_id, to_id, sensor_id
        )
        return self.simulator.adopt_override(part_id, from_id, to_id, sensor_id)
