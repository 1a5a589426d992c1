"""
零件代理
单个零件在工厂中的完整流转（有限状态机）

功能:
- 进站：阻塞获取工位锁，发布进站事件
- 加工：按工位加工时间范围抽取时长，周期性上报进度
- 出站判定：测量工位按阈值表判定 ok/nok/rework
- 运输：阻塞获取传送带锁，按位置顺序逐个判定传感器
- 销毁：任意状态下取消全部计时并释放全部锁

状态流转:
ENTERING → PROCESSING → EXIT_EVALUATING → TRANSITING → ENTERING ...
                                        ↘ COMPLETED / SCRAPPED

设计要点:
- 一个零件一个主进程，加工进度上报为独立的子进程
- 两个进程都登记在代理上，destroy() 统一中断
- 锁的释放放在 finally 中，任何终止路径都不会泄漏资源
- 强制模式（人工放行后）：出站一律 ok，传感器一律 pass
"""

import logging
from typing import Callable, Generator, Optional, Tuple

import simpy

from factory_twin.core.context import SimulationContext
from factory_twin.core.lock_manager import belt_key
from factory_twin.models.enums import (
    AgentState,
    ExitResult,
    LockSpace,
    RouteKind,
    SensorDecision,
    TRANSIT_STOP_SENSOR_FAIL,
)
from factory_twin.models.event_model import (
    PartEnterEvent,
    PartExitEvent,
    PartProcessEvent,
    SensorTriggerEvent,
    TransitStartEvent,
    TransitStopEvent,
)
from factory_twin.models.layout_model import SensorConfig, StationConfig

logger = logging.getLogger(__name__)


# 下一步动作: ("enter", 工位, 跳过加工) / ("transit", 起点, 终点, 跳过加工)
Step = Tuple


class PartAgent:
    """
    零件代理

    驱动单个零件的加工、运输、传感器判定和路由
    """

    def __init__(
        self,
        ctx: SimulationContext,
        part_id: str,
        on_finish: Optional[Callable[["PartAgent"], None]] = None,
        forced: bool = False
    ):
        """
        初始化零件代理

        Args:
            ctx: 仿真上下文
            part_id: 零件ID
            on_finish: 到达终态时的回调（销毁时不调用）
            forced: 是否为强制模式（出站一律 ok，传感器一律 pass）
        """
        self.ctx = ctx
        self.env = ctx.env
        self.config = ctx.config
        self.part_id = part_id
        self.on_finish = on_finish
        self.forced = forced

        self.state = AgentState.CREATED
        self.destroyed = False
        self.current_station: Optional[str] = None
        self.progress = 0.0

        # 代理拥有的进程（destroy 时统一中断）
        self._main: Optional[simpy.Process] = None
        self._ticker: Optional[simpy.Process] = None

        # 当前持有的锁
        self._held_station: Optional[str] = None
        self._held_belt: Optional[Tuple[str, str]] = None

    @property
    def is_alive(self) -> bool:
        """是否仍在流转"""
        return not self.destroyed and self.state not in (
            AgentState.COMPLETED, AgentState.SCRAPPED
        )

    def start(self, station_id: str) -> simpy.Process:
        """
        从指定工位开始流转

        Args:
            station_id: 入口工位ID

        Returns:
            主进程
        """
        self._main = self.env.process(self._run(("enter", station_id, False)))
        return self._main

    def resume(
        self,
        from_station_id: str,
        to_station_id: str,
        failed_sensor_id: Optional[str] = None
    ) -> simpy.Process:
        """
        从传送带拦停位置恢复流转（人工放行）

        剩余传感器全部判定为 pass，使用标准运输时长，之后按正常节奏继续

        Args:
            from_station_id: 传送带起点
            to_station_id: 传送带终点
            failed_sensor_id: 判定失败的传感器（其后的传感器需补发 pass）

        Returns:
            主进程
        """
        self.forced = True
        self._main = self.env.process(self._run(
            ("resume", from_station_id, to_station_id, failed_sensor_id)
        ))
        return self._main

    def destroy(self):
        """
        销毁代理

        同步释放全部锁并中断所有进程，此后不再发布任何事件
        """
        if self.destroyed:
            return
        self.destroyed = True
        self.state = AgentState.DESTROYED
        self._held_station = None
        self._held_belt = None
        self.ctx.locks.release_all(self.part_id)

        active = self.env.active_process
        ticker, self._ticker = self._ticker, None
        for proc in (ticker, self._main):
            if proc is not None and proc.is_alive and proc is not active:
                proc.interrupt("destroyed")

    # ========== 主流程 ==========

    def _run(self, step: Step) -> Generator:
        """
        主进程：依次执行每一步，直到到达终态

        Args:
            step: 第一步动作
        """
        try:
            while step is not None and not self.destroyed:
                kind = step[0]
                if kind == "enter":
                    step = yield from self._enter(step[1], step[2])
                elif kind == "transit":
                    step = yield from self._transit(step[1], step[2], step[3])
                elif kind == "resume":
                    step = yield from self._resume_transit(step[1], step[2], step[3])
                else:
                    raise ValueError(f"未知步骤: {kind}")
        except simpy.Interrupt:
            pass
        finally:
            self._stop_ticker()
            self._release_station()
            self._release_belt()

    def _enter(self, station_id: str, skip_process: bool) -> Generator:
        """
        进站并加工

        Args:
            station_id: 工位ID
            skip_process: 是否跳过加工（上游工艺判定传感器的结果）

        Returns:
            下一步动作
        """
        self.state = AgentState.ENTERING
        station = self.ctx.topology.get_station(station_id)

        # ========== 阶段1: 获取工位锁 ==========
        yield from self.ctx.locks.acquire(LockSpace.STATION, station_id, self.part_id)
        self._held_station = station_id
        self.current_station = station_id

        self._emit(PartEnterEvent(
            part_id=self.part_id,
            station_id=station_id,
            area=station.area,
            line=station.line,
            timestamp=self.ctx.timestamp(),
        ))

        # ========== 阶段2: 加工 ==========
        if skip_process:
            yield self.env.timeout(self.config.skip_process_delay_ms)
            cycle_time = 0
        else:
            self.state = AgentState.PROCESSING
            low, high = station.processing_time
            cycle_time = self.ctx.randint(low, high)
            self.progress = 0.0
            if cycle_time > 0:
                self._ticker = self.env.process(self._progress_ticker(station_id, cycle_time))
            yield self.env.timeout(cycle_time)
            self._stop_ticker()

        # ========== 阶段3: 出站判定 ==========
        return self._exit(station, cycle_time)

    def _exit(self, station: StationConfig, cycle_time: float) -> Optional[Step]:
        """
        出站：判定结果、释放工位锁、决定去向

        Returns:
            下一步动作，终态返回None
        """
        self.state = AgentState.EXIT_EVALUATING
        result = self._roll_verdict(station)

        self._emit(PartExitEvent(
            part_id=self.part_id,
            station_id=station.station_id,
            area=station.area,
            line=station.line,
            result=result,
            cycle_time_ms=cycle_time,
            timestamp=self.ctx.timestamp(),
        ))
        self._release_station()
        self.current_station = None

        route, target = self.ctx.topology.route_after_exit(
            station.station_id, result, self.ctx.rng
        )
        if route == RouteKind.SCRAP:
            self._finish(AgentState.SCRAPPED)
            return None
        if route == RouteKind.COMPLETE:
            self._finish(AgentState.COMPLETED)
            return None
        return ("transit", station.station_id, target, False)

    def _roll_verdict(self, station: StationConfig) -> ExitResult:
        """
        出站判定

        仅测量工位抽取判定：roll < nok_threshold → nok，
        roll < rework_threshold → rework，否则 ok
        """
        if self.forced or not station.is_measure:
            return ExitResult.OK
        roll = self.ctx.rng.random()
        if roll < self.config.nok_threshold:
            return ExitResult.NOK
        if roll < self.config.rework_threshold:
            return ExitResult.REWORK
        return ExitResult.OK

    def _progress_ticker(self, station_id: str, duration: float) -> Generator:
        """
        加工进度上报子进程

        进度单调递增，出站前不超过上限
        """
        step = 100 / (duration / self.config.progress_tick_ms)
        try:
            while True:
                yield self.env.timeout(self.config.progress_tick_ms)
                jitter = self.ctx.rng.random() * self.config.progress_jitter_pct
                self.progress = min(
                    self.config.progress_cap_pct,
                    self.progress + step + jitter
                )
                self._emit(PartProcessEvent(
                    part_id=self.part_id,
                    station_id=station_id,
                    progress_pct=round(self.progress),
                    timestamp=self.ctx.timestamp(),
                ))
        except simpy.Interrupt:
            pass

    # ========== 传送带 ==========

    def _transit(self, from_id: str, to_id: str, skip_process: bool) -> Generator:
        """
        运输：获取传送带锁，依次判定传感器

        Args:
            from_id: 起点工位
            to_id: 终点工位
            skip_process: 终点工位是否跳过加工

        Returns:
            下一步动作，终态返回None
        """
        self.state = AgentState.TRANSITING
        low, high = self.config.transit_time_range_ms
        transit_time = self.ctx.randint(low, high)

        yield from self._acquire_belt(from_id, to_id)
        self._emit(TransitStartEvent(
            part_id=self.part_id,
            from_station_id=from_id,
            to_station_id=to_id,
            transit_time_ms=transit_time,
            timestamp=self.ctx.timestamp(),
        ))

        sensors = self.ctx.topology.sensors_on_belt(from_id, to_id)
        if not sensors:
            yield self.env.timeout(transit_time)
            self._release_belt()
            return ("enter", to_id, skip_process)

        prev_pos = 0.0
        for sensor in sensors:
            yield self.env.timeout(self._sensor_delay(transit_time, sensor, prev_pos))
            prev_pos = sensor.position_on_belt

            decision = SensorDecision.PASS if self.forced else self.ctx.evaluator.evaluate(sensor)
            self._emit_sensor(sensor, decision, from_id, to_id)

            if decision == SensorDecision.FAIL:
                # 数据校验失败：零件停在传送带上，立即释放传送带
                self._release_belt()
                self._emit(TransitStopEvent(
                    part_id=self.part_id,
                    from_station_id=from_id,
                    to_station_id=to_id,
                    reason=TRANSIT_STOP_SENSOR_FAIL,
                    timestamp=self.ctx.timestamp(),
                ))
                self._finish(AgentState.SCRAPPED)
                return None
            if decision == SensorDecision.REWORK:
                # 路由判定：先释放当前传送带，再反向运输回起点
                self._release_belt()
                return ("transit", to_id, from_id, False)
            if decision == SensorDecision.SKIP_PROCESS:
                skip_process = True

        yield self.env.timeout(max(
            self.config.min_remaining_transit_ms,
            transit_time * (1.0 - prev_pos)
        ))
        self._release_belt()
        return ("enter", to_id, skip_process)

    def _resume_transit(
        self,
        from_id: str,
        to_id: str,
        failed_sensor_id: Optional[str]
    ) -> Generator:
        """
        人工放行后的运输段

        补发拦停传感器之后各传感器的 pass 判定，再以标准运输时长到达终点

        Returns:
            下一步动作
        """
        self.state = AgentState.TRANSITING
        transit_time = self.config.standard_transit_ms
        topology = self.ctx.topology

        yield from self._acquire_belt(from_id, to_id)

        failed = topology.get_sensor(failed_sensor_id) if failed_sensor_id else None
        prev_pos = failed.position_on_belt if failed is not None else 0.0
        for sensor in topology.sensors_after(from_id, to_id, failed_sensor_id):
            yield self.env.timeout(self._sensor_delay(transit_time, sensor, prev_pos))
            prev_pos = sensor.position_on_belt
            self._emit_sensor(sensor, SensorDecision.PASS, from_id, to_id)

        self._emit(TransitStartEvent(
            part_id=self.part_id,
            from_station_id=from_id,
            to_station_id=to_id,
            transit_time_ms=transit_time,
            timestamp=self.ctx.timestamp(),
        ))
        yield self.env.timeout(transit_time)
        self._release_belt()
        return ("enter", to_id, False)

    def _sensor_delay(self, transit_time: float, sensor: SensorConfig, prev_pos: float) -> float:
        """到达传感器的延时，与距上一位置的距离成正比"""
        return max(
            self.config.min_sensor_delay_ms,
            transit_time * (sensor.position_on_belt - prev_pos)
        )

    def _emit_sensor(
        self,
        sensor: SensorConfig,
        decision: SensorDecision,
        from_id: str,
        to_id: str
    ):
        self._emit(SensorTriggerEvent(
            sensor_id=sensor.sensor_id,
            part_id=self.part_id,
            sensor_type=sensor.sensor_type,
            decision=decision,
            from_station_id=from_id,
            to_station_id=to_id,
            timestamp=self.ctx.timestamp(),
        ))

    # ========== 资源与收尾 ==========

    def _acquire_belt(self, from_id: str, to_id: str) -> Generator:
        yield from self.ctx.locks.acquire(LockSpace.BELT, belt_key(from_id, to_id), self.part_id)
        self._held_belt = (from_id, to_id)

    def _release_belt(self):
        if self._held_belt is not None:
            self.ctx.locks.release(LockSpace.BELT, belt_key(*self._held_belt), self.part_id)
            self._held_belt = None

    def _release_station(self):
        if self._held_station is not None:
            self.ctx.locks.release(LockSpace.STATION, self._held_station, self.part_id)
            self._held_station = None

    def _stop_ticker(self):
        ticker, self._ticker = self._ticker, None
        if ticker is not None and ticker.is_alive and ticker is not self.env.active_process:
            ticker.interrupt("exit")

    def _emit(self, event):
        """发布事件（销毁后丢弃）"""
        if self.destroyed:
            return
        self.ctx.bus.emit(event)

    def _finish(self, state: AgentState):
        """到达终态"""
        self.state = state
        logger.debug("%s reached %s", self.part_id, state.value)
        if self.on_finish is not None:
            self.on_finish(self)
