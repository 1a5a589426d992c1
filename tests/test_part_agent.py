"""
零件代理单元测试
测试PartAgent状态机的完整流转

测试内容:
- 正常流转与路由
- 测量工位判定（nok / rework）
- 传感器判定（fail / rework / skip_process）
- 工位争用
- 销毁与资源释放
- 人工放行后的恢复
"""

import numpy as np
import pytest

from factory_twin.core.part_agent import PartAgent
from factory_twin.models.enums import (
    AgentState,
    EventType,
    ExitResult,
    LockSpace,
    SensorDecision,
    SensorType,
    TRANSIT_STOP_SENSOR_FAIL,
)

from factory_helpers import (
    ScriptedRng,
    create_context,
    create_line_layout,
    create_sensor,
    create_test_config,
)


def events_of(ctx, part_id, event_type):
    return [e for e in ctx.bus.get_events_by_part(part_id) if e.kind == event_type]


class TestNormalFlow:
    """正常流转测试"""

    def test_part_completes_line(self):
        ctx = create_context(rng=ScriptedRng())
        finished = []
        agent = PartAgent(ctx, "P1", on_finish=finished.append)
        agent.start("LD-1")
        ctx.env.run()

        enters = events_of(ctx, "P1", EventType.PART_ENTER)
        exits = events_of(ctx, "P1", EventType.PART_EXIT)
        transits = events_of(ctx, "P1", EventType.TRANSIT_START)

        assert [e.station_id for e in enters] == ["LD-1", "MC-1", "QC-1", "PK-1"]
        assert all(e.result == ExitResult.OK for e in exits)
        assert [(t.from_station_id, t.to_station_id) for t in transits] == [
            ("LD-1", "MC-1"), ("MC-1", "QC-1"), ("QC-1", "PK-1")
        ]
        assert agent.state == AgentState.COMPLETED
        assert finished == [agent]
        assert exits[-1].timestamp == "2026-01-01T08:00:16.000"
        assert ctx.locks.locked_count() == 0

    def test_event_timing(self):
        """进站 → 加工 1000ms → 出站 → 运输 4000ms → 进站"""
        ctx = create_context(rng=ScriptedRng())
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run()

        enters = events_of(ctx, "P1", EventType.PART_ENTER)
        exits = events_of(ctx, "P1", EventType.PART_EXIT)
        assert enters[0].timestamp == "2026-01-01T08:00:00.000"
        assert exits[0].timestamp == "2026-01-01T08:00:01.000"
        assert enters[1].timestamp == "2026-01-01T08:00:05.000"
        assert exits[0].cycle_time_ms == 1000

    def test_exit_precedes_next_enter(self):
        """同一零件的出站事件总在下一次进站之前"""
        ctx = create_context(rng=ScriptedRng())
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run()

        kinds = [
            e.kind for e in ctx.bus.get_events_by_part("P1")
            if e.kind in (EventType.PART_ENTER, EventType.PART_EXIT)
        ]
        assert kinds == [EventType.PART_ENTER, EventType.PART_EXIT] * 4


class TestMeasureVerdict:
    """测量工位判定测试"""

    def test_nok_scraps_part(self):
        ctx = create_context(rng=ScriptedRng([0.01]))
        agent = PartAgent(ctx, "P1")
        agent.start("LD-1")
        ctx.env.run()

        exits = events_of(ctx, "P1", EventType.PART_EXIT)
        assert exits[-1].station_id == "QC-1"
        assert exits[-1].result == ExitResult.NOK
        assert agent.state == AgentState.SCRAPPED
        assert exits[-1].timestamp == "2026-01-01T08:00:11.000"
        assert ctx.locks.locked_count() == 0

    def test_rework_returns_to_target(self):
        ctx = create_context(rng=ScriptedRng([0.1]))
        agent = PartAgent(ctx, "P1")
        agent.start("LD-1")
        ctx.env.run()

        enters = events_of(ctx, "P1", EventType.PART_ENTER)
        assert [e.station_id for e in enters] == [
            "LD-1", "MC-1", "QC-1", "MC-1", "QC-1", "PK-1"
        ]
        exits = events_of(ctx, "P1", EventType.PART_EXIT)
        assert exits[2].result == ExitResult.REWORK
        assert agent.state == AgentState.COMPLETED

    def test_non_measure_stations_never_roll(self):
        """非测量工位不消耗随机数，出站一律 ok"""
        rng = ScriptedRng([0.5])
        ctx = create_context(rng=rng)
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run(until=10000)

        exits = events_of(ctx, "P1", EventType.PART_EXIT)
        assert [e.result for e in exits] == [ExitResult.OK, ExitResult.OK]
        assert rng.values == [0.5]

    def test_forced_agent_never_fails_measure(self):
        ctx = create_context(rng=ScriptedRng([0.01, 0.01]))
        agent = PartAgent(ctx, "P1", forced=True)
        agent.start("QC-1")
        ctx.env.run()

        exits = events_of(ctx, "P1", EventType.PART_EXIT)
        assert exits[0].result == ExitResult.OK
        assert agent.state == AgentState.COMPLETED


class TestSensorDecisions:
    """传送带传感器判定测试"""

    def test_data_check_fail_stops_part(self):
        layout = create_line_layout([create_sensor("S1", SensorType.DATA_CHECK)])
        ctx = create_context(layout=layout, rng=ScriptedRng([0.1]))
        agent = PartAgent(ctx, "P1")
        agent.start("LD-1")
        ctx.env.run()

        triggers = events_of(ctx, "P1", EventType.SENSOR_TRIGGER)
        stops = events_of(ctx, "P1", EventType.TRANSIT_STOP)
        assert len(triggers) == 1
        assert triggers[0].decision == SensorDecision.FAIL
        assert len(stops) == 1
        assert stops[0].reason == TRANSIT_STOP_SENSOR_FAIL
        assert agent.state == AgentState.SCRAPPED
        # 1000 加工 + 4000 × 0.5 到达传感器
        assert stops[0].timestamp == "2026-01-01T08:00:03.000"
        assert not events_of(ctx, "P1", EventType.PART_ENTER)[1:]
        assert ctx.locks.locked_count() == 0

    def test_routing_rework_reverses_belt(self):
        layout = create_line_layout([create_sensor("S1", SensorType.ROUTING)])
        ctx = create_context(layout=layout, rng=ScriptedRng([0.1]))
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run(until=12001)

        transits = events_of(ctx, "P1", EventType.TRANSIT_START)
        assert [(t.from_station_id, t.to_station_id) for t in transits][:3] == [
            ("LD-1", "MC-1"), ("MC-1", "LD-1"), ("LD-1", "MC-1")
        ]
        enters = events_of(ctx, "P1", EventType.PART_ENTER)
        assert [e.station_id for e in enters] == ["LD-1", "LD-1", "MC-1"]
        # 到达终点后传送带已释放
        assert not ctx.locks.is_locked(LockSpace.BELT, "LD-1->MC-1")

    def test_skip_process_shortens_station(self):
        layout = create_line_layout([create_sensor("S1", SensorType.PROCESS_DECISION)])
        ctx = create_context(layout=layout, rng=ScriptedRng([0.1]))
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run(until=6000)

        exits = events_of(ctx, "P1", EventType.PART_EXIT)
        assert exits[1].station_id == "MC-1"
        assert exits[1].cycle_time_ms == 0
        assert exits[1].timestamp == "2026-01-01T08:00:05.500"
        assert not events_of(ctx, "P1", EventType.PART_PROCESS)

    def test_sensor_spacing_proportional(self):
        layout = create_line_layout([
            create_sensor("S2", SensorType.DATA_CHECK, position=0.75, fail_probability=0),
            create_sensor("S1", SensorType.DATA_CHECK, position=0.25, fail_probability=0),
        ])
        ctx = create_context(layout=layout, rng=ScriptedRng())
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run(until=6000)

        triggers = events_of(ctx, "P1", EventType.SENSOR_TRIGGER)
        assert [t.sensor_id for t in triggers] == ["S1", "S2"]
        assert [t.timestamp for t in triggers] == [
            "2026-01-01T08:00:02.000", "2026-01-01T08:00:04.000"
        ]
        enters = events_of(ctx, "P1", EventType.PART_ENTER)
        assert enters[1].timestamp == "2026-01-01T08:00:05.000"

    def test_fail_short_circuits_remaining_sensors(self):
        layout = create_line_layout([
            create_sensor("S1", SensorType.DATA_CHECK, position=0.25),
            create_sensor("S2", SensorType.ROUTING, position=0.75),
        ])
        ctx = create_context(layout=layout, rng=ScriptedRng([0.1, 0.1]))
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run()

        triggers = events_of(ctx, "P1", EventType.SENSOR_TRIGGER)
        assert [t.sensor_id for t in triggers] == ["S1"]


class TestProgress:
    """加工进度上报测试"""

    def test_progress_monotonic_and_capped(self):
        config = create_test_config(progress_tick_ms=200)
        ctx = create_context(config=config, rng=np.random.default_rng(5))
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run(until=1000)

        progress = [e.progress_pct for e in events_of(ctx, "P1", EventType.PART_PROCESS)]
        assert len(progress) == 4
        assert progress == sorted(progress)
        assert all(0 < p <= 99 for p in progress)

    def test_no_progress_after_exit(self):
        config = create_test_config(progress_tick_ms=200)
        ctx = create_context(config=config, rng=ScriptedRng())
        PartAgent(ctx, "P1").start("LD-1")
        ctx.env.run(until=4500)

        exit_time = "2026-01-01T08:00:01.000"
        ld_progress = [
            e for e in events_of(ctx, "P1", EventType.PART_PROCESS)
            if e.station_id == "LD-1"
        ]
        assert all(e.timestamp < exit_time for e in ld_progress)


class TestContention:
    """工位争用测试"""

    def test_second_part_waits_for_station(self):
        ctx = create_context(rng=ScriptedRng())
        PartAgent(ctx, "P1").start("LD-1")
        PartAgent(ctx, "P2").start("LD-1")
        ctx.env.run(until=3000)

        p1_exit = events_of(ctx, "P1", EventType.PART_EXIT)[0]
        p2_enter = events_of(ctx, "P2", EventType.PART_ENTER)[0]
        assert p2_enter.timestamp >= p1_exit.timestamp
        events = ctx.bus.get_all_events()
        assert events.index(p2_enter) > events.index(p1_exit)


class TestDestroy:
    """销毁测试"""

    def test_destroy_during_processing(self):
        ctx = create_context(rng=ScriptedRng())
        finished = []
        agent = PartAgent(ctx, "P1", on_finish=finished.append)
        agent.start("LD-1")
        ctx.env.run(until=500)

        assert ctx.locks.holder_of(LockSpace.STATION, "LD-1") == "P1"
        count = ctx.bus.get_event_count()

        agent.destroy()
        assert ctx.locks.locked_count() == 0
        ctx.env.run(until=20000)

        assert ctx.bus.get_event_count() == count
        assert agent.state == AgentState.DESTROYED
        assert not agent.is_alive
        assert finished == []

    def test_destroy_during_transit(self):
        layout = create_line_layout([
            create_sensor("S1", SensorType.DATA_CHECK, position=0.5, fail_probability=0)
        ])
        ctx = create_context(layout=layout, rng=ScriptedRng())
        agent = PartAgent(ctx, "P1")
        agent.start("LD-1")
        ctx.env.run(until=2000)

        assert ctx.locks.is_locked(LockSpace.BELT, "LD-1->MC-1")
        agent.destroy()
        ctx.env.run(until=20000)

        assert ctx.locks.locked_count() == 0
        assert not events_of(ctx, "P1", EventType.SENSOR_TRIGGER)

    def test_destroy_is_idempotent(self):
        ctx = create_context(rng=ScriptedRng())
        agent = PartAgent(ctx, "P1")
        agent.start("LD-1")
        ctx.env.run(until=100)

        agent.destroy()
        agent.destroy()
        ctx.env.run(until=1000)
        assert agent.state == AgentState.DESTROYED

    def test_destroyed_waiter_does_not_acquire(self):
        ctx = create_context(rng=ScriptedRng())
        PartAgent(ctx, "P1").start("LD-1")
        waiter = PartAgent(ctx, "P2")
        waiter.start("LD-1")
        ctx.env.run(until=500)

        waiter.destroy()
        ctx.env.run(until=5000)
        assert ctx.locks.held_by("P2") == []
        assert events_of(ctx, "P2", EventType.PART_ENTER) == []


class TestResume:
    """人工放行恢复测试"""

    def test_resume_replays_remaining_sensors(self):
        layout = create_line_layout([
            create_sensor("S1", SensorType.DATA_CHECK, position=0.25),
            create_sensor("S2", SensorType.ROUTING, position=0.75, fail_probability=1.0),
        ])
        ctx = create_context(layout=layout, rng=ScriptedRng([0.01]))
        agent = PartAgent(ctx, "P1")
        agent.resume("LD-1", "MC-1", "S1")
        ctx.env.run()

        triggers = events_of(ctx, "P1", EventType.SENSOR_TRIGGER)
        assert [(t.sensor_id, t.decision) for t in triggers] == [("S2", SensorDecision.PASS)]
        # 4500 × (0.75 - 0.25)
        assert triggers[0].timestamp == "2026-01-01T08:00:02.250"

        transit = events_of(ctx, "P1", EventType.TRANSIT_START)[0]
        assert transit.transit_time_ms == 4500
        enters = events_of(ctx, "P1", EventType.PART_ENTER)
        assert enters[0].station_id == "MC-1"
        assert enters[0].timestamp == "2026-01-01T08:00:06.750"

        # 强制模式：测量工位也判定 ok
        assert all(e.result == ExitResult.OK for e in events_of(ctx, "P1", EventType.PART_EXIT))
        assert agent.state == AgentState.COMPLETED

    def test_resume_without_sensor_uses_all(self):
        layout = create_line_layout([
            create_sensor("S1", SensorType.DATA_CHECK, position=0.5),
        ])
        ctx = create_context(layout=layout, rng=ScriptedRng())
        PartAgent(ctx, "P1").resume("LD-1", "MC-1", None)
        ctx.env.run(until=5000)

        triggers = events_of(ctx, "P1", EventType.SENSOR_TRIGGER)
        assert [t.sensor_id for t in triggers] == ["S1"]
        assert triggers[0].decision == SensorDecision.PASS


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_locks_released_after_every_run(seed):
    """任意随机结果下，零件到达终态后不遗留任何锁"""
    layout = create_line_layout([
        create_sensor("S1", SensorType.DATA_CHECK, fail_probability=0.2),
        create_sensor("S2", SensorType.ROUTING, "MC-1", "QC-1", fail_probability=0.3),
    ])
    ctx = create_context(layout=layout, rng=np.random.default_rng(seed))
    agents = [PartAgent(ctx, f"P{i}") for i in range(3)]
    for agent in agents:
        agent.start("LD-1")
    ctx.env.run(until=500000)

    assert all(not a.is_alive for a in agents)
    assert ctx.locks.locked_count() == 0
