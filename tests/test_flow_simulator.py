"""
产线流转仿真器测试
测试FlowSimulator的投放、指标发布与停止

测试内容:
- 初始工位状态
- 投放节奏与在制上限
- 指标发布
- 停止时的资源释放
"""

import numpy as np

from factory_twin.core.flow_simulator import FlowSimulator
from factory_twin.models.enums import AgentState, EventType, StationStatus
from factory_twin.utils.layout_builder import get_metric_configs

from factory_helpers import ScriptedRng, create_context, create_test_config


class TestSimulatorStart:
    """启动测试"""

    def test_initial_statuses_published(self):
        ctx = create_context(rng=ScriptedRng())
        simulator = FlowSimulator(ctx, spawn_enabled=False)
        simulator.start()

        statuses = ctx.bus.get_events_by_type(EventType.STATION_STATUS)
        assert sorted(e.station_id for e in statuses) == ["LD-1", "MC-1", "PK-1", "QC-1"]
        assert all(e.status == StationStatus.IDLE for e in statuses)
        assert all(e.current_part_id is None for e in statuses)

    def test_start_twice_is_noop(self):
        ctx = create_context(rng=ScriptedRng())
        simulator = FlowSimulator(ctx, spawn_enabled=False)
        simulator.start()
        simulator.start()

        assert len(ctx.bus.get_events_by_type(EventType.STATION_STATUS)) == 4

    def test_part_id_format(self):
        ctx = create_context(rng=ScriptedRng())
        simulator = FlowSimulator(ctx, spawn_enabled=False)

        assert simulator.next_part_id() == "PART-2026-00001"
        assert simulator.next_part_id() == "PART-2026-00002"


class TestSpawning:
    """投放测试"""

    def test_spawn_delay_band(self):
        config = create_test_config(
            low_water_parts=1,
            spawn_fast_range_ms=(1000, 1000),
            spawn_slow_range_ms=(2000, 2000),
        )
        ctx = create_context(config=config, rng=ScriptedRng())
        simulator = FlowSimulator(ctx, spawn_enabled=False)

        assert simulator.next_spawn_delay() == 1000
        simulator.create_part()
        assert simulator.next_spawn_delay() == 2000

    def test_spawn_respects_max_active(self):
        config = create_test_config(
            low_water_parts=1,
            max_active_parts=2,
            spawn_fast_range_ms=(1000, 1000),
            spawn_slow_range_ms=(2000, 2000),
        )
        ctx = create_context(config=config, rng=ScriptedRng())
        simulator = FlowSimulator(ctx)
        simulator.start()
        ctx.env.run(until=9000)

        assert simulator.parts_created == 2
        assert simulator.get_active_count() == 2
        enters = ctx.bus.get_events_by_type(EventType.PART_ENTER)
        assert enters[0].timestamp == "2026-01-01T08:00:01.000"
        assert enters[0].station_id == "LD-1"

    def test_finished_parts_leave_active_set(self):
        ctx = create_context(rng=ScriptedRng())
        simulator = FlowSimulator(ctx, spawn_enabled=False)
        simulator.start()
        agent = simulator.create_part()
        ctx.env.run(until=30000)

        assert agent.state == AgentState.COMPLETED
        assert simulator.get_active_count() == 0
        assert simulator.parts_finished == 1

    def test_seeded_runs_reproducible(self):
        def run_once():
            ctx = create_context(config=create_test_config(
                transit_time_range_ms=(3000, 6000),
                spawn_fast_range_ms=(500, 1500),
            ), rng=np.random.default_rng(11))
            simulator = FlowSimulator(ctx)
            simulator.start()
            ctx.env.run(until=60000)
            return [(e.kind, getattr(e, "part_id", None), e.timestamp)
                    for e in ctx.bus.get_all_events()]

        assert run_once() == run_once()


class TestMetrics:
    """指标发布测试"""

    def test_metrics_published_per_station_type(self):
        ctx = create_context(rng=ScriptedRng())
        simulator = FlowSimulator(ctx, spawn_enabled=False)
        simulator.publish_metrics()

        metrics = ctx.bus.get_events_by_type(EventType.METRIC)
        expected = sum(
            len(get_metric_configs(s.station_type))
            for s in ctx.topology.stations.values()
        )
        assert len(metrics) == expected
        assert expected > 0

    def test_metric_value_formula(self):
        ctx = create_context(rng=ScriptedRng(default=0.75))
        simulator = FlowSimulator(ctx, spawn_enabled=False)
        simulator.publish_metrics()

        station = ctx.topology.get_station("MC-1")
        config = get_metric_configs(station.station_type)[0]
        event = next(
            e for e in ctx.bus.get_events_by_station("MC-1")
            if e.kind == EventType.METRIC and e.metric_id == config.metric_id
        )
        assert event.value == round(config.base_value + 0.25 * config.variance, 1)
        assert event.unit == config.unit

    def test_metrics_loop_interval(self):
        config = create_test_config(metrics_interval_ms=1000)
        ctx = create_context(config=config, rng=ScriptedRng())
        simulator = FlowSimulator(ctx, spawn_enabled=False)
        simulator.start()
        ctx.env.run(until=3500)

        timestamps = {e.timestamp for e in ctx.bus.get_events_by_type(EventType.METRIC)}
        assert timestamps == {
            "2026-01-01T08:00:01.000",
            "2026-01-01T08:00:02.000",
            "2026-01-01T08:00:03.000",
        }


class TestStop:
    """停止测试"""

    def test_stop_releases_everything(self):
        config = create_test_config(spawn_fast_range_ms=(500, 500))
        ctx = create_context(config=config, rng=ScriptedRng())
        simulator = FlowSimulator(ctx)
        simulator.start()
        ctx.env.run(until=4200)
        assert simulator.get_active_count() > 0

        agents = list(simulator.active_parts.values())
        simulator.stop()
        count = ctx.bus.get_event_count()
        ctx.env.run(until=60000)

        assert ctx.locks.locked_count() == 0
        assert simulator.get_active_count() == 0
        assert all(a.state == AgentState.DESTROYED for a in agents)
        assert ctx.bus.get_event_count() == count
        assert not simulator.running

    def test_adopt_override_replaces_agent(self):
        ctx = create_context(rng=ScriptedRng())
        simulator = FlowSimulator(ctx, spawn_enabled=False)
        old = simulator.create_part()
        ctx.env.run(until=500)

        new = simulator.adopt_override(old.part_id, "LD-1", "MC-1")

        assert old.state == AgentState.DESTROYED
        assert new.forced
        assert simulator.active_parts[old.part_id] is new
        assert ctx.locks.held_by(old.part_id) == []
