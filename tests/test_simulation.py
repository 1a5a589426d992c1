"""
仿真系统集成测试
测试SimulationEngine在默认产线模板上的完整运行

测试内容:
- 生命周期（启动/推进/停止）
- 运行结果结构
- 零件履历与工位状态的一致性
- 种子复现
"""

import pytest

from factory_twin.core.simulation_engine import SimulationEngine
from factory_twin.models.command_model import GetPartHistoryCommand, SearchPartCommand
from factory_twin.models.config_model import SimulatorConfig
from factory_twin.models.enums import ExitResult, PartStatus, SimulationStatus, StationStatus
from factory_twin.utils.layout_builder import AREA_DEFS, build_factory_layout


def create_engine(seed: int = 42, **config) -> SimulationEngine:
    """单区域（2条产线，20个工位）仿真"""
    return SimulationEngine(
        SimulatorConfig(random_seed=seed, **config),
        build_factory_layout(area_defs=AREA_DEFS[:1]),
    )


@pytest.fixture(scope="module")
def finished_engine():
    engine = create_engine()
    engine.run(600000)
    return engine


class TestLifecycle:
    """生命周期测试"""

    def test_advance_before_start_is_noop(self):
        engine = create_engine()

        assert engine.status == SimulationStatus.PENDING
        assert engine.advance(5000) == 0
        assert engine.bus.get_event_count() == 0

    def test_start_and_advance(self):
        engine = create_engine()
        started, _ = engine.start()

        assert started
        assert engine.status == SimulationStatus.RUNNING
        assert engine.start() == (True, "仿真已在运行")
        assert engine.advance(20000) == 20000
        assert engine.simulator.parts_created >= 1

    def test_stopped_engine_cannot_restart(self):
        engine = create_engine()
        engine.start()
        engine.shutdown()
        engine.shutdown()

        started, _ = engine.start()
        assert not started
        assert engine.status == SimulationStatus.STOPPED
        assert engine.stopped_at is not None

    def test_invalid_topology_not_started(self):
        layout = build_factory_layout(area_defs=AREA_DEFS[:1])
        last = layout.get_lines()[0].stations[-1]
        layout.stations[last].next_stations = [layout.get_lines()[0].stations[0]]
        engine = SimulationEngine(SimulatorConfig(random_seed=1), layout)

        started, message = engine.start()
        assert not started
        assert "环" in message
        assert engine.status == SimulationStatus.PENDING

    def test_now_datetime(self):
        engine = create_engine()
        engine.start()
        engine.advance(1500)

        assert engine.now_datetime.isoformat(timespec="milliseconds") == "2026-01-01T08:00:01.500"


class TestRunResults:
    """运行结果测试"""

    def test_summary_structure(self, finished_engine):
        summary = finished_engine.summary()

        assert summary.status == SimulationStatus.STOPPED
        assert summary.sim_time_ms >= 600000
        assert summary.parts_created > 0
        assert summary.events_emitted > 0
        assert summary.overrides == 0
        assert 0 < summary.stats.total_parts <= summary.parts_created
        assert summary.stats.total_stations == 20

        data = summary.to_dict()
        assert data["status"] == "stopped"
        assert data["sim_time_minutes"] == summary.sim_time_ms / 60000

    def test_locks_released_after_stop(self, finished_engine):
        assert finished_engine.ctx.locks.locked_count() == 0
        assert finished_engine.simulator.get_active_count() == 0

    def test_parts_enter_at_load_station(self, finished_engine):
        for part in finished_engine.tracker.parts.values():
            assert part.history[0].station_id.startswith("aa-load-")

    def test_completed_parts_end_at_pack(self, finished_engine):
        completed = finished_engine.tracker.get_parts_by_status(PartStatus.COMPLETED)
        for part in completed:
            assert part.history[-1].station_id.startswith("aa-pack-")
            assert part.history[-1].result == ExitResult.OK
            assert part.current_station is None

    def test_scrapped_parts_have_reason(self, finished_engine):
        scrapped = finished_engine.tracker.get_parts_by_status(PartStatus.SCRAPPED)
        for part in scrapped:
            assert part.halt is not None or part.history[-1].result == ExitResult.NOK

    def test_station_occupancy_consistent(self, finished_engine):
        occupied = [
            p.current_station
            for p in finished_engine.tracker.parts.values()
            if p.status == PartStatus.IN_STATION
        ]
        assert len(occupied) == len(set(occupied))

        for station in finished_engine.tracker.stations.values():
            if station.status != StationStatus.RUNNING:
                assert station.current_part_id is None

    def test_metrics_collected(self, finished_engine):
        samples = finished_engine.get_metric_history("aa-machine-1-02", "power")
        assert 0 < len(samples) <= finished_engine.config.metric_history_size

    def test_snapshot(self, finished_engine):
        snapshot = finished_engine.snapshot()

        assert len(snapshot["stations"]) == 20
        assert len(snapshot["sensors"]) == 18
        assert len(snapshot["parts"]) == len(finished_engine.tracker.parts)
        assert "areas" in snapshot["layout"]

    def test_event_log_bounded(self):
        engine = create_engine(event_log_size=500)
        engine.start()
        for _ in range(3):
            engine.advance(600000)
            assert len(engine.bus.get_all_events()) == 500

        assert engine.bus.get_event_count() > 500
        assert engine.tracker.accepted_count > 500


class TestCommands:
    """指令执行测试"""

    def test_history_and_search(self, finished_engine):
        part_id = next(iter(finished_engine.tracker.parts))

        data = finished_engine.execute(GetPartHistoryCommand(partId=part_id))
        assert data["part_id"] == part_id

        results = finished_engine.execute(SearchPartCommand(query=part_id.lower()))
        assert [p["part_id"] for p in results] == [part_id]

    def test_unknown_part_history(self, finished_engine):
        assert finished_engine.execute(GetPartHistoryCommand(partId="NOPE")) is None

    def test_search_limit(self):
        engine = create_engine(search_limit=2)
        engine.run(120000)

        assert len(engine.search_part("part")) <= 2

    def test_unknown_command(self, finished_engine):
        with pytest.raises(ValueError):
            finished_engine.execute("reboot")

    def test_ingest_external_message(self):
        engine = create_engine()
        engine.start()
        topic = "factory/assembly-a/line-aa1/aa-load-1-01/part/enter"

        assert engine.ingest(topic, '{"partId": "EXT-1", "timestamp": "2026-01-01T08:00:00.000"}')
        assert engine.ingest(topic, b"not json") is None
        assert engine.ingest("factory/assembly-a/line-aa1/aa-load-1-01/unknown", {}) is None

        part = engine.tracker.get_part("EXT-1")
        assert part.current_station == "aa-load-1-01"
        assert engine.bus.get_events_by_part("EXT-1")[0].line == "line-aa1"

        [(last_topic, payload)] = engine.recent_messages(1)
        assert last_topic == topic
        assert '"partId": "EXT-1"' in payload


class TestReproducibility:
    """种子复现测试"""

    def test_same_seed_same_events(self):
        def run_once():
            engine = create_engine(seed=7)
            engine.run(120000)
            return [(e.kind, e.timestamp) for e in engine.bus.get_all_events()]

        assert run_once() == run_once()
