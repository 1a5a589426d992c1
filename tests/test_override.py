"""
人工放行集成测试
通过SimulationEngine验证拦停 → 放行 → 恢复流转的完整链路
"""

from factory_twin.core.simulation_engine import SimulationEngine
from factory_twin.models.command_model import OverridePartCommand
from factory_twin.models.enums import (
    EventType,
    PartStatus,
    SensorDecision,
    SensorType,
    SimulationStatus,
)

from factory_helpers import (
    ScriptedRng,
    create_line_layout,
    create_sensor,
    create_test_config,
)


def create_halting_engine(rng=None) -> SimulationEngine:
    """
    创建必然拦停的仿真：LD-1 → MC-1 传送带上有两个传感器
    S1 (0.25, data_check, 必然失败)，S2 (0.75, routing, 必然返工)
    """
    layout = create_line_layout([
        create_sensor("S1", SensorType.DATA_CHECK, position=0.25, fail_probability=1.0),
        create_sensor("S2", SensorType.ROUTING, position=0.75, fail_probability=1.0),
    ])
    engine = SimulationEngine(
        create_test_config(),
        layout,
        spawn_enabled=False,
        rng=rng or ScriptedRng(),
    )
    engine.start()
    return engine


def halt_part(engine: SimulationEngine) -> str:
    agent = engine.simulator.create_part()
    # 1000 加工 + 4000 × 0.25 到达 S1
    engine.advance(2500)
    return agent.part_id


class TestOverrideFlow:
    """放行流程测试"""

    def test_part_halted_by_fail(self):
        engine = create_halting_engine()
        part_id = halt_part(engine)

        part = engine.get_part_history(part_id)
        assert part.status == PartStatus.SCRAPPED
        assert part.halt is not None
        assert part.halt.sensor_id == "S1"
        assert engine.tracker.can_override(part_id)
        assert engine.simulator.get_active_count() == 0

    def test_override_resumes_part(self):
        engine = create_halting_engine()
        part_id = halt_part(engine)

        part = engine.override_part(OverridePartCommand(partId=part_id))
        assert part is not None
        assert part.status == PartStatus.IN_TRANSIT
        assert part.halt is None
        assert part.override_count == 1

        engine.advance(30000)
        part = engine.get_part_history(part_id)
        assert part.status == PartStatus.COMPLETED
        assert [h.station_id for h in part.history] == ["LD-1", "MC-1", "QC-1", "PK-1"]
        assert engine.orchestrator.override_count == 1

    def test_remaining_sensors_replayed_as_pass(self):
        engine = create_halting_engine()
        part_id = halt_part(engine)
        engine.override_part(OverridePartCommand(partId=part_id))
        engine.advance(30000)

        decisions = [
            (e.sensor_id, e.decision)
            for e in engine.get_part_history(part_id).sensor_events
        ]
        assert decisions == [("S1", SensorDecision.FAIL), ("S2", SensorDecision.PASS)]

    def test_override_event_precedes_resume(self):
        engine = create_halting_engine()
        part_id = halt_part(engine)
        engine.override_part(OverridePartCommand(partId=part_id))
        engine.advance(10000)

        kinds = [e.kind for e in engine.bus.get_events_by_part(part_id)]
        override_at = kinds.index(EventType.PART_OVERRIDE)
        assert kinds[override_at + 1:override_at + 3] == [
            EventType.SENSOR_TRIGGER, EventType.TRANSIT_START
        ]

    def test_explicit_location(self):
        engine = create_halting_engine()
        part_id = halt_part(engine)

        part = engine.override_part(OverridePartCommand(
            partId=part_id,
            fromStationId="LD-1",
            toStationId="MC-1",
            failedSensorId="S1",
        ))
        assert part is not None


class TestOverrideRejections:
    """放行拒绝测试"""

    def test_unknown_part(self):
        engine = create_halting_engine()
        assert engine.override_part(OverridePartCommand(partId="NOPE")) is None
        assert engine.orchestrator.override_count == 0

    def test_active_part_not_overridable(self):
        engine = create_halting_engine()
        agent = engine.simulator.create_part()
        engine.advance(500)

        assert engine.override_part(OverridePartCommand(partId=agent.part_id)) is None
        assert engine.get_part_history(agent.part_id).status == PartStatus.IN_STATION

    def test_second_override_rejected(self):
        engine = create_halting_engine()
        part_id = halt_part(engine)

        assert engine.override_part(OverridePartCommand(partId=part_id)) is not None
        assert engine.override_part(OverridePartCommand(partId=part_id)) is None
        assert engine.orchestrator.override_count == 1

    def test_unknown_station_in_command(self):
        engine = create_halting_engine()
        part_id = halt_part(engine)

        part = engine.override_part(OverridePartCommand(
            partId=part_id, fromStationId="NOPE", toStationId="MC-1"))
        assert part is None
        assert engine.get_part_history(part_id).status == PartStatus.SCRAPPED

    def test_stopped_engine_rejects(self):
        engine = create_halting_engine()
        part_id = halt_part(engine)
        engine.shutdown()

        assert engine.status == SimulationStatus.STOPPED
        assert engine.override_part(OverridePartCommand(partId=part_id)) is None
