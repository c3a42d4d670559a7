import itertools
import json
import logging
import pytest
import threading
from datetime import datetime, timedelta, timezone

from agrisys.bus.base import InMemoryBus
from agrisys.core.exceptions import TransportError
from agrisys.simulator.engine import SimulationEngine, SENSOR_TICK_EVENT, AUTOMATION_SWEEP_EVENT
from agrisys.simulator.scheduler import PeriodicScheduler

class FailingBus(InMemoryBus):
    """Bus cuyo transporte rechaza todas las publicaciones"""
    def publish(self, topic, payload):
        raise TransportError(f"broker unavailable ({topic})")

class TestSimulationEngine:
    def test_tick_publishes_online_nodes_only(self, engine, bus, fixed_now):
        result = engine.run_simulation_tick(fixed_now)
        assert result["sensors"] == ["node-001", "node-002"]
        assert bus.messages_for("agrisys/nodes/node-003/sensors") == []
        payload = json.loads(bus.messages_for("agrisys/nodes/node-001/sensors")[-1])
        assert set(payload) == {"soilMoisture", "light", "humidity", "temperature"}
        assert set(payload["soilMoisture"]) == {"value", "unit", "status"}

    def test_tick_publishes_device_status_on_automation_change(self, engine, bus, registry, fixed_now):
        result = engine.run_simulation_tick(fixed_now)
        # node-002 parte con suelo al 35 %: se activa el riego automático
        assert result["devices"] == ["node-002"]
        devices = json.loads(bus.messages_for("agrisys/nodes/node-002/device/status")[-1])
        assert devices["watering"]["isActive"] is True
        # El humidificador está en manual y no se toca aunque la humedad sea baja
        assert devices["humidity"]["isActive"] is False
        assert registry.get("node-002").last_updated == fixed_now

    def test_offline_node_is_frozen(self, engine, registry, fixed_now):
        before = registry.get("node-003").to_dict()
        for step in range(5):
            engine.run_simulation_tick(fixed_now + timedelta(seconds=5 * step))
        assert registry.get("node-003").to_dict() == before

    def test_sweep_publishes_forced_off(self, engine, bus, registry, fixed_now):
        watering = registry.get("node-001").devices["watering"]
        watering.activate(fixed_now - timedelta(minutes=10))
        assert engine.run_automation_sweep(fixed_now) == ["node-001"]
        devices = json.loads(bus.messages_for("agrisys/nodes/node-001/device/status")[-1])
        assert devices["watering"]["isActive"] is False
        assert engine.run_automation_sweep(fixed_now) == []

    def test_sweep_covers_offline_nodes(self, engine, registry, fixed_now):
        registry.get("node-003").devices["watering"].activate(fixed_now - timedelta(hours=1))
        assert engine.run_automation_sweep(fixed_now) == ["node-003"]

    def test_publish_initial_state(self, engine, bus):
        engine.publish_initial_state()
        topics = [topic for topic, _ in bus.published]
        assert len(topics) == 9
        for node_id in ("node-001", "node-002", "node-003"):
            assert f"agrisys/nodes/{node_id}/sensors" in topics
            assert f"agrisys/nodes/{node_id}/controls" in topics
            assert f"agrisys/nodes/{node_id}/device/status" in topics
        assert json.loads(bus.messages_for("agrisys/nodes/node-001/controls")[0]) == {"fan": {"speed": 1}}

    def test_tick_after_initial_state_publishes_sensors_and_changes(self, engine, bus, fixed_now):
        engine.publish_initial_state()
        bus.clear()
        engine.run_simulation_tick(fixed_now)
        assert [topic for topic, _ in bus.published] == [
            "agrisys/nodes/node-001/sensors",
            "agrisys/nodes/node-002/sensors",
            "agrisys/nodes/node-002/device/status",
        ]

    def test_scheduled_events_in_virtual_time(self, engine, bus, fixed_now):
        engine.setup_simulation_events()
        assert len(engine.scheduler.get_events_by_type(SENSOR_TICK_EVENT)) == 1
        assert len(engine.scheduler.get_events_by_type(AUTOMATION_SWEEP_EVENT)) == 1

        processed = engine.scheduler.run_until(fixed_now + timedelta(seconds=30))
        # 6 ticks de sensores y 1 barrido
        assert processed == 7
        assert len(bus.messages_for("agrisys/nodes/node-001/sensors")) == 6

    def test_setup_events_is_not_duplicated(self, engine):
        engine.setup_simulation_events()
        engine.setup_simulation_events()
        assert engine.scheduler.get_event_count() == 2

    def test_transport_failure_is_not_fatal(self, registry, simulator, fixed_now, caplog):
        engine = SimulationEngine(registry, FailingBus(), simulator=simulator,
                                  scheduler=PeriodicScheduler(start_time=fixed_now))
        with caplog.at_level(logging.ERROR, logger="agrisys.bus.publisher"):
            result = engine.run_simulation_tick(fixed_now)
        assert result["sensors"] == ["node-001", "node-002"]
        assert registry.get("node-002").devices["watering"].is_active
        assert "Error publishing sensor data for node node-001" in caplog.text

    def test_commands_arrive_through_bus(self, engine, bus, registry):
        engine.subscribe_commands()
        assert bus.subscriptions == ["agrisys/nodes/+/device/command", "agrisys/nodes/+/command"]
        bus.deliver("agrisys/nodes/node-001/device/command", json.dumps({"device": "humidity", "mode": "manual"}))
        bus.deliver("agrisys/nodes/node-002/command", json.dumps({"control": "fan", "value": {"speed": 2}}))
        assert registry.get("node-001").devices["humidity"].mode == "manual"
        assert registry.get("node-002").controls == {"fan": {"speed": 2}}

    def test_get_status(self, engine):
        status = engine.get_status()
        assert status["status"] == "initialized"
        assert status["nodes"] == 3
        assert status["online_nodes"] == 2
        assert status["queued_events"] == 0

    @pytest.mark.asyncio
    async def test_start_and_stop_main_loop(self, engine, bus):
        await engine.start_engine_main_loop()
        try:
            assert engine.status == "running"
            assert bus.connected
            # Estado inicial publicado al conectar
            assert len(bus.published) == 9
            assert engine.scheduler.get_event_count() == 2
            assert set(bus.subscriptions) == set(engine.topics.subscriptions)
        finally:
            await engine.stop_engine_main_loop()
        assert engine.status == "stopped"
        assert not bus.connected

class TestPeriodicScheduler:
    def test_callback_receives_scheduled_time(self, fixed_now):
        scheduler = PeriodicScheduler(start_time=fixed_now)
        seen = []
        scheduler.add_event("once", seen.append, timedelta(seconds=3))
        assert scheduler.process_next_event()
        assert seen == [fixed_now + timedelta(seconds=3)]
        assert not scheduler.process_next_event()

    def test_recurring_event_is_rescheduled(self, fixed_now):
        scheduler = PeriodicScheduler(start_time=fixed_now)
        seen = []
        scheduler.add_recurring_event("tick", seen.append, timedelta(seconds=5))
        assert scheduler.run_until(fixed_now + timedelta(seconds=16)) == 3
        assert seen == [fixed_now + timedelta(seconds=s) for s in (5, 10, 15)]
        assert scheduler.get_next_event_time() == fixed_now + timedelta(seconds=20)
        assert scheduler.current_time == fixed_now + timedelta(seconds=16)

    def test_events_run_in_time_order(self, fixed_now):
        scheduler = PeriodicScheduler(start_time=fixed_now)
        order = []
        scheduler.add_event("late", lambda now: order.append("late"), timedelta(seconds=10))
        scheduler.add_event("early", lambda now: order.append("early"), timedelta(seconds=1))
        scheduler.run_until(fixed_now + timedelta(minutes=1))
        assert order == ["early", "late"]

    def test_failing_callback_is_logged_and_rescheduled(self, fixed_now, caplog):
        scheduler = PeriodicScheduler(start_time=fixed_now)

        def boom(now):
            raise RuntimeError("sensor exploded")

        scheduler.add_recurring_event("boom", boom, timedelta(seconds=5))
        with caplog.at_level(logging.ERROR, logger="agrisys.simulator.scheduler"):
            assert scheduler.run_until(fixed_now + timedelta(seconds=10)) == 2
        assert "sensor exploded" in caplog.text
        assert scheduler.get_event_count() == 1

    def test_non_positive_interval_rejected(self, fixed_now):
        scheduler = PeriodicScheduler(start_time=fixed_now)
        with pytest.raises(ValueError):
            scheduler.add_recurring_event("tick", lambda now: None, timedelta(0))

    def test_remove_and_clear_events(self, fixed_now):
        scheduler = PeriodicScheduler(start_time=fixed_now)
        scheduler.add_recurring_event("a", lambda now: None, timedelta(seconds=1))
        scheduler.add_recurring_event("b", lambda now: None, timedelta(seconds=2))
        scheduler.remove_events("a")
        assert [e.event_type for e in scheduler.events] == ["b"]
        scheduler.clear_all_events()
        assert scheduler.get_next_event_time() is None

    def test_stop_halts_run_until(self, fixed_now):
        scheduler = PeriodicScheduler(start_time=fixed_now)
        scheduler.add_recurring_event("tick", lambda now: scheduler.stop(), timedelta(seconds=1))
        assert scheduler.run_until(fixed_now + timedelta(seconds=10)) == 1

    @pytest.mark.asyncio
    async def test_realtime_lag_fires_once_with_clock_time(self, fixed_now):
        wall_clock = [fixed_now]
        scheduler = PeriodicScheduler(start_time=fixed_now, clock=lambda: wall_clock[0])
        fired = []
        scheduler.add_recurring_event(SENSOR_TICK_EVENT, fired.append, timedelta(seconds=5))
        scheduler.add_event("stop", lambda now: scheduler.stop(), timedelta(hours=1))

        # El bucle retoma el control una hora tarde (host suspendido)
        wall_clock[0] = fixed_now + timedelta(hours=1)
        await scheduler.run_forever()

        assert fired == [fixed_now + timedelta(hours=1)]
        assert scheduler.get_next_event_time() == fixed_now + timedelta(hours=1, seconds=5)

class ThreadTaggingBus(InMemoryBus):
    """Anota el hilo desde el que se publica cada mensaje"""
    def __init__(self):
        super().__init__()
        self.log = []

    def publish(self, topic, payload):
        super().publish(topic, payload)
        self.log.append((topic, payload, threading.current_thread().name))

class TestConcurrentUnitsOfWork:
    def test_ticks_and_bus_commands_do_not_interleave(self, registry, simulator, fixed_now):
        bus = ThreadTaggingBus()
        engine = SimulationEngine(registry, bus, simulator=simulator,
                                  scheduler=PeriodicScheduler(start_time=fixed_now))
        command_base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        stamps = itertools.count()
        engine.processor.clock = lambda: command_base + timedelta(seconds=next(stamps))
        engine.subscribe_commands()
        rounds = 200

        def run_ticks():
            for step in range(rounds):
                engine.run_simulation_tick(fixed_now + timedelta(seconds=5 * step))

        def send_commands():
            # Alterna encendido/apagado del riego automático de node-002
            for i in range(rounds):
                payload = json.dumps({"device": "watering", "state": i % 2 == 0})
                bus.deliver("agrisys/nodes/node-002/device/command", payload)

        workers = [
            threading.Thread(target=run_ticks, name="ticks"),
            threading.Thread(target=send_commands, name="commands"),
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=60)
            assert not worker.is_alive()

        status_topic = "agrisys/nodes/node-002/device/status"
        command_maps = [
            json.loads(payload)["watering"]
            for topic, payload, origin in bus.log
            if topic == status_topic and origin == "commands"
        ]
        assert len(command_maps) == rounds
        for i, watering in enumerate(command_maps):
            # Cada mapa publicado refleja exactamente el comando que lo originó
            assert watering["isActive"] is (i % 2 == 0)
            if i % 2 == 0:
                assert watering["lastActivated"] == (command_base + timedelta(seconds=i)).isoformat()

        for topic, payload, origin in bus.log:
            if topic == status_topic:
                watering = json.loads(payload)["watering"]
                assert not watering["isActive"] or watering["lastActivated"] is not None
