from typing import Dict, List, Any, Optional
from datetime import datetime, timedelta
import asyncio
import logging
import random
import uuid

from .scheduler import PeriodicScheduler
from .sensors import SensorSimulator
from .automation import DeviceAutomationEngine
from .commands import CommandProcessor
from ..bus.base import MessageBus
from ..bus.publisher import NodePublisher
from ..bus.topics import TopicLayout
from ..config.settings import Settings
from ..core.registry import NodeRegistry
from ..core.exceptions import TransportError

SENSOR_TICK_EVENT = "sensor_tick"
AUTOMATION_SWEEP_EVENT = "automation_sweep"

class SimulationEngine:
    """Une registro, simulador de sensores, automatización, comandos y bus.

    Todas las unidades de trabajo (tick, barrido, comando) se ejecutan dentro de
    `registry.transaction()`, de modo que el bucle de simulación, los callbacks
    del bus y la API nunca intercalan cambios sobre un mismo nodo.
    """
    def __init__(
        self,
        registry: NodeRegistry,
        bus: MessageBus,
        settings: Optional[Settings] = None,
        simulator: Optional[SensorSimulator] = None,
        scheduler: Optional[PeriodicScheduler] = None
    ):
        self.engine_id = str(uuid.uuid4())
        self.settings = settings or Settings()
        self.registry = registry
        self.bus = bus
        self.topics = TopicLayout(self.settings.topic_prefix)
        self.publisher = NodePublisher(bus, self.topics)
        self.simulator = simulator or SensorSimulator(
            rng=random.Random(self.settings.simulation_seed),
            timezone=self.settings.timezone
        )
        self.automation = DeviceAutomationEngine(registry)
        self.processor = CommandProcessor(registry, self.publisher, self.topics)
        self.scheduler = scheduler or PeriodicScheduler()
        self.logger = logging.getLogger(__name__)

        self.status = "initialized"
        self._main_loop_task: Optional[asyncio.Task] = None

        self.bus.set_message_handler(self.processor.handle_message)
        self.logger.info(f"SimulationEngine instance {self.engine_id} initialized with {len(registry)} nodes.")

    def setup_simulation_events(self) -> None:
        """Programa los dos eventos recurrentes: tick de sensores y barrido de automatización"""
        self.scheduler.remove_events(SENSOR_TICK_EVENT)
        self.scheduler.remove_events(AUTOMATION_SWEEP_EVENT)
        self.scheduler.add_recurring_event(
            SENSOR_TICK_EVENT,
            self.run_simulation_tick,
            timedelta(seconds=self.settings.simulation_interval)
        )
        self.scheduler.add_recurring_event(
            AUTOMATION_SWEEP_EVENT,
            self.run_automation_sweep,
            timedelta(seconds=self.settings.sweep_interval)
        )
        self.logger.info(
            f"Simulation events configured (tick every {self.settings.simulation_interval}s, "
            f"sweep every {self.settings.sweep_interval}s)."
        )

    def run_simulation_tick(self, now: datetime) -> Dict[str, List[str]]:
        """Avanza los sensores de cada nodo online y evalúa su automatización"""
        published: Dict[str, List[str]] = {"sensors": [], "devices": []}
        with self.registry.transaction():
            for node in self.registry.all():
                if not self.simulator.tick(node, now):
                    continue
                devices_changed = self.automation.evaluate(node, now)

                self.publisher.publish_sensors(node)
                published["sensors"].append(node.id)
                if devices_changed:
                    self.publisher.publish_device_status(node)
                    published["devices"].append(node.id)
        self.logger.debug(f"Simulation tick at {now}: {len(published['sensors'])} nodes updated")
        return published

    def run_automation_sweep(self, now: datetime) -> List[str]:
        """Apaga los dispositivos automáticos que superan su tiempo máximo"""
        with self.registry.transaction():
            changed = self.automation.sweep(now)
            for node_id in changed:
                self.publisher.publish_device_status(self.registry.get(node_id))
        if changed:
            self.logger.info(f"Automation sweep at {now} switched off devices on {len(changed)} nodes")
        return changed

    def publish_initial_state(self) -> None:
        """Publica sensores, controles y dispositivos de todos los nodos al arrancar"""
        with self.registry.transaction():
            for node in self.registry.all():
                self.publisher.publish_sensors(node)
                self.publisher.publish_controls(node)
                self.publisher.publish_device_status(node)

    def subscribe_commands(self) -> None:
        for topic_filter in self.topics.subscriptions:
            try:
                self.bus.subscribe(topic_filter)
            except TransportError as e:
                self.logger.error(f"Error subscribing to {topic_filter}: {e}")

    async def run_continuous_simulation_loop(self) -> None:
        self.logger.info(f"SimulationEngine {self.engine_id} continuous loop started.")
        try:
            await self.scheduler.run_forever()
        finally:
            self.logger.info(f"SimulationEngine {self.engine_id} continuous loop stopped.")

    async def start_engine_main_loop(self) -> None:
        if self.status == "running":
            self.logger.info("Engine main loop is already running.")
            return
        # El estado inicial se publica al conectar (y en cada reconexión)
        self.bus.set_connect_handler(self.publish_initial_state)
        self.subscribe_commands()
        self.bus.connect()
        self.scheduler.current_time = self.scheduler.clock()
        self.setup_simulation_events()
        self.status = "running"
        self._main_loop_task = asyncio.create_task(self.run_continuous_simulation_loop())

    async def stop_engine_main_loop(self) -> None:
        self.logger.info("Stopping engine main loop...")
        self.status = "stopped"
        self.scheduler.stop()
        if self._main_loop_task and not self._main_loop_task.done():
            self._main_loop_task.cancel()
            try:
                await self._main_loop_task
            except asyncio.CancelledError:
                self.logger.info("Main simulation loop task cancelled.")
        self._main_loop_task = None
        # Lo que quede en la cola del transporte no se espera
        self.bus.disconnect()
        self.logger.info("Engine main loop stopped.")

    def get_status(self) -> Dict[str, Any]:
        nodes = self.registry.all()
        return {
            "engine_id": self.engine_id,
            "status": self.status,
            "nodes": len(nodes),
            "online_nodes": sum(1 for n in nodes if n.is_online),
            "queued_events": self.scheduler.get_event_count()
        }
