import random
import pytest
from datetime import datetime, timezone

from agrisys.bus.base import InMemoryBus
from agrisys.bus.publisher import NodePublisher
from agrisys.bus.topics import TopicLayout
from agrisys.config.settings import Settings
from agrisys.core.registry import NodeRegistry
from agrisys.simulator.engine import SimulationEngine
from agrisys.simulator.scheduler import PeriodicScheduler
from agrisys.simulator.sensors import SensorSimulator

@pytest.fixture
def fixed_now():
    """Mediodía UTC: horario diurno para el ciclo de luz"""
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

@pytest.fixture
def sample_records():
    return [
        {
            "id": "node-001",
            "name": "Invernadero Norte",
            "status": "online",
            "sensors": {
                "soilMoisture": {"value": 45.0, "unit": "%"},
                "light": {"value": 850.0, "unit": "lux"},
                "humidity": {"value": 65.0, "unit": "%"},
                "temperature": {"value": 24.5, "unit": "°C"}
            },
            "controls": {"fan": {"speed": 1}}
        },
        {
            "id": "node-002",
            "name": "Parcela Sur",
            "status": "online",
            "sensors": {
                "soilMoisture": {"value": 35.0, "unit": "%"},
                "humidity": {"value": 52.0, "unit": "%"}
            },
            "devices": {
                "watering": {"isActive": False, "mode": "auto", "lastActivated": None},
                "humidity": {"isActive": False, "mode": "manual", "lastActivated": None}
            }
        },
        {
            "id": "node-003",
            "name": "Vivero Este",
            "status": "offline",
            "sensors": {
                "soilMoisture": {"value": 72.0, "unit": "%"}
            }
        }
    ]

@pytest.fixture
def registry(sample_records):
    return NodeRegistry.from_records(sample_records)

@pytest.fixture
def bus():
    return InMemoryBus()

@pytest.fixture
def topics():
    return TopicLayout("agrisys")

@pytest.fixture
def publisher(bus, topics):
    return NodePublisher(bus, topics)

@pytest.fixture
def simulator():
    return SensorSimulator(rng=random.Random(42), timezone=timezone.utc)

@pytest.fixture
def engine(registry, bus, simulator, fixed_now):
    """Motor en tiempo virtual, sin bucle continuo"""
    settings = Settings(topic_prefix="agrisys", simulation_interval=5, sweep_interval=30)
    return SimulationEngine(
        registry,
        bus,
        settings,
        simulator=simulator,
        scheduler=PeriodicScheduler(start_time=fixed_now)
    )
