from typing import Dict, Optional, Tuple
from datetime import datetime, tzinfo
import random
import logging

from ..core.node import Node
from ..utils.timeutils import ensure_aware

# Variación máxima por tick para el paseo aleatorio
SENSOR_DRIFT: Dict[str, float] = {
    "soilMoisture": 2.0,
    "humidity": 1.0,
    "temperature": 0.2,
}

# (mínimo, máximo); None significa sin límite superior
SENSOR_LIMITS: Dict[str, Tuple[float, Optional[float]]] = {
    "soilMoisture": (0.0, 100.0),
    "humidity": (0.0, 100.0),
    "light": (0.0, None),
    "temperature": (0.0, None),
}

DAYLIGHT_START_HOUR = 6
DAYLIGHT_END_HOUR = 20
LIGHT_DAY_DRIFT = 50.0
LIGHT_NIGHT_BASELINE = 10.0
LIGHT_NIGHT_DRIFT = 5.0

class SensorSimulator:
    def __init__(self, rng: Optional[random.Random] = None, timezone: Optional[tzinfo] = None):
        """
        Args:
            rng: Fuente aleatoria; se inyecta para simulaciones reproducibles
            timezone: Zona horaria del ciclo día/noche (None = hora local del sistema)
        """
        self.rng = rng or random.Random()
        self.timezone = timezone
        self.logger = logging.getLogger(__name__)

    def local_hour(self, now: datetime) -> int:
        # Una fecha sin zona es UTC, igual que en el barrido de automatización
        return ensure_aware(now).astimezone(self.timezone).hour

    def is_daytime(self, now: datetime) -> bool:
        return DAYLIGHT_START_HOUR <= self.local_hour(now) <= DAYLIGHT_END_HOUR

    def _random_walk(self, center: float, drift: float) -> float:
        return round(self.rng.uniform(center - drift, center + drift), 1)

    @staticmethod
    def clamp(sensor: str, value: float) -> float:
        lower, upper = SENSOR_LIMITS.get(sensor, (None, None))
        if lower is not None:
            value = max(lower, value)
        if upper is not None:
            value = min(upper, value)
        return value

    def next_value(self, sensor: str, previous: float, now: datetime) -> Optional[float]:
        """Calcula el siguiente valor de un sensor, o None si el sensor no se simula"""
        if sensor == "light":
            if self.is_daytime(now):
                value = self._random_walk(previous, LIGHT_DAY_DRIFT)
            else:
                # De noche el valor se recalcula desde la línea base, no desde la lectura previa
                value = self._random_walk(LIGHT_NIGHT_BASELINE, LIGHT_NIGHT_DRIFT)
        elif sensor in SENSOR_DRIFT:
            value = self._random_walk(previous, SENSOR_DRIFT[sensor])
        else:
            return None
        return self.clamp(sensor, value)

    def tick(self, node: Node, now: datetime) -> bool:
        """Avanza las lecturas de un nodo. Devuelve False si el nodo está offline"""
        if not node.is_online:
            return False

        for sensor, reading in node.sensors.items():
            value = self.next_value(sensor, reading.value, now)
            if value is not None:
                reading.value = value

        node.last_updated = now
        self.logger.debug(f"Sensors updated for node {node.id}: {node.sensors_payload()}")
        return True
