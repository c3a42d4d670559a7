from typing import Dict, Any, Optional, Tuple

# Bandas fijas por sensor: (límite inferior óptimo, límite superior óptimo)
SENSOR_BANDS: Dict[str, Tuple[float, float]] = {
    "soilMoisture": (40.0, 70.0),
    "light": (200.0, 1200.0),
    "humidity": (50.0, 75.0),
    "temperature": (18.0, 28.0),
}

SENSOR_UNITS: Dict[str, str] = {
    "soilMoisture": "%",
    "light": "lux",
    "humidity": "%",
    "temperature": "°C",
}

STATUS_LOW = "low"
STATUS_OPTIMAL = "optimal"
STATUS_HIGH = "high"

def classify(sensor: str, value: float) -> str:
    """Calcula la banda de estado de una lectura.

    Los límites son inclusivos para 'optimal': 40.0 y 70.0 son óptimos para
    soilMoisture, 39.9 es 'low' y 70.1 es 'high'. Un sensor sin bandas
    conocidas siempre se reporta como óptimo.
    """
    band = SENSOR_BANDS.get(sensor)
    if band is None:
        return STATUS_OPTIMAL
    low, high = band
    if value < low:
        return STATUS_LOW
    if value > high:
        return STATUS_HIGH
    return STATUS_OPTIMAL

class Reading:
    def __init__(self, sensor: str, value: float, unit: Optional[str] = None):
        self.sensor = sensor
        self.unit = unit or SENSOR_UNITS.get(sensor, "")
        self.value = value

    @property
    def value(self) -> float:
        return self._value

    @value.setter
    def value(self, value: float) -> None:
        # El estado se recalcula siempre junto con el valor
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Invalid value for sensor {self.sensor}: {value!r}")
        self._value = float(value)
        self._status = classify(self.sensor, self._value)

    @property
    def status(self) -> str:
        return self._status

    @classmethod
    def from_dict(cls, sensor: str, data: Dict[str, Any]) -> "Reading":
        """Crea una lectura desde el inventario; el 'status' guardado se ignora"""
        if not isinstance(data, dict) or "value" not in data:
            raise ValueError(f"Sensor {sensor} has no value")
        return cls(sensor, data["value"], data.get("unit"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "unit": self.unit,
            "status": self.status
        }

    def __repr__(self) -> str:
        return f"Reading({self.sensor}={self.value}{self.unit}, {self.status})"
