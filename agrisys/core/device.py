from datetime import datetime
from typing import Dict, Any, Optional

from .exceptions import DeviceError
from ..utils.timeutils import parse_timestamp, format_timestamp

MODE_AUTO = "auto"
MODE_MANUAL = "manual"
DEVICE_MODES = (MODE_AUTO, MODE_MANUAL)

# Dispositivos que recibe un nodo cuyo inventario no declara ninguno
DEFAULT_DEVICES = ("watering", "humidity")

def validate_mode(mode: Any) -> str:
    """Rechaza cualquier modo fuera de {auto, manual}"""
    if mode not in DEVICE_MODES:
        raise DeviceError(f"Invalid device mode: {mode!r}")
    return mode

class DeviceState:
    """Estado de un actuador (riego, humidificador).

    `is_active` y `last_activated` solo se modifican juntos: toda activación
    pasa por `activate()`, que marca la hora en la misma operación.
    """
    def __init__(
        self,
        is_active: bool = False,
        mode: str = MODE_AUTO,
        last_activated: Optional[datetime] = None
    ):
        self.is_active = bool(is_active)
        self.mode = validate_mode(mode)
        self.last_activated = last_activated

    @property
    def is_auto(self) -> bool:
        return self.mode == MODE_AUTO

    def activate(self, now: datetime) -> None:
        self.is_active = True
        self.last_activated = now

    def deactivate(self) -> None:
        self.is_active = False

    def set_mode(self, mode: str) -> None:
        self.mode = validate_mode(mode)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceState":
        if not isinstance(data, dict):
            raise DeviceError(f"Invalid device state: {data!r}")
        is_active = data.get("isActive", False)
        if not isinstance(is_active, bool):
            raise DeviceError(f"Invalid isActive value: {is_active!r}")
        try:
            last_activated = parse_timestamp(data.get("lastActivated"))
        except ValueError as e:
            raise DeviceError(str(e))
        return cls(
            is_active=is_active,
            mode=data.get("mode", MODE_AUTO),
            last_activated=last_activated
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convierte el dispositivo a diccionario para serialización"""
        return {
            "isActive": self.is_active,
            "mode": self.mode,
            "lastActivated": format_timestamp(self.last_activated)
        }

    def __repr__(self) -> str:
        return f"DeviceState(active={self.is_active}, mode={self.mode}, last_activated={self.last_activated})"
