from typing import Dict, Any, Optional
from datetime import datetime

from .reading import Reading
from .device import DeviceState, DEFAULT_DEVICES
from .exceptions import StoreLoadError, DeviceError
from ..utils.timeutils import parse_timestamp, format_timestamp

STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"
NODE_STATUSES = (STATUS_ONLINE, STATUS_OFFLINE)

# Claves del inventario que el nodo interpreta; el resto se conserva tal cual
_KNOWN_KEYS = {"id", "sensors", "devices", "controls", "status", "lastUpdated"}

class Node:
    def __init__(
        self,
        node_id: str,
        sensors: Optional[Dict[str, Reading]] = None,
        devices: Optional[Dict[str, DeviceState]] = None,
        controls: Optional[Dict[str, Dict[str, Any]]] = None,
        status: str = STATUS_ONLINE,
        last_updated: Optional[datetime] = None,
        attributes: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            node_id: ID único del nodo dentro del registro
            sensors: Lecturas actuales por nombre de sensor
            devices: Estado de actuadores; si no se indica se crean los de por defecto
            controls: Ajustes arbitrarios por nombre de control
            status: 'online' u 'offline'
            last_updated: Momento del último tick de simulación
            attributes: Datos extra del inventario (nombre, ubicación...)
        """
        if status not in NODE_STATUSES:
            raise ValueError(f"Invalid node status: {status!r}")
        self._id = node_id
        self.sensors = sensors or {}
        if devices is None:
            devices = {name: DeviceState() for name in DEFAULT_DEVICES}
        self.devices = devices
        self.controls = controls or {}
        self.status = status
        self.last_updated = last_updated
        self.attributes = attributes or {}

    @property
    def id(self) -> str:
        return self._id

    @property
    def is_online(self) -> bool:
        return self.status == STATUS_ONLINE

    def get_device(self, name: str) -> Optional[DeviceState]:
        return self.devices.get(name)

    def get_reading(self, sensor: str) -> Optional[Reading]:
        return self.sensors.get(sensor)

    def sensors_payload(self) -> Dict[str, Any]:
        return {name: reading.to_dict() for name, reading in self.sensors.items()}

    def devices_payload(self) -> Dict[str, Any]:
        return {name: device.to_dict() for name, device in self.devices.items()}

    def controls_payload(self) -> Dict[str, Any]:
        return {name: dict(settings) for name, settings in self.controls.items()}

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Node":
        """Construye un nodo desde un registro del inventario.

        Los registros sin `devices` o `controls` reciben valores por defecto en
        este paso, de modo que ningún nodo cargado carece de esos mapas.
        """
        if not isinstance(record, dict):
            raise StoreLoadError(f"Node record must be an object, got {type(record).__name__}")
        node_id = record.get("id")
        if not isinstance(node_id, str) or not node_id:
            raise StoreLoadError(f"Node record without a valid id: {record!r}")

        try:
            sensors = {
                name: Reading.from_dict(name, data)
                for name, data in (record.get("sensors") or {}).items()
            }
            devices = None
            if record.get("devices") is not None:
                devices = {
                    name: DeviceState.from_dict(data)
                    for name, data in record["devices"].items()
                }
            controls = {}
            for name, settings in (record.get("controls") or {}).items():
                if not isinstance(settings, dict):
                    raise ValueError(f"Control {name} must be an object")
                controls[name] = dict(settings)
            return cls(
                node_id,
                sensors=sensors,
                devices=devices,
                controls=controls,
                status=record.get("status", STATUS_ONLINE),
                last_updated=parse_timestamp(record.get("lastUpdated")),
                attributes={k: v for k, v in record.items() if k not in _KNOWN_KEYS}
            )
        except (ValueError, TypeError, AttributeError, DeviceError) as e:
            raise StoreLoadError(f"Invalid record for node {node_id}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convierte el nodo a diccionario para serialización"""
        return {
            "id": self.id,
            **self.attributes,
            "status": self.status,
            "sensors": self.sensors_payload(),
            "devices": self.devices_payload(),
            "controls": self.controls_payload(),
            "lastUpdated": format_timestamp(self.last_updated)
        }

    def __repr__(self) -> str:
        return f"Node({self.id}, {self.status}, sensors={list(self.sensors)}, devices={list(self.devices)})"
