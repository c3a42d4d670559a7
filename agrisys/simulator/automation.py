from typing import Dict, List, Optional
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging

from ..core.node import Node
from ..core.reading import Reading
from ..core.registry import NodeRegistry
from ..utils.timeutils import EPOCH, ensure_aware

@dataclass(frozen=True)
class AutomationPolicy:
    """Política fija de un dispositivo en modo automático"""
    device: str
    sensor: str
    threshold: float
    max_runtime: timedelta

    def should_activate(self, reading: Reading) -> bool:
        return reading.value < self.threshold

AUTOMATION_POLICIES: Dict[str, AutomationPolicy] = {
    "watering": AutomationPolicy("watering", "soilMoisture", 40.0, timedelta(minutes=5)),
    "humidity": AutomationPolicy("humidity", "humidity", 60.0, timedelta(minutes=10)),
}

class DeviceAutomationEngine:
    """Activa/desactiva dispositivos en modo 'auto'.

    - `evaluate` compara cada dispositivo automático con el umbral de su sensor.
    - `sweep` apaga los dispositivos automáticos que superan su tiempo máximo
      de funcionamiento, sin volver a mirar el sensor.

    Los dispositivos en modo 'manual' nunca se tocan.
    """
    def __init__(self, registry: NodeRegistry, policies: Optional[Dict[str, AutomationPolicy]] = None):
        self.registry = registry
        self.policies = policies if policies is not None else AUTOMATION_POLICIES
        self.logger = logging.getLogger(__name__)

    def evaluate(self, node: Node, now: datetime) -> bool:
        """Aplica los umbrales a las lecturas actuales. Devuelve True si algún dispositivo cambió"""
        changed = False
        for name, device in node.devices.items():
            policy = self.policies.get(name)
            if policy is None or not device.is_auto:
                continue
            reading = node.get_reading(policy.sensor)
            if reading is None:
                continue

            should_activate = policy.should_activate(reading)
            if should_activate == device.is_active:
                continue

            if should_activate:
                device.activate(now)
            else:
                device.deactivate()
            changed = True
            self.logger.info(
                f"Auto {'activated' if should_activate else 'deactivated'} {name} for node {node.id} "
                f"({policy.sensor}: {reading.value}{reading.unit})"
            )
        return changed

    def sweep_node(self, node: Node, now: datetime) -> bool:
        """Fuerza el apagado de los dispositivos que exceden su tiempo máximo"""
        now = ensure_aware(now)
        changed = False
        for name, device in node.devices.items():
            policy = self.policies.get(name)
            if policy is None or not device.is_auto or not device.is_active:
                continue

            # Sin marca de activación se cuenta desde epoch: se apaga en este mismo barrido
            last_activated = ensure_aware(device.last_activated) if device.last_activated else EPOCH
            elapsed = now - last_activated
            if elapsed > policy.max_runtime:
                device.deactivate()
                changed = True
                self.logger.info(
                    f"Auto deactivated {name} for node {node.id} after "
                    f"{round(elapsed.total_seconds() / 60)} minutes"
                )
        return changed

    def sweep(self, now: datetime) -> List[str]:
        """Barre todos los nodos del registro. Devuelve los IDs de los nodos modificados"""
        changed_nodes = []
        for node in self.registry.all():
            if self.sweep_node(node, now):
                changed_nodes.append(node.id)
        return changed_nodes
