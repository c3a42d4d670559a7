from typing import Dict, Any
import json
import logging

from .base import MessageBus
from .topics import TopicLayout
from ..core.node import Node
from ..core.exceptions import TransportError

class NodePublisher:
    """Publica el estado de los nodos en sus topics.

    Un fallo de transporte se registra y se abandona esa publicación; nunca se
    propaga al tick o comando que la originó, y no hay reintentos.
    """
    def __init__(self, bus: MessageBus, topics: TopicLayout):
        self.bus = bus
        self.topics = topics
        self.logger = logging.getLogger(__name__)

    def _publish(self, topic: str, payload: Dict[str, Any], what: str, node_id: str) -> bool:
        try:
            self.bus.publish(topic, json.dumps(payload))
        except TransportError as e:
            self.logger.error(f"Error publishing {what} for node {node_id}: {e}")
            return False
        self.logger.debug(f"Published {what} for node {node_id}")
        return True

    def publish_sensors(self, node: Node) -> bool:
        return self._publish(self.topics.sensors(node.id), node.sensors_payload(), "sensor data", node.id)

    def publish_device_status(self, node: Node) -> bool:
        return self._publish(self.topics.device_status(node.id), node.devices_payload(), "device status", node.id)

    def publish_controls(self, node: Node) -> bool:
        return self._publish(self.topics.controls(node.id), node.controls_payload(), "control status", node.id)
