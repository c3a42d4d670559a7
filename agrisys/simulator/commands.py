from typing import Dict, Any, Callable, Optional, Union
from datetime import datetime
import json
import logging

from pydantic import ValidationError

from ..api import validators as api_validators
from ..bus.publisher import NodePublisher
from ..bus.topics import TopicLayout, KIND_DEVICE_COMMAND, KIND_COMMAND
from ..core.device import validate_mode
from ..core.node import Node
from ..core.registry import NodeRegistry
from ..core.exceptions import (
    SimulationError, DeviceError, MalformedPayloadError, InvalidCommandError,
    UnknownNodeError, UnknownDeviceError
)
from ..utils.timeutils import utcnow

class CommandProcessor:
    """Aplica los comandos entrantes (dispositivos y controles) sobre el registro"""
    def __init__(
        self,
        registry: NodeRegistry,
        publisher: NodePublisher,
        topics: TopicLayout,
        clock: Callable[[], datetime] = utcnow
    ):
        self.registry = registry
        self.publisher = publisher
        self.topics = topics
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def _require_node(self, node_id: str) -> Node:
        node = self.registry.get(node_id)
        if node is None:
            raise UnknownNodeError(node_id)
        return node

    def apply_device_command(
        self,
        node_id: str,
        command: api_validators.DeviceCommand,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Actualiza un dispositivo y publica el mapa completo de dispositivos del nodo.

        El comando se valida entero antes de tocar el estado: o se aplica
        completo o no se aplica nada.
        """
        now = now or self.clock()
        with self.registry.transaction():
            node = self._require_node(node_id)
            device = node.get_device(command.device)
            if device is None:
                raise UnknownDeviceError(node_id, command.device)
            if command.mode is not None:
                try:
                    validate_mode(command.mode)
                except DeviceError as e:
                    raise InvalidCommandError(str(e))

            if command.state is not None:
                if command.state:
                    device.activate(now)
                else:
                    device.deactivate()
            if command.mode is not None:
                device.set_mode(command.mode)

            self.logger.info(f"Updated {command.device} device for node {node_id}: {device.to_dict()}")
            self.publisher.publish_device_status(node)
            return node.devices_payload()

    def apply_control_command(self, node_id: str, command: api_validators.ControlCommand) -> Dict[str, Any]:
        """Mezcla superficial de `value` sobre el control y publica los controles del nodo"""
        with self.registry.transaction():
            node = self._require_node(node_id)
            settings = node.controls.setdefault(command.control, {})
            settings.update(command.value)

            self.logger.info(f"Updated {command.control} control for node {node_id}: {settings}")
            self.publisher.publish_controls(node)
            return node.controls_payload()

    @staticmethod
    def decode_payload(payload: Union[bytes, str]) -> Any:
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            return json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedPayloadError(f"Invalid JSON payload: {e}")

    def dispatch(self, topic: str, payload: Union[bytes, str]) -> Dict[str, Any]:
        """Decodifica, valida y aplica un mensaje del bus. Lanza SimulationError si se descarta"""
        route = self.topics.parse(topic)
        if route is None or route[1] not in (KIND_DEVICE_COMMAND, KIND_COMMAND):
            raise InvalidCommandError(f"Unexpected topic {topic}")
        node_id, kind = route
        data = self.decode_payload(payload)

        try:
            if kind == KIND_DEVICE_COMMAND:
                command = api_validators.DeviceCommand.model_validate(data)
            else:
                command = api_validators.ControlCommand.model_validate(data)
        except ValidationError as e:
            raise InvalidCommandError(f"Invalid command for node {node_id}: {e.errors()}")

        self.logger.info(f"Received {kind} for node {node_id}: {data}")
        if kind == KIND_DEVICE_COMMAND:
            return self.apply_device_command(node_id, command)
        return self.apply_control_command(node_id, command)

    def handle_message(self, topic: str, payload: Union[bytes, str]) -> bool:
        """Punto de entrada del bus: nunca lanza; los mensajes inválidos se registran y descartan"""
        try:
            self.dispatch(topic, payload)
            return True
        except (UnknownNodeError, UnknownDeviceError) as e:
            self.logger.error(f"Command on {topic} dropped: {e}")
        except SimulationError as e:
            self.logger.warning(f"Message on {topic} dropped: {e}")
        except Exception as e:
            self.logger.error(f"Error processing message on {topic}: {e}", exc_info=True)
        return False
