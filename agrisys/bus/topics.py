from typing import Optional, Tuple

KIND_SENSORS = "sensors"
KIND_DEVICE_COMMAND = "device_command"
KIND_DEVICE_STATUS = "device_status"
KIND_CONTROLS = "controls"
KIND_COMMAND = "command"

_SUFFIXES = {
    ("sensors",): KIND_SENSORS,
    ("device", "command"): KIND_DEVICE_COMMAND,
    ("device", "status"): KIND_DEVICE_STATUS,
    ("controls",): KIND_CONTROLS,
    ("command",): KIND_COMMAND,
}

class TopicLayout:
    """Estructura de topics: `{prefix}/nodes/{id}/...`"""
    def __init__(self, prefix: str = "agrisys"):
        self.prefix = prefix.strip("/")

    def _topic(self, node_id: str, *parts: str) -> str:
        segments = [self.prefix] if self.prefix else []
        segments += ["nodes", node_id, *parts]
        return "/".join(segments)

    def sensors(self, node_id: str) -> str:
        return self._topic(node_id, "sensors")

    def device_command(self, node_id: str) -> str:
        return self._topic(node_id, "device", "command")

    def device_status(self, node_id: str) -> str:
        return self._topic(node_id, "device", "status")

    def controls(self, node_id: str) -> str:
        return self._topic(node_id, "controls")

    def command(self, node_id: str) -> str:
        return self._topic(node_id, "command")

    @property
    def subscriptions(self) -> Tuple[str, ...]:
        """Filtros con comodín para los comandos de todos los nodos"""
        return (self.device_command("+"), self.command("+"))

    def parse(self, topic: str) -> Optional[Tuple[str, str]]:
        """Devuelve (node_id, tipo) para un topic conocido, o None"""
        parts = topic.strip("/").split("/")
        if self.prefix:
            prefix_parts = self.prefix.split("/")
            if parts[:len(prefix_parts)] != prefix_parts:
                return None
            parts = parts[len(prefix_parts):]
        if len(parts) < 3 or parts[0] != "nodes" or not parts[1]:
            return None
        kind = _SUFFIXES.get(tuple(parts[2:]))
        if kind is None:
            return None
        return parts[1], kind
