from typing import List, Optional, Tuple
from urllib.parse import urlparse
import logging

import paho.mqtt.client as mqtt

from .base import MessageBus
from ..core.exceptions import TransportError

DEFAULT_PORT = 1883

def parse_broker_url(url: str) -> Tuple[str, int]:
    """'mqtt://host:1883' -> ('host', 1883). Acepta también 'host' o 'host:port'"""
    if "://" not in url:
        url = f"mqtt://{url}"
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ValueError(f"Invalid MQTT broker URL: {url}")
    return parsed.hostname, parsed.port or DEFAULT_PORT

class MqttBus(MessageBus):
    """Adaptador paho-mqtt.

    Los callbacks de paho se ejecutan en su propio hilo de red (`loop_start`);
    el manejador registrado debe serializar el acceso al registro por su cuenta.
    """
    def __init__(
        self,
        broker_url: str = "mqtt://localhost:1883",
        client_id: str = "agrisys-device-controller",
        keepalive: int = 60,
        client: Optional[mqtt.Client] = None
    ):
        super().__init__()
        self.host, self.port = parse_broker_url(broker_url)
        self.keepalive = keepalive
        self.filters: List[str] = []
        self.connected = False
        self.logger = logging.getLogger(__name__)

        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        self.client.on_connect = self.on_connect
        self.client.on_disconnect = self.on_disconnect
        self.client.on_message = self.on_message

    def connect(self) -> None:
        self.logger.info(f"Connecting to MQTT broker at {self.host}:{self.port}...")
        # La conexión y las reconexiones las gestiona el hilo de red de paho
        self.client.connect_async(self.host, self.port, self.keepalive)
        self.client.loop_start()

    def disconnect(self) -> None:
        self.logger.info("Disconnecting from MQTT broker...")
        self.client.disconnect()
        self.client.loop_stop()
        self.connected = False

    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            self.connected = False
            self.logger.error(f"MQTT connection error: {reason_code}")
            return
        self.connected = True
        self.logger.info("Connected to MQTT broker")
        # Las suscripciones se renuevan en cada reconexión
        for topic_filter in self.filters:
            try:
                self._subscribe(topic_filter)
            except TransportError as e:
                self.logger.error(str(e))
        self._notify_connected()

    def on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self.connected = False
        self.logger.warning(f"Disconnected from MQTT broker: {reason_code}")

    def on_message(self, client, userdata, msg):
        if self.handler is None:
            self.logger.warning(f"Message on {msg.topic} dropped: no handler registered")
            return
        self.handler(msg.topic, msg.payload)

    def _subscribe(self, topic_filter: str) -> None:
        result, _ = self.client.subscribe(topic_filter, qos=0)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Error subscribing to {topic_filter}: {mqtt.error_string(result)}")
        self.logger.info(f"Subscribed to {topic_filter}")

    def subscribe(self, topic_filter: str) -> None:
        if topic_filter not in self.filters:
            self.filters.append(topic_filter)
        if self.connected:
            self._subscribe(topic_filter)

    def publish(self, topic: str, payload: str) -> None:
        info = self.client.publish(topic, payload, qos=0, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Error publishing to {topic}: {mqtt.error_string(info.rc)}")
