from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple, Union
import logging

from ..core.exceptions import TransportError

MessageHandler = Callable[[str, Union[bytes, str]], None]
ConnectHandler = Callable[[], None]

class MessageBus(ABC):
    """Adaptador del bus publish/subscribe"""
    def __init__(self):
        self.handler: Optional[MessageHandler] = None
        self.connect_handler: Optional[ConnectHandler] = None
        self.logger = logging.getLogger(__name__)

    def set_message_handler(self, handler: MessageHandler) -> None:
        self.handler = handler

    def set_connect_handler(self, handler: ConnectHandler) -> None:
        """Se invoca en cada conexión (o reconexión) con el broker"""
        self.connect_handler = handler

    def _notify_connected(self) -> None:
        if self.connect_handler is not None:
            self.connect_handler()

    def connect(self) -> None:
        pass

    def disconnect(self) -> None:
        pass

    @abstractmethod
    def publish(self, topic: str, payload: str) -> None:
        """Publica sin confirmación; lanza TransportError si falla"""
        pass

    @abstractmethod
    def subscribe(self, topic_filter: str) -> None:
        pass

def topic_matches(topic_filter: str, topic: str) -> bool:
    """Coincidencia de topics con los comodines MQTT '+' y '#'"""
    filter_parts = topic_filter.split("/")
    topic_parts = topic.split("/")
    for i, part in enumerate(filter_parts):
        if part == "#":
            return True
        if i >= len(topic_parts):
            return False
        if part != "+" and part != topic_parts[i]:
            return False
    return len(filter_parts) == len(topic_parts)

class InMemoryBus(MessageBus):
    """Bus en proceso: guarda lo publicado y entrega mensajes a las suscripciones.

    Se usa en las pruebas y en el modo `--dry-run` de la CLI.
    """
    def __init__(self):
        super().__init__()
        self.published: List[Tuple[str, str]] = []
        self.subscriptions: List[str] = []
        self.connected = False

    def connect(self) -> None:
        self.connected = True
        self._notify_connected()

    def disconnect(self) -> None:
        self.connected = False

    def publish(self, topic: str, payload: str) -> None:
        self.published.append((topic, payload))

    def subscribe(self, topic_filter: str) -> None:
        if topic_filter not in self.subscriptions:
            self.subscriptions.append(topic_filter)

    def deliver(self, topic: str, payload: Union[bytes, str]) -> None:
        """Simula la llegada de un mensaje desde el broker"""
        if self.handler is None:
            raise TransportError("No message handler registered")
        if any(topic_matches(f, topic) for f in self.subscriptions):
            self.handler(topic, payload)

    def messages_for(self, topic: str) -> List[str]:
        return [payload for t, payload in self.published if t == topic]

    def clear(self) -> None:
        self.published.clear()
