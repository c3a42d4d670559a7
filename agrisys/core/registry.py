from typing import Dict, List, Any, Iterable, Iterator, Optional
from contextlib import contextmanager
from pathlib import Path
import json
import logging
import threading

from .node import Node
from .exceptions import StoreLoadError

class NodeRegistry:
    """Almacén en memoria de los nodos, indexado por ID.

    El conjunto de IDs queda fijo al construir el registro: no hay alta ni baja
    de nodos en tiempo de ejecución. Toda mutación (tick, barrido, comando) debe
    hacerse dentro de `transaction()`, que serializa el acceso entre el bucle
    de simulación, los callbacks del bus y la API HTTP.
    """
    def __init__(self, nodes: Iterable[Node]):
        self._nodes: Dict[str, Node] = {}
        for node in nodes:
            if node.id in self._nodes:
                raise StoreLoadError(f"Duplicate node id in inventory: {node.id}")
            self._nodes[node.id] = node
        self._lock = threading.RLock()
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_records(cls, records: Any) -> "NodeRegistry":
        if not isinstance(records, list):
            raise StoreLoadError("Node inventory must be a JSON array")
        return cls(Node.from_dict(record) for record in records)

    @classmethod
    def from_file(cls, path: str) -> "NodeRegistry":
        """Carga el inventario de nodos desde un archivo JSON"""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreLoadError(f"Error loading node data from {path}: {e}")
        registry = cls.from_records(records)
        registry.logger.info(f"Loaded {len(registry)} nodes from {path}")
        return registry

    def get(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def all(self) -> List[Node]:
        """Nodos en el orden del inventario; cada llamada devuelve una lista nueva"""
        return list(self._nodes.values())

    def ids(self) -> List[str]:
        return list(self._nodes)

    @contextmanager
    def transaction(self) -> Iterator["NodeRegistry"]:
        """Sección crítica reentrante para una unidad de trabajo completa"""
        with self._lock:
            yield self

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(self.all())
