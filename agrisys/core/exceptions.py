class SimulationError(Exception):
    """Error base para excepciones de simulación"""
    pass

class StoreLoadError(SimulationError):
    """El inventario de nodos no se pudo leer o es inválido"""
    pass

class DeviceError(SimulationError):
    """Error relacionado con dispositivos"""
    pass

class MalformedPayloadError(SimulationError):
    """Mensaje entrante que no se puede decodificar"""
    pass

class InvalidCommandError(SimulationError):
    """Comando con campos inválidos (modo desconocido, estado no booleano...)"""
    pass

class UnknownNodeError(SimulationError):
    """El comando referencia un nodo que no existe en el registro"""

    def __init__(self, node_id: str):
        super().__init__(f"Node {node_id} not found")
        self.node_id = node_id

class UnknownDeviceError(SimulationError):
    """El comando referencia un dispositivo que el nodo no tiene"""

    def __init__(self, node_id: str, device: str):
        super().__init__(f"Invalid device type '{device}' for node {node_id}")
        self.node_id = node_id
        self.device = device

class TransportError(SimulationError):
    """Fallo al publicar o suscribirse en el bus"""
    pass
