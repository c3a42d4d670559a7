from fastapi import APIRouter, HTTPException, Depends, Request
from typing import List, Dict, Any

from agrisys.api import validators as api_validators
from agrisys.core.exceptions import UnknownNodeError, UnknownDeviceError, InvalidCommandError
from agrisys.core.node import Node
from agrisys.simulator.engine import SimulationEngine

router = APIRouter()

def get_simulation_engine(request: Request) -> SimulationEngine:
    engine = getattr(request.app.state, "simulation_engine", None)
    if not engine:
        raise HTTPException(status_code=503, detail="Simulation engine not initialized")
    return engine

def _get_node(engine: SimulationEngine, node_id: str) -> Node:
    node = engine.registry.get(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail=f"Node {node_id} not found")
    return node

@router.get("/health", response_model=api_validators.EngineStatus)
async def health(engine: SimulationEngine = Depends(get_simulation_engine)):
    return engine.get_status()

@router.get("/nodes", response_model=List[api_validators.NodeOut])
async def list_nodes(engine: SimulationEngine = Depends(get_simulation_engine)):
    """Devuelve todos los nodos en el orden del inventario"""
    with engine.registry.transaction():
        return [node.to_dict() for node in engine.registry.all()]

@router.get("/nodes/{node_id}", response_model=api_validators.NodeOut)
async def get_node(node_id: str, engine: SimulationEngine = Depends(get_simulation_engine)):
    with engine.registry.transaction():
        return _get_node(engine, node_id).to_dict()

@router.get("/nodes/{node_id}/sensors", response_model=Dict[str, api_validators.ReadingOut])
async def get_node_sensors(node_id: str, engine: SimulationEngine = Depends(get_simulation_engine)):
    with engine.registry.transaction():
        return _get_node(engine, node_id).sensors_payload()

@router.get("/nodes/{node_id}/devices", response_model=Dict[str, api_validators.DeviceStateOut])
async def get_node_devices(node_id: str, engine: SimulationEngine = Depends(get_simulation_engine)):
    with engine.registry.transaction():
        return _get_node(engine, node_id).devices_payload()

@router.get("/nodes/{node_id}/controls", response_model=Dict[str, Dict[str, Any]])
async def get_node_controls(node_id: str, engine: SimulationEngine = Depends(get_simulation_engine)):
    with engine.registry.transaction():
        return _get_node(engine, node_id).controls_payload()

@router.post("/nodes/{node_id}/device/command", response_model=Dict[str, api_validators.DeviceStateOut])
async def post_device_command(
    node_id: str,
    command: api_validators.DeviceCommand,
    engine: SimulationEngine = Depends(get_simulation_engine)
):
    """Mismo efecto que un mensaje en `nodes/{id}/device/command`"""
    try:
        return engine.processor.apply_device_command(node_id, command)
    except (UnknownNodeError, UnknownDeviceError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidCommandError as e:
        raise HTTPException(status_code=422, detail=str(e))

@router.post("/nodes/{node_id}/command", response_model=Dict[str, Dict[str, Any]])
async def post_control_command(
    node_id: str,
    command: api_validators.ControlCommand,
    engine: SimulationEngine = Depends(get_simulation_engine)
):
    """Mismo efecto que un mensaje en `nodes/{id}/command`"""
    try:
        return engine.processor.apply_control_command(node_id, command)
    except UnknownNodeError as e:
        raise HTTPException(status_code=404, detail=str(e))
