from typing import Dict, Any, Optional
from pydantic import BaseModel, Field, StrictBool

class DeviceCommand(BaseModel):
    device: str = Field(..., min_length=1)
    state: Optional[StrictBool] = None
    mode: Optional[str] = Field(default=None, pattern="^(auto|manual)$")

class ControlCommand(BaseModel):
    control: str = Field(..., min_length=1)
    value: Dict[str, Any]

class ReadingOut(BaseModel):
    value: float
    unit: str
    status: str = Field(..., pattern="^(low|optimal|high)$")

class DeviceStateOut(BaseModel):
    isActive: bool
    mode: str = Field(..., pattern="^(auto|manual)$")
    lastActivated: Optional[str] = None

class NodeOut(BaseModel):
    id: str
    status: str = Field(..., pattern="^(online|offline)$")
    sensors: Dict[str, ReadingOut] = {}
    devices: Dict[str, DeviceStateOut] = {}
    controls: Dict[str, Dict[str, Any]] = {}
    lastUpdated: Optional[str] = None

    # Atributos extra del inventario (nombre, ubicación...) se devuelven tal cual
    model_config = {"extra": "allow"}

class EngineStatus(BaseModel):
    engine_id: str
    status: str
    nodes: int
    online_nodes: int
    queued_events: int
