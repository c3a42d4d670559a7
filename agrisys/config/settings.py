from typing import Dict, Any, Optional
from dataclasses import dataclass, fields, replace
from datetime import tzinfo
from zoneinfo import ZoneInfo
import os

import yaml
from dotenv import load_dotenv

# (sección, clave) del YAML -> campo de Settings
YAML_KEYS = {
    ("mqtt", "broker"): "mqtt_broker",
    ("mqtt", "client_id"): "mqtt_client_id",
    ("simulation", "interval"): "simulation_interval",
    ("simulation", "seed"): "simulation_seed",
    ("simulation", "timezone"): "sim_timezone",
    ("logging", "level"): "log_level",
    ("logging", "dir"): "log_dir",
    ("logging", "json"): "log_json",
    ("api", "host"): "api_host",
    ("api", "port"): "api_port",
}

def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")

@dataclass
class Settings:
    mqtt_broker: str = "mqtt://localhost:1883"
    mqtt_client_id: str = "agrisys-device-controller"
    topic_prefix: str = "agrisys"
    nodes_file: str = "data/nodes.json"
    simulation_interval: float = 5.0
    sweep_interval: float = 30.0
    simulation_seed: Optional[int] = None
    sim_timezone: Optional[str] = None
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_json: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> 'Settings':
        """Carga configuración desde variables de entorno (y .env si existe)"""
        load_dotenv()
        seed = os.getenv('SIMULATION_SEED')
        return cls(
            mqtt_broker=os.getenv('MQTT_BROKER', cls.mqtt_broker),
            mqtt_client_id=os.getenv('MQTT_CLIENT_ID', cls.mqtt_client_id),
            topic_prefix=os.getenv('TOPIC_PREFIX', cls.topic_prefix),
            nodes_file=os.getenv('NODES_FILE', cls.nodes_file),
            simulation_interval=float(os.getenv('SIMULATION_INTERVAL', cls.simulation_interval)),
            sweep_interval=float(os.getenv('SWEEP_INTERVAL', cls.sweep_interval)),
            simulation_seed=int(seed) if seed else None,
            sim_timezone=os.getenv('SIM_TIMEZONE') or None,
            log_level=os.getenv('LOG_LEVEL', cls.log_level),
            log_dir=os.getenv('LOG_DIR', cls.log_dir),
            log_json=_as_bool(os.getenv('LOG_JSON', str(cls.log_json))),
            api_host=os.getenv('API_HOST', cls.api_host),
            api_port=int(os.getenv('API_PORT', cls.api_port))
        )

    def merge(self, overrides: Dict[str, Any]) -> 'Settings':
        """Devuelve una copia con los valores indicados (se ignoran claves desconocidas y None)"""
        known = {f.name for f in fields(self)}
        values = {k: v for k, v in overrides.items() if k in known and v is not None}
        return replace(self, **values)

    def merge_yaml(self, path: str) -> 'Settings':
        """Superpone un archivo YAML con secciones opcionales mqtt/simulation/logging/api"""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        flat: Dict[str, Any] = {}
        for section, options in data.items():
            if not isinstance(options, dict):
                flat[section] = options
                continue
            for key, value in options.items():
                flat[YAML_KEYS.get((section, key), key)] = value
        return self.merge(flat)

    @property
    def timezone(self) -> Optional[tzinfo]:
        return ZoneInfo(self.sim_timezone) if self.sim_timezone else None
