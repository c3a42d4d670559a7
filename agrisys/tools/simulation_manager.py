import asyncio
import json
import logging
import random
from datetime import timedelta

import click
import uvicorn

from ..api.main import create_app
from ..bus.base import InMemoryBus
from ..bus.mqtt import MqttBus
from ..config.settings import Settings
from ..core.exceptions import StoreLoadError
from ..core.registry import NodeRegistry
from ..simulator.engine import SimulationEngine
from ..utils.logger_config import setup_logging

logger = logging.getLogger(__name__)

def load_settings(config, nodes=None, broker=None, verbose=False) -> Settings:
    settings = Settings.from_env()
    if config:
        settings = settings.merge_yaml(config)
    return settings.merge({
        "nodes_file": nodes,
        "mqtt_broker": broker,
        "log_level": "DEBUG" if verbose else None
    })

def build_engine(settings: Settings, dry_run: bool = False) -> SimulationEngine:
    """Carga el inventario y construye el motor; un inventario inválido es fatal"""
    try:
        registry = NodeRegistry.from_file(settings.nodes_file)
    except StoreLoadError as e:
        logger.error(f"Error loading node data: {e}")
        raise click.ClickException(str(e))

    if dry_run:
        bus = InMemoryBus()
    else:
        bus = MqttBus(settings.mqtt_broker, settings.mqtt_client_id)
    return SimulationEngine(registry, bus, settings)

async def run_engine(engine: SimulationEngine) -> None:
    await engine.start_engine_main_loop()
    try:
        while engine.status == "running":
            await asyncio.sleep(1)
    finally:
        await engine.stop_engine_main_loop()

@click.group()
def cli():
    """Herramienta de gestión de la simulación de nodos agrícolas"""
    pass

@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), default=None, help='Archivo de configuración YAML')
@click.option('--nodes', '-n', type=click.Path(), default=None, help='Inventario JSON de nodos')
@click.option('--broker', '-b', default=None, help='URL del broker MQTT')
@click.option('--dry-run', is_flag=True, help='Usa un bus en memoria en lugar de MQTT')
@click.option('--api/--no-api', default=False, help='Expone la API HTTP')
@click.option('--verbose', '-v', is_flag=True, help='Mostrar más detalles')
def run(config, nodes, broker, dry_run, api, verbose):
    """Ejecuta la simulación y el controlador de dispositivos"""
    settings = load_settings(config, nodes, broker, verbose)
    setup_logging(settings.log_dir, settings.log_level, settings.log_json)
    engine = build_engine(settings, dry_run)

    try:
        if api:
            uvicorn.run(create_app(engine), host=settings.api_host, port=settings.api_port)
        else:
            asyncio.run(run_engine(engine))
    except KeyboardInterrupt:
        logger.info("Deteniendo simulación...")

@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), default=None, help='Archivo de configuración YAML')
@click.option('--nodes', '-n', type=click.Path(), default=None, help='Inventario JSON de nodos')
@click.option('--ticks', '-t', default=12, help='Número de ticks de simulación')
@click.option('--verbose', '-v', is_flag=True, help='Mostrar más detalles')
def replay(config, nodes, ticks, verbose):
    """Ejecuta N ticks en tiempo virtual con un bus en memoria y muestra lo publicado"""
    settings = load_settings(config, nodes, verbose=verbose)
    setup_logging(settings.log_dir, settings.log_level, json_format=False)
    engine = build_engine(settings, dry_run=True)

    engine.bus.connect()
    engine.publish_initial_state()
    engine.setup_simulation_events()
    end_time = engine.scheduler.current_time + timedelta(seconds=settings.simulation_interval * ticks)
    engine.scheduler.run_until(end_time)

    for topic, payload in engine.bus.published:
        click.echo(f"{topic} {payload}")
    click.echo(f"{len(engine.bus.published)} mensajes publicados")

@cli.command()
@click.option('--count', '-n', default=5, help='Número de nodos')
@click.option('--output', '-o', default='data/nodes.json', help='Archivo de salida')
@click.option('--seed', default=None, type=int, help='Semilla aleatoria')
def generate_inventory(count, output, seed):
    """Genera un inventario de nodos de ejemplo"""
    rng = random.Random(seed)
    nodes = []
    for i in range(count):
        nodes.append({
            "id": f"node-{i + 1:03d}",
            "name": f"Parcela {i + 1}",
            "status": "online",
            "sensors": {
                "soilMoisture": {"value": round(rng.uniform(30, 75), 1), "unit": "%"},
                "light": {"value": round(rng.uniform(200, 1100), 1), "unit": "lux"},
                "humidity": {"value": round(rng.uniform(45, 80), 1), "unit": "%"},
                "temperature": {"value": round(rng.uniform(16, 30), 1), "unit": "°C"}
            },
            "controls": {}
        })

    with open(output, 'w', encoding='utf-8') as f:
        json.dump(nodes, f, indent=2, ensure_ascii=False)

    click.echo(f"Inventario generado en: {output}")
