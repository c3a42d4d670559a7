from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from ..simulator.engine import SimulationEngine
from .routes import nodes as nodes_router_module

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

def create_app(simulation_engine: SimulationEngine, manage_engine: bool = True) -> FastAPI:
    """Crea la API HTTP sobre un motor ya construido.

    Con `manage_engine=True` el ciclo de vida de la aplicación arranca y detiene
    el bucle principal del motor.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_engine:
            logger.info("Application startup: starting Simulation Engine...")
            await simulation_engine.start_engine_main_loop()
        yield
        if manage_engine:
            logger.info("Application shutdown: stopping Simulation Engine...")
            await simulation_engine.stop_engine_main_loop()

    app = FastAPI(title="Agricultural Node Simulator API", version="0.1.0", lifespan=lifespan)
    app.state.simulation_engine = simulation_engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(nodes_router_module.router, prefix=API_PREFIX, tags=["Nodes"])
    return app
