"""
AirMap FastAPI Application Entry Point
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from airmap.rules.map_config import get_map_config
from api.routes import layers

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [API] %(levelname)s %(name)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast on a missing or malformed map config
    config = get_map_config()
    logger.info(
        "AirMap API starting up, %d buckets, parameters: %s",
        config.bucket_count, ", ".join(sorted(config.parameter_max)),
    )
    yield
    logger.info("AirMap API shutting down")


app = FastAPI(
    title="AirMap API",
    description="Classified pollutant map layers",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(layers.router, prefix="/api/layers", tags=["Layers"])


@app.get("/api/health", tags=["Health"])
def health():
    return {"status": "ok", "service": "airmap-api", "version": "1.0.0"}
