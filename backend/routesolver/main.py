import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routesolver.config import settings
from routesolver.db.redis import close_redis, price_store_status
from routesolver.api.v1.router import api_router
from routesolver.services.oracles.factory import reset_price_oracle

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    logger.info("Route Solver avviato (oracle: %s, env: %s)", settings.price_oracle, settings.app_env)

    yield

    # Shutdown
    reset_price_oracle()
    if settings.redis_url:
        await close_redis()


app = FastAPI(
    title="Route Solver API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(api_router)


@app.get("/api/v1/health")
async def health():
    return {
        "status": "ok",
        "env": settings.app_env,
        "price_oracle": settings.price_oracle,
        "price_store": await price_store_status(),
    }
