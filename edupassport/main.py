from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edupassport.api.activity import router as activity_router
from edupassport.api.credentials import router as credentials_router
from edupassport.api.health import router as health_router
from edupassport.api.metrics_endpoint import router as metrics_router
from edupassport.api.reveal import router as reveal_router
from edupassport.core.config import SETTINGS
from edupassport.core.logging import setup_logging
from edupassport.db.redis import lifespan_redis
from edupassport.middleware.metrics import MetricsMiddleware
from edupassport.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_redis():
        yield


app = FastAPI(
    title="edupassport-registry",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext → Metrics → CORS → route handler,
# so the request ID is set before metrics and handler logs.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(credentials_router)
app.include_router(reveal_router)
app.include_router(activity_router)

logger.info(
    "edupassport-registry started  env=%s log_level=%s port=%d chain_id=%d contract=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.chain_id,
    SETTINGS.contract_address,
)
