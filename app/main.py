"""Storefront shipping service: FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import auth_routes, packaging, shipping, shipping_rules, system_config
from app.config import get_settings
from app.database import Base, engine
from app.middleware.rate_limit import RateLimiter, RateLimitMiddleware

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup (use migrations in production)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"{settings.app_name} {VERSION} started")
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=VERSION,
    description="Shipping quotes for the storefront checkout: packaging, "
                "admin shipping rules, Correios rates and AliExpress dropship freight",
    lifespan=lifespan,
)

shipping_limiter = RateLimiter(settings.shipping_requests_per_minute, settings.shipping_burst)
app.add_middleware(RateLimitMiddleware, limiter=shipping_limiter, paths=("/api/shipping",))

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_routes.router, prefix="/api")
app.include_router(shipping.router, prefix="/api")
app.include_router(shipping_rules.router, prefix="/api")
app.include_router(packaging.router, prefix="/api")
app.include_router(system_config.router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok", "service": settings.app_name, "version": VERSION}
