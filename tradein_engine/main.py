from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from tradein_engine.core.config import config
from tradein_engine.core.errors import register_exception_handlers
from tradein_engine.core.logging import init_logging
from tradein_engine.db.mongo import mongo_lifespan
from tradein_engine.features.pricing.router import router as pricing_router
from tradein_engine.features.tradein.admin_router import router as tradein_admin_router
from tradein_engine.features.tradein.router import router as tradein_router


# Configure logging ON IMPORT so all subsequent module logs behave correctly.
init_logging(
    root_level="INFO",
    app_level="DEBUG" if config.debug else "INFO",
    third_party_level="WARNING",
)


@asynccontextmanager
async def lifespan(application: FastAPI):
    async with mongo_lifespan(application):
        yield


app = FastAPI(title=config.app_name, lifespan=lifespan)
register_exception_handlers(app)

app.include_router(pricing_router)
app.include_router(tradein_router)
app.include_router(tradein_admin_router)


@app.get("/health")
async def health():
    return {"ok": True}
