"""FastAPI app entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import LAKBAY_API_URL, LOG_LEVEL

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Lakbay admin dashboard starting, upstream %s", LAKBAY_API_URL)
    yield
    logger.info("Lakbay admin dashboard stopped")


app = FastAPI(title="Lakbay Admin", lifespan=lifespan)

from .api import router as api_router
from .dashboard import router as dashboard_router
from .export import router as export_router

app.include_router(api_router)
app.include_router(export_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
