# fragrance_hub/main.py
# Fragrance Hub API - perfume inventory, orders and purchasing
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fragrance_hub.settings import settings
from fragrance_hub.database import init_db, close_db, check_db_health, create_all
from fragrance_hub.errors import FragranceHubError
from fragrance_hub.state import AppState

from fragrance_hub.routers.products import router as products_router, catalog_router
from fragrance_hub.routers.movements import router as movements_router
from fragrance_hub.routers.orders import router as orders_router
from fragrance_hub.routers.purchase_orders import router as purchase_orders_router
from fragrance_hub.routers.reports import router as reports_router
from fragrance_hub.routers.product_reports import router as product_reports_router
from fragrance_hub.routers.activity import router as activity_router
from fragrance_hub.routers.session import router as session_router

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
from fragrance_hub.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


# ---------------------------------------------------------
# Lifespan: database + session state
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    if settings.DB_CREATE_ALL:
        await create_all()
    app.state.fragrance = AppState()
    logger.info("Fragrance Hub started")
    yield
    app.state.fragrance.clear()
    app.state.fragrance = None
    await close_db()
    logger.info("Fragrance Hub stopped")


# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="Fragrance Hub API",
    version=APP_VERSION,
    description="Perfume inventory, orders and purchase orders",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.exception_handler(FragranceHubError)
async def fragrance_hub_error_handler(request: Request, exc: FragranceHubError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(products_router)
app.include_router(catalog_router)
app.include_router(movements_router)
app.include_router(orders_router)
app.include_router(purchase_orders_router)
app.include_router(reports_router)
app.include_router(product_reports_router)
app.include_router(activity_router)
app.include_router(session_router)


@app.get("/health")
async def health():
    """Health check endpoint with database status."""
    result = {"status": "ok", "version": APP_VERSION}
    result["database"] = await check_db_health()
    return result
