import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status

from gastrocore.api.v1.businesses import router as businesses_router
from gastrocore.api.v1.inventory import router as inventory_router
from gastrocore.api.v1.orders import router as orders_router
from gastrocore.core.config import LOG_LEVEL, PROJECT_NAME, VERSION
from gastrocore.core.db import init_db, close_db
from gastrocore.core.exception_handlers import setup_exception_handlers

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("gastrocore")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db()  # Connect to DB and generate schemas
    yield
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(businesses_router, prefix="/api/v1/businesses", tags=["Businesses & Quotas"])
app.include_router(inventory_router, prefix="/api/v1/inventory", tags=["Inventory Ledger"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Order Lifecycle"])


setup_exception_handlers(app)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
