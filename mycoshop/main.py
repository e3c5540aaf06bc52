import asyncio
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlmodel import Session
import structlog

from mycoshop.core.config import settings
from mycoshop.core.exceptions import ShopError, StoreUnavailable
from mycoshop.core.logging import configure_logging
from mycoshop.db.session import create_db_and_tables, database_available, engine, get_session
from mycoshop.routers import cart, orders, payments, products
from mycoshop.services.cart import CartService
from mycoshop.services.catalog import SqlCatalogStore

# Import models to ensure they are registered with SQLModel metadata
import mycoshop.models  # noqa: F401

logger = structlog.get_logger(__name__)

VERSION = "1.0.0"

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    try:
        create_db_and_tables()
        with Session(engine) as session:
            purged = CartService(session, SqlCatalogStore(session)).purge_expired()
        logger.info("Store ready", purged_carts=purged)
    except OperationalError as e:
        # Serve the fallback catalog until the database comes back
        logger.error("Database unavailable at startup", error=str(e))
    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    description="API for the MycoShop mushroom cultivation store"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def request_timeout(request: Request, call_next):
    # The handler thread keeps running and may still commit; a 504 means the
    # outcome is unknown
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error("Request timed out", method=request.method, path=request.url.path,
                     timeout=settings.REQUEST_TIMEOUT_SECONDS)
        return JSONResponse(
            status_code=504,
            content={"success": False, "error": "REQUEST_TIMEOUT", "message": "Request timed out; check the resource before retrying"},
        )

def error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": code, "message": message, **extra},
    )

@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    logger.info("Request rejected", path=request.url.path, error=exc.code, message=exc.message)
    return error_response(exc.status_code, exc.code, exc.message)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return error_response(400, "VALIDATION_ERROR", "Validation error", details=details)

@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    logger.error("Database error", path=request.url.path, error=str(exc))
    return error_response(StoreUnavailable.status_code, StoreUnavailable.code, StoreUnavailable.default_message)

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path)
    message = "Internal Server Error" if settings.is_production else str(exc)
    return error_response(500, "INTERNAL_ERROR", message)

@app.get("/")
def read_root():
    return {"message": "Welcome to MycoShop API. Visit /docs for Swagger UI."}

@app.get("/api/health")
def health(session: Session = Depends(get_session)):
    connected = database_available(session)
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.ENVIRONMENT,
        "database": "connected" if connected else "unavailable",
        "version": VERSION,
    }

app.include_router(products.router, prefix="/api/products", tags=["products"])
app.include_router(cart.router, prefix="/api/cart", tags=["cart"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
