"""
Bakery Orders API.

Weekly supplier orders: drafts, sending, rajouts, history.
Run locally with `python main.py` (reload follows DEBUG).
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog
from datetime import datetime

from config import settings, check_connection, list_suppliers
from services.calendar_service import local_now

# structlog's filter_by_level reads the stdlib level
logging.basicConfig(format="%(message)s", level=settings.log_level)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the ordering setup and the state of the Supabase tables."""
    logger.info(
        "application_starting",
        environment=settings.environment,
        bakery=settings.bakery_name,
        timezone=settings.timezone,
        suppliers=[s.key for s in list_suppliers()],
        cutoff=f"{settings.default_cutoff_hour:02d}:{settings.default_cutoff_minute:02d}"
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info("database_connected", **db_status["tables"])
    else:
        logger.error(
            "database_connection_failed",
            table=db_status.get("table"),
            error=db_status.get("error")
        )

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="Bakery Orders",
    description="Weekly supplier orders for a bakery: drafts, sending, rajouts and history",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Next.js dev server and Vite
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """Database reachability plus the local time cutoffs are computed in."""
    db_status = check_connection()

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "local_time": local_now().isoformat(),
        "environment": settings.environment,
        "database": db_status
    }


@app.get("/")
async def root():
    """API information and entry points."""
    return {
        "name": "Bakery Orders API",
        "bakery": settings.bakery_name,
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "suppliers": "/api/suppliers",
            "calendar": "/api/suppliers/{supplier_key}/calendar",
            "orders": "/api/orders/{supplier_key}",
            "messages": "/api/orders/{supplier_key}/{delivery}/message"
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything the routes did not translate becomes INTERNAL_ERROR."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes import suppliers_router, orders_router

app.include_router(suppliers_router)
app.include_router(orders_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
