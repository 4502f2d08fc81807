"""
FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import RequestIDMiddleware, LoggingMiddleware
from api.routes import payments as payments_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger, configure_logging
from core.response import success_response
from core.settings import payment_settings
from infrastructure.database import create_tables, dispose_engine
from infrastructure.external.payments import get_payment_gateway
from infrastructure.locks import init_order_lock, shutdown_order_lock


configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tables are only auto-created in development; production runs migrations
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")

    await init_order_lock()
    app.state.payment_gateway = get_payment_gateway()
    logger.info(
        "phonepe_gateway_initialized",
        sandbox=payment_settings.phonepe.use_sandbox,
        merchant_id=payment_settings.phonepe.merchant_id,
        lock_backend=payment_settings.lock.backend,
    )

    yield

    await app.state.payment_gateway.aclose()
    await shutdown_order_lock()
    await dispose_engine()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="PhonePe redirect-payment reconciliation service",
)

# Added bottom-up: RequestID runs first so the logger sees request_id
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(payments_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc",
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    return success_response(data={"status": "healthy"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
