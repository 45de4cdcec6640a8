"""
Main FastAPI application for the Support Desk ticket chat API
"""
import logging
from pathlib import Path
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from supportdesk import __version__
from supportdesk.config import settings
from supportdesk.database import ensure_indexes, close_connection
from supportdesk.api import message_router, ticket_router, health_router
from supportdesk.realtime import init_broadcaster, shutdown_broadcaster
from supportdesk.realtime.socket_routes import router as socket_router
from supportdesk.services import init_message_service, reset_message_service
from supportdesk.utils.monitoring import init_sentry, flush_events
from supportdesk.utils.secure_logging import configure_secure_logging
from supportdesk.middleware.rate_limiter import limiter
from supportdesk.middleware.cors import get_cors_origins
from supportdesk.middleware.security_headers import SecurityHeadersMiddleware
from supportdesk.security import SecureError, request_validation_handler, secure_exception_handler

# Configure secure logging (masks tokens and credentials automatically)
configure_secure_logging(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format_type=settings.log_format,
    include_trace_id=True,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting Support Desk API...")

    init_sentry()

    await ensure_indexes()
    logger.info("Database indexes created/verified")

    # Rooms start empty; clients re-join after a restart
    init_message_service(init_broadcaster())

    yield

    logger.info("Shutting down...")

    reset_message_service()
    shutdown_broadcaster()

    flush_events(timeout=2.0)

    await close_connection()
    logger.info("Database connection closed")


app = FastAPI(
    title="Support Desk API",
    description="Ticket conversations with role-based access and real-time rooms",
    version=__version__,
    lifespan=lifespan
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS restricted to the frontend origin(s)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
    max_age=600,
)

app.add_middleware(
    SecurityHeadersMiddleware,
    environment=settings.environment,
    excluded_paths=["/api/health"],
)

# Errors never expose internal details
app.add_exception_handler(SecureError, secure_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, secure_exception_handler)

# Routes
app.include_router(health_router)  # Health checks (no auth required)
app.include_router(message_router)
app.include_router(ticket_router)
app.include_router(socket_router)

# Uploaded attachments
Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount(settings.upload_url_prefix, StaticFiles(directory=settings.upload_dir), name="uploads")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Support Desk API",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "health": "/api/health",
            "list_messages": "GET /api/tickets/{ticket_id}/messages",
            "send_message": "POST /api/tickets/{ticket_id}/messages",
            "upload_attachment": "POST /api/tickets/{ticket_id}/messages/upload",
            "delete_message": "DELETE /api/messages/{message_id}",
            "update_status": "PUT /api/tickets/{ticket_id}/status",
            "realtime": "WS /ws?token=<jwt>",
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload
    )
