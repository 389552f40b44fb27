"""
FastAPI application for the contract reminders service
Hosts the immediate-send endpoint, scheduler admin endpoints and, unless
disabled, the daily locked scheduler job.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import config
from .contract_routes import router as contract_router
from .coordination import CoordinationContext
from .exceptions import (
    ReminderError,
    general_exception_handler,
    http_exception_handler,
    reminder_exception_handler,
    validation_exception_handler,
)
from .logging_config import RequestIDMiddleware, setup_logging
from .scheduler_routes import router as scheduler_router
from .services.scheduled_jobs import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create coordination clients and the background scheduler for the app lifetime"""
    coordination = getattr(app.state, "coordination", None)
    owns_coordination = coordination is None
    if owns_coordination:
        coordination = CoordinationContext.from_config()
        app.state.coordination = coordination
    
    scheduler_started = False
    if config.scheduler_disabled():
        logger.info("Daily reminder scheduler disabled (set DISABLE_SCHEDULER=false to enable)")
    else:
        try:
            start_scheduler(coordination)
            scheduler_started = True
        except Exception as e:
            logger.error(f"Failed to start background scheduler: {e}", exc_info=True)
    
    yield
    
    if scheduler_started:
        stop_scheduler()
    if owns_coordination:
        coordination.close()
        app.state.coordination = None


def create_app(coordination: CoordinationContext = None) -> FastAPI:
    """
    Build the FastAPI application
    
    Args:
        coordination: Pre-built coordination context (created on startup when omitted)
    
    Returns:
        Configured FastAPI instance
    """
    setup_logging(env=config.ENV, log_level=config.LOG_LEVEL)
    
    app = FastAPI(title="Contract Reminders API", lifespan=lifespan)
    app.state.coordination = coordination
    
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(ReminderError, reminder_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    app.include_router(contract_router)
    app.include_router(scheduler_router)
    
    @app.get("/health")
    async def health():
        """Health check endpoint for monitoring"""
        return {"status": "healthy", "service": "contract-reminders"}
    
    return app


app = create_app()
