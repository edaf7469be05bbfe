"""
Tally Report Engine
Main Application Entry Point
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import config
from .utils.constants import APP_NAME, APP_VERSION
from .utils.logger import setup_logger, logger
from .controllers.action_controller import router as action_router
from .controllers.config_controller import router as config_router
from .controllers.health_controller import router as health_router


# Setup logging
setup_logger(
    level=config.logging.level,
    log_file=config.logging.file,
    max_size=config.logging.max_size,
    backup_count=config.logging.backup_count,
    console=config.logging.console,
    colorize=config.logging.colorize
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"{APP_NAME} starting...")
    logger.info(f"API running on http://{config.api.host}:{config.api.port}")
    logger.info(f"Tally gateway: http://{config.tally.server}:{config.tally.port}")
    yield
    logger.info(f"{APP_NAME} shutting down...")


# Create FastAPI application
app = FastAPI(
    title=APP_NAME,
    description="Query, reconcile and export TallyPrime accounting data",
    version=APP_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(action_router, prefix="/api/actions", tags=["Actions"])
app.include_router(config_router, prefix="/api/config", tags=["Config"])
app.include_router(health_router, prefix="/api/health", tags=["Health"])


@app.get("/")
async def root():
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
        "docs": "/docs"
    }


@app.get("/api/info")
async def info():
    """System information"""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "tally": {
            "server": config.tally.server,
            "port": config.tally.port,
            "company": config.tally.company or None
        },
        "report": {
            "page_size": config.report.page_size,
            "company_cache_ttl": config.report.company_cache_ttl
        }
    }
