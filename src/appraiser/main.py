"""Main FastAPI application for Pocket Appraisal."""

import logging
import logging.config
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_config
from .routes import appraise, health

load_dotenv()
config = get_config()
logging.config.dictConfig(config.get_log_config())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("🚀 Starting Pocket Appraisal API...")

    try:
        config.validate(require_api_key=True)
        logger.info(f"✅ Configuration validated (Environment: {config.environment})")
    except ValueError as e:
        logger.error(f"❌ Configuration error: {e}")
        raise

    yield

    logger.info("👋 Shutting down Pocket Appraisal API...")


app = FastAPI(
    title="Pocket Appraisal API",
    description="Sports card identification and pricing using Gemini AI",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if config.enable_api_docs else None,
    redoc_url="/redoc" if config.enable_api_docs else None,
    openapi_url="/openapi.json" if config.enable_api_docs else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.exception(f"❌ Unhandled exception on {request.url.path}: {str(exc)}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "detail": str(exc) if config.debug else "An unexpected error occurred",
        },
    )

app.include_router(health.router)
app.include_router(appraise.router)


@app.get("/api/v1/info")
async def api_info():
    """Get API information."""
    return {
        "name": "Pocket Appraisal API",
        "version": "1.0.0",
        "description": "Identify sports cards from photos and estimate raw and graded prices",
        "endpoints": {
            "appraise_manual": "/api/v1/appraise/manual",
            "appraise_images": "/api/v1/appraise/images",
            "outcome": "/api/v1/appraise/outcome",
            "health": "/api/v1/health",
            "docs": "/docs" if config.enable_api_docs else None,
        },
        "features": [
            "PNG/JPEG/WEBP image support",
            "Gemini identification with condition assessment",
            "Raw and graded pricing for base card and parallels",
        ],
        "disclaimer": "Pricing data is estimated and for informational purposes only.",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.appraiser.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_config=config.get_log_config(),
    )
