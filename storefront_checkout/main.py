# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import CORS_ORIGINS
from .db import init_db
from .logging_config import setup_logging
from .routes import checkout_router, limiter
from .services.checkout_cache import get_cache_stats

# Configure logging at module load time
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Storefront checkout service started")
    yield


def create_app() -> FastAPI:
    """
    Create the FastAPI application.

    Routers are mounted under /api/v1 and at the root; the storefront front
    end calls the unprefixed paths.
    """
    app = FastAPI(
        title="Storefront Checkout API",
        description="Two-step checkout and order submission for the storefront",
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Health", "description": "Health check endpoints"},
            {"name": "Checkout", "description": "Customer checkout flow"},
        ],
    )

    # Add rate limit exception handler
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS configuration
    # In production, set CORS_ORIGINS to restrict allowed origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(checkout_router)
    app.include_router(api_v1)

    # Unprefixed paths used by the storefront front end
    app.include_router(checkout_router)

    @app.get("/health", tags=["Health"])
    def health_check():
        return {
            "status": "healthy",
            "checkout_cache": get_cache_stats(),
        }

    return app


app = create_app()
