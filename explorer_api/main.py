from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from explorer_api.database import init_db, load_models
from explorer_api.api.routes import router as api_router
from explorer_api.api.routes.stripe_webhooks import router as webhook_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

load_models()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown events for the FastAPI application.
    """
    logger.info("Starting explorer API...")

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down explorer API...")

def create_app() -> FastAPI:
    app = FastAPI(
        title="Explorer API",
        description="Hosted block explorers: provisioning, billing and sync processes",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific domains
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Explorer Request Logging Middleware
    @app.middleware("http")
    async def log_explorer_requests(request: Request, call_next):
        """
        Log explorer and billing requests with their response time.
        """
        start_time = time.perf_counter()
        tracked = request.url.path.startswith("/api/explorers") or request.url.path.startswith("/webhooks")

        if tracked:
            client_ip = request.client.host if request.client else None
            if request.headers.get("X-Forwarded-For"):
                client_ip = request.headers.get("X-Forwarded-For").split(",")[0].strip()
            logger.info(f"Explorer request: {request.method} {request.url.path} from {client_ip}")

        response = await call_next(request)

        if tracked:
            process_time = time.perf_counter() - start_time
            logger.info(f"Explorer response: {response.status_code} in {process_time:.3f}s")

        return response

    # Include routers
    app.include_router(api_router)
    app.include_router(webhook_router, prefix="/webhooks", tags=["Webhooks"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Application health check"""
        return {
            "status": "healthy",
            "service": "explorer-api",
            "version": "1.0.0"
        }

    return app

# Create the app instance
app = create_app()
