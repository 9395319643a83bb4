"""
MedClaim Lifecycle Service

FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medclaim.api import router as api_router
from medclaim.config import settings
from medclaim.core.errors import LifecycleError

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    logger.info(f"Starting {settings.APP_NAME} (coverage {settings.COVERAGE_PERCENTAGE})")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Claim review and payment disbursement for a multi-role medical insurance system.

    ## Claim lifecycle

    draft → pending → submitted → under_review → approved / rejected → paid

    - **Approval** creates exactly one pending payment of `floor(cost * coverage)`
    - **Payment completion** marks the claim as paid
    - **Payment rejection** leaves the claim approved so it can be paid again
    - **Deleting a claim** also deletes its payments
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """Translate lifecycle failures into HTTP responses."""
    logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__}
    )


# Include routers
app.include_router(api_router)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with system info."""
    return {
        "system": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "operational",
        "docs": "/docs"
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("medclaim.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
