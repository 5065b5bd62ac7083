from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
import time
import uuid
from contextlib import asynccontextmanager

from sqlalchemy import func, text

from app.routers import moderation, projects, analytics
from app.core.logger import logger
from app.core.exceptions import ModerationServiceException, EXCEPTION_STATUS_MAPPING
from app.core.config import settings

# Application lifespan management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management for startup and shutdown events."""
    logger.info("Starting Testimonial Moderation API", extra={"version": "1.0.0"})
    
    # Import all models to ensure they are registered with SQLAlchemy
    from app.models.project import Project
    from app.models.testimonial import Testimonial
    
    try:
        from app.db.session import engine, Base
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables verified/created successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}", exc_info=True)
    
    if not settings.openai_api_key:
        logger.info("OPENAI_API_KEY not configured, AI moderation disabled")
    
    yield
    
    logger.info("Shutting down Testimonial Moderation API")

app = FastAPI(
    title=settings.app_name,
    description="""
    Moderation service for customer testimonials.
    
    Every submitted testimonial passes through a heuristic rule engine
    (length, links, domain allow/block lists, profanity, brand-keyword
    density, spam signals) and, when configured, the OpenAI Moderation API.
    The two are merged into one verdict: APPROVED, FLAGGED, REJECTED or
    PENDING (manual review).
    
    ## Features
    
    * **Per-project settings**: auto-moderation, verified-author bypass,
      profanity strictness, custom lists
    * **Graceful degradation**: submissions never fail when the AI layer is down
    * **Bulk actions**: atomic approve/reject/flag with a short undo history
    * **Analytics**: moderation status breakdown per project
    
    ## Authentication
    
    Admin endpoints accept `Authorization: Bearer <ADMIN_API_KEY>` when an
    admin key is configured.
    
    ## Error Handling
    
    All errors return structured JSON responses with:
    - `error_code`: Machine-readable error identifier
    - `message`: Human-readable error description
    - `details`: Additional error context
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

app.add_middleware(
    TrustedHostMiddleware, 
    allowed_hosts=["*"]  # Configure appropriately for production
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to all requests for tracing."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    
    logger.info(
        "Request started",
        extra={
            "request_id": request_id,
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else "unknown"
        }
    )
    
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(process_time)
    
    logger.info(
        "Request completed",
        extra={
            "request_id": request_id,
            "status_code": response.status_code,
            "process_time": process_time
        }
    )
    
    return response

# Global exception handler
@app.exception_handler(ModerationServiceException)
async def moderation_exception_handler(request: Request, exc: ModerationServiceException):
    """Handle application exceptions raised outside route try blocks (e.g. dependencies)."""
    logger.error(
        f"Moderation service exception: {exc.message}",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "error_code": exc.error_code,
            "details": exc.details
        }
    )
    
    status_code = EXCEPTION_STATUS_MAPPING.get(exc.__class__, 500)
    headers = None
    if "retry_after" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after"])}
    
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
            "request_id": getattr(request.state, "request_id", "unknown")
        },
        headers=headers
    )

app.include_router(projects.router, tags=["projects"])
app.include_router(moderation.router, tags=["moderation"])
app.include_router(analytics.router, tags=["analytics"])

@app.get("/health", tags=["monitoring"])
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.
    
    Returns:
        Health status and basic system information
    """
    try:
        from app.db.session import get_db
        db = next(get_db())
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": "1.0.0",
            "services": {
                "database": "healthy",
                "api": "healthy",
                "ai_moderation": "enabled" if settings.openai_api_key and settings.ai_moderation_enabled else "disabled"
            }
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=503,
            detail={
                "status": "unhealthy",
                "timestamp": time.time(),
                "error": str(e)
            }
        )

@app.get("/metrics", tags=["monitoring"])
async def get_metrics():
    """
    Basic metrics endpoint for monitoring.
    
    Returns:
        Testimonial counts by moderation status
    """
    try:
        from app.db.session import get_db
        from app.models.testimonial import Testimonial
        
        db = next(get_db())
        try:
            total = db.query(func.count(Testimonial.id)).scalar()
            status_stats = db.query(
                Testimonial.moderation_status,
                func.count(Testimonial.id)
            ).group_by(Testimonial.moderation_status).all()
        finally:
            db.close()
        
        return {
            "timestamp": time.time(),
            "total_testimonials": total,
            "status_breakdown": {status.value: count for status, count in status_stats},
        }
    except Exception as e:
        logger.error(f"Metrics collection failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Failed to collect metrics",
                "message": str(e)
            }
        )

@app.get("/", tags=["general"])
async def root():
    """
    Root endpoint with API information.
    
    Returns:
        Basic API information and links
    """
    return {
        "message": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics",
        "endpoints": {
            "submit_testimonial": "/api/v1/projects/{project_id}/testimonials",
            "moderation_settings": "/api/v1/projects/{project_id}/moderation-settings",
            "moderation_queue": "/api/v1/moderation/queue",
            "bulk_moderation": "/api/v1/moderation/bulk",
            "analytics": "/api/v1/analytics/moderation-summary"
        }
    }
