from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from time import time

from contact_finder.core.config import settings
from contact_finder.api.v1.endpoints import contacts, admin

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its status code and duration."""
    start_time = time()
    method = request.method
    path = request.url.path
    client_ip = request.client.host if request.client else "unknown"

    logger.info(f"→ {method} {path} from {client_ip}")

    response = await call_next(request)

    duration = time() - start_time
    status_code = response.status_code
    if status_code >= 500:
        logger.error(f"← {method} {path} → {status_code} (duration: {duration:.3f}s)")
    else:
        logger.info(f"← {method} {path} → {status_code} (duration: {duration:.3f}s)")

    return response


# Global exception handler so unexpected errors still return JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception: {exc} for {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Include routers
app.include_router(contacts.router, prefix="/api/v1/contacts", tags=["contacts"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["admin"])


@app.on_event("startup")
async def startup_tasks():
    """Log registered routes on application startup."""
    routes = sorted(
        f"{method} {route.path}"
        for route in app.routes
        if hasattr(route, "methods")
        for method in route.methods
        if method != "HEAD"
    )
    logger.info(f"✓ {len(routes)} routes registered:")
    for route in routes:
        logger.info(f"    - {route}")


@app.on_event("shutdown")
async def shutdown_tasks():
    """Close the provider HTTP client."""
    from contact_finder.services.contact_discovery import get_contact_discovery_service
    await get_contact_discovery_service().client.close()
