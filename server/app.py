"""
FastAPI application initialization and configuration.
"""
import logging
from fastapi import FastAPI

from .middleware import log_requests_middleware
from .endpoints import (
    auth_router,
    callback_router,
    email_router,
    health_router,
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(title="Mail Delegate", version="1.0.0")

# Add middleware
app.middleware("http")(log_requests_middleware)

# Register routers
app.include_router(health_router)
app.include_router(callback_router)
app.include_router(auth_router)
app.include_router(email_router)

logger.debug("FastAPI application initialized with all routers and middleware")
