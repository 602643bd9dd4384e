"""
FastAPI middleware for request logging and timing.
"""
import time
import logging
from fastapi import Request

from utils.logging_utils import redact_headers

logger = logging.getLogger(__name__)


async def log_requests_middleware(request: Request, call_next):
    """Middleware for request logging and timing"""
    start_time = time.time()
    if logger.isEnabledFor(logging.DEBUG) and request.url.path != "/health":
        logger.debug(f"{request.method} {request.url.path} headers: {redact_headers(request.headers)}")

    response = await call_next(request)
    process_time = time.time() - start_time

    # Health probes are too noisy to log
    if request.url.path != "/health":
        logger.info(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s")

    return response
