"""
Endpoint handlers for the HTTP service.
"""
from .auth import router as auth_router
from .callback import router as callback_router
from .email import router as email_router
from .health import router as health_router

__all__ = [
    'auth_router',
    'callback_router',
    'email_router',
    'health_router',
]
