"""
Mail Delegate HTTP service.

Serves the OAuth redirect page that hands authorization codes back to the
opener window, plus connection status, disconnect and send endpoints.
"""
from .server import MailServer
from .app import app

__version__ = "1.0.0"

__all__ = [
    'MailServer',
    'app',
]
