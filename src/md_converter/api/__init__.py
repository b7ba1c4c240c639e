"""
API module for md-converter.

Provides the HTTP conversion service and its progress event stream.
"""

from .middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from .server import APIServer, create_api_server

__all__ = [
    "APIServer",
    "create_api_server",
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
]
