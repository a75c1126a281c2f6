"""HTTP middleware."""
from app.middleware.logging_middleware import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
