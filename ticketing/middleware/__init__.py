"""Middleware package for FastAPI application."""

from ticketing.middleware.access_logging import AccessLoggingMiddleware

__all__ = ["AccessLoggingMiddleware"]
