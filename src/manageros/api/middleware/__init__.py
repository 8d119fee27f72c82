"""API middleware package."""

from src.manageros.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
