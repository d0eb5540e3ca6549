"""API routers for the mock test engine."""

from .mock_test import router as mock_test_router

__all__ = [
    "mock_test_router",
]
