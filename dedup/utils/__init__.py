"""Utility modules for the deduplication pipeline."""

from .rate_limit import RateLimiter

__all__ = ["RateLimiter"]
