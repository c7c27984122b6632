"""Request admission control."""

from .rate_limit import ClientWindow, FixedWindowRateLimiter, RateLimitDecision, resolve_client_key

__all__ = ["ClientWindow", "FixedWindowRateLimiter", "RateLimitDecision", "resolve_client_key"]
