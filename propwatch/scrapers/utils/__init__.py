"""Scraper utilities for rate limiting, browser sessions, retries and text extraction."""

from .browser_manager import BrowserSessionManager, get_browser_manager
from .normalizer import (
    Features,
    ListingNormalizer,
    LocationInfo,
    PropertyTypeClassifier,
    absolute_url,
    parse_features,
)
from .rate_limiter import RateLimiter, get_rate_limiter
from .retry import http_retry
from .user_agents import USER_AGENTS, default_headers, get_random_user_agent

__all__ = [
    # Rate limiting
    "RateLimiter",
    "get_rate_limiter",
    # Browser
    "BrowserSessionManager",
    "get_browser_manager",
    # User agents
    "USER_AGENTS",
    "default_headers",
    "get_random_user_agent",
    # Normalization
    "Features",
    "ListingNormalizer",
    "LocationInfo",
    "PropertyTypeClassifier",
    "absolute_url",
    "parse_features",
    # Retry decorators
    "http_retry",
]
