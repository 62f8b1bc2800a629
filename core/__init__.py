"""
Core module for the lunch order automation.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- surface: The AutomationSurface protocol the pipeline drives
- site_profile: URLs, selectors and checkout flow of each supported ordering website
- playwright_surface: Browser-backed surface (imported directly where needed)
"""

from .exceptions import (
    LunchOrderError,
    ConfigurationError,
    SurfaceError,
    SurfaceTimeoutError,
    ElementNotFoundError,
    UserNotFoundError,
    CatalogError,
    NotificationError,
    RunInProgressError,
)
from .surface import AutomationSurface, Candidate
from .site_profile import SiteProfile, GRUBHUB, SEAMLESS, get_profile

__all__ = [
    "LunchOrderError",
    "ConfigurationError",
    "SurfaceError",
    "SurfaceTimeoutError",
    "ElementNotFoundError",
    "UserNotFoundError",
    "CatalogError",
    "NotificationError",
    "RunInProgressError",
    "AutomationSurface",
    "Candidate",
    "SiteProfile",
    "GRUBHUB",
    "SEAMLESS",
    "get_profile",
]
